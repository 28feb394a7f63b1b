"""
Terminators that stop a subsystem.

Each terminator raises on failure and returns normally once it has done
its job (including when there turned out to be nothing to stop).
Terminators that run external commands honour the cancellation context.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Sequence

import psutil

from deskctl import process, windows
from deskctl.context import Context
from deskctl.vm import VmManager

logger = logging.getLogger(__name__)

# Electron does not always start a new process group on Linux, and Windows
# has no process groups to speak of.
NO_PROCESS_GROUP_PLATFORMS = ("linux", "win32")


class TerminationError(Exception):
    """Raised when a process cannot be terminated."""
    pass


class ApplicationTerminationError(ExceptionGroup):
    """Every failure seen while terminating the application."""
    pass


class Terminator(ABC):
    """Abstract base class for termination strategies."""

    @abstractmethod
    def terminate(self, ctx: Context) -> None:
        """Stop the subsystem, raising if that fails."""
        pass


class ExecutableTerminator(Terminator):
    """Sends SIGTERM to the process running the given binary."""

    def __init__(self, executable_path: Path):
        self.executable_path = executable_path

    def terminate(self, ctx: Context) -> None:
        pid = process.find_pid_of_process(self.executable_path)
        if pid == 0:
            return
        try:
            psutil.Process(pid).terminate()
        except psutil.NoSuchProcess:
            # exited between the lookup and the signal
            logger.debug(f"pid {pid} already exited")
        except psutil.Error as e:
            raise TerminationError(f"failed to terminate process {pid}: {e}") from e


class ProcessGroupTerminator(Terminator):
    """Signals the whole process group of the process running a binary."""

    def __init__(self, executable_path: Path, force: bool = False):
        self.executable_path = executable_path
        self.force = force

    def terminate(self, ctx: Context) -> None:
        pid = process.find_pid_of_process(self.executable_path)
        process.kill_process_group(pid, self.force)


class DirectoryTerminator(Terminator):
    """Stops every process whose executable lives under a directory."""

    def __init__(self, directory: Path, force: bool = True):
        self.directory = directory
        self.force = force

    def terminate(self, ctx: Context) -> None:
        process.terminate_processes_in_directory(self.directory, self.force)


class VmStopTerminator(Terminator):
    """``limactl stop``: asks the VM to shut down."""

    def __init__(self, vm_manager: VmManager):
        self.vm_manager = vm_manager

    def terminate(self, ctx: Context) -> None:
        self.vm_manager.stop(ctx)


class VmForceStopTerminator(VmStopTerminator):
    """``limactl stop --force``: kills the VM's processes."""

    def terminate(self, ctx: Context) -> None:
        self.vm_manager.stop_force(ctx)


class VmDeleteTerminator(VmStopTerminator):
    """``limactl delete --force``: removes the VM instance."""

    def terminate(self, ctx: Context) -> None:
        self.vm_manager.delete_force(ctx)


class ForceKillApplicationTerminator(Terminator):
    """Kills the application's Windows process trees."""

    def terminate(self, ctx: Context) -> None:
        windows.force_kill_application()


class CompositeTerminator(Terminator):
    """
    Runs several terminators and reports all of their failures.

    A failing terminator never prevents the following ones from running.
    """

    message = "failed to terminate"

    def __init__(self, terminators: Sequence[Terminator]):
        self.terminators = list(terminators)

    def terminate(self, ctx: Context) -> None:
        errors: List[Exception] = []
        for terminator in self.terminators:
            try:
                terminator.terminate(ctx)
            except Exception as e:
                logger.debug(f"{type(terminator).__name__} failed: {e}")
                errors.append(e)
        if errors:
            raise ApplicationTerminationError(self.message, errors)


class ApplicationTerminator(CompositeTerminator):
    """
    Terminates the application's process group, where the platform has a
    reliable one, and then sweeps everything running from its install
    directory.
    """

    message = "failed to terminate the application"

    def __init__(self, main_executable: Path, app_dir: Path, platform: str):
        terminators: List[Terminator] = []
        if platform not in NO_PROCESS_GROUP_PLATFORMS:
            terminators.append(ProcessGroupTerminator(main_executable, force=False))
        terminators.append(DirectoryTerminator(app_dir, force=True))
        super().__init__(terminators)
