"""
Probes that report whether a subsystem is still running.

A probe returns True while its subsystem runs and raises when it cannot
tell. Probes are expected to be quick and take no cancellation context.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from deskctl import process, windows
from deskctl.vm import VmManager


class ProcessProbe(ABC):
    """Abstract base class for running-state probes."""

    @abstractmethod
    def check(self) -> bool:
        """Return True if the subsystem is running."""
        pass


class ExecutableProbe(ProcessProbe):
    """Running while some process is executing the given binary."""

    def __init__(self, executable_path: Path):
        self.executable_path = executable_path

    def check(self) -> bool:
        return process.find_pid_of_process(self.executable_path) != 0

    def __repr__(self) -> str:
        return f"ExecutableProbe({str(self.executable_path)!r})"


class VmStatusProbe(ProcessProbe):
    """Running while the VM manager lists the instance as Running."""

    def __init__(self, vm_manager: VmManager):
        self.vm_manager = vm_manager

    def check(self) -> bool:
        return self.vm_manager.is_running()


class ApplicationProbe(ProcessProbe):
    """Running while the application's Windows image is in the process list."""

    def check(self) -> bool:
        return windows.is_application_running()
