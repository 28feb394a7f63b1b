"""
Process lookup and signalling primitives built on psutil.

These helpers know nothing about the application; they find processes
by executable path and deliver termination signals to single processes,
process groups, or everything running out of a directory.
"""

import logging
import os
import signal
from pathlib import Path
from typing import List, Union

import psutil

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ProcessError(Exception):
    """Raised when processes cannot be enumerated or signalled."""
    pass


def _resolve(path: PathLike) -> Path:
    try:
        return Path(path).resolve()
    except OSError:
        return Path(path)


def _process_exe(proc: psutil.Process) -> Path | None:
    # process_iter fills info; exe is None where access was denied
    exe = proc.info.get("exe")
    if not exe:
        return None
    return _resolve(exe)


def find_pid_of_process(executable: PathLike) -> int:
    """
    Find the pid of a process running the given executable.

    Args:
        executable: Path of the executable to look for

    Returns:
        The pid of the first matching process, or 0 if none is running

    Raises:
        ProcessError: If the process table cannot be read
    """
    target = _resolve(executable)
    try:
        for proc in psutil.process_iter(["pid", "exe"]):
            if _process_exe(proc) == target:
                return proc.pid
    except psutil.Error as e:
        raise ProcessError(f"failed to list processes: {e}") from e
    return 0


def kill_process_group(pid: int, force: bool) -> None:
    """
    Signal every process in the process group of ``pid``.

    Args:
        pid: Any member of the group; 0 means nothing to do
        force: Send SIGKILL instead of SIGTERM
    """
    if pid == 0:
        return
    if not hasattr(os, "killpg"):
        raise ProcessError("process groups are not supported on this platform")
    sig = signal.SIGKILL if force else signal.SIGTERM
    try:
        pgid = os.getpgid(pid)
        logger.debug(f"Sending {sig.name} to process group {pgid} (pid {pid})")
        os.killpg(pgid, sig)
    except ProcessLookupError:
        logger.debug(f"Process group of pid {pid} is already gone")
    except OSError as e:
        raise ProcessError(f"failed to kill process group of pid {pid}: {e}") from e


def terminate_processes_in_directory(directory: PathLike, force: bool) -> None:
    """
    Terminate every process whose executable lives under ``directory``.

    The current process is never touched. All processes are attempted even
    if some of them fail; failures are reported together afterwards.

    Args:
        directory: Installation directory to sweep
        force: Kill instead of terminate
    """
    root = _resolve(directory)
    own_pid = os.getpid()
    failures: List[str] = []
    try:
        candidates = list(psutil.process_iter(["pid", "exe"]))
    except psutil.Error as e:
        raise ProcessError(f"failed to list processes: {e}") from e

    for proc in candidates:
        if proc.pid == own_pid:
            continue
        try:
            exe = _process_exe(proc)
            if exe is None or not exe.is_relative_to(root):
                continue
            logger.debug(f"{'Killing' if force else 'Terminating'} pid {proc.pid} ({exe})")
            if force:
                proc.kill()
            else:
                proc.terminate()
        except psutil.NoSuchProcess:
            continue
        except psutil.Error as e:
            failures.append(f"pid {proc.pid}: {e}")

    if failures:
        raise ProcessError(
            f"failed to terminate processes in {root}: " + "; ".join(failures)
        )
