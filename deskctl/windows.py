"""
Windows-native application control.

Windows installs run neither the VM manager nor the emulator from the
resources tree, so shutdown there only needs to find the application
by its image name and kill it together with its children.
"""

import logging
from typing import Dict, List

import psutil

from deskctl.config import settings

logger = logging.getLogger(__name__)

KILL_WAIT_SECONDS = 5.0


class ApplicationKillError(Exception):
    """Raised when application processes survive a forced kill."""
    pass


def _matches(proc: psutil.Process, image_name: str) -> bool:
    name = proc.info.get("name") or ""
    return name.lower() == image_name.lower()


def find_application_processes(image_name: str | None = None) -> List[psutil.Process]:
    """Return the running processes whose image name is the application's."""
    image_name = image_name or settings.WINDOWS_EXECUTABLE_NAME
    return [p for p in psutil.process_iter(["pid", "name"]) if _matches(p, image_name)]


def is_application_running() -> bool:
    """Check whether any application process is running."""
    try:
        return bool(find_application_processes())
    except psutil.Error as e:
        raise ApplicationKillError(f"failed to list processes: {e}") from e


def force_kill_application() -> None:
    """Kill every application process and all of its descendants."""
    try:
        roots = find_application_processes()
    except psutil.Error as e:
        raise ApplicationKillError(f"failed to list processes: {e}") from e
    if not roots:
        logger.debug("No application processes to kill")
        return

    # Electron helpers share the main image name, so trees overlap
    by_pid: Dict[int, psutil.Process] = {}
    for root in roots:
        try:
            for child in root.children(recursive=True):
                by_pid.setdefault(child.pid, child)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            pass
        by_pid.setdefault(root.pid, root)
    procs = list(by_pid.values())

    for proc in procs:
        try:
            logger.debug(f"Killing pid {proc.pid}")
            proc.kill()
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied as e:
            logger.warning(f"Access denied killing pid {proc.pid}: {e}")

    _, alive = psutil.wait_procs(procs, timeout=KILL_WAIT_SECONDS)
    if alive:
        pids = ", ".join(str(p.pid) for p in alive)
        raise ApplicationKillError(f"application processes still running: {pids}")
