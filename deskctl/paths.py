"""
Installation layout lookups.

Resolves where the application keeps its data (app home, VM home) and
where its bundled executables live (resources tree, main executable,
VM manager, hardware emulator). The CLI itself is installed inside the
resources tree at ``<resources>/<os>/bin/deskctl``, which is what most
lookups are anchored on.
"""

import logging
import os
import platform as host_platform
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from deskctl.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class PathResolutionError(Exception):
    """Raised when part of the installation layout cannot be located."""
    pass


# Directory names used inside the resources tree, keyed by sys.platform
PLATFORM_DIRS = {
    "darwin": "darwin",
    "linux": "linux",
    "win32": "win32",
}

# Emulator binaries are named after the guest architecture
ARCH_ALIASES = {
    "amd64": "x86_64",
    "x86_64": "x86_64",
    "arm64": "aarch64",
    "aarch64": "aarch64",
}


@dataclass(frozen=True)
class Paths:
    """Per-user data locations of the application."""

    app_home: Path
    vm_home: Path
    resources: Path


def get_parent_dir(path: Path, levels: int) -> Path:
    """Walk ``levels`` directories up from ``path``."""
    for _ in range(levels):
        path = path.parent
    return path


def is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def find_first_executable(*candidates: Path) -> Path:
    """Return the first candidate that exists and is executable."""
    for candidate in candidates:
        if is_executable(candidate):
            return candidate
        logger.debug(f"{candidate} is not an executable file")
    listed = ", ".join(str(c) for c in candidates)
    raise PathResolutionError(f"none of the candidate executables exist: {listed}")


class PathResolver:
    """
    Locates the application's files for one platform.

    All lookups raise PathResolutionError when something cannot be found;
    callers decide whether that is fatal.
    """

    def __init__(
        self,
        platform: str = sys.platform,
        config: Optional[Settings] = None,
        home: Optional[Path] = None,
    ):
        self.platform = platform
        self.config = config or default_settings
        self.home = home or Path.home()

    @property
    def platform_dir(self) -> str:
        return PLATFORM_DIRS.get(self.platform, self.platform)

    def get_app_home(self) -> Path:
        if self.config.APP_HOME:
            return Path(self.config.APP_HOME)
        if self.platform == "darwin":
            return self.home / "Library" / "Application Support" / self.config.APP_NAME
        if self.platform == "win32":
            local_app_data = os.getenv("LOCALAPPDATA")
            if not local_app_data:
                raise PathResolutionError("LOCALAPPDATA is not set")
            return Path(local_app_data) / self.config.APP_NAME
        data_home = os.getenv("XDG_DATA_HOME")
        if data_home:
            return Path(data_home) / self.config.APP_NAME
        return self.home / ".local" / "share" / self.config.APP_NAME

    def get_paths(self) -> Paths:
        """Resolve the application's data directories."""
        app_home = self.get_app_home()
        return Paths(
            app_home=app_home,
            vm_home=app_home / "lima",
            resources=self.get_resources_path(),
        )

    def get_resources_path(self) -> Path:
        """
        Get the resources directory of the installation.

        Returns:
            DESKCTL_RESOURCES_PATH when set, otherwise the directory three
            levels above the running CLI executable.
        """
        if self.config.RESOURCES_PATH:
            return Path(self.config.RESOURCES_PATH)
        cli_path = Path(sys.argv[0]) if sys.argv and sys.argv[0] else None
        if cli_path is None:
            raise PathResolutionError("cannot determine the path of the running executable")
        try:
            cli_path = cli_path.resolve(strict=True)
        except OSError as e:
            raise PathResolutionError(f"failed to resolve {cli_path}: {e}") from e
        return get_parent_dir(cli_path, 3)

    def get_main_executable(self) -> Path:
        """Get the path of the application's main executable."""
        if self.config.MAIN_EXECUTABLE:
            candidate = Path(self.config.MAIN_EXECUTABLE)
        else:
            install_root = get_parent_dir(self.get_resources_path(), 2)
            if self.platform == "darwin":
                candidate = install_root / "MacOS" / self.config.APP_DISPLAY_NAME
            elif self.platform == "win32":
                candidate = install_root / self.config.WINDOWS_EXECUTABLE_NAME
            else:
                candidate = install_root / self.config.APP_NAME
        if not is_executable(candidate):
            raise PathResolutionError(f"main executable {candidate} not found")
        return candidate

    def get_application_directory(self) -> Path:
        """
        Get the directory the application is installed in.

        On macOS this is the ``.app`` bundle enclosing the main executable,
        elsewhere the directory holding it.
        """
        main_executable = self.get_main_executable().resolve()
        if self.platform == "darwin":
            for parent in main_executable.parents:
                if parent.suffix == ".app":
                    return parent
            raise PathResolutionError(f"{main_executable} is not inside an application bundle")
        return main_executable.parent

    def setup_vm_home(self, app_home: Path) -> Path:
        """Make sure the VM manager's home directory exists and return it."""
        vm_home = app_home / "lima"
        try:
            vm_home.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PathResolutionError(f"failed to create VM home {vm_home}: {e}") from e
        return vm_home

    def get_vm_manager_path(self) -> Path:
        resources = self.get_resources_path()
        name = "limactl.exe" if self.platform == "win32" else "limactl"
        candidates: List[Path] = [resources / self.platform_dir / "lima" / "bin" / name]
        if self.platform == "linux":
            candidates.append(get_parent_dir(resources, 4) / "usr" / "bin" / name)
        return find_first_executable(*candidates)

    def get_emulator_executable(self, machine: Optional[str] = None) -> Path:
        """
        Get the hardware emulator executable for the host architecture.

        Args:
            machine: Architecture name, defaults to platform.machine()

        Returns:
            The first existing emulator candidate
        """
        if self.platform == "win32":
            raise PathResolutionError("qemu is not installed on Windows")
        resources = self.get_resources_path()
        machine = (machine or host_platform.machine()).lower()
        arch = ARCH_ALIASES.get(machine, machine)
        name = f"qemu-system-{arch}"
        candidates: List[Path] = [resources / self.platform_dir / "lima" / "bin" / name]
        if self.platform == "linux":
            # AppImage installs ship qemu in the image's own usr/bin
            candidates.append(get_parent_dir(resources, 4) / "usr" / "bin" / name)
        return find_first_executable(*candidates)
