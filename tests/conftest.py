import pytest
from pathlib import Path
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from deskctl.context import Context
from deskctl.paths import Paths, PathResolver
from deskctl.vm import VmManager

RESOURCES = Path("/opt/rancher-desktop/resources/resources")
APP_HOME = Path("/home/user/.local/share/rancher-desktop")


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def ctx():
    return Context.background()


@pytest.fixture
def mock_sleep():
    with patch("deskctl.shutdown.escalation.time.sleep") as mock:
        yield mock


@pytest.fixture
def mock_resolver():
    resolver = MagicMock(spec=PathResolver)
    resolver.get_paths.return_value = Paths(
        app_home=APP_HOME,
        vm_home=APP_HOME / "lima",
        resources=RESOURCES,
    )
    resolver.setup_vm_home.return_value = APP_HOME / "lima"
    resolver.get_vm_manager_path.return_value = RESOURCES / "linux" / "lima" / "bin" / "limactl"
    resolver.get_emulator_executable.return_value = RESOURCES / "linux" / "lima" / "bin" / "qemu-system-x86_64"
    resolver.get_application_directory.return_value = Path("/opt/rancher-desktop")
    resolver.get_main_executable.return_value = Path("/opt/rancher-desktop/rancher-desktop")
    return resolver


@pytest.fixture
def mock_vm_manager():
    """Patch VmManager in the coordinator; yields the instance it will build."""
    with patch("deskctl.shutdown.coordinator.VmManager") as mock_cls:
        instance = MagicMock(spec=VmManager)
        instance.is_running.return_value = False
        mock_cls.return_value = instance
        yield instance


@pytest.fixture
def mock_find_pid():
    """No emulator or application process is running unless a test says so."""
    with patch("deskctl.process.find_pid_of_process") as mock:
        mock.return_value = 0
        yield mock
