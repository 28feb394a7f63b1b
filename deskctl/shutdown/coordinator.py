"""
Shutdown coordination across the application's subsystems.

After the application has been asked to quit, the coordinator makes sure
that the VM, the hardware emulator and the application itself are all
gone, one after the other. Trouble with the VM or the emulator is logged
and skipped so that the application itself still gets shut down; only a
broken installation layout aborts the sequence.
"""

import logging
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from deskctl.config import settings
from deskctl.context import Context
from deskctl.paths import PathResolutionError, PathResolver
from deskctl.shutdown.escalation import EscalationOutcome, Subsystem
from deskctl.shutdown.probes import (
    ApplicationProbe,
    ExecutableProbe,
    VmStatusProbe,
)
from deskctl.shutdown.terminators import (
    ApplicationTerminator,
    ExecutableTerminator,
    ForceKillApplicationTerminator,
    VmDeleteTerminator,
    VmForceStopTerminator,
    VmStopTerminator,
)
from deskctl.vm import VmManager

logger = logging.getLogger(__name__)


class ShutdownError(Exception):
    """Raised when the shutdown sequence cannot be carried out at all."""
    pass


class InitiatingCommand(Enum):
    """CLI command that requested the shutdown."""
    SHUTDOWN = "shutdown"
    FACTORY_RESET = "factory-reset"


@dataclass(frozen=True)
class ShutdownRequest:
    """Parameters of one shutdown invocation."""

    wait_for_shutdown: bool
    initiating_command: InitiatingCommand = InitiatingCommand.SHUTDOWN


class ShutdownCoordinator:
    """
    Tears down the application's subsystems in a fixed order.

    On Windows only the application itself runs, so a single escalation
    against it is enough. Everywhere else the VM goes first, then the
    emulator process it left behind, then the application.
    """

    # (retry_count, retry_wait) per stage
    VM_TUNING = (15, 2)
    VM_FORCE_TUNING = (1, 0)
    EMULATOR_TUNING = (15, 2)
    APP_TUNING = (5, 1)
    WINDOWS_APP_TUNING = (15, 2)

    def __init__(
        self,
        request: ShutdownRequest,
        resolver: Optional[PathResolver] = None,
        platform: str = sys.platform,
        vm_instance: Optional[str] = None,
    ):
        self.request = request
        self.platform = platform
        self.resolver = resolver or PathResolver(platform=platform)
        self.vm_instance = vm_instance or settings.VM_INSTANCE

    def run(self, ctx: Context) -> None:
        """
        Run the shutdown sequence.

        Raises:
            ShutdownError: If a required path cannot be resolved
        """
        if self.platform == "win32":
            try:
                self._escalate(
                    ctx,
                    Subsystem("the app", ApplicationProbe(), ForceKillApplicationTerminator(),
                              *self.WINDOWS_APP_TUNING),
                )
            except Exception as e:
                logger.error(f"Error trying to terminate the app: {e}")
            return

        command = self.request.initiating_command
        if command not in (InitiatingCommand.SHUTDOWN, InitiatingCommand.FACTORY_RESET):
            raise ShutdownError(f"internal error: unknown shutdown initiating command of {command!r}")

        emulator, app_dir, main_executable = self._resolve_required_paths()
        self._stop_vm(ctx)
        self._stop_emulator(ctx, emulator)
        self._stop_application(ctx, app_dir, main_executable)

    def _escalate(self, ctx: Context, subsystem: Subsystem) -> EscalationOutcome:
        outcome = subsystem.escalate(ctx, self.request.wait_for_shutdown)
        logger.info(f"{subsystem.name}: {outcome.value}")
        return outcome

    def _discover_vm_manager(self) -> Optional[VmManager]:
        try:
            paths = self.resolver.get_paths()
        except PathResolutionError as e:
            logger.error(f"Ignoring error trying to get application paths: {e}")
            return None
        try:
            vm_home = self.resolver.setup_vm_home(paths.app_home)
        except PathResolutionError as e:
            logger.error(f"Ignoring error trying to get lima directory: {e}")
            return None
        try:
            executable = self.resolver.get_vm_manager_path()
        except PathResolutionError as e:
            logger.error(f"Ignoring error trying to get path to limactl: {e}")
            return None
        return VmManager(executable, vm_home, self.vm_instance)

    def _stop_vm(self, ctx: Context) -> None:
        command = self.request.initiating_command
        vm_manager = self._discover_vm_manager()
        if vm_manager is None:
            return
        probe = VmStatusProbe(vm_manager)

        if command is InitiatingCommand.FACTORY_RESET:
            try:
                self._escalate(ctx, Subsystem("lima", probe, VmDeleteTerminator(vm_manager), *self.VM_TUNING))
            except Exception as e:
                logger.error(f"Ignoring error trying to delete lima subtree: {e}")
            return

        try:
            self._escalate(ctx, Subsystem("lima", probe, VmStopTerminator(vm_manager), *self.VM_TUNING))
        except Exception as e:
            logger.error(f"Ignoring error trying to stop lima: {e}")
        # Check once more, and force-stop if the graceful stop didn't take
        try:
            self._escalate(
                ctx, Subsystem("lima", probe, VmForceStopTerminator(vm_manager), *self.VM_FORCE_TUNING)
            )
        except Exception as e:
            logger.error(f"Ignoring error trying to force-stop lima: {e}")

    def _resolve_required_paths(self) -> Tuple[Path, Path, Path]:
        """
        Resolve the paths without which shutdown cannot proceed.

        Done before any subsystem is touched, so a broken layout aborts the
        sequence without stopping anything.
        """
        try:
            emulator = self.resolver.get_emulator_executable()
        except PathResolutionError as e:
            raise ShutdownError(f"failed to find qemu executable: {e}") from e
        try:
            app_dir = self.resolver.get_application_directory()
        except PathResolutionError as e:
            raise ShutdownError(f"failed to find application directory: {e}") from e
        try:
            main_executable = self.resolver.get_main_executable()
        except PathResolutionError as e:
            raise ShutdownError(f"failed to get {settings.APP_DISPLAY_NAME} executable: {e}") from e
        return emulator, app_dir, main_executable

    def _stop_emulator(self, ctx: Context, emulator: Path) -> None:
        try:
            self._escalate(
                ctx,
                Subsystem("qemu", ExecutableProbe(emulator), ExecutableTerminator(emulator),
                          *self.EMULATOR_TUNING),
            )
        except Exception as e:
            logger.error(f"Ignoring error trying to kill qemu: {e}")

    def _stop_application(self, ctx: Context, app_dir: Path, main_executable: Path) -> None:
        terminator = ApplicationTerminator(main_executable, app_dir, self.platform)
        try:
            self._escalate(
                ctx,
                Subsystem("the app", ExecutableProbe(main_executable), terminator, *self.APP_TUNING),
            )
        except ExceptionGroup as eg:
            causes = "; ".join(str(e) for e in eg.exceptions)
            logger.error(f"Error trying to terminate the app: {eg.message}: {causes}")
        except Exception as e:
            logger.error(f"Error trying to terminate the app: {e}")


def finish_shutdown(
    ctx: Context,
    wait_for_shutdown: bool,
    initiating_command: InitiatingCommand = InitiatingCommand.SHUTDOWN,
) -> None:
    """
    Make sure none of the application's processes survive a shutdown request.

    Called after the application has been asked to quit by either
    ``deskctl shutdown`` or ``deskctl factory-reset``.

    Args:
        ctx: Cancellation context for external commands
        wait_for_shutdown: Give each subsystem time to exit before killing it
        initiating_command: The command that requested the shutdown

    Raises:
        ShutdownError: If the installation layout cannot be resolved
    """
    request = ShutdownRequest(wait_for_shutdown, initiating_command)
    ShutdownCoordinator(request).run(ctx)
