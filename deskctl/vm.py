"""
Client for the VM manager (limactl) that runs the application's VM.

The manager's location and home directory are discovered once per
shutdown and handed to a VmManager instance; every probe and terminator
that talks to the VM shares that instance.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from deskctl.config import settings
from deskctl.context import Context

logger = logging.getLogger(__name__)

STATUS_FORMAT = "{{.Status}}"


class VmCommandError(Exception):
    """Raised when a VM manager command fails."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class CommandCancelledError(VmCommandError):
    """Raised when a command is stopped because its context was cancelled."""
    pass


def run_command(
    args: Sequence[str],
    ctx: Context,
    env: Optional[Dict[str, str]] = None,
    poll_interval: Optional[float] = None,
    grace_period: Optional[float] = None,
) -> None:
    """
    Run a command with stdin, stdout and stderr passed through.

    The child is polled until it exits. If ``ctx`` is cancelled first, the
    child is terminated, given ``grace_period`` seconds, and then killed.

    Raises:
        CommandCancelledError: If the context was cancelled
        VmCommandError: If the command could not be started or exited non-zero
    """
    poll_interval = poll_interval if poll_interval is not None else settings.COMMAND_POLL_INTERVAL
    grace_period = grace_period if grace_period is not None else settings.COMMAND_GRACE_PERIOD
    command = " ".join(args)

    if ctx.cancelled:
        raise CommandCancelledError(f"not running {command}: context cancelled")

    logger.debug(f"Running {command}")
    try:
        proc = subprocess.Popen(list(args), env=env)
    except OSError as e:
        raise VmCommandError(f"failed to run {command}: {e}") from e

    while True:
        try:
            returncode = proc.wait(timeout=poll_interval)
            break
        except subprocess.TimeoutExpired:
            if ctx.cancelled:
                _stop_child(proc, grace_period)
                raise CommandCancelledError(f"{command} cancelled")
        except KeyboardInterrupt:
            _stop_child(proc, grace_period)
            raise

    if returncode != 0:
        raise VmCommandError(f"{command} exited with status {returncode}", returncode)


def _stop_child(proc: subprocess.Popen, grace_period: float) -> None:
    logger.debug(f"Terminating pid {proc.pid}")
    proc.terminate()
    try:
        proc.wait(timeout=grace_period)
    except subprocess.TimeoutExpired:
        logger.debug(f"pid {proc.pid} ignored SIGTERM; killing it")
        proc.kill()
        proc.wait()


class VmManager:
    """
    Runs VM manager subcommands against a single VM instance.

    Args:
        executable: Path of the limactl binary
        home: Directory the manager keeps its instances in (LIMA_HOME)
        instance: Name of the managed VM instance
    """

    def __init__(self, executable: Path, home: Path, instance: str = settings.VM_INSTANCE):
        self.executable = Path(executable)
        self.home = Path(home)
        self.instance = instance

    @property
    def env(self) -> Dict[str, str]:
        env = dict(os.environ)
        env["LIMA_HOME"] = str(self.home)
        return env

    def command(self, *args: str) -> List[str]:
        return [str(self.executable), *args, self.instance]

    def status(self) -> str:
        """Return the instance's status as reported by ``ls``."""
        args = self.command("ls", "--format", STATUS_FORMAT)
        try:
            result = subprocess.run(
                args,
                env=self.env,
                stdout=subprocess.PIPE,
                text=True,
                check=False,
            )
        except OSError as e:
            raise VmCommandError(f"failed to run {' '.join(args)}: {e}") from e
        if result.returncode != 0:
            raise VmCommandError(
                f"{' '.join(args)} exited with status {result.returncode}",
                result.returncode,
            )
        return result.stdout

    def is_running(self) -> bool:
        return self.status().startswith("Running")

    def stop(self, ctx: Context) -> None:
        run_command(self.command("stop"), ctx, env=self.env)

    def stop_force(self, ctx: Context) -> None:
        run_command(self.command("stop", "--force"), ctx, env=self.env)

    def delete_force(self, ctx: Context) -> None:
        run_command(self.command("delete", "--force"), ctx, env=self.env)

    def __repr__(self) -> str:
        return f"VmManager({str(self.executable)!r}, instance={self.instance!r})"
