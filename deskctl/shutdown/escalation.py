"""
Poll-then-kill escalation for a single subsystem.

A subsystem is given a fixed number of checks, spaced a fixed number of
seconds apart, to exit on its own. If it is still running after the last
check it is terminated. A failing check is not the same as "still
running": it aborts the escalation without terminating anything.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum

from deskctl.context import Context
from deskctl.shutdown.probes import ProcessProbe
from deskctl.shutdown.terminators import Terminator

logger = logging.getLogger(__name__)


class ProbeError(Exception):
    """Raised when checking whether a subsystem is running fails."""

    def __init__(self, subsystem: str, error: Exception):
        super().__init__(f"while checking {subsystem}, found error: {error}")
        self.subsystem = subsystem
        self.error = error


class EscalationOutcome(Enum):
    """How an escalation finished."""
    RESOLVED = "resolved"  # exited on its own, nothing was killed
    TERMINATED = "terminated"  # the terminator ran


def escalate(
    probe: ProcessProbe,
    terminator: Terminator,
    retry_count: int,
    retry_wait: int,
    wait_for_shutdown: bool,
    ctx: Context,
    name: str = "subsystem",
) -> EscalationOutcome:
    """
    Wait for a subsystem to exit, terminating it if it does not.

    Args:
        probe: Reports whether the subsystem is still running
        terminator: Stops the subsystem
        retry_count: Number of checks before giving up on waiting
        retry_wait: Seconds to sleep between checks
        wait_for_shutdown: If False, terminate without checking at all
        ctx: Cancellation context handed to the terminator
        name: Subsystem name used in log messages

    Returns:
        RESOLVED if a check found the subsystem gone, TERMINATED otherwise

    Raises:
        ProbeError: If a check fails; the terminator is not run
    """
    if wait_for_shutdown:
        for iteration in range(retry_count):
            if iteration > 0:
                logger.debug(f"checking {name} showed it's still running; sleeping {retry_wait} seconds")
                time.sleep(retry_wait)
            try:
                running = probe.check()
            except Exception as e:
                raise ProbeError(name, e) from e
            if not running:
                logger.debug(f"{name} is no longer running")
                return EscalationOutcome.RESOLVED

    logger.debug(f"About to force-kill {name}")
    terminator.terminate(ctx)
    return EscalationOutcome.TERMINATED


@dataclass
class Subsystem:
    """One stage of the shutdown pipeline."""

    name: str
    probe: ProcessProbe
    terminator: Terminator
    retry_count: int
    retry_wait: int

    def __post_init__(self):
        if self.retry_count < 0:
            raise ValueError(f"retry_count must be >= 0, got {self.retry_count}")
        if self.retry_wait < 0:
            raise ValueError(f"retry_wait must be >= 0, got {self.retry_wait}")

    def escalate(self, ctx: Context, wait_for_shutdown: bool) -> EscalationOutcome:
        return escalate(
            self.probe,
            self.terminator,
            self.retry_count,
            self.retry_wait,
            wait_for_shutdown,
            ctx,
            name=self.name,
        )
