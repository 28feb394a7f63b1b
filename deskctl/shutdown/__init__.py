"""
Shutdown escalation for the application's subsystems.

Provides the poll-then-kill escalation policy, the probes and terminators
it drives, and the coordinator that runs them across the VM, the emulator
and the application in order.
"""

from deskctl.shutdown.coordinator import (
    InitiatingCommand,
    ShutdownCoordinator,
    ShutdownError,
    ShutdownRequest,
    finish_shutdown,
)
from deskctl.shutdown.escalation import EscalationOutcome, ProbeError, Subsystem, escalate

__all__ = [
    "EscalationOutcome",
    "InitiatingCommand",
    "ProbeError",
    "ShutdownCoordinator",
    "ShutdownError",
    "ShutdownRequest",
    "Subsystem",
    "escalate",
    "finish_shutdown",
]
