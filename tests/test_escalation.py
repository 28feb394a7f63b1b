"""
Tests for the poll-then-kill escalation policy.

Covers how often the probe and terminator run, the sleeps between checks,
and how probe failures abort an escalation.
"""

import pytest
from unittest.mock import MagicMock, call

from deskctl.shutdown.escalation import (
    EscalationOutcome,
    ProbeError,
    Subsystem,
    escalate,
)
from deskctl.shutdown.probes import ProcessProbe
from deskctl.shutdown.terminators import Terminator


@pytest.fixture
def probe():
    return MagicMock(spec=ProcessProbe)


@pytest.fixture
def terminator():
    return MagicMock(spec=Terminator)


class TestEscalate:
    """Test the escalation algorithm."""

    @pytest.mark.parametrize("retry_count", [1, 2, 15])
    def test_resolved_on_first_check(self, probe, terminator, ctx, mock_sleep, retry_count):
        probe.check.return_value = False

        outcome = escalate(probe, terminator, retry_count, 2, True, ctx)

        assert outcome == EscalationOutcome.RESOLVED
        probe.check.assert_called_once_with()
        terminator.terminate.assert_not_called()
        mock_sleep.assert_not_called()

    @pytest.mark.parametrize("retry_count,retry_wait", [(1, 0), (5, 1), (15, 2)])
    def test_always_running_terminates_once(self, probe, terminator, ctx, mock_sleep, retry_count, retry_wait):
        probe.check.return_value = True

        outcome = escalate(probe, terminator, retry_count, retry_wait, True, ctx)

        assert outcome == EscalationOutcome.TERMINATED
        assert probe.check.call_count == retry_count
        terminator.terminate.assert_called_once_with(ctx)
        assert mock_sleep.call_args_list == [call(retry_wait)] * (retry_count - 1)

    @pytest.mark.parametrize("retry_count", [0, 1, 15])
    def test_no_wait_skips_probe(self, probe, terminator, ctx, mock_sleep, retry_count):
        outcome = escalate(probe, terminator, retry_count, 2, False, ctx)

        assert outcome == EscalationOutcome.TERMINATED
        probe.check.assert_not_called()
        terminator.terminate.assert_called_once_with(ctx)
        mock_sleep.assert_not_called()

    def test_zero_retries_kills_immediately(self, probe, terminator, ctx, mock_sleep):
        outcome = escalate(probe, terminator, 0, 2, True, ctx)

        assert outcome == EscalationOutcome.TERMINATED
        probe.check.assert_not_called()
        terminator.terminate.assert_called_once_with(ctx)

    def test_first_check_is_immediate(self, probe, terminator, ctx, mock_sleep):
        probe.check.side_effect = [True, True, False]

        outcome = escalate(probe, terminator, 15, 2, True, ctx)

        assert outcome == EscalationOutcome.RESOLVED
        assert probe.check.call_count == 3
        assert mock_sleep.call_args_list == [call(2), call(2)]
        terminator.terminate.assert_not_called()

    @pytest.mark.parametrize("failing_check", [1, 3, 5])
    def test_probe_error_aborts_without_terminating(self, probe, terminator, ctx, mock_sleep, failing_check):
        error = OSError("process table unavailable")
        probe.check.side_effect = [True] * (failing_check - 1) + [error]

        with pytest.raises(ProbeError) as exc_info:
            escalate(probe, terminator, 5, 1, True, ctx, name="qemu")

        assert exc_info.value.error is error
        assert exc_info.value.__cause__ is error
        assert exc_info.value.subsystem == "qemu"
        assert "while checking qemu" in str(exc_info.value)
        assert probe.check.call_count == failing_check
        terminator.terminate.assert_not_called()

    def test_terminator_error_propagates(self, probe, terminator, ctx, mock_sleep):
        probe.check.return_value = True
        terminator.terminate.side_effect = RuntimeError("kill failed")

        with pytest.raises(RuntimeError, match="kill failed"):
            escalate(probe, terminator, 2, 0, True, ctx)

        terminator.terminate.assert_called_once_with(ctx)


class TestSubsystem:
    """Test the pipeline stage descriptor."""

    def test_escalate_uses_tuning(self, probe, terminator, ctx, mock_sleep):
        probe.check.return_value = True
        subsystem = Subsystem("lima", probe, terminator, retry_count=3, retry_wait=2)

        outcome = subsystem.escalate(ctx, wait_for_shutdown=True)

        assert outcome == EscalationOutcome.TERMINATED
        assert probe.check.call_count == 3
        assert mock_sleep.call_args_list == [call(2), call(2)]

    @pytest.mark.parametrize("retry_count,retry_wait", [(-1, 0), (0, -1)])
    def test_rejects_negative_tuning(self, probe, terminator, retry_count, retry_wait):
        with pytest.raises(ValueError):
            Subsystem("lima", probe, terminator, retry_count, retry_wait)
