"""Tests for the terminate action."""

from __future__ import annotations

import signal
from unittest.mock import MagicMock, patch

import pytest

from sockscope.actions.terminate import TerminateAction, TerminateError, send_sigterm


@patch("sockscope.actions.terminate.os.kill")
def test_send_sigterm(mock_kill: MagicMock):
    send_sigterm(4242)
    mock_kill.assert_called_once_with(4242, signal.SIGTERM)


@patch("sockscope.actions.terminate.os.kill", side_effect=ProcessLookupError)
def test_send_sigterm_missing_process(mock_kill: MagicMock):
    with pytest.raises(TerminateError, match="no such process"):
        send_sigterm(4242)


@patch("sockscope.actions.terminate.os.kill", side_effect=PermissionError)
def test_send_sigterm_permission_denied(mock_kill: MagicMock):
    with pytest.raises(TerminateError, match="permission denied"):
        send_sigterm(1)


def test_send_sigterm_rejects_pid_zero():
    with pytest.raises(TerminateError):
        send_sigterm(0)


def test_action_success_uses_injected_terminator():
    terminator = MagicMock()
    assert TerminateAction(terminator).execute(77, "sleep") == (True, "")
    terminator.assert_called_once_with(77)


def test_action_failure_is_reported_not_raised(caplog):
    terminator = MagicMock(side_effect=TerminateError("permission denied"))
    assert TerminateAction(terminator).execute(1, "init") == (False, "permission denied")
    assert "Failed to terminate process 1" in caplog.text
