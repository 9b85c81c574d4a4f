"""Tests for CancellationToken and signal routing."""

from __future__ import annotations

import signal

import pytest

from dsworkspace.errors import DeploymentCancelled
from dsworkspace.provision.cancellation import CancellationToken, handle_signals


class TestCancellationToken:
    """Test suite for CancellationToken."""

    def test_new_token_not_cancelled(self) -> None:
        """Test a fresh token does not raise."""
        token = CancellationToken()

        assert token.is_cancelled is False
        assert token.reason is None
        token.raise_if_cancelled()

    def test_cancel_raises_with_reason(self) -> None:
        """Test a cancelled token raises DeploymentCancelled with its reason."""
        token = CancellationToken()
        token.cancel("interrupted by SIGINT")

        with pytest.raises(DeploymentCancelled, match="interrupted by SIGINT"):
            token.raise_if_cancelled()

    def test_first_reason_wins(self) -> None:
        """Test later cancellations keep the first reason."""
        token = CancellationToken()
        token.cancel("first")
        token.cancel("second")

        assert token.reason == "first"


class TestHandleSignals:
    """Test suite for handle_signals context manager."""

    def test_sigterm_cancels_token(self) -> None:
        """Test SIGTERM cancels the token instead of killing the process."""
        token = CancellationToken()

        with handle_signals(token):
            handler = signal.getsignal(signal.SIGTERM)
            handler(signal.SIGTERM, None)

        assert token.is_cancelled is True
        assert token.reason == "interrupted by SIGTERM"

    def test_second_sigint_interrupts(self) -> None:
        """Test a second SIGINT raises KeyboardInterrupt."""
        token = CancellationToken()

        with handle_signals(token):
            handler = signal.getsignal(signal.SIGINT)
            handler(signal.SIGINT, None)
            assert token.is_cancelled is True
            with pytest.raises(KeyboardInterrupt):
                handler(signal.SIGINT, None)

    def test_previous_handlers_restored(self) -> None:
        """Test the original handlers are back after the block."""
        previous_int = signal.getsignal(signal.SIGINT)
        previous_term = signal.getsignal(signal.SIGTERM)

        with handle_signals(CancellationToken()) as token:
            assert isinstance(token, CancellationToken)
            assert signal.getsignal(signal.SIGINT) is not previous_int

        assert signal.getsignal(signal.SIGINT) is previous_int
        assert signal.getsignal(signal.SIGTERM) is previous_term

    def test_signals_during_rollback_are_only_logged(self) -> None:
        """Test SIGINT and SIGTERM never interrupt a rollback in progress."""
        token = CancellationToken()

        with handle_signals(token):
            handler = signal.getsignal(signal.SIGINT)
            handler(signal.SIGINT, None)
            with token.compensating():
                assert token.is_compensating is True
                handler(signal.SIGINT, None)
                handler(signal.SIGTERM, None)

        assert token.is_compensating is False
        assert token.reason == "interrupted by SIGINT"

    def test_compensating_resets_after_error(self) -> None:
        """Test the rollback marker is cleared even when the rollback raises."""
        token = CancellationToken()

        with pytest.raises(RuntimeError):
            with token.compensating():
                raise RuntimeError("boom")

        assert token.is_compensating is False
