"""Operator-requested cancellation.

The orchestrator polls a ``CancellationToken`` between steps. ``handle_signals``
connects SIGINT/SIGTERM to a token for the duration of a deployment: the first
signal cancels the token, a second SIGINT interrupts immediately. While a
rollback runs under ``token.compensating()`` signals are only logged, so the
remaining deletes always run.
"""

from __future__ import annotations

import logging
import signal
from contextlib import contextmanager
from typing import Iterator, Optional

from ..errors import DeploymentCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cancellation flag shared between the signal handler and the orchestrator."""

    def __init__(self) -> None:
        self._reason: Optional[str] = None
        self._compensating = False

    def cancel(self, reason: str = "cancelled by operator") -> None:
        if self._reason is None:
            self._reason = reason

    @property
    def is_cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def raise_if_cancelled(self) -> None:
        """Raise DeploymentCancelled if cancellation was requested."""
        if self._reason is not None:
            raise DeploymentCancelled(self._reason)

    @property
    def is_compensating(self) -> bool:
        return self._compensating

    @contextmanager
    def compensating(self) -> Iterator[None]:
        """Mark a rollback in progress for the duration of the block."""
        self._compensating = True
        try:
            yield
        finally:
            self._compensating = False


@contextmanager
def handle_signals(token: CancellationToken) -> Iterator[CancellationToken]:
    """Route SIGINT and SIGTERM to a cancellation token.

    Previous handlers are restored on exit.

    Args:
        token: Token to cancel when a signal arrives

    Yields:
        The same token
    """

    def _on_signal(signum: int, frame: object) -> None:
        name = signal.Signals(signum).name
        if token.is_compensating:
            logger.warning(f"{name} received during rollback, finishing cleanup first")
            return
        if token.is_cancelled and signum == signal.SIGINT:
            logger.warning(f"Second {name} received, interrupting now")
            raise KeyboardInterrupt
        logger.warning(f"{name} received, rolling back after the current step (press Ctrl+C again to force)")
        token.cancel(f"interrupted by {name}")

    previous = {sig: signal.signal(sig, _on_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield token
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
