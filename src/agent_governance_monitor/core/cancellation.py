"""Cooperative cancellation for monitoring runs.

Services call token.raise_if_cancelled() before every external call
(metric/log fetch, analyzer call, notification) so a cancelled run stops at
the next checkpoint instead of running to completion.
"""

from agent_governance_monitor.errors import RunCancelledError


class CancellationToken:
    """Cancellation flag shared by every step of one run."""

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        """Whether cancel() has been called."""
        return self._cancelled

    def cancel(self, reason: str = "Run cancelled") -> None:
        """Request cancellation. Idempotent; the first reason wins."""
        if not self._cancelled:
            self._reason = reason
            self._cancelled = True

    def raise_if_cancelled(self, checkpoint: str) -> None:
        """Stop the run if cancellation was requested.

        Args:
            checkpoint: Name of the step about to start, for the error message.

        Raises:
            RunCancelledError: If the token was cancelled.
        """
        if self._cancelled:
            raise RunCancelledError(f"{self._reason} before {checkpoint}")
