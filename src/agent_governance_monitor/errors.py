"""Error taxonomy for the governance monitor.

Every error raised across a layer boundary derives from GovernanceMonitorError
and carries the HTTP status code the API maps it to. Errors fall in four groups:

- Caller errors: UnauthorizedError, ForbiddenError, NotFoundError.
  Raised before any read is performed.
- Data insufficiency: InsufficientDataError. Internal only; services turn it
  into a structured non-error result so UIs can render a neutral state.
- Collaborator failures: AnalyzerFailureError (fails the run),
  NotificationFailureError (caught per admin, never fails the run).
- Cancellation: RunCancelledError, raised at cancellation checkpoints.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from agent_governance_monitor.observability import get_logger

logger = get_logger(__name__)


class GovernanceMonitorError(Exception):
    """Base error for the governance monitor.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code returned by the API for this error.
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        """Initialize GovernanceMonitorError.

        Args:
            message: Error description.
        """
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Render the error as an API response body."""
        return {"success": False, "error": self.message}


class UnauthorizedError(GovernanceMonitorError):
    """Raised when the request carries no caller identity."""

    status_code = 401


class ForbiddenError(GovernanceMonitorError):
    """Raised when the caller lacks the role an operation requires."""

    status_code = 403


class NotFoundError(GovernanceMonitorError):
    """Raised when a requested entity does not exist."""

    status_code = 404

    def __init__(self, resource: str, resource_id: str) -> None:
        """Initialize NotFoundError.

        Args:
            resource: Entity type name.
            resource_id: Identifier that was looked up.
        """
        super().__init__(f"{resource} '{resource_id}' not found")
        self.resource = resource
        self.resource_id = resource_id


class InsufficientDataError(GovernanceMonitorError):
    """Raised when too few samples exist to produce a verdict.

    Attributes:
        required: Minimum number of samples needed.
        available: Number of samples actually available.
    """

    status_code = 200

    def __init__(self, message: str, required: int, available: int) -> None:
        """Initialize InsufficientDataError.

        Args:
            message: Explanation suitable for showing to an operator.
            required: Minimum number of samples needed.
            available: Number of samples found.
        """
        super().__init__(message)
        self.required = required
        self.available = available


class AnalyzerFailureError(GovernanceMonitorError):
    """Raised when the semantic analyzer errors or times out."""

    status_code = 500


class NotificationFailureError(GovernanceMonitorError):
    """Raised when a single notification cannot be delivered.

    Attributes:
        recipient: Address the notification was meant for.
    """

    status_code = 502

    def __init__(self, message: str, recipient: str) -> None:
        """Initialize NotificationFailureError.

        Args:
            message: Error description.
            recipient: Address that could not be notified.
        """
        super().__init__(message)
        self.recipient = recipient


class RunCancelledError(GovernanceMonitorError):
    """Raised at a cancellation checkpoint after the run was cancelled."""

    status_code = 409


async def _handle_governance_error(request: Request, exc: Exception) -> JSONResponse:
    """Translate a GovernanceMonitorError into a JSON response."""
    assert isinstance(exc, GovernanceMonitorError)
    logger.warning(
        "Request failed",
        path=request.url.path,
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        error=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    """Install the governance error handler on a FastAPI application.

    Args:
        app: The application to configure.
    """
    app.add_exception_handler(GovernanceMonitorError, _handle_governance_error)
