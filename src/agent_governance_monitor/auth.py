"""Caller identity for governance monitor endpoints.

Authentication happens upstream at the API gateway, which forwards the
authenticated identity as request headers. This module only turns those
headers into a CallerContext and enforces role checks:

- X-User-Email — required; requests without it are rejected with 401.
- X-User-Role  — optional; defaults to "user". Drift detection and policy
  recommendations require "admin".
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Header

from agent_governance_monitor.errors import ForbiddenError, UnauthorizedError

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class CallerContext:
    """Authenticated caller of a monitoring operation.

    Attributes:
        email: Caller's email address, used as the audit actor.
        role: Caller's platform role (admin | user).
    """

    email: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        """Whether the caller holds the admin role."""
        return self.role == ADMIN_ROLE


def require_admin(caller: CallerContext) -> None:
    """Fail fast unless the caller is an admin.

    Args:
        caller: The authenticated caller.

    Raises:
        ForbiddenError: If the caller is not an admin.
    """
    if not caller.is_admin:
        raise ForbiddenError("Forbidden: Admin access required")


async def get_current_user(
    x_user_email: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> CallerContext:
    """FastAPI dependency resolving the caller from gateway headers.

    Args:
        x_user_email: Value of the X-User-Email header.
        x_user_role: Value of the X-User-Role header.

    Returns:
        The CallerContext for this request.

    Raises:
        UnauthorizedError: If no caller identity was forwarded.
    """
    if not x_user_email:
        raise UnauthorizedError("Authentication required")
    return CallerContext(email=x_user_email, role=(x_user_role or "user").lower())
