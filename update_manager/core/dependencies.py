"""
Request-scoped dependencies for FastAPI
"""

from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Header, Query, Request
import structlog

from update_manager.core.concurrency import Deadline
from update_manager.core.config import get_settings
from update_manager.core.pagination import DEFAULT_LIMIT, Pagination

logger = structlog.get_logger(__name__)

ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class Actor:
    """Caller identity taken from trusted headers"""
    user_id: str = ANONYMOUS
    user_email: str = ANONYMOUS
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def get_actor(
    request: Request,
    x_user_id: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
    user_agent: Optional[str] = Header(default=None),
) -> Actor:
    """Read X-User-ID / X-User-Email, falling back to anonymous"""
    return Actor(
        user_id=x_user_id or ANONYMOUS,
        user_email=x_user_email or ANONYMOUS,
        ip_address=request.client.host if request.client else None,
        user_agent=user_agent,
    )


def get_deadline(
    x_request_timeout: Optional[float] = Header(default=None),
) -> Deadline:
    """Per-request deadline, shortened by X-Request-Timeout when given"""
    timeout = get_settings().REQUEST_TIMEOUT_SECONDS
    if x_request_timeout is not None and x_request_timeout >= 0:
        timeout = min(timeout, x_request_timeout)
    return Deadline(timeout)


def pagination(default_limit: int = DEFAULT_LIMIT) -> Callable[..., Pagination]:
    """Build a pagination dependency with an endpoint specific default limit"""

    def dependency(
        page: Optional[int] = Query(default=None),
        limit: Optional[int] = Query(default=None),
    ) -> Pagination:
        return Pagination.from_params(page, limit, default_limit)

    return dependency
