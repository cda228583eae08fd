"""Double-submit cookie anti-forgery middleware."""

import hmac
import secrets

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from strataccess.core.outcomes import Forbidden, ForbiddenReason
from strataccess.entrypoints.api.errors import forbidden_detail
from strataccess.entrypoints.api.middleware.session_auth import SESSION_COOKIE

logger = structlog.get_logger()

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"
UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def generate_csrf_token() -> str:
    """Generate a value for the anti-forgery cookie."""
    return secrets.token_urlsafe(32)


class CsrfMiddleware(BaseHTTPMiddleware):
    """Rejects state-changing browser requests without a matching CSRF header.

    Only requests that authenticate with the session cookie are checked.
    Requests carrying an Authorization header are API clients and cannot be
    forged cross-site; exempt paths (login, billing webhook) have no browser
    session to protect.
    """

    def __init__(
        self,
        app: ASGIApp,
        exempt_paths: frozenset[str] | None = None,
    ) -> None:
        """Initialize CSRF middleware.

        Args:
            app: The ASGI application.
            exempt_paths: Paths never checked.
        """
        super().__init__(app)
        self.exempt_paths = exempt_paths or frozenset()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check the double-submit token on unsafe cookie-authenticated requests."""
        if (
            request.method not in UNSAFE_METHODS
            or request.url.path in self.exempt_paths
            or SESSION_COOKIE not in request.cookies
            or request.headers.get("Authorization")
        ):
            return await call_next(request)

        cookie = request.cookies.get(CSRF_COOKIE, "")
        header = request.headers.get(CSRF_HEADER, "")
        if not cookie or not header or not hmac.compare_digest(cookie, header):
            logger.warning("csrf_check_failed", path=request.url.path, method=request.method)
            return JSONResponse(
                status_code=403,
                content={"detail": forbidden_detail(Forbidden(reason=ForbiddenReason.CSRF))},
            )

        return await call_next(request)
