"""Authentication enforcement middleware."""
from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.middleware.auth import ACCESS_TOKEN_COOKIE
from app.config.security import get_auth_exempt_paths, is_auth_required
from app.utils.logger import get_logger

logger = get_logger(__name__)

LOGIN_PAGE = "/login"
PAGE_PREFIXES = ("/dashboard", "/claims")


def is_page_path(path: str) -> bool:
    return any(path == prefix or path.startswith(prefix + "/") for prefix in PAGE_PREFIXES)


class AuthEnforcementMiddleware(BaseHTTPMiddleware):
    """
    Turn away requests that carry no credentials at all.

    When REQUIRE_AUTH=true, page requests without a token are redirected to
    /login and API requests get 401. Exempt paths always pass. Tokens that are
    present are validated by the route dependencies, which also redirect or
    reject expired and closed sessions.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not is_auth_required():
            return await call_next(request)

        path = request.url.path
        if path in get_auth_exempt_paths() or request.method == "OPTIONS":
            return await call_next(request)

        authorization = request.headers.get("Authorization", "")
        has_token = authorization.startswith("Bearer ") or bool(request.cookies.get(ACCESS_TOKEN_COOKIE))
        if has_token:
            return await call_next(request)

        if is_page_path(path):
            logger.info("Redirecting unauthenticated page request", path=path)
            return RedirectResponse(url=LOGIN_PAGE, status_code=status.HTTP_303_SEE_OTHER)

        logger.warning(
            "Unauthenticated request to protected endpoint",
            path=path,
            method=request.method,
            ip=request.client.host if request.client else None,
        )
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "UNAUTHORIZED", "message": "Authentication required", "details": {}},
            headers={"WWW-Authenticate": "Bearer"},
        )
