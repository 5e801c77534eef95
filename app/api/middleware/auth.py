"""Session authentication dependencies."""
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.config.redis import get_redis_client
from app.config.sentry import set_user_context
from app.services.auth.identity import get_identity_provider
from app.services.auth.permissions import get_permission_registry
from app.services.auth.session import SessionContext, SessionManager, SessionStore
from app.utils.errors import UnauthorizedError
from app.utils.logger import bind_request_context

ACCESS_TOKEN_COOKIE = "access_token"

security = HTTPBearer(auto_error=False)


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials] = None) -> Optional[str]:
    """Bearer token from the Authorization header, else from the session cookie."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_TOKEN_COOKIE)


def get_session_manager(db: Session = Depends(get_db)) -> SessionManager:
    identity = get_identity_provider(db)
    return SessionManager(
        identity=identity,
        store=SessionStore(get_redis_client()),
        registry=get_permission_registry(identity.mode),
    )


def get_session_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    manager: SessionManager = Depends(get_session_manager),
) -> SessionContext:
    """Session of the request; anonymous when there is no valid token."""
    context = manager.resolve(extract_token(request, credentials))
    if context.is_authenticated:
        bind_request_context(user_id=context.user.id, role=context.user.role.value)
        set_user_context(user_id=context.user.id, email=context.user.email)
    return context


def get_current_session(context: SessionContext = Depends(get_session_context)) -> SessionContext:
    """Authenticated session, or 401."""
    if not context.is_authenticated:
        raise UnauthorizedError("Authentication required")
    return context
