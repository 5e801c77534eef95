"""
Signup, login, logout and current-user endpoints.

A successful login returns a bearer token and also sets it as an HTTP-only
cookie so page routes work from a browser. The user's claim workspace is
opened at login and dropped at logout.
"""
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_workspace_registry
from app.api.middleware.auth import (
    ACCESS_TOKEN_COOKIE,
    get_current_session,
    get_session_context,
    get_session_manager,
)
from app.config.database import get_db
from app.config.security import is_production
from app.config.sentry import clear_user_context
from app.config.workflow import is_demo_mode
from app.models.schemas import LoginRequest, SignupRequest
from app.services.auth.permissions import role_label
from app.services.auth.session import SessionContext, SessionManager
from app.services.auth.users import UserDirectory
from app.services.claims.collection import WorkspaceRegistry
from app.utils.errors import ForbiddenError, UnauthorizedError
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _user_payload(context: SessionContext) -> dict:
    user = context.user
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role.value,
        "role_label": role_label(user.role),
        "roles": [role.value for role in user.roles],
        "avatar": user.avatar,
        "permissions": sorted(context.permissions()),
    }


@router.post("/auth/login")
def login(
    credentials: LoginRequest,
    response: Response,
    manager: SessionManager = Depends(get_session_manager),
    workspaces: WorkspaceRegistry = Depends(get_workspace_registry),
):
    """
    Authenticate with email and password.

    Failures always return the same message, whichever part was wrong.
    """
    result = manager.login(credentials.email, credentials.password)
    if not result.success:
        raise UnauthorizedError(result.error)

    context = SessionContext(result.user, manager.registry, result.session_id)
    workspaces.open(context)
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        result.access_token,
        max_age=result.expires_in,
        httponly=True,
        samesite="lax",
        secure=is_production(),
    )
    return {
        "access_token": result.access_token,
        "token_type": "bearer",
        "expires_in": result.expires_in,
        "auth_mode": manager.identity.mode.value,
        "user": _user_payload(context),
    }


@router.post("/auth/register", status_code=status.HTTP_201_CREATED)
def register(signup: SignupRequest, db: Session = Depends(get_db)):
    """
    Create a policyholder account (role `assure`) that can then log in.

    **Errors:**
    - 403 in demo mode, where only the fixed demonstration accounts exist
    - 409 if the email is already registered
    """
    if is_demo_mode():
        raise ForbiddenError("Registration is disabled in demo mode")
    user = UserDirectory(db).signup(signup.email, signup.name, signup.password)
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role.value,
        "role_label": role_label(user.role),
    }


@router.post("/auth/logout")
def logout(
    response: Response,
    context: SessionContext = Depends(get_session_context),
    manager: SessionManager = Depends(get_session_manager),
    workspaces: WorkspaceRegistry = Depends(get_workspace_registry),
):
    """Close the current session; harmless when already logged out."""
    manager.logout(context.session_id)
    workspaces.close(context.session_id)
    clear_user_context()
    response.delete_cookie(ACCESS_TOKEN_COOKIE)
    return {"status": "logged_out"}


@router.get("/auth/me")
def me(context: SessionContext = Depends(get_current_session)):
    """The authenticated user with their resolved role and permissions."""
    return _user_payload(context)
