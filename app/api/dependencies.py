"""FastAPI dependencies for the claim services."""
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from app.api.middleware.auth import get_current_session
from app.config.database import get_db
from app.services.auth.session import SessionContext
from app.services.claims.collection import Workspace, WorkspaceRegistry
from app.services.claims.repository import ClaimRepository
from app.services.workflow.engine import ClaimWorkflowEngine
from app.services.workflow.expertise import ExpertiseManager
from app.utils.errors import ForbiddenError, ValidationError


def get_repository(db: Session = Depends(get_db)) -> ClaimRepository:
    return ClaimRepository(db)


def get_engine(repository: ClaimRepository = Depends(get_repository)) -> ClaimWorkflowEngine:
    return ClaimWorkflowEngine(repository)


def get_expertise_manager(repository: ClaimRepository = Depends(get_repository)) -> ExpertiseManager:
    return ExpertiseManager(repository)


def get_workspace_registry(request: Request) -> WorkspaceRegistry:
    return request.app.state.workspaces


def get_workspace(
    session: SessionContext = Depends(get_current_session),
    registry: WorkspaceRegistry = Depends(get_workspace_registry),
) -> Workspace:
    """Claim snapshot of the current session."""
    return registry.get_or_open(session)


def get_expected_version(if_match: Optional[str] = Header(None)) -> Optional[int]:
    """
    Claim version from an ``If-Match`` header (``3``, ``"3"`` or ``W/"3"``).

    Raises:
        ValidationError: If the header is not a version number
    """
    if if_match is None or if_match.strip() in ("", "*"):
        return None
    value = if_match.strip()
    if value.startswith("W/"):
        value = value[2:]
    value = value.strip('"')
    try:
        return int(value)
    except ValueError:
        raise ValidationError("If-Match must carry a claim version", details={"if_match": if_match})


def require_permission(*permissions: str):
    """
    Dependency refusing sessions that hold none of ``permissions`` (or ``*``).

    Raises:
        ForbiddenError: If the user lacks every listed permission
    """

    def _check(session: SessionContext = Depends(get_current_session)) -> SessionContext:
        if not session.has_any_permission(permissions):
            raise ForbiddenError("Permission denied", details={"required": list(permissions)})
        return session

    return _check
