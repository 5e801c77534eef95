"""Dashboard endpoint."""
from fastapi import APIRouter, Depends

from app.api.dependencies import get_repository, get_workspace
from app.api.routes.claims import refresh_snapshot
from app.services.claims.collection import Workspace
from app.services.claims.repository import ClaimRepository
from app.services.reporting.dashboard import build_dashboard

router = APIRouter()


@router.get("/dashboard")
def get_dashboard(
    repository: ClaimRepository = Depends(get_repository),
    workspace: Workspace = Depends(get_workspace),
):
    """
    Dashboard for the current user's role.

    The `view` field tells which variant was built: `responsable` (legal delay
    follow-up), `direction` (KPIs and monthly series), `audit` (compliance and
    event feed), `assure` (own claims) or `global`.
    """
    freshness = refresh_snapshot(repository, workspace)
    payload = build_dashboard(workspace.session, workspace.claims.snapshot())
    payload.update(freshness)
    return payload
