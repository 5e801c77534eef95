"""
Page routes.

Each page returns the view model a front end renders; no HTML is produced
here. Pages other than /login require a live session and redirect to /login
otherwise (including expired or closed sessions).
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse

from app.api.dependencies import get_repository, get_workspace_registry
from app.api.middleware.auth import get_session_context
from app.api.routes.claims import load_visible_claim, refresh_snapshot
from app.api.views import claim_detail, claim_summary
from app.config.workflow import is_demo_mode
from app.services.auth.identity import DEMO_ACCOUNTS
from app.services.auth.permissions import role_label
from app.services.auth.session import SessionContext
from app.services.claims.collection import WorkspaceRegistry
from app.services.claims.repository import ClaimRepository
from app.services.claims.visibility import visible_claims
from app.services.reporting.dashboard import build_dashboard

router = APIRouter()


def _redirect_to_login() -> RedirectResponse:
    return RedirectResponse(url="/login", status_code=status.HTTP_303_SEE_OTHER)


def _page(name: str, context: SessionContext, **content) -> dict:
    return {
        "page": name,
        "user": {
            "id": context.user.id,
            "name": context.user.name,
            "role": context.user.role.value,
            "role_label": role_label(context.user.role),
        },
        **content,
    }


@router.get("/login")
def login_page():
    """Login form model; in demo mode it lists the demonstration accounts."""
    page = {"page": "login", "demo_mode": is_demo_mode(), "login_endpoint": "/api/v1/auth/login"}
    if is_demo_mode():
        page["demo_accounts"] = [
            {"email": account.email, "name": account.name, "role_label": role_label(account.role)}
            for account in DEMO_ACCOUNTS
        ]
    return page


@router.get("/dashboard")
def dashboard_page(
    context: SessionContext = Depends(get_session_context),
    repository: ClaimRepository = Depends(get_repository),
    registry: WorkspaceRegistry = Depends(get_workspace_registry),
):
    if not context.is_authenticated:
        return _redirect_to_login()
    workspace = registry.get_or_open(context)
    freshness = refresh_snapshot(repository, workspace)
    return _page("dashboard", context, dashboard=build_dashboard(context, workspace.claims.snapshot()), **freshness)


@router.get("/claims")
def claims_page(
    context: SessionContext = Depends(get_session_context),
    repository: ClaimRepository = Depends(get_repository),
    registry: WorkspaceRegistry = Depends(get_workspace_registry),
):
    if not context.is_authenticated:
        return _redirect_to_login()
    workspace = registry.get_or_open(context)
    freshness = refresh_snapshot(repository, workspace)
    claims = [claim_summary(c) for c in visible_claims(context, workspace.claims.snapshot())]
    return _page(
        "claims",
        context,
        claims=claims,
        can_create=context.has_any_permission(("claims.create", "claims.edit")),
        **freshness,
    )


@router.get("/claims/{claim_number}")
def claim_page(
    claim_number: str,
    context: SessionContext = Depends(get_session_context),
    repository: ClaimRepository = Depends(get_repository),
    registry: WorkspaceRegistry = Depends(get_workspace_registry),
):
    if not context.is_authenticated:
        return _redirect_to_login()
    workspace = registry.get_or_open(context)
    claim = load_visible_claim(repository, workspace, claim_number)
    return _page("claim_detail", context, claim=claim_detail(claim, context))
