"""
Claim endpoints.

Listing reads from the session's claim snapshot, refreshed on every call; a
failed refresh serves the last good snapshot flagged as stale. Commands go
through the workflow engine and accept an optional ``If-Match`` header with
the claim version the client last saw.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.exc import SQLAlchemyError

from app.api.dependencies import (
    get_engine,
    get_expected_version,
    get_repository,
    get_workspace,
)
from app.api.views import claim_detail, claim_summary, command_response
from app.models.enums import ClaimStatus, ClaimType
from app.models.schemas import Assignment, ClaimCreate, CommentCreate, DocumentCreate, StatusChange
from app.services.claims.collection import Workspace
from app.services.claims.mapping import StoreShapeError
from app.services.claims.repository import ClaimRepository
from app.services.claims.visibility import ClaimFilters, can_view, filter_claims, visible_claims
from app.services.workflow.engine import ClaimWorkflowEngine
from app.utils.errors import NotFoundError, ServiceUnavailableError
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def load_visible_claim(repository: ClaimRepository, workspace: Workspace, claim_number: str):
    """
    Fresh copy of one claim the session may read.

    Claims the user may not read are reported as not found.
    """
    try:
        claim = repository.get_by_id(claim_number)
    except (SQLAlchemyError, StoreShapeError) as e:
        logger.error("Failed to load claim", claim_number=claim_number, error=str(e))
        raise ServiceUnavailableError()
    if claim is None or not can_view(workspace.session, claim):
        raise NotFoundError("Claim", claim_number)
    workspace.claims.upsert(claim)
    return claim


def refresh_snapshot(repository: ClaimRepository, workspace: Workspace) -> dict:
    """Refresh the snapshot; raise only when there is no earlier snapshot to serve."""
    result = workspace.claims.refresh(repository)
    if not result.ok and not workspace.claims.loaded:
        raise ServiceUnavailableError(result.error)
    return {"stale": not result.ok, "error": result.error}


@router.get("/claims")
def list_claims(
    status_filter: Optional[List[ClaimStatus]] = Query(None, alias="status"),
    type_filter: Optional[List[ClaimType]] = Query(None, alias="type"),
    search: Optional[str] = Query(None, max_length=200),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    repository: ClaimRepository = Depends(get_repository),
    workspace: Workspace = Depends(get_workspace),
):
    """
    List the claims the current user may read.

    **Query parameters:** `status` and `type` (repeatable), `search` (claim number,
    policy number or description), `date_from` / `date_to` (declaration date, inclusive).
    """
    freshness = refresh_snapshot(repository, workspace)
    claims = visible_claims(workspace.session, workspace.claims.snapshot())
    filters = ClaimFilters(
        status=status_filter or [],
        type=type_filter or [],
        search=search,
        date_from=date_from,
        date_to=date_to,
    )
    items = [claim_summary(claim) for claim in filter_claims(claims, filters)]
    return {"items": items, "total": len(items), **freshness}


@router.post("/claims", status_code=status.HTTP_201_CREATED)
def create_claim(
    draft: ClaimCreate,
    response: Response,
    engine: ClaimWorkflowEngine = Depends(get_engine),
    workspace: Workspace = Depends(get_workspace),
):
    """
    Declare a new claim.

    Policyholders declare for themselves; staff must give `declarant_id`.
    """
    result = engine.create_claim(draft, workspace.session)
    return command_response(result, workspace, response)


@router.get("/claims/{claim_number}")
def get_claim(
    claim_number: str,
    response: Response,
    repository: ClaimRepository = Depends(get_repository),
    workspace: Workspace = Depends(get_workspace),
):
    """Claim detail with the latest events and the actions available to the user."""
    claim = load_visible_claim(repository, workspace, claim_number)
    response.headers["ETag"] = f'"{claim.version}"'
    return claim_detail(claim, workspace.session)


@router.get("/claims/{claim_number}/events")
def get_claim_events(
    claim_number: str,
    repository: ClaimRepository = Depends(get_repository),
    workspace: Workspace = Depends(get_workspace),
):
    """Complete audit log of a claim, newest first."""
    claim = load_visible_claim(repository, workspace, claim_number)
    return {
        "claim_number": claim.id,
        "events": [event.model_dump(mode="json") for event in claim.events],
        "total": len(claim.events),
    }


@router.post("/claims/{claim_number}/status")
def change_claim_status(
    claim_number: str,
    change: StatusChange,
    response: Response,
    expected_version: Optional[int] = Depends(get_expected_version),
    engine: ClaimWorkflowEngine = Depends(get_engine),
    workspace: Workspace = Depends(get_workspace),
):
    """Move the claim to its next status, or reject it with a reason."""
    result = engine.change_status(
        claim_number,
        change.status,
        workspace.session,
        reason=change.reason,
        amount=change.amount,
        override_payment=change.override_payment,
        expected_version=expected_version,
    )
    return command_response(result, workspace, response)


@router.post("/claims/{claim_number}/assignment")
def assign_claim(
    claim_number: str,
    assignment: Assignment,
    response: Response,
    expected_version: Optional[int] = Depends(get_expected_version),
    engine: ClaimWorkflowEngine = Depends(get_engine),
    workspace: Workspace = Depends(get_workspace),
):
    """Assign the manager, the expert or the medical expert."""
    result = engine.assign(
        claim_number,
        workspace.session,
        manager_id=assignment.manager_id,
        expert_id=assignment.expert_id,
        medical_expert_id=assignment.medical_expert_id,
        expected_version=expected_version,
    )
    return command_response(result, workspace, response)


@router.post("/claims/{claim_number}/documents", status_code=status.HTTP_201_CREATED)
def add_claim_document(
    claim_number: str,
    document: DocumentCreate,
    response: Response,
    expected_version: Optional[int] = Depends(get_expected_version),
    engine: ClaimWorkflowEngine = Depends(get_engine),
    workspace: Workspace = Depends(get_workspace),
):
    """Attach document metadata (the file is stored elsewhere, at `url`)."""
    result = engine.add_document(
        claim_number,
        workspace.session,
        name=document.name,
        doc_type=document.type,
        url=document.url,
        expected_version=expected_version,
    )
    return command_response(result, workspace, response)


@router.post("/claims/{claim_number}/comments", status_code=status.HTTP_201_CREATED)
def add_claim_comment(
    claim_number: str,
    comment: CommentCreate,
    response: Response,
    expected_version: Optional[int] = Depends(get_expected_version),
    engine: ClaimWorkflowEngine = Depends(get_engine),
    workspace: Workspace = Depends(get_workspace),
):
    result = engine.add_comment(claim_number, workspace.session, comment.text, expected_version=expected_version)
    return command_response(result, workspace, response)
