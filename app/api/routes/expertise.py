"""Expertise endpoint."""
from typing import Optional

from fastapi import APIRouter, Depends, Response

from app.api.dependencies import get_expected_version, get_expertise_manager, get_workspace
from app.api.views import command_response
from app.models.schemas import ExpertiseInput
from app.services.claims.collection import Workspace
from app.services.workflow.expertise import ExpertiseManager

router = APIRouter()


@router.put("/claims/{claim_number}/expertise")
def upsert_expertise(
    claim_number: str,
    expertise: ExpertiseInput,
    response: Response,
    expected_version: Optional[int] = Depends(get_expected_version),
    manager: ExpertiseManager = Depends(get_expertise_manager),
    workspace: Workspace = Depends(get_workspace),
):
    """
    Record the expert assessment of a claim.

    Only the claim's assigned expert may write it. Fields left out keep their
    previous value; `status` is always replaced.
    """
    result = manager.upsert(
        claim_number,
        workspace.session,
        status=expertise.status,
        scheduled_date=expertise.scheduled_date,
        completed_date=expertise.completed_date,
        estimated_amount=expertise.estimated_amount,
        report=expertise.report,
        expected_version=expected_version,
    )
    return command_response(result, workspace, response)
