"""Process step endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends, Response

from app.api.dependencies import get_engine, get_expected_version, get_workspace
from app.api.views import command_response
from app.models.enums import ProcessStepId
from app.services.claims.collection import Workspace
from app.services.workflow.engine import ClaimWorkflowEngine

router = APIRouter()


@router.post("/claims/{claim_number}/steps/{step_id}/start")
def start_step(
    claim_number: str,
    step_id: ProcessStepId,
    response: Response,
    expected_version: Optional[int] = Depends(get_expected_version),
    engine: ClaimWorkflowEngine = Depends(get_engine),
    workspace: Workspace = Depends(get_workspace),
):
    """
    Start the claim's current step.

    **Errors:**
    - 403 without a step permission
    - 409 if the step is not the current one, is already started, or the claim is closed or rejected
    """
    result = engine.start_step(claim_number, step_id, workspace.session, expected_version=expected_version)
    return command_response(result, workspace, response)


@router.post("/claims/{claim_number}/steps/{step_id}/complete")
def complete_step(
    claim_number: str,
    step_id: ProcessStepId,
    response: Response,
    expected_version: Optional[int] = Depends(get_expected_version),
    engine: ClaimWorkflowEngine = Depends(get_engine),
    workspace: Workspace = Depends(get_workspace),
):
    """
    Complete the in-progress step and move to the next one (not started).

    Completing the payment step closes the claim.
    """
    result = engine.complete_step(claim_number, step_id, workspace.session, expected_version=expected_version)
    return command_response(result, workspace, response)
