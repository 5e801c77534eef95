"""
JSON view models of claims.

Summaries feed the claim list; the detail view adds the capped event log,
participants and the actions the current user may take, so a client can hide
what the engine would refuse anyway.
"""
from typing import Dict, List, Optional

from app.config.workflow import get_workflow_settings
from app.models.domain import Claim
from app.models.enums import StepStatus
from app.services.auth.session import SessionContext
from app.services.workflow.engine import STEP_PERMISSIONS
from app.services.workflow.expertise import can_edit_expertise
from app.services.workflow.results import raise_for_outcome
from app.services.workflow.transitions import (
    STATUS_LABELS,
    can_transition,
    entry_permissions,
    get_state_config,
    is_terminal,
)


def claim_summary(claim: Claim) -> Dict:
    return {
        "id": claim.id,
        "policy_number": claim.policy_number,
        "type": claim.type.value,
        "status": claim.status.value,
        "status_label": STATUS_LABELS[claim.status],
        "declarant": claim.declarant.name,
        "assigned_to": claim.assigned_to.name if claim.assigned_to else None,
        "incident_date": claim.incident_date.isoformat(),
        "declaration_date": claim.declaration_date.isoformat(),
        "estimated_amount": _amount(claim.estimated_amount),
        "current_step_id": claim.current_step_id.value,
        "updated_at": claim.updated_at.isoformat(),
        "version": claim.version,
    }


def _amount(value) -> Optional[str]:
    return str(value) if value is not None else None


def available_actions(session: SessionContext, claim: Claim) -> Dict:
    """Commands the session's user could issue on ``claim`` right now."""
    step = claim.step(claim.current_step_id)
    step_allowed = session.has_any_permission(STEP_PERMISSIONS[claim.current_step_id])
    transitions: List[str] = []
    for target in get_state_config(claim.status).get("allowed_transitions", []):
        allowed, _ = can_transition(claim, target)
        if allowed and session.has_any_permission(entry_permissions(target)):
            transitions.append(target.value)

    closed = is_terminal(claim.status)
    return {
        "start_step": step_allowed and not closed and step.status == StepStatus.PENDING,
        "complete_step": step_allowed and not closed and step.status == StepStatus.IN_PROGRESS,
        "status_transitions": transitions,
        "edit_expertise": can_edit_expertise(session, claim),
    }


def claim_detail(claim: Claim, session: SessionContext, event_limit: Optional[int] = None) -> Dict:
    limit = event_limit or get_workflow_settings().event_display_limit
    data = claim.model_dump(mode="json", exclude={"events"})
    data["status_label"] = STATUS_LABELS[claim.status]
    data["events"] = [event.model_dump(mode="json") for event in claim.events[:limit]]
    data["events_total"] = len(claim.events)
    data["participants"] = [
        {"id": p.user.id, "name": p.user.name, "role_label": p.role_label} for p in claim.participants
    ]
    data["actions"] = available_actions(session, claim)
    return data


def command_response(result, workspace, response) -> Dict:
    """
    Detail view of a successful command's claim, or the matching HTTP error.

    The session's snapshot is updated in place and the new version is
    returned as the ``ETag`` for the next ``If-Match``.
    """
    claim = raise_for_outcome(result)
    workspace.claims.upsert(claim)
    response.headers["ETag"] = f'"{claim.version}"'
    return claim_detail(claim, workspace.session)
