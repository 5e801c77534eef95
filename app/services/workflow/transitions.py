"""
Claim status state machine.

Forward chain::

    ouvert -> en_analyse -> en_expertise -> en_validation -> approuve -> paye -> clos

``rejete`` is a side exit from any status except ``paye`` and ``clos``.
``clos`` and ``rejete`` admit no further transition.

Each status entry lists the process steps that must be completed before a
claim may enter it, the permissions allowed to move a claim into it (any one
suffices) and the type of the audit event emitted.
"""
from typing import Dict, Any, FrozenSet, Optional, Tuple

from app.models.domain import Claim
from app.models.enums import ClaimEventType, ClaimStatus, ProcessStepId, StepStatus

FORWARD_CHAIN = (
    ClaimStatus.OUVERT,
    ClaimStatus.EN_ANALYSE,
    ClaimStatus.EN_EXPERTISE,
    ClaimStatus.EN_VALIDATION,
    ClaimStatus.APPROUVE,
    ClaimStatus.PAYE,
    ClaimStatus.CLOS,
)

TERMINAL_STATUSES: FrozenSet[ClaimStatus] = frozenset({ClaimStatus.CLOS, ClaimStatus.REJETE})

STATUS_LABELS = {
    ClaimStatus.OUVERT: "Ouvert",
    ClaimStatus.EN_ANALYSE: "En analyse",
    ClaimStatus.EN_EXPERTISE: "En expertise",
    ClaimStatus.EN_VALIDATION: "En validation",
    ClaimStatus.APPROUVE: "Approuvé",
    ClaimStatus.REJETE: "Rejeté",
    ClaimStatus.PAYE: "Payé",
    ClaimStatus.CLOS: "Clôturé",
}

ALL_STEPS = (
    ProcessStepId.DECLARATION,
    ProcessStepId.INSTRUCTION,
    ProcessStepId.EXPERTISE,
    ProcessStepId.VALIDATION,
    ProcessStepId.PAIEMENT,
)

STATE_CONFIG: Dict[ClaimStatus, Dict[str, Any]] = {
    ClaimStatus.OUVERT: {
        "description": "Claim declared, awaiting handling",
        "allowed_transitions": [ClaimStatus.EN_ANALYSE, ClaimStatus.REJETE],
        "required_steps": (),
        "entry_permissions": (),
        "event_type": ClaimEventType.CREATION,
    },
    ClaimStatus.EN_ANALYSE: {
        "description": "File under instruction by the manager",
        "allowed_transitions": [ClaimStatus.EN_EXPERTISE, ClaimStatus.REJETE],
        "required_steps": (ProcessStepId.DECLARATION,),
        "entry_permissions": ("claims.edit",),
        "event_type": ClaimEventType.STATUS_CHANGE,
    },
    ClaimStatus.EN_EXPERTISE: {
        "description": "Damage assessment by the appointed expert",
        "allowed_transitions": [ClaimStatus.EN_VALIDATION, ClaimStatus.REJETE],
        "required_steps": (ProcessStepId.DECLARATION, ProcessStepId.INSTRUCTION),
        "entry_permissions": ("claims.edit",),
        "event_type": ClaimEventType.STATUS_CHANGE,
    },
    ClaimStatus.EN_VALIDATION: {
        "description": "Settlement offer awaiting decision",
        "allowed_transitions": [ClaimStatus.APPROUVE, ClaimStatus.REJETE],
        "required_steps": ALL_STEPS[:3],
        "entry_permissions": ("claims.edit",),
        "event_type": ClaimEventType.STATUS_CHANGE,
    },
    ClaimStatus.APPROUVE: {
        "description": "Settlement approved",
        "allowed_transitions": [ClaimStatus.PAYE, ClaimStatus.REJETE],
        "required_steps": ALL_STEPS[:4],
        "entry_permissions": ("claims.edit", "claims.validate"),
        "event_type": ClaimEventType.VALIDATION,
    },
    ClaimStatus.PAYE: {
        "description": "Indemnity paid",
        "allowed_transitions": [ClaimStatus.CLOS],
        "required_steps": ALL_STEPS[:4],
        # The payment step must at least be under way
        "started_steps": (ProcessStepId.PAIEMENT,),
        "entry_permissions": ("claims.edit", "payments.create"),
        "event_type": ClaimEventType.PAYMENT,
    },
    ClaimStatus.CLOS: {
        "description": "File closed and archived",
        "allowed_transitions": [],
        "required_steps": ALL_STEPS,
        "entry_permissions": ("claims.edit",),
        "event_type": ClaimEventType.CLOSURE,
    },
    ClaimStatus.REJETE: {
        "description": "Claim rejected",
        "allowed_transitions": [],
        "required_steps": (),
        "entry_permissions": ("claims.reject",),
        "event_type": ClaimEventType.REJECTION,
    },
}


def get_state_config(status: ClaimStatus) -> Dict[str, Any]:
    """Get configuration for a status."""
    return STATE_CONFIG.get(ClaimStatus(status), {})


def is_terminal(status: ClaimStatus) -> bool:
    return ClaimStatus(status) in TERMINAL_STATUSES


def entry_permissions(target: ClaimStatus) -> Tuple[str, ...]:
    """Permissions allowed to move a claim into ``target`` (any one suffices)."""
    return tuple(get_state_config(target).get("entry_permissions", ()))


def event_type_for(target: ClaimStatus) -> ClaimEventType:
    return get_state_config(target).get("event_type", ClaimEventType.STATUS_CHANGE)


def successor(status: ClaimStatus) -> Optional[ClaimStatus]:
    status = ClaimStatus(status)
    if status not in FORWARD_CHAIN:
        return None
    index = FORWARD_CHAIN.index(status)
    return FORWARD_CHAIN[index + 1] if index + 1 < len(FORWARD_CHAIN) else None


def can_transition(claim: Claim, target: ClaimStatus) -> Tuple[bool, str]:
    """
    Check whether ``claim`` may move to ``target``.

    Returns (allowed, reason)
    """
    target = ClaimStatus(target)
    current = claim.status

    if current in TERMINAL_STATUSES:
        return False, f"Claim is {current.value}; no further transition is allowed"
    if target == current:
        return False, f"Claim is already {current.value}"

    config = get_state_config(current)
    if target not in config.get("allowed_transitions", []):
        if target in FORWARD_CHAIN and FORWARD_CHAIN.index(target) < FORWARD_CHAIN.index(current):
            return False, f"Cannot move status backward from {current.value} to {target.value}"
        if target == ClaimStatus.REJETE:
            return False, f"A {current.value} claim can no longer be rejected"
        return False, f"Cannot skip from {current.value} to {target.value}"

    target_config = get_state_config(target)
    steps = {step.id: step for step in claim.process_steps}
    missing = [
        step_id.value for step_id in target_config.get("required_steps", ())
        if steps[step_id].status != StepStatus.COMPLETED
    ]
    if missing:
        return False, f"Steps must be completed before {target.value}: {', '.join(missing)}"

    not_started = [
        step_id.value for step_id in target_config.get("started_steps", ())
        if steps[step_id].status == StepStatus.PENDING
    ]
    if not_started:
        return False, f"Steps must be started before {target.value}: {', '.join(not_started)}"

    return True, ""


def status_change_description(current: ClaimStatus, target: ClaimStatus, reason: Optional[str] = None) -> str:
    description = f"Statut modifié : {STATUS_LABELS[current]} → {STATUS_LABELS[target]}"
    if reason:
        description += f" (motif : {reason})"
    return description
