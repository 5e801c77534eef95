"""
Translation between store rows and domain models.

The store speaks its own status/type vocabulary (``declaration``, ``offre``,
``automobile``...). This module is the only place where it is converted to and
from the workflow vocabulary. Rows are validated on the way in: a claim
without a declarant or without its five process steps is a store shape error,
raised immediately rather than producing a half-built claim.
"""
from types import MappingProxyType
from typing import Optional

from app.models.core import Profile
from app.models.database import (
    Claim as ClaimRow,
    ClaimEvent as ClaimEventRow,
    Document as DocumentRow,
    Expertise as ExpertiseRow,
)
from app.models.domain import Claim, ClaimEvent, Document, Expertise, ProcessStep, User
from app.models.enums import (
    ClaimEventType,
    ClaimStatus,
    ClaimType,
    ProcessStepId,
    StoreClaimStatus,
    StoreClaimType,
)
from app.services.auth.permissions import resolve_primary_role
from app.services.workflow.steps import STEP_DEFINITIONS, STEP_ORDER
from app.utils.decimal_utils import parse_amount

STORE_TO_DOMAIN_STATUS = MappingProxyType({
    StoreClaimStatus.DECLARATION: ClaimStatus.OUVERT,
    StoreClaimStatus.INSTRUCTION: ClaimStatus.EN_ANALYSE,
    StoreClaimStatus.EXPERTISE: ClaimStatus.EN_EXPERTISE,
    StoreClaimStatus.OFFRE: ClaimStatus.EN_VALIDATION,
    StoreClaimStatus.ACCEPTATION: ClaimStatus.APPROUVE,
    StoreClaimStatus.PAIEMENT: ClaimStatus.PAYE,
    StoreClaimStatus.CLOTURE: ClaimStatus.CLOS,
    StoreClaimStatus.REJETE: ClaimStatus.REJETE,
})
DOMAIN_TO_STORE_STATUS = MappingProxyType({v: k for k, v in STORE_TO_DOMAIN_STATUS.items()})

STORE_TO_DOMAIN_TYPE = MappingProxyType({
    StoreClaimType.AUTOMOBILE: ClaimType.AUTO,
    StoreClaimType.HABITATION: ClaimType.HABITATION,
    StoreClaimType.SANTE: ClaimType.SANTE,
    StoreClaimType.VIE: ClaimType.VIE,
    StoreClaimType.RESPONSABILITE_CIVILE: ClaimType.RESPONSABILITE_CIVILE,
    # Lossy: the workflow has no "other" type
    StoreClaimType.AUTRE: ClaimType.AUTO,
})
DOMAIN_TO_STORE_TYPE = MappingProxyType({
    ClaimType.AUTO: StoreClaimType.AUTOMOBILE,
    ClaimType.HABITATION: StoreClaimType.HABITATION,
    ClaimType.SANTE: StoreClaimType.SANTE,
    ClaimType.VIE: StoreClaimType.VIE,
    ClaimType.RESPONSABILITE_CIVILE: StoreClaimType.RESPONSABILITE_CIVILE,
})


class StoreShapeError(ValueError):
    """A store row does not have the shape the domain requires."""

    def __init__(self, message: str, claim_number: Optional[str] = None):
        self.claim_number = claim_number
        super().__init__(f"{message} (claim: {claim_number})" if claim_number else message)


def to_domain_status(value) -> ClaimStatus:
    try:
        return STORE_TO_DOMAIN_STATUS[StoreClaimStatus(value)]
    except ValueError:
        raise StoreShapeError(f"Unknown store claim status: {value!r}")


def to_store_status(status: ClaimStatus) -> StoreClaimStatus:
    return DOMAIN_TO_STORE_STATUS[ClaimStatus(status)]


def to_domain_type(value) -> ClaimType:
    try:
        return STORE_TO_DOMAIN_TYPE[StoreClaimType(value)]
    except ValueError:
        raise StoreShapeError(f"Unknown store claim type: {value!r}")


def to_store_type(claim_type: ClaimType) -> StoreClaimType:
    return DOMAIN_TO_STORE_TYPE[ClaimType(claim_type)]


def profile_to_user(profile: Optional[Profile]) -> Optional[User]:
    """Build a User with its primary role resolved from all held roles."""
    if profile is None:
        return None
    roles = [assignment.role for assignment in profile.roles]
    return User(
        id=profile.id,
        email=profile.email,
        name=profile.name,
        role=resolve_primary_role(roles),
        roles=roles,
        phone=profile.phone,
        avatar=profile.avatar,
        created_at=profile.created_at,
    )


def document_to_domain(row: DocumentRow) -> Document:
    return Document(
        id=str(row.id),
        name=row.name,
        type=row.type,
        url=row.url,
        uploaded_by=profile_to_user(row.uploader),
        uploaded_at=row.created_at,
    )


def event_to_domain(row: ClaimEventRow) -> ClaimEvent:
    try:
        event_type = ClaimEventType(row.event_type)
    except ValueError:
        raise StoreShapeError(f"Unknown event type: {row.event_type!r}")
    return ClaimEvent(
        id=str(row.id),
        type=event_type,
        description=row.description,
        timestamp=row.created_at,
        user=profile_to_user(row.user),
    )


def expertise_to_domain(row: Optional[ExpertiseRow], claim_number: str) -> Optional[Expertise]:
    if row is None:
        return None
    return Expertise(
        id=row.id,
        expert_id=row.expert_id,
        claim_id=claim_number,
        status=row.status,
        scheduled_date=row.scheduled_date,
        completed_date=row.completed_date,
        report=row.report,
        estimated_amount=parse_amount(row.estimated_amount),
        created_at=row.created_at,
    )


def _process_steps(row: ClaimRow) -> list:
    step_rows = sorted(row.process_steps, key=lambda s: s.position)
    step_ids = [s.step_id for s in step_rows]
    if step_ids != [step.value for step in STEP_ORDER]:
        raise StoreShapeError(f"Expected the five process steps, got {step_ids}", row.claim_number)

    steps = []
    for step_row in step_rows:
        definition = STEP_DEFINITIONS[ProcessStepId(step_row.step_id)]
        steps.append(
            ProcessStep(
                id=definition.id,
                title=definition.title,
                description=definition.description,
                required_actions=list(definition.required_actions),
                status=step_row.status,
                started_at=step_row.started_at,
                completed_at=step_row.completed_at,
            )
        )
    return steps


def claim_row_to_domain(row: ClaimRow) -> Claim:
    """
    Map a fully loaded claim row to the domain model.

    Raises:
        StoreShapeError: If required fields or the step list are malformed
    """
    if not row.declarant_id or row.declarant is None:
        raise StoreShapeError("Claim has no declarant", row.claim_number)
    try:
        current_step_id = ProcessStepId(row.current_step_id)
    except ValueError:
        raise StoreShapeError(f"Unknown current step {row.current_step_id!r}", row.claim_number)

    events = sorted(
        (event_to_domain(e) for e in row.events),
        key=lambda e: (e.timestamp, int(e.id) if e.id.isdigit() else 0),
        reverse=True,
    )

    return Claim(
        id=row.claim_number,
        policy_number=row.policy_number,
        type=to_domain_type(row.type),
        status=to_domain_status(row.status),
        declarant=profile_to_user(row.declarant),
        assigned_to=profile_to_user(row.gestionnaire),
        expert=profile_to_user(row.expert),
        medical_expert=profile_to_user(row.medecin),
        incident_date=row.incident_date,
        declaration_date=row.declaration_date,
        location=row.location,
        description=row.description,
        estimated_amount=parse_amount(row.amount_claimed),
        approved_amount=parse_amount(row.amount_approved),
        paid_amount=parse_amount(row.amount_paid),
        rejection_reason=row.rejection_reason,
        documents=[document_to_domain(d) for d in row.documents],
        events=events,
        expertise=expertise_to_domain(row.expertise, row.claim_number),
        process_steps=_process_steps(row),
        current_step_id=current_step_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version or 1,
    )
