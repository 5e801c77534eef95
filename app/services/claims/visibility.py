"""Which claims a user may read, and the claim list filters."""
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional, Sequence

from app.models.domain import Claim
from app.models.enums import ClaimStatus, ClaimType
from app.services.auth.session import SessionContext

# Any of these grants read access to every claim
FULL_VIEW_PERMISSIONS = ("claims.view", "claims.view.readonly")

VALIDATED_STATUSES = frozenset({ClaimStatus.APPROUVE, ClaimStatus.PAYE, ClaimStatus.CLOS})


def _is(user_ref, user_id: str) -> bool:
    return user_ref is not None and user_ref.id == user_id


def can_view(session: SessionContext, claim: Claim) -> bool:
    """Whether the session's user may read ``claim``."""
    user = session.user
    if user is None:
        return False
    if session.has_any_permission(FULL_VIEW_PERMISSIONS):
        return True
    if session.has_permission("claims.view.own") and _is(claim.declarant, user.id):
        return True
    if session.has_permission("claims.view.assigned") and _is(claim.expert, user.id):
        return True
    if session.has_permission("claims.view.assigned.corporel") and _is(claim.medical_expert, user.id):
        return True
    if session.has_permission("claims.view.validated") and claim.status in VALIDATED_STATUSES:
        return True
    return False


def visible_claims(session: SessionContext, claims: Iterable[Claim]) -> List[Claim]:
    return [claim for claim in claims if can_view(session, claim)]


@dataclass
class ClaimFilters:
    status: Sequence[ClaimStatus] = field(default_factory=list)
    type: Sequence[ClaimType] = field(default_factory=list)
    search: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


def filter_claims(claims: Iterable[Claim], filters: ClaimFilters) -> List[Claim]:
    """
    Apply list filters.

    Search matches the claim number, policy number or description,
    case-insensitively. Date bounds apply to the declaration date and are
    inclusive.
    """
    search = filters.search.strip().lower() if filters.search else ""
    result = []
    for claim in claims:
        if filters.status and claim.status not in filters.status:
            continue
        if filters.type and claim.type not in filters.type:
            continue
        if search and not (
            search in claim.id.lower()
            or search in claim.policy_number.lower()
            or search in claim.description.lower()
        ):
            continue
        if filters.date_from and claim.declaration_date < filters.date_from:
            continue
        if filters.date_to and claim.declaration_date > filters.date_to:
            continue
        result.append(claim)
    return result
