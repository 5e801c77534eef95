"""Expert assessment of a claim."""
from datetime import date
from decimal import Decimal
from typing import Optional

from app.models.domain import Claim
from app.models.enums import ClaimEventType, ExpertiseStatus
from app.services.auth.session import SessionContext
from app.services.workflow.commands import ClaimCommandRunner, denied
from app.services.workflow.results import OperationResult
from app.utils.decimal_utils import parse_amount
from app.utils.logger import get_logger

logger = get_logger(__name__)

EXPERTISE_PERMISSIONS = ("expertise.create", "expertise.edit")

EXPERTISE_STATUS_LABELS = {
    ExpertiseStatus.PLANIFIE: "Planifiée",
    ExpertiseStatus.EN_COURS: "En cours",
    ExpertiseStatus.TERMINE: "Terminée",
}


def can_edit_expertise(session: SessionContext, claim: Claim) -> bool:
    """The assigned expert, holding an expertise permission, may write the assessment."""
    if session.user is None or claim.expert is None:
        return False
    return claim.expert.id == session.user.id and session.has_any_permission(EXPERTISE_PERMISSIONS)


class ExpertiseManager(ClaimCommandRunner):
    """Creates or updates the single expertise record of a claim."""

    def upsert(
        self,
        claim_number: str,
        session: SessionContext,
        status: ExpertiseStatus,
        scheduled_date: Optional[date] = None,
        completed_date: Optional[date] = None,
        estimated_amount: Optional[Decimal] = None,
        report: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> OperationResult:
        """
        Write the assessment.

        ``status`` always replaces the stored one; any other field left as None
        keeps its previous value. One ``expertise`` event is appended per call.
        """
        status = ExpertiseStatus(status)
        estimated_amount = parse_amount(estimated_amount)

        def authorize(claim: Claim) -> Optional[OperationResult]:
            if can_edit_expertise(session, claim):
                return None
            return denied(
                "Only the assigned expert may record the expertise",
                required=list(EXPERTISE_PERMISSIONS),
            )

        def mutate(row, claim: Claim) -> None:
            previous = claim.expertise
            merged = {
                "scheduled_date": scheduled_date,
                "completed_date": completed_date,
                "estimated_amount": estimated_amount,
                "report": report,
            }
            if previous is not None:
                for field, value in merged.items():
                    if value is None:
                        merged[field] = getattr(previous, field)

            self.repository.upsert_expertise(row, expert_id=session.user.id, status=status, **merged)

            description = f"Expertise {'mise à jour' if previous else 'créée'} par {session.user.name} : " \
                          f"{EXPERTISE_STATUS_LABELS[status]}"
            if merged["estimated_amount"] is not None:
                description += f", estimation {merged['estimated_amount']}"
            self.repository.append_event(row, ClaimEventType.EXPERTISE, description, session.user.id)

        return self.execute(
            "upsert_expertise",
            session,
            claim_number,
            authorize,
            lambda claim: None,
            mutate,
            expected_version,
        )
