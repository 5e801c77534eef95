"""
Legal delay checks.

Advisory only: the flags feed the dashboards and never block a command.

- declaration within 5 days of the incident
- instruction (``ouvert`` / ``en_analyse``) within 7 days of declaration
- expertise report within 14 days of declaration (20 for a medical report)
- payment within 30 days of approval
"""
from dataclasses import dataclass
from datetime import date
from typing import Optional

from app.config.workflow import get_workflow_settings
from app.models.domain import Claim
from app.models.enums import ClaimEventType, ClaimStatus, ClaimType

# Statuses no longer subject to any delay
SETTLED_STATUSES = frozenset({ClaimStatus.PAYE, ClaimStatus.CLOS, ClaimStatus.REJETE})

LATE_INSTRUCTION = "Instruction en retard"
LATE_EXPERTISE = "Expertise en retard"
LATE_MEDICAL_REPORT = "Rapport médical en retard"
LATE_PAYMENT = "Paiement en retard"


@dataclass(frozen=True)
class DelayAssessment:
    claim_number: str
    status: ClaimStatus
    days_since_declaration: int
    days_since_incident: int
    declared_on_time: bool
    is_late: bool = False
    delay_type: str = ""
    days_overdue: int = 0
    is_urgent: bool = False

    @property
    def is_open(self) -> bool:
        return self.status not in SETTLED_STATUSES

    @property
    def on_time(self) -> bool:
        return self.is_open and not self.is_late


def approval_date(claim: Claim) -> date:
    """Date of the latest approval event, or the declaration date without one."""
    event = claim.latest_event(ClaimEventType.VALIDATION)
    return event.timestamp.date() if event else claim.declaration_date


def _needs_medical_report(claim: Claim) -> bool:
    return claim.medical_expert is not None or claim.type == ClaimType.SANTE


def assess_claim(claim: Claim, today: Optional[date] = None) -> DelayAssessment:
    """Compare the claim's current stage with its legal delay."""
    settings = get_workflow_settings()
    today = today or date.today()
    days_since_declaration = (today - claim.declaration_date).days
    days_since_incident = (today - claim.incident_date).days
    declared_on_time = (claim.declaration_date - claim.incident_date).days <= settings.declaration_delay_days

    delay_type = ""
    overdue = 0
    if claim.status in (ClaimStatus.OUVERT, ClaimStatus.EN_ANALYSE):
        overdue = days_since_declaration - settings.instruction_delay_days
        delay_type = LATE_INSTRUCTION
    elif claim.status == ClaimStatus.EN_EXPERTISE:
        if _needs_medical_report(claim):
            overdue = days_since_declaration - settings.medical_report_delay_days
            delay_type = LATE_MEDICAL_REPORT
        else:
            overdue = days_since_declaration - settings.expertise_delay_days
            delay_type = LATE_EXPERTISE
    elif claim.status == ClaimStatus.APPROUVE:
        overdue = (today - approval_date(claim)).days - settings.payment_delay_days
        delay_type = LATE_PAYMENT

    is_late = overdue > 0
    is_urgent = (
        not is_late
        and claim.status not in SETTLED_STATUSES
        and days_since_declaration >= settings.urgent_after_days
    )
    return DelayAssessment(
        claim_number=claim.id,
        status=claim.status,
        days_since_declaration=days_since_declaration,
        days_since_incident=days_since_incident,
        declared_on_time=declared_on_time,
        is_late=is_late,
        delay_type=delay_type if is_late else "",
        days_overdue=overdue if is_late else 0,
        is_urgent=is_urgent,
    )
