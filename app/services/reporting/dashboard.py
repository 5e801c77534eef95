"""
Dashboard aggregates.

Pure functions over a claim snapshot: they never touch the store and return
JSON-ready dictionaries. The payload a user gets is chosen from their
permissions by ``build_dashboard``.
"""
from collections import Counter, OrderedDict
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence

from app.config.workflow import get_workflow_settings
from app.models.domain import Claim
from app.models.enums import ClaimEventType, ClaimStatus, ClaimType
from app.services.auth.session import SessionContext
from app.services.claims.visibility import visible_claims
from app.services.workflow.deadlines import SETTLED_STATUSES, approval_date, assess_claim
from app.services.workflow.transitions import STATUS_LABELS
from app.utils.decimal_utils import amount_to_float, percentage, sum_amounts

MONTH_LABELS = ("Jan", "Fév", "Mar", "Avr", "Mai", "Jun", "Jul", "Aoû", "Sep", "Oct", "Nov", "Déc")

APPROVED_STATUSES = frozenset({ClaimStatus.APPROUVE, ClaimStatus.PAYE, ClaimStatus.CLOS})

# Display-only progress of a claim along the forward chain
STATUS_FLOW = (
    ClaimStatus.OUVERT,
    ClaimStatus.EN_ANALYSE,
    ClaimStatus.EN_EXPERTISE,
    ClaimStatus.EN_VALIDATION,
    ClaimStatus.APPROUVE,
    ClaimStatus.PAYE,
    ClaimStatus.CLOS,
)

NEXT_STEP_HINTS = {
    ClaimStatus.OUVERT: "En attente d'attribution à un gestionnaire",
    ClaimStatus.EN_ANALYSE: "Analyse des pièces justificatives en cours",
    ClaimStatus.EN_EXPERTISE: "Attente du rapport d'expertise",
    ClaimStatus.EN_VALIDATION: "Validation de l'offre d'indemnisation",
    ClaimStatus.APPROUVE: "Paiement en préparation",
    ClaimStatus.PAYE: "Indemnisation versée",
    ClaimStatus.CLOS: "Dossier clôturé",
    ClaimStatus.REJETE: "Dossier rejeté",
}


def _processing_days(claim: Claim, now: datetime) -> float:
    """Days from declaration to closure (last update) or to now for open claims."""
    start = datetime.combine(claim.declaration_date, datetime.min.time())
    end = claim.updated_at if claim.status == ClaimStatus.CLOS else now
    if end.tzinfo is not None:
        end = end.replace(tzinfo=None)
    return max(0.0, (end - start).total_seconds() / 86400)


def average_processing_days(claims: Sequence[Claim], now: Optional[datetime] = None) -> int:
    if not claims:
        return 0
    now = now or datetime.now()
    return round(sum(_processing_days(c, now) for c in claims) / len(claims))


def global_stats(claims: Sequence[Claim], now: Optional[datetime] = None) -> Dict:
    """Totals, open/closed counts, amount paid and counts per status and type."""
    by_status = Counter(claim.status.value for claim in claims)
    by_type = Counter(claim.type.value for claim in claims)
    return {
        "total_claims": len(claims),
        "open_claims": sum(1 for c in claims if c.status not in SETTLED_STATUSES),
        "closed_claims": by_status.get(ClaimStatus.CLOS.value, 0),
        "total_paid": amount_to_float(
            sum_amounts(c.paid_amount for c in claims if c.status == ClaimStatus.PAYE)
        ),
        "avg_processing_days": average_processing_days(claims, now),
        "claims_by_status": {status.value: by_status.get(status.value, 0) for status in ClaimStatus},
        "claims_by_type": {claim_type.value: by_type.get(claim_type.value, 0) for claim_type in ClaimType},
    }


def _delay_entry(claim: Claim, assessment) -> Dict:
    return {
        "claim_number": claim.id,
        "status": claim.status.value,
        "type": claim.type.value,
        "declarant": claim.declarant.name,
        "manager": claim.assigned_to.name if claim.assigned_to else None,
        "days_since_declaration": assessment.days_since_declaration,
        "delay_type": assessment.delay_type,
        "days_overdue": assessment.days_overdue,
    }


def delay_analysis(claims: Sequence[Claim], today: Optional[date] = None) -> Dict:
    """
    Split claims into late, urgent and on-time.

    Urgent claims are open, not yet late, and declared at least
    ``urgent_after_days`` ago. The conformity rate counts every claim that is
    not late.
    """
    late, urgent, on_time = [], [], []
    for claim in claims:
        assessment = assess_claim(claim, today)
        entry = _delay_entry(claim, assessment)
        if assessment.is_late:
            late.append(entry)
        elif assessment.on_time:
            on_time.append(entry)
            if assessment.is_urgent:
                urgent.append(entry)

    late.sort(key=lambda e: e["days_overdue"], reverse=True)
    urgent.sort(key=lambda e: e["days_since_declaration"], reverse=True)
    conformity = percentage(len(claims) - len(late), len(claims)) if claims else 100.0
    return {
        "late": late,
        "urgent": urgent,
        "on_time_count": len(on_time),
        "late_count": len(late),
        "urgent_count": len(urgent),
        "conformity_rate": conformity,
    }


def manager_workload(claims: Sequence[Claim], today: Optional[date] = None) -> List[Dict]:
    """Per assigned manager: total, in progress, finished and late claims."""
    stats: "OrderedDict[str, Dict]" = OrderedDict()
    for claim in claims:
        if claim.assigned_to is None:
            continue
        entry = stats.setdefault(
            claim.assigned_to.id,
            {"manager_id": claim.assigned_to.id, "name": claim.assigned_to.name,
             "total": 0, "in_progress": 0, "finished": 0, "late": 0},
        )
        entry["total"] += 1
        if claim.status in (ClaimStatus.CLOS, ClaimStatus.PAYE):
            entry["finished"] += 1
        else:
            entry["in_progress"] += 1
        if assess_claim(claim, today).is_late:
            entry["late"] += 1
    return list(stats.values())


def _compliance_entry(compliant: int, total: int) -> Dict:
    return {
        "rate": percentage(compliant, total) if total else 100.0,
        "compliant": compliant,
        "total": total,
    }


def compliance_stats(claims: Sequence[Claim]) -> Dict:
    """
    Share of claims that met each legal delay.

    Expertise is measured from declaration to the report's completion date,
    payment from approval to the payment event.
    """
    settings = get_workflow_settings()
    declaration_ok = 0
    expertise_total = expertise_ok = 0
    payment_total = payment_ok = 0

    for claim in claims:
        if (claim.declaration_date - claim.incident_date).days <= settings.declaration_delay_days:
            declaration_ok += 1

        if claim.expertise is not None:
            expertise_total += 1
            completed = claim.expertise.completed_date
            if completed and (completed - claim.declaration_date).days <= settings.expertise_delay_days:
                expertise_ok += 1

        payment = claim.latest_event(ClaimEventType.PAYMENT)
        if payment is not None:
            payment_total += 1
            if (payment.timestamp.date() - approval_date(claim)).days <= settings.payment_delay_days:
                payment_ok += 1

    return {
        "declaration": _compliance_entry(declaration_ok, len(claims)),
        "expertise": _compliance_entry(expertise_ok, expertise_total),
        "payment": _compliance_entry(payment_ok, payment_total),
    }


def audit_feed(claims: Iterable[Claim], limit: Optional[int] = None) -> List[Dict]:
    """Events of all claims, newest first, capped at the display limit."""
    limit = limit or get_workflow_settings().event_display_limit
    events = []
    for claim in claims:
        for event in claim.events:
            events.append((event, claim))
    events.sort(key=lambda pair: pair[0].timestamp, reverse=True)
    return [
        {
            "claim_number": claim.id,
            "claim_type": claim.type.value,
            "type": event.type.value,
            "description": event.description,
            "timestamp": event.timestamp.isoformat(),
            "user": event.user.name if event.user else None,
        }
        for event, claim in events[:limit]
    ]


def monthly_series(claims: Sequence[Claim], months: int = 6, today: Optional[date] = None) -> List[Dict]:
    """
    Declarations and settlements over the last ``months`` calendar months.

    Settlements are claims whose payment event falls in the month; costs are
    the amounts paid for them.
    """
    today = today or date.today()
    buckets: "OrderedDict[tuple, Dict]" = OrderedDict()
    year, month = today.year, today.month
    keys = []
    for _ in range(months):
        keys.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    for key in reversed(keys):
        buckets[key] = {
            "month": f"{MONTH_LABELS[key[1] - 1]} {key[0]}",
            "declarations": 0,
            "settlements": 0,
            "costs": 0.0,
        }

    for claim in claims:
        declared = (claim.declaration_date.year, claim.declaration_date.month)
        if declared in buckets:
            buckets[declared]["declarations"] += 1
        payment = claim.latest_event(ClaimEventType.PAYMENT)
        if payment is not None:
            paid = (payment.timestamp.year, payment.timestamp.month)
            if paid in buckets:
                buckets[paid]["settlements"] += 1
                buckets[paid]["costs"] += amount_to_float(claim.paid_amount) or 0.0
    return list(buckets.values())


def direction_kpis(claims: Sequence[Claim], now: Optional[datetime] = None) -> Dict:
    total = len(claims)
    approved = sum(1 for c in claims if c.status in APPROVED_STATUSES)
    rejected = sum(1 for c in claims if c.status == ClaimStatus.REJETE)
    total_estimated = sum_amounts(c.estimated_amount for c in claims)
    total_approved = sum_amounts(c.approved_amount for c in claims)
    total_paid = sum_amounts(c.paid_amount for c in claims)
    return {
        "total_claims": total,
        "approved_claims": approved,
        "rejected_claims": rejected,
        "total_estimated": amount_to_float(total_estimated),
        "total_approved": amount_to_float(total_approved),
        "total_paid": amount_to_float(total_paid),
        "avg_processing_days": average_processing_days(claims, now),
        "approval_rate": percentage(approved, total),
        "rejection_rate": percentage(rejected, total),
        "savings_rate": percentage(total_estimated - total_paid, total_estimated),
        "type_distribution": {
            claim_type.value: sum(1 for c in claims if c.type == claim_type) for claim_type in ClaimType
        },
    }


def insured_summary(claims: Sequence[Claim]) -> List[Dict]:
    """A policyholder's claims, newest first, with progress and next step."""
    ordered = sorted(claims, key=lambda c: c.created_at, reverse=True)
    summary = []
    for claim in ordered:
        if claim.status in STATUS_FLOW:
            progress = round((STATUS_FLOW.index(claim.status) + 1) / len(STATUS_FLOW) * 100)
        else:
            progress = 0
        summary.append({
            "claim_number": claim.id,
            "type": claim.type.value,
            "status": claim.status.value,
            "status_label": STATUS_LABELS[claim.status],
            "progress": progress,
            "next_step": NEXT_STEP_HINTS[claim.status],
            "active": claim.status not in SETTLED_STATUSES,
        })
    return summary


def build_dashboard(session: SessionContext, claims: Sequence[Claim], today: Optional[date] = None) -> Dict:
    """
    Dashboard payload for the session's user.

    ``dashboard.global`` gets the delay follow-up, ``dashboard.strategic`` the
    direction KPIs, ``history.view`` the audit view; everyone else gets global
    stats over the claims they can see (policyholders also get their claim
    summary).
    """
    visible = visible_claims(session, claims)
    payload = {"stats": global_stats(visible)}

    if session.has_permission("dashboard.global"):
        payload["view"] = "responsable"
        payload["delays"] = delay_analysis(visible, today)
        payload["workload"] = manager_workload(visible, today)
    elif session.has_permission("dashboard.strategic"):
        # Direction reads aggregates over the whole portfolio
        payload["view"] = "direction"
        payload["stats"] = global_stats(claims)
        payload["kpis"] = direction_kpis(claims)
        payload["monthly"] = monthly_series(claims, today=today)
    elif session.has_permission("history.view"):
        payload["view"] = "audit"
        payload["compliance"] = compliance_stats(visible)
        payload["events"] = audit_feed(visible)
    elif session.has_permission("claims.view.own"):
        payload["view"] = "assure"
        payload["claims"] = insured_summary(visible)
    else:
        payload["view"] = "global"
    return payload
