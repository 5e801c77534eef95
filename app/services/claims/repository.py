"""
Claim repository.

Owns every read and write of claim rows. Reads return domain models (see
``app.services.claims.mapping``); writes take already-validated values from the
workflow engine, flush them, and leave the commit to ``unit_of_work``.

Every mutation refreshes ``updated_at`` on the claim row, which also bumps the
row ``version`` so concurrent writers are detected at flush time.
"""
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Iterator, List, Optional
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.attributes import flag_modified

from app.config.workflow import get_workflow_settings
from app.models.core import Profile
from app.models.database import (
    Claim as ClaimRow,
    ClaimEvent as ClaimEventRow,
    ClaimProcessStep,
    Document as DocumentRow,
    Expertise as ExpertiseRow,
)
from app.models.domain import Claim
from app.models.enums import ClaimEventType, ClaimStatus, ClaimType, ExpertiseStatus, ProcessStepId, StepStatus
from app.services.claims.mapping import (
    StoreShapeError,
    claim_row_to_domain,
    to_store_status,
    to_store_type,
)
from app.services.workflow.steps import initial_steps
from app.utils.logger import get_logger

logger = get_logger(__name__)

CLAIM_NUMBER_PATTERN = re.compile(r"^CLM-(\d{4})-(\d+)$")

_UNSET = object()


@dataclass
class FetchResult:
    """Outcome of a full read: either claims, or an error and no claims."""

    claims: List[Claim] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ClaimRepository:
    """Claim persistence over a SQLAlchemy session."""

    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.clock = clock or datetime.now

    @contextmanager
    def unit_of_work(self) -> Iterator[Session]:
        """Commit on success, roll back and re-raise on any error."""
        try:
            yield self.db
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _claims_query(self):
        return select(ClaimRow).options(
            selectinload(ClaimRow.documents),
            selectinload(ClaimRow.events),
            selectinload(ClaimRow.process_steps),
            selectinload(ClaimRow.expertise),
        )

    # Reads

    def fetch_all(self) -> FetchResult:
        """
        Read every claim with its people, documents, events, steps and expertise.

        Store and shape errors are logged and returned as an error; they are never raised.
        """
        try:
            rows = self.db.scalars(
                self._claims_query().order_by(ClaimRow.created_at.desc(), ClaimRow.id.desc())
            ).unique().all()
            claims = [claim_row_to_domain(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error("Failed to fetch claims", error=str(e))
            return FetchResult(error="Claims store unavailable")
        except StoreShapeError as e:
            logger.error("Malformed claim in store", error=str(e), claim_number=e.claim_number)
            return FetchResult(error="Claims store returned malformed data")

        logger.debug("Fetched claims", count=len(claims))
        return FetchResult(claims=claims)

    def get_row(self, claim_number: str) -> Optional[ClaimRow]:
        return self.db.scalars(
            self._claims_query().where(ClaimRow.claim_number == claim_number)
        ).unique().one_or_none()

    def get_by_id(self, claim_number: str) -> Optional[Claim]:
        row = self.get_row(claim_number)
        return claim_row_to_domain(row) if row is not None else None

    def to_domain(self, row: ClaimRow) -> Claim:
        return claim_row_to_domain(row)

    def get_profile(self, user_id: Optional[str]) -> Optional[Profile]:
        if not user_id:
            return None
        return self.db.get(Profile, user_id)

    def next_claim_number(self, year: Optional[int] = None) -> str:
        """Next ``CLM-<year>-<seq>`` after the highest sequence used this year."""
        year = year or self.clock().year
        numbers = self.db.scalars(
            select(ClaimRow.claim_number).where(ClaimRow.claim_number.like(f"CLM-{year}-%"))
        ).all()
        highest = 0
        for number in numbers:
            match = CLAIM_NUMBER_PATTERN.match(number)
            if match:
                highest = max(highest, int(match.group(2)))
        padding = get_workflow_settings().claim_number_padding
        return f"CLM-{year}-{highest + 1:0{padding}d}"

    def count(self) -> int:
        return self.db.scalar(select(func.count(ClaimRow.id))) or 0

    # Writes (flush only; commit happens in unit_of_work)

    def _touch(self, row: ClaimRow) -> datetime:
        now = self.clock()
        row.updated_at = now
        # Forces the claim UPDATE (and version bump) even when only child rows
        # changed and the clock returned the previous value.
        flag_modified(row, "updated_at")
        return now

    def create(
        self,
        *,
        policy_number: str,
        claim_type: ClaimType,
        incident_date: date,
        declaration_date: date,
        location: Optional[str],
        description: str,
        declarant_id: str,
        estimated_amount: Optional[Decimal] = None,
    ) -> ClaimRow:
        """Insert a new claim in status ``ouvert`` with its five steps."""
        now = self.clock()
        row = ClaimRow(
            claim_number=self.next_claim_number(now.year),
            policy_number=policy_number,
            type=to_store_type(claim_type),
            status=to_store_status(ClaimStatus.OUVERT),
            incident_date=incident_date,
            declaration_date=declaration_date,
            location=location,
            description=description,
            declarant_id=declarant_id,
            amount_claimed=estimated_amount,
            current_step_id=ProcessStepId.DECLARATION.value,
            created_at=now,
            updated_at=now,
        )
        for step in initial_steps(now):
            row.process_steps.append(
                ClaimProcessStep(
                    step_id=step.step_id.value,
                    position=step.position,
                    status=step.status,
                    started_at=step.started_at,
                )
            )
        self.db.add(row)
        self.db.flush()
        logger.info("Claim created", claim_number=row.claim_number, declarant_id=declarant_id)
        return row

    def update_status(
        self,
        claim_number: str,
        status: ClaimStatus,
        *,
        rejection_reason=_UNSET,
        approved_amount=_UNSET,
        paid_amount=_UNSET,
    ) -> Optional[ClaimRow]:
        """Replace the status (and optional amounts); no-op if the claim is missing."""
        row = self.get_row(claim_number)
        if row is None:
            return None
        row.status = to_store_status(status)
        if rejection_reason is not _UNSET:
            row.rejection_reason = rejection_reason
        if approved_amount is not _UNSET:
            row.amount_approved = approved_amount
        if paid_amount is not _UNSET:
            row.amount_paid = paid_amount
        self._touch(row)
        self.db.flush()
        return row

    def update_process_step(
        self,
        claim_number: str,
        step_id: ProcessStepId,
        *,
        status: Optional[StepStatus] = None,
        started_at=_UNSET,
        completed_at=_UNSET,
        current_step_id: Optional[ProcessStepId] = None,
        claim_status: Optional[ClaimStatus] = None,
    ) -> Optional[ClaimRow]:
        """
        Update one step and, in the same flush, the claim pointer and status.

        Applying the step change and the pointer move together keeps the
        ordering of steps consistent for any reader.
        """
        row = self.get_row(claim_number)
        if row is None:
            return None
        step_row = next((s for s in row.process_steps if s.step_id == ProcessStepId(step_id).value), None)
        if step_row is None:
            raise StoreShapeError(f"Missing process step {step_id}", claim_number)

        if status is not None:
            step_row.status = status
        if started_at is not _UNSET:
            step_row.started_at = started_at
        if completed_at is not _UNSET:
            step_row.completed_at = completed_at
        if current_step_id is not None:
            row.current_step_id = ProcessStepId(current_step_id).value
        if claim_status is not None:
            row.status = to_store_status(claim_status)
        self._touch(row)
        self.db.flush()
        return row

    def assign(
        self,
        claim_number: str,
        *,
        gestionnaire_id=_UNSET,
        expert_id=_UNSET,
        medecin_id=_UNSET,
    ) -> Optional[ClaimRow]:
        row = self.get_row(claim_number)
        if row is None:
            return None
        if gestionnaire_id is not _UNSET:
            row.gestionnaire_id = gestionnaire_id
        if expert_id is not _UNSET:
            row.expert_id = expert_id
        if medecin_id is not _UNSET:
            row.medecin_id = medecin_id
        self._touch(row)
        self.db.flush()
        # Profiles reload lazily for the new ids
        self.db.expire(row, ["gestionnaire", "expert", "medecin"])
        return row

    def add_document(self, row: ClaimRow, *, name: str, doc_type: str, url: str, uploaded_by: str) -> DocumentRow:
        now = self._touch(row)
        document = DocumentRow(name=name, type=doc_type, url=url, uploaded_by=uploaded_by, created_at=now)
        row.documents.append(document)
        self.db.flush()
        return document

    def upsert_expertise(
        self,
        row: ClaimRow,
        *,
        expert_id: str,
        status: ExpertiseStatus,
        scheduled_date: Optional[date],
        completed_date: Optional[date],
        report: Optional[str],
        estimated_amount: Optional[Decimal],
    ) -> ExpertiseRow:
        """Write the full expertise record, creating it with a fresh id if absent."""
        now = self._touch(row)
        expertise = row.expertise
        if expertise is None:
            expertise = ExpertiseRow(id=str(uuid4()), expert_id=expert_id, created_at=now)
            row.expertise = expertise
        expertise.expert_id = expert_id
        expertise.status = status
        expertise.scheduled_date = scheduled_date
        expertise.completed_date = completed_date
        expertise.report = report
        expertise.estimated_amount = estimated_amount
        expertise.updated_at = now
        self.db.flush()
        return expertise

    def append_event(
        self,
        row: ClaimRow,
        event_type: ClaimEventType,
        description: str,
        user_id: Optional[str],
    ) -> ClaimEventRow:
        """Append one audit event; events are never updated or removed."""
        now = self._touch(row)
        event = ClaimEventRow(
            event_type=ClaimEventType(event_type).value,
            description=description,
            user_id=user_id,
            created_at=now,
        )
        row.events.append(event)
        self.db.flush()
        return event
