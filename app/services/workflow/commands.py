"""
Common execution path of claim commands.

Every mutating command goes through ``ClaimCommandRunner.execute``:

1. refuse without an authenticated user (``denied``)
2. load the claim (``not_found``)
3. check read access, then permission (``denied``, logged at warning, nothing
   written; a claim the user cannot read is flagged ``visible=False`` so the
   API can answer as if it did not exist)
4. compare the caller's expected version (``conflict``)
5. check the state guard (``illegal_transition`` / ``validation_error``)
6. apply the mutation and append exactly one event, in one transaction

Store failures are classified here: a concurrent write detected at flush is a
``conflict``, any other store error a ``transient_failure``. The caller never
sees a raw SQLAlchemy exception.
"""
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from app.models.database import Claim as ClaimRow
from app.models.domain import Claim
from app.services.auth.session import SessionContext
from app.services.claims.mapping import StoreShapeError
from app.services.claims.repository import ClaimRepository
from app.services.claims.visibility import can_view
from app.services.workflow.results import OperationResult, Outcome
from app.utils.logger import get_logger

logger = get_logger(__name__)

# (claim) -> failure or None
Check = Callable[[Claim], Optional[OperationResult]]
# (row, claim) -> None; must append exactly one event
Mutation = Callable[[ClaimRow, Claim], None]


def denied(message: str = "Permission denied", **details) -> OperationResult:
    return OperationResult.failure(Outcome.DENIED, message, **details)


def illegal(message: str, **details) -> OperationResult:
    return OperationResult.failure(Outcome.ILLEGAL_TRANSITION, message, **details)


def invalid(message: str, **details) -> OperationResult:
    return OperationResult.failure(Outcome.VALIDATION_ERROR, message, **details)


class ClaimCommandRunner:
    """Runs guarded claim commands against a repository."""

    def __init__(self, repository: ClaimRepository, clock: Optional[Callable[[], datetime]] = None):
        self.repository = repository
        self.clock = clock or repository.clock

    def now(self) -> datetime:
        return self.clock()

    def execute(
        self,
        action: str,
        session: SessionContext,
        claim_number: str,
        authorize: Check,
        guard: Check,
        mutate: Mutation,
        expected_version: Optional[int] = None,
    ) -> OperationResult:
        user_id = session.user.id if session.user else None
        log = logger.bind(action=action, claim_number=claim_number, user_id=user_id)

        if session.user is None:
            log.warning("Command refused: not authenticated")
            return denied("Authentication required")

        try:
            row = self.repository.get_row(claim_number)
            if row is None:
                log.info("Command target not found", outcome=Outcome.NOT_FOUND.value)
                return OperationResult.failure(Outcome.NOT_FOUND, "Claim not found", identifier=claim_number)
            claim = self.repository.to_domain(row)

            if not can_view(session, claim):
                log.warning("Command refused: claim not visible", outcome=Outcome.DENIED.value)
                self.repository.db.rollback()
                return denied("Claim not found", identifier=claim_number, visible=False)

            refusal = authorize(claim)
            if refusal is not None:
                log.warning("Command refused", outcome=refusal.outcome.value, reason=refusal.message)
                self.repository.db.rollback()
                return refusal

            if expected_version is not None and claim.version != expected_version:
                log.info("Version mismatch", expected=expected_version, actual=claim.version)
                self.repository.db.rollback()
                return OperationResult.failure(
                    Outcome.CONFLICT,
                    "Claim was modified since it was read",
                    expected_version=expected_version,
                    current_version=claim.version,
                )

            failure = guard(claim)
            if failure is not None:
                log.info("Command rejected", outcome=failure.outcome.value, reason=failure.message)
                self.repository.db.rollback()
                return failure

            with self.repository.unit_of_work():
                mutate(row, claim)

            updated = self.repository.get_by_id(claim_number)
        except StaleDataError:
            self.repository.db.rollback()
            log.warning("Concurrent modification detected", outcome=Outcome.CONFLICT.value)
            return OperationResult.failure(Outcome.CONFLICT, "Claim was modified concurrently")
        except SQLAlchemyError as e:
            self.repository.db.rollback()
            log.error("Claims store error", error=str(e), outcome=Outcome.TRANSIENT_FAILURE.value)
            return OperationResult.failure(Outcome.TRANSIENT_FAILURE, "Claims store temporarily unavailable")
        except StoreShapeError as e:
            self.repository.db.rollback()
            log.error("Malformed claim in store", error=str(e), outcome=Outcome.TRANSIENT_FAILURE.value)
            return OperationResult.failure(Outcome.TRANSIENT_FAILURE, "Claims store returned malformed data")

        log.info("Command applied", outcome=Outcome.SUCCESS.value, version=updated.version)
        return OperationResult.success(updated)
