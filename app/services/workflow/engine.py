"""
Claim workflow engine.

All claim mutations go through this class. Each command checks
authorization first, then the state guard, and only then writes the change
together with exactly one audit event. Failures come back as an
``OperationResult`` with a typed ``Outcome``; nothing is written for them.

Process steps move ``pending -> in_progress -> completed`` one at a time:
only the current step can be started, completing it moves the pointer to the
next step without starting it, and completing the payment step closes the
claim.
"""
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.models.domain import Claim
from app.models.enums import AppRole, ClaimEventType, ClaimStatus, ProcessStepId, StepStatus
from app.models.schemas import ClaimCreate
from app.services.auth.session import SessionContext
from app.services.claims.repository import ClaimRepository
from app.services.workflow.commands import ClaimCommandRunner, denied, illegal, invalid
from app.services.workflow.results import OperationResult, Outcome
from app.services.workflow.steps import STEP_DEFINITIONS, next_step_id
from app.services.workflow.transitions import (
    STATUS_LABELS,
    can_transition,
    entry_permissions,
    event_type_for,
    is_terminal,
    status_change_description,
)
from app.utils.decimal_utils import parse_amount
from app.utils.logger import get_logger

logger = get_logger(__name__)

# Starting or completing a step; any one suffices
STEP_PERMISSIONS = {
    ProcessStepId.DECLARATION: ("claims.edit",),
    ProcessStepId.INSTRUCTION: ("claims.edit",),
    ProcessStepId.EXPERTISE: ("claims.edit",),
    ProcessStepId.VALIDATION: ("claims.edit", "claims.validate"),
    ProcessStepId.PAIEMENT: ("claims.edit", "payments.create"),
}

CREATE_PERMISSIONS = ("claims.create", "claims.edit")

# Role a user must hold to be assigned to each slot
ASSIGNMENT_ROLES = {
    "manager_id": (AppRole.GESTIONNAIRE, "Gestionnaire"),
    "expert_id": (AppRole.EXPERT, "Expert"),
    "medical_expert_id": (AppRole.MEDECIN_EXPERT, "Médecin expert"),
}


def _field_errors(exc: PydanticValidationError) -> dict:
    errors = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "body"
        errors[field] = error["msg"]
    return errors


class ClaimWorkflowEngine(ClaimCommandRunner):
    """Creates claims and drives them through their status and process steps."""

    def __init__(self, repository: ClaimRepository, clock=None):
        super().__init__(repository, clock)

    @staticmethod
    def _require_any(session: SessionContext, permissions, action: str):
        def authorize(claim: Claim) -> Optional[OperationResult]:
            if session.has_any_permission(permissions):
                return None
            return denied(
                f"Permission required to {action}",
                required=list(permissions),
                role=session.user.role.value,
            )
        return authorize

    # Creation

    def create_claim(self, draft: Union[ClaimCreate, dict], session: SessionContext) -> OperationResult:
        """
        Declare a new claim.

        An insured actor is always the declarant; staff must name an existing
        declarant. The claim starts ``ouvert`` with the declaration step in
        progress and a single ``creation`` event.
        """
        user = session.user
        if user is None:
            logger.warning("Claim creation refused: not authenticated")
            return denied("Authentication required")
        if not session.has_any_permission(CREATE_PERMISSIONS):
            logger.warning("Claim creation refused", user_id=user.id, role=user.role.value)
            return denied("Permission required to create a claim", required=list(CREATE_PERMISSIONS))

        if not isinstance(draft, ClaimCreate):
            try:
                draft = ClaimCreate.model_validate(draft)
            except PydanticValidationError as e:
                return invalid("Invalid claim declaration", fields=_field_errors(e))

        try:
            if user.role == AppRole.ASSURE:
                declarant_id = user.id
            else:
                declarant_id = draft.declarant_id
                if not declarant_id:
                    return invalid(
                        "A declarant is required",
                        fields={"declarant_id": "Le déclarant est obligatoire"},
                    )
                if self.repository.get_profile(declarant_id) is None:
                    return invalid(
                        "Unknown declarant",
                        fields={"declarant_id": "Déclarant introuvable"},
                    )

            with self.repository.unit_of_work():
                row = self.repository.create(
                    policy_number=draft.policy_number,
                    claim_type=draft.type,
                    incident_date=draft.incident_date,
                    declaration_date=draft.declaration_date,
                    location=draft.location,
                    description=draft.description,
                    declarant_id=declarant_id,
                    estimated_amount=parse_amount(draft.estimated_amount),
                )
                claim_number = row.claim_number
                self.repository.append_event(
                    row,
                    ClaimEventType.CREATION,
                    f"Sinistre déclaré par {user.name}",
                    user.id,
                )
            created = self.repository.get_by_id(claim_number)
        except SQLAlchemyError as e:
            self.repository.db.rollback()
            logger.error("Claim creation failed", error=str(e), user_id=user.id)
            return OperationResult.failure(Outcome.TRANSIENT_FAILURE, "Claims store temporarily unavailable")

        logger.info("Claim declared", claim_number=claim_number, user_id=user.id, declarant_id=declarant_id)
        return OperationResult.success(created)

    # Process steps

    def start_step(
        self,
        claim_number: str,
        step_id: ProcessStepId,
        session: SessionContext,
        expected_version: Optional[int] = None,
    ) -> OperationResult:
        """Start the current step; it must be pending and the claim not terminal."""
        try:
            step_id = ProcessStepId(step_id)
        except ValueError:
            return OperationResult.failure(Outcome.NOT_FOUND, "Unknown process step", identifier=str(step_id))

        def guard(claim: Claim) -> Optional[OperationResult]:
            if is_terminal(claim.status):
                return illegal(f"Claim is {claim.status.value}; its steps can no longer change")
            if step_id != claim.current_step_id:
                return illegal(
                    f"Only the current step ({claim.current_step_id.value}) can be started",
                    step_id=step_id.value,
                )
            step = claim.step(step_id)
            if step.status != StepStatus.PENDING:
                return illegal(f"Step {step_id.value} is already {step.status.value}", step_id=step_id.value)
            return None

        def mutate(row, claim: Claim) -> None:
            now = self.now()
            self.repository.update_process_step(
                claim.id, step_id, status=StepStatus.IN_PROGRESS, started_at=now
            )
            self.repository.append_event(
                row,
                ClaimEventType.STATUS_CHANGE,
                f"Étape démarrée : {STEP_DEFINITIONS[step_id].title}",
                session.user.id,
            )

        return self.execute(
            "start_step",
            session,
            claim_number,
            self._require_any(session, STEP_PERMISSIONS[step_id], "start this step"),
            guard,
            mutate,
            expected_version,
        )

    def complete_step(
        self,
        claim_number: str,
        step_id: ProcessStepId,
        session: SessionContext,
        expected_version: Optional[int] = None,
    ) -> OperationResult:
        """
        Complete an in-progress step.

        The pointer moves to the next step, which stays pending. Completing
        the payment step closes the claim and leaves the pointer on it.
        """
        try:
            step_id = ProcessStepId(step_id)
        except ValueError:
            return OperationResult.failure(Outcome.NOT_FOUND, "Unknown process step", identifier=str(step_id))

        def guard(claim: Claim) -> Optional[OperationResult]:
            if is_terminal(claim.status):
                return illegal(f"Claim is {claim.status.value}; its steps can no longer change")
            step = claim.step(step_id)
            if step_id != claim.current_step_id or step.status != StepStatus.IN_PROGRESS:
                return illegal(f"Step {step_id.value} is not in progress", step_id=step_id.value)
            return None

        def mutate(row, claim: Claim) -> None:
            following = next_step_id(step_id)
            title = STEP_DEFINITIONS[step_id].title
            if following is None:
                self.repository.update_process_step(
                    claim.id,
                    step_id,
                    status=StepStatus.COMPLETED,
                    completed_at=self.now(),
                    claim_status=ClaimStatus.CLOS,
                )
                self.repository.append_event(
                    row,
                    ClaimEventType.CLOSURE,
                    f"Étape terminée : {title}. Dossier clôturé",
                    session.user.id,
                )
            else:
                self.repository.update_process_step(
                    claim.id,
                    step_id,
                    status=StepStatus.COMPLETED,
                    completed_at=self.now(),
                    current_step_id=following,
                )
                self.repository.append_event(
                    row,
                    ClaimEventType.STATUS_CHANGE,
                    f"Étape terminée : {title}",
                    session.user.id,
                )

        return self.execute(
            "complete_step",
            session,
            claim_number,
            self._require_any(session, STEP_PERMISSIONS[step_id], "complete this step"),
            guard,
            mutate,
            expected_version,
        )

    # Status

    def change_status(
        self,
        claim_number: str,
        target: ClaimStatus,
        session: SessionContext,
        reason: Optional[str] = None,
        amount=None,
        override_payment: bool = False,
        expected_version: Optional[int] = None,
    ) -> OperationResult:
        """
        Move a claim to ``target``.

        Only the immediate successor (with its prerequisite steps completed)
        or ``rejete`` are accepted. Approval may record the approved amount,
        payment the paid amount.
        """
        target = ClaimStatus(target)
        amount = parse_amount(amount)
        reason = reason.strip() if reason else None

        def guard(claim: Claim) -> Optional[OperationResult]:
            allowed, why = can_transition(claim, target)
            if not allowed:
                return illegal(why, current=claim.status.value, target=target.value)
            if target == ClaimStatus.REJETE and not reason:
                return invalid("A rejection reason is required", fields={"reason": "Le motif du rejet est obligatoire"})
            if target == ClaimStatus.APPROUVE and amount is not None and claim.estimated_amount is None:
                return invalid(
                    "An estimated amount is required before approval",
                    fields={"amount": "Aucun montant estimé pour ce dossier"},
                )
            if target == ClaimStatus.PAYE and amount is not None:
                if claim.approved_amount is None and not override_payment:
                    return invalid(
                        "An approved amount is required before payment",
                        fields={"amount": "Aucun montant approuvé pour ce dossier"},
                    )
            return None

        def mutate(row, claim: Claim) -> None:
            changes = {}
            if target == ClaimStatus.REJETE:
                changes["rejection_reason"] = reason
            elif target == ClaimStatus.APPROUVE and amount is not None:
                changes["approved_amount"] = amount
            elif target == ClaimStatus.PAYE and amount is not None:
                changes["paid_amount"] = amount
            self.repository.update_status(claim.id, target, **changes)

            description = status_change_description(claim.status, target, reason)
            if target == ClaimStatus.PAYE and override_payment and claim.approved_amount is None:
                description += " (paiement sans montant approuvé)"
            self.repository.append_event(row, event_type_for(target), description, session.user.id)

        permissions = entry_permissions(target)
        return self.execute(
            "change_status",
            session,
            claim_number,
            self._require_any(session, permissions, f"move a claim to {STATUS_LABELS[target]}"),
            guard,
            mutate,
            expected_version,
        )

    # Assignment

    def assign(
        self,
        claim_number: str,
        session: SessionContext,
        manager_id: Optional[str] = None,
        expert_id: Optional[str] = None,
        medical_expert_id: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> OperationResult:
        """Assign the manager and/or experts of a claim."""
        requested = {
            key: value
            for key, value in (
                ("manager_id", manager_id),
                ("expert_id", expert_id),
                ("medical_expert_id", medical_expert_id),
            )
            if value
        }
        profiles = {}

        def authorize(claim: Claim) -> Optional[OperationResult]:
            if "manager_id" in requested and not session.has_permission("claims.assign"):
                return denied("Permission required to assign a manager", required=["claims.assign"])
            if ({"expert_id", "medical_expert_id"} & requested.keys()
                    and not session.has_permission("expert.designate")):
                return denied("Permission required to designate an expert", required=["expert.designate"])
            return None

        def guard(claim: Claim) -> Optional[OperationResult]:
            if not requested:
                return invalid("Nothing to assign", fields={"body": "Aucune affectation demandée"})
            if is_terminal(claim.status):
                return illegal(f"Claim is {claim.status.value}; it can no longer be reassigned")
            errors = {}
            for key, user_id in requested.items():
                role, label = ASSIGNMENT_ROLES[key]
                profile = self.repository.get_profile(user_id)
                if profile is None:
                    errors[key] = "Utilisateur introuvable"
                elif role not in {assignment.role for assignment in profile.roles}:
                    errors[key] = f"L'utilisateur n'a pas le rôle {label}"
                else:
                    profiles[key] = profile
            if errors:
                return invalid("Invalid assignment", fields=errors)
            return None

        def mutate(row, claim: Claim) -> None:
            slots = {"manager_id": "gestionnaire_id", "expert_id": "expert_id", "medical_expert_id": "medecin_id"}
            self.repository.assign(claim.id, **{slots[key]: value for key, value in requested.items()})
            parts = [
                f"{ASSIGNMENT_ROLES[key][1]} assigné : {profiles[key].name}"
                for key in requested
            ]
            self.repository.append_event(row, ClaimEventType.ASSIGNMENT, "; ".join(parts), session.user.id)

        return self.execute("assign", session, claim_number, authorize, guard, mutate, expected_version)

    # Documents and comments

    def add_document(
        self,
        claim_number: str,
        session: SessionContext,
        name: str,
        doc_type: str,
        url: str,
        expected_version: Optional[int] = None,
    ) -> OperationResult:
        """Attach document metadata; the declarant may add to their own claim."""

        def authorize(claim: Claim) -> Optional[OperationResult]:
            if session.has_permission("documents.upload"):
                return None
            if session.has_permission("documents.upload.own") and claim.declarant.id == session.user.id:
                return None
            return denied("Permission required to upload documents", required=["documents.upload"])

        def mutate(row, claim: Claim) -> None:
            self.repository.add_document(row, name=name, doc_type=doc_type, url=url, uploaded_by=session.user.id)
            self.repository.append_event(
                row, ClaimEventType.DOCUMENT, f"Document ajouté : {name}", session.user.id
            )

        return self.execute(
            "add_document", session, claim_number, authorize, lambda claim: None, mutate, expected_version
        )

    def add_comment(
        self,
        claim_number: str,
        session: SessionContext,
        text: str,
        expected_version: Optional[int] = None,
    ) -> OperationResult:
        """Record a comment; anyone who can read the claim may comment."""
        text = (text or "").strip()

        def guard(claim: Claim) -> Optional[OperationResult]:
            if not text:
                return invalid("Comment is empty", fields={"text": "Le commentaire est vide"})
            return None

        def mutate(row, claim: Claim) -> None:
            self.repository.append_event(row, ClaimEventType.COMMENT, text, session.user.id)

        # Read access is checked by the runner and is all a comment needs
        return self.execute(
            "add_comment", session, claim_number, lambda claim: None, guard, mutate, expected_version
        )
