"""
Domain models returned by the claim repository and workflow engine.

These are the typed shapes the rest of the application (dashboards, API,
page view models) works with. They are built from store rows by
``app.services.claims.mapping`` and never written back directly.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import (
    AppRole,
    ClaimEventType,
    ClaimStatus,
    ClaimType,
    ExpertiseStatus,
    ProcessStepId,
    StepStatus,
)


class DomainModel(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=False)


class User(DomainModel):
    """Principal with one resolved primary role."""

    id: str
    email: str
    name: str
    role: AppRole
    roles: List[AppRole] = Field(default_factory=list)
    phone: Optional[str] = None
    avatar: Optional[str] = None
    created_at: Optional[datetime] = None


class Participant(DomainModel):
    user: User
    role_label: str


class Document(DomainModel):
    id: str
    name: str
    type: str
    url: str
    uploaded_by: Optional[User] = None
    uploaded_at: datetime


class ClaimEvent(DomainModel):
    id: str
    type: ClaimEventType
    description: str
    timestamp: datetime
    user: Optional[User] = None


class ProcessStep(DomainModel):
    id: ProcessStepId
    title: str
    description: str
    status: StepStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    required_actions: List[str] = Field(default_factory=list)


class Expertise(DomainModel):
    id: str
    expert_id: str
    claim_id: str
    status: ExpertiseStatus
    scheduled_date: Optional[date] = None
    completed_date: Optional[date] = None
    report: Optional[str] = None
    estimated_amount: Optional[Decimal] = None
    created_at: datetime


class Claim(DomainModel):
    """
    A claim as seen by the workflow.

    ``id`` is the human-readable claim number (CLM-<year>-<seq>). ``version``
    is the optimistic concurrency counter of the stored row.
    """

    id: str
    policy_number: str
    type: ClaimType
    status: ClaimStatus
    declarant: User
    assigned_to: Optional[User] = None
    expert: Optional[User] = None
    medical_expert: Optional[User] = None
    incident_date: date
    declaration_date: date
    location: Optional[str] = None
    description: str
    estimated_amount: Optional[Decimal] = None
    approved_amount: Optional[Decimal] = None
    paid_amount: Optional[Decimal] = None
    rejection_reason: Optional[str] = None
    documents: List[Document] = Field(default_factory=list)
    events: List[ClaimEvent] = Field(default_factory=list)
    expertise: Optional[Expertise] = None
    process_steps: List[ProcessStep]
    current_step_id: ProcessStepId
    created_at: datetime
    updated_at: datetime
    version: int = 1

    @property
    def participants(self) -> List[Participant]:
        """Declarant, manager and experts, each with a display role label."""
        participants = [Participant(user=self.declarant, role_label="Déclarant")]
        if self.assigned_to:
            participants.append(Participant(user=self.assigned_to, role_label="Gestionnaire"))
        if self.expert:
            participants.append(Participant(user=self.expert, role_label="Expert"))
        if self.medical_expert:
            participants.append(Participant(user=self.medical_expert, role_label="Médecin expert"))
        return participants

    def step(self, step_id: ProcessStepId) -> Optional[ProcessStep]:
        for step in self.process_steps:
            if step.id == step_id:
                return step
        return None

    def latest_event(self, *event_types: ClaimEventType) -> Optional[ClaimEvent]:
        """Newest event of one of the given types (events are stored newest-first)."""
        for event in self.events:
            if event.type in event_types:
                return event
        return None
