"""
SQLAlchemy models for claims and their dependent records.

Identity models (Profile, UserRoleAssignment, AuthCredential) are in app.models.core.
Enums are in app.models.enums.

Claims & dependents:
- Claim: a reported incident, keyed for users by ``claim_number`` (CLM-<year>-<seq>)
- Document: document metadata attached to a claim (no file content)
- ClaimEvent: append-only audit record of every claim mutation
- ClaimProcessStep: status and timestamps of one of the five workflow steps
- Expertise: the optional expert assessment of a claim (one per claim)

Status and type columns hold the *store* vocabulary (see StoreClaimStatus and
StoreClaimType). The ``version`` column is the optimistic concurrency counter:
SQLAlchemy bumps it on every UPDATE of a claim row and refuses the flush when
another writer changed the row first.

Relationships:
- Many-to-one: Claim -> Profile (declarant, gestionnaire, expert, medecin)
- One-to-many: Claim -> Document / ClaimEvent / ClaimProcessStep
- One-to-one: Claim -> Expertise
"""
from sqlalchemy import (
    Column,
    String,
    Integer,
    Numeric,
    Date,
    DateTime,
    Text,
    ForeignKey,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.config.database import Base, TimestampMixin
from app.models.enums import (
    StoreClaimStatus,
    StoreClaimType,
    StepStatus,
    ExpertiseStatus,
    enum_values,
)
from app.models.core import Profile, UserRoleAssignment, AuthCredential


class Claim(Base, TimestampMixin):
    """
    Claim record as persisted in the store.

    Attributes:
        claim_number: Unique human-readable number exposed to users
        policy_number: Insurance policy number
        declarant_id: Profile that reported the claim (required)
        gestionnaire_id / expert_id / medecin_id: Assigned staff (nullable)
        incident_date / declaration_date: Calendar dates
        amount_claimed / amount_approved / amount_paid: Nullable decimals
        status / type: Store vocabulary values
        rejection_reason: Set when the claim is rejected
        current_step_id: Pointer into the claim's process steps
        version: Optimistic concurrency counter
    """

    __tablename__ = "claims"

    id = Column(Integer, primary_key=True, index=True)
    claim_number = Column(String(30), unique=True, nullable=False, index=True)
    policy_number = Column(String(50), nullable=False, index=True)

    declarant_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    gestionnaire_id = Column(String(36), ForeignKey("profiles.id"), index=True)
    expert_id = Column(String(36), ForeignKey("profiles.id"), index=True)
    medecin_id = Column(String(36), ForeignKey("profiles.id"), index=True)

    incident_date = Column(Date, nullable=False)
    declaration_date = Column(Date, nullable=False, index=True)
    location = Column(Text)
    description = Column(Text, nullable=False)

    amount_claimed = Column(Numeric(14, 2))
    amount_approved = Column(Numeric(14, 2))
    amount_paid = Column(Numeric(14, 2))

    status = Column(
        SQLEnum(StoreClaimStatus, name="claim_status", values_callable=enum_values),
        nullable=False,
        default=StoreClaimStatus.DECLARATION,
        index=True,
    )
    type = Column(
        SQLEnum(StoreClaimType, name="claim_type", values_callable=enum_values),
        nullable=False,
        index=True,
    )
    rejection_reason = Column(Text)
    current_step_id = Column(String(20), nullable=False, default="declaration")
    version = Column(Integer, nullable=False)

    declarant = relationship("Profile", foreign_keys=[declarant_id], lazy="joined")
    gestionnaire = relationship("Profile", foreign_keys=[gestionnaire_id], lazy="joined")
    expert = relationship("Profile", foreign_keys=[expert_id], lazy="joined")
    medecin = relationship("Profile", foreign_keys=[medecin_id], lazy="joined")

    documents = relationship(
        "Document", back_populates="claim", cascade="all, delete-orphan", order_by="Document.id"
    )
    events = relationship(
        "ClaimEvent",
        back_populates="claim",
        cascade="all, delete-orphan",
        order_by="ClaimEvent.id",
    )
    process_steps = relationship(
        "ClaimProcessStep",
        back_populates="claim",
        cascade="all, delete-orphan",
        order_by="ClaimProcessStep.position",
    )
    expertise = relationship(
        "Expertise", back_populates="claim", uselist=False, cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version}


class Document(Base):
    """Document metadata; the file itself lives in external storage at ``url``."""

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    type = Column(String(100), nullable=False)
    url = Column(String(1000), nullable=False)
    uploaded_by = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    claim = relationship("Claim", back_populates="documents")
    uploader = relationship("Profile", lazy="joined")


class ClaimEvent(Base):
    """
    Append-only audit record.

    Rows are inserted by the workflow engine and never updated or deleted.
    ``user_id`` is nullable for events whose actor has been removed from the
    identity store.
    """

    __tablename__ = "claim_events"

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)
    event_type = Column(String(30), nullable=False, index=True)
    description = Column(Text, nullable=False)
    user_id = Column(String(36), ForeignKey("profiles.id"))
    created_at = Column(DateTime, default=func.now(), nullable=False, index=True)

    claim = relationship("Claim", back_populates="events")
    user = relationship("Profile", lazy="joined")


class ClaimProcessStep(Base):
    """Mutable status of one of the five fixed process steps of a claim."""

    __tablename__ = "claim_process_steps"
    __table_args__ = (UniqueConstraint("claim_id", "step_id", name="uq_claim_process_step"),)

    id = Column(Integer, primary_key=True, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)
    step_id = Column(String(20), nullable=False)
    position = Column(Integer, nullable=False)
    status = Column(
        SQLEnum(StepStatus, name="step_status", values_callable=enum_values),
        nullable=False,
        default=StepStatus.PENDING,
    )
    started_at = Column(DateTime)
    completed_at = Column(DateTime)

    claim = relationship("Claim", back_populates="process_steps")


class Expertise(Base, TimestampMixin):
    """Expert assessment attached to a claim (at most one per claim)."""

    __tablename__ = "expertises"

    id = Column(String(36), primary_key=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), unique=True, nullable=False, index=True)
    expert_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    status = Column(
        SQLEnum(ExpertiseStatus, name="expertise_status", values_callable=enum_values),
        nullable=False,
    )
    scheduled_date = Column(Date)
    completed_date = Column(Date)
    report = Column(Text)
    estimated_amount = Column(Numeric(14, 2))

    claim = relationship("Claim", back_populates="expertise")


__all__ = [
    # Identity models (re-exported from app.models.core)
    "Profile",
    "UserRoleAssignment",
    "AuthCredential",
    # Models defined in this module
    "Claim",
    "Document",
    "ClaimEvent",
    "ClaimProcessStep",
    "Expertise",
]
