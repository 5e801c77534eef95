"""
Request payloads accepted by the API.

Validation failures surface as field-level messages (HTTP 422) through
``app.utils.errors.validation_error_handler``; no partial claim is created.
"""
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from app.config.workflow import get_workflow_settings
from app.models.enums import AppRole, ClaimStatus, ClaimType, ExpertiseStatus


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=255)


class SignupRequest(BaseModel):
    """Policyholder self-registration."""

    name: str = Field(..., min_length=3, max_length=255)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    password: str = Field(..., min_length=8, max_length=255)
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self) -> "SignupRequest":
        if self.password != self.confirm_password:
            raise ValueError("Les mots de passe ne correspondent pas")
        return self


class RoleChange(BaseModel):
    role: AppRole


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def at_least_one(self) -> "ProfileUpdate":
        if self.name is None and self.phone is None:
            raise ValueError("At least one of name, phone is required")
        return self


class ClaimCreate(BaseModel):
    """New claim declaration."""

    policy_number: str = Field(..., min_length=5, max_length=50)
    type: ClaimType
    incident_date: date
    declaration_date: date = Field(default_factory=date.today, validate_default=True)
    location: str = Field(..., min_length=3, max_length=500)
    description: str = Field(..., min_length=20, max_length=5000)
    estimated_amount: Optional[Decimal] = Field(None, ge=0, max_digits=14, decimal_places=2)
    # Staff declaring on behalf of a policyholder must name them
    declarant_id: Optional[str] = None

    @field_validator("policy_number", "location", "description")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator("declaration_date")
    @classmethod
    def declaration_within_legal_delay(cls, v: date, info: ValidationInfo) -> date:
        incident_date = info.data.get("incident_date")
        if incident_date is None:
            return v
        if v < incident_date:
            raise ValueError("La date de déclaration ne peut pas précéder la date du sinistre")
        max_days = get_workflow_settings().declaration_delay_days
        if (v - incident_date).days > max_days:
            raise ValueError(f"Le sinistre doit être déclaré dans les {max_days} jours suivant sa survenance")
        return v


class StatusChange(BaseModel):
    status: ClaimStatus
    reason: Optional[str] = Field(None, max_length=2000)
    amount: Optional[Decimal] = Field(None, ge=0, max_digits=14, decimal_places=2)
    override_payment: bool = False


class Assignment(BaseModel):
    manager_id: Optional[str] = None
    expert_id: Optional[str] = None
    medical_expert_id: Optional[str] = None

    @model_validator(mode="after")
    def at_least_one(self) -> "Assignment":
        if not (self.manager_id or self.expert_id or self.medical_expert_id):
            raise ValueError("At least one of manager_id, expert_id, medical_expert_id is required")
        return self


class ExpertiseInput(BaseModel):
    """Expert assessment update; omitted fields keep their previous value."""

    status: ExpertiseStatus
    scheduled_date: Optional[date] = None
    completed_date: Optional[date] = None
    estimated_amount: Optional[Decimal] = Field(None, ge=0, max_digits=14, decimal_places=2)
    report: Optional[str] = Field(None, max_length=20000)


class DocumentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: str = Field(..., min_length=1, max_length=100)
    url: str = Field(..., min_length=1, max_length=1000)


class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)
