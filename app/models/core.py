"""
Identity store models.

This module contains the identity entities of the claims store:
- Profile: a person known to the system (declarant or staff)
- UserRoleAssignment: one role held by a profile (a profile may hold several)
- AuthCredential: password hash used by the store identity provider

Profiles use string identifiers (UUIDs issued by the identity store).
"""
from uuid import uuid4

from sqlalchemy import Column, String, Integer, ForeignKey, DateTime, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.config.database import Base, TimestampMixin
from app.models.enums import AppRole, enum_values


def _uuid() -> str:
    return str(uuid4())


class Profile(Base, TimestampMixin):
    """
    Identity profile.

    Attributes:
        id: Identity id (UUID string)
        email: Unique login email
        name: Display name
        phone: Optional phone number
        avatar: Optional avatar (initials or URL)

    Relationships:
        roles: One-to-many relationship with UserRoleAssignment
        credential: One-to-one relationship with AuthCredential
    """

    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50))
    avatar = Column(String(500))

    roles = relationship(
        "UserRoleAssignment", back_populates="user", cascade="all, delete-orphan", lazy="selectin"
    )
    credential = relationship(
        "AuthCredential", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )


class UserRoleAssignment(Base):
    """Maps an identity to one of the nine application roles."""

    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    role = Column(
        SQLEnum(AppRole, name="app_role", values_callable=enum_values),
        nullable=False,
        default=AppRole.ASSURE,
    )
    created_at = Column(DateTime, default=func.now(), nullable=False)

    user = relationship("Profile", back_populates="roles")


class AuthCredential(Base, TimestampMixin):
    """Bcrypt password hash for a profile (store identity mode only)."""

    __tablename__ = "auth_credentials"

    user_id = Column(String(36), ForeignKey("profiles.id"), primary_key=True)
    password_hash = Column(String(255), nullable=False)

    user = relationship("Profile", back_populates="credential")
