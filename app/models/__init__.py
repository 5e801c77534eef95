"""
Database models package.

Store models are organized by concern but can be imported from this package:

    from app.models import Claim, Profile
    from app.models.enums import ClaimStatus

Domain models (the shapes returned by the repository) live in
``app.models.domain`` and request payloads in ``app.models.schemas``; they are
not re-exported here to keep the ORM ``Claim`` name unambiguous.
"""

from app.models.enums import (
    AppRole,
    ClaimEventType,
    ClaimStatus,
    ClaimType,
    ExpertiseStatus,
    ProcessStepId,
    StepStatus,
    StoreClaimStatus,
    StoreClaimType,
)

from app.models.core import (
    Profile,
    UserRoleAssignment,
    AuthCredential,
)

from app.models.database import (
    Claim,
    Document,
    ClaimEvent,
    ClaimProcessStep,
    Expertise,
)

__all__ = [
    # Enums
    "AppRole",
    "ClaimEventType",
    "ClaimStatus",
    "ClaimType",
    "ExpertiseStatus",
    "ProcessStepId",
    "StepStatus",
    "StoreClaimStatus",
    "StoreClaimType",
    # Identity
    "Profile",
    "UserRoleAssignment",
    "AuthCredential",
    # Claims and dependents
    "Claim",
    "Document",
    "ClaimEvent",
    "ClaimProcessStep",
    "Expertise",
]
