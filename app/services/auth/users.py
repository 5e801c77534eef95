"""
User administration.

Self-service signup creates an ``assure`` profile with store credentials.
Staff with user access list profiles and edit their details; role changes
replace every role the user held with the new one. Sessions reload the user
on each request, so a new role applies from the user's next call.
"""
from collections import Counter
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.core import Profile, UserRoleAssignment
from app.models.domain import User
from app.models.enums import AppRole
from app.services.auth.identity import StoreIdentityProvider
from app.services.claims.mapping import profile_to_user
from app.utils.errors import ConflictError, NotFoundError, ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)


def user_stats(users: Sequence[User]) -> Dict[str, int]:
    """Total and per primary role counts."""
    counts = Counter(user.role for user in users)
    stats = {"total": len(users)}
    for role in AppRole:
        stats[role.value] = counts.get(role, 0)
    return stats


class UserDirectory:
    """Profiles and role assignments in the identity store."""

    def __init__(self, db: Session):
        self.db = db

    def _profile(self, user_id: str) -> Profile:
        profile = self.db.get(Profile, user_id)
        if profile is None:
            raise NotFoundError("User", user_id)
        return profile

    def list_users(self) -> List[User]:
        profiles = self.db.scalars(select(Profile).order_by(Profile.name, Profile.email)).all()
        return [profile_to_user(profile) for profile in profiles]

    def signup(self, email: str, name: str, password: str) -> User:
        """
        Register a policyholder account.

        Raises:
            ConflictError: If the email is already registered
        """
        email = email.strip().lower()
        existing = self.db.scalars(select(Profile.id).where(Profile.email == email)).first()
        if existing is not None:
            raise ConflictError("Cet email est déjà utilisé", details={"email": email})

        try:
            user = StoreIdentityProvider(self.db).register(email, name.strip(), password, roles=(AppRole.ASSURE,))
            self.db.commit()
        except IntegrityError:
            # Same email registered concurrently
            self.db.rollback()
            raise ConflictError("Cet email est déjà utilisé", details={"email": email})

        logger.info("User registered", user_id=user.id, role=AppRole.ASSURE.value)
        return user

    def update_role(self, user_id: str, role: AppRole, acting_user_id: str) -> User:
        """
        Replace all roles of a user with ``role``.

        Raises:
            ValidationError: If users try to change their own role
            NotFoundError: If the user does not exist
        """
        if user_id == acting_user_id:
            raise ValidationError(
                "You cannot change your own role", details={"fields": {"role": "Modification de son propre rôle"}}
            )
        profile = self._profile(user_id)
        previous = [assignment.role.value for assignment in profile.roles]
        profile.roles.clear()
        profile.roles.append(UserRoleAssignment(role=AppRole(role)))
        self.db.commit()
        self.db.refresh(profile)

        logger.info(
            "User role changed",
            user_id=user_id,
            previous_roles=previous,
            role=AppRole(role).value,
            changed_by=acting_user_id,
        )
        return profile_to_user(profile)

    def update_profile(self, user_id: str, name: Optional[str] = None, phone: Optional[str] = None) -> User:
        """Update the display name and/or phone; omitted fields are unchanged."""
        profile = self._profile(user_id)
        if name is not None:
            profile.name = name.strip()
        if phone is not None:
            profile.phone = phone.strip() or None
        self.db.commit()
        self.db.refresh(profile)
        logger.info("User profile updated", user_id=user_id)
        return profile_to_user(profile)
