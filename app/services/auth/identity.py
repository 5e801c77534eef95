"""
Identity providers.

An identity provider turns an (email, secret) pair into a ``User`` or refuses
with a single generic failure. Two implementations exist and are never mixed:

- ``StoreIdentityProvider`` checks the bcrypt hash in ``auth_credentials``.
- ``DemoIdentityProvider`` accepts a fixed list of demonstration accounts with
  one shared secret. It never reads the credential table.
"""
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import bcrypt
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config.security import get_bcrypt_rounds
from app.config.workflow import AuthMode, get_workflow_settings
from app.models.core import AuthCredential, Profile, UserRoleAssignment
from app.models.domain import User
from app.models.enums import AppRole
from app.services.claims.mapping import profile_to_user
from app.utils.logger import get_logger

logger = get_logger(__name__)

GENERIC_LOGIN_FAILURE = "Email ou mot de passe incorrect"


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password using bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds or get_bcrypt_rounds())
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# Compared against when the email is unknown so both failure paths cost the same
_DUMMY_HASH = bcrypt.hashpw(b"unused-dummy-password", bcrypt.gensalt(rounds=4)).decode("utf-8")


class IdentityProvider(ABC):
    """Authenticates principals."""

    mode: AuthMode

    @abstractmethod
    def authenticate(self, email: str, secret: str) -> Optional[User]:
        """
        Return the authenticated user, or None.

        Implementations must not reveal which part of the credential was wrong.
        """

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        """Load a user by id (used to resolve an existing session)."""


class StoreIdentityProvider(IdentityProvider):
    """Production identity provider backed by the profiles and credential tables."""

    mode = AuthMode.STORE

    def __init__(self, db: Session):
        self.db = db

    def authenticate(self, email: str, secret: str) -> Optional[User]:
        email = (email or "").strip().lower()
        profile = self.db.scalars(select(Profile).where(Profile.email == email)).one_or_none()
        credential = profile.credential if profile is not None else None

        stored_hash = credential.password_hash if credential is not None else _DUMMY_HASH
        password_ok = verify_password(secret or "", stored_hash)
        if credential is None or not password_ok:
            logger.warning("Login refused", mode=self.mode.value)
            return None

        user = profile_to_user(profile)
        logger.info("Login accepted", user_id=user.id, role=user.role.value, mode=self.mode.value)
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        return profile_to_user(self.db.get(Profile, user_id))

    def register(self, email: str, name: str, password: str, roles=(AppRole.ASSURE,)) -> User:
        """Create a profile with credentials and roles (administration and seeding)."""
        profile = Profile(email=email.strip().lower(), name=name)
        profile.credential = AuthCredential(password_hash=hash_password(password))
        for role in roles:
            profile.roles.append(UserRoleAssignment(role=AppRole(role)))
        self.db.add(profile)
        self.db.flush()
        return profile_to_user(profile)


@dataclass(frozen=True)
class DemoAccount:
    id: str
    email: str
    name: str
    role: AppRole
    avatar: str


DEMO_ACCOUNTS: Tuple[DemoAccount, ...] = (
    DemoAccount("demo-admin", "admin@assurflow.gn", "Fatoumata Camara", AppRole.ADMIN, "FC"),
    DemoAccount("demo-gestionnaire", "gestionnaire@assurflow.gn", "Mamadou Diallo", AppRole.GESTIONNAIRE, "MD"),
    DemoAccount("demo-expert", "expert@assurflow.gn", "Alpha Bah", AppRole.EXPERT, "AB"),
    DemoAccount("demo-superviseur", "superviseur@assurflow.gn", "Ousmane Kouyaté", AppRole.RESPONSABLE, "OK"),
    DemoAccount("demo-comptable", "comptable@assurflow.gn", "Aïssatou Sylla", AppRole.COMPTABILITE, "AS"),
    DemoAccount("demo-client", "client@email.gn", "Kadiatou Condé", AppRole.ASSURE, "KC"),
)


class DemoIdentityProvider(IdentityProvider):
    """
    Demonstration login: any listed email with the shared demo secret.

    Flagged at startup and in every login log line; claims still live in the
    store, so the demo accounts are seeded as profiles (without credentials).
    """

    mode = AuthMode.DEMO

    def __init__(self, db: Optional[Session] = None, shared_secret: Optional[str] = None):
        self.db = db
        self.shared_secret = shared_secret or get_workflow_settings().demo_shared_secret
        self._accounts: Dict[str, DemoAccount] = {a.email: a for a in DEMO_ACCOUNTS}
        self._by_id: Dict[str, DemoAccount] = {a.id: a for a in DEMO_ACCOUNTS}

    @staticmethod
    def _to_user(account: DemoAccount) -> User:
        return User(
            id=account.id,
            email=account.email,
            name=account.name,
            role=account.role,
            roles=[account.role],
            avatar=account.avatar,
        )

    def authenticate(self, email: str, secret: str) -> Optional[User]:
        account = self._accounts.get((email or "").strip().lower())
        if account is None or not secrets_match(secret or "", self.shared_secret):
            logger.warning("Login refused", mode=self.mode.value)
            return None
        logger.info("Login accepted", user_id=account.id, role=account.role.value, mode=self.mode.value)
        return self._to_user(account)

    def get_user(self, user_id: str) -> Optional[User]:
        account = self._by_id.get(user_id)
        return self._to_user(account) if account else None

    def ensure_profiles(self, db: Optional[Session] = None) -> int:
        """Create missing profiles for the demo accounts; returns how many were added."""
        db = db or self.db
        added = 0
        for account in DEMO_ACCOUNTS:
            if db.get(Profile, account.id) is not None:
                continue
            profile = Profile(id=account.id, email=account.email, name=account.name, avatar=account.avatar)
            profile.roles.append(UserRoleAssignment(role=account.role))
            db.add(profile)
            added += 1
        if added:
            db.commit()
            logger.info("Demo profiles seeded", count=added)
        return added


def secrets_match(given: str, expected: str) -> bool:
    """Constant-time comparison of two secrets."""
    return hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


def get_identity_provider(db: Session, mode: Optional[AuthMode] = None) -> IdentityProvider:
    """Identity provider for the configured (or given) mode."""
    mode = mode or get_workflow_settings().auth_mode
    if mode == AuthMode.DEMO:
        return DemoIdentityProvider(db)
    return StoreIdentityProvider(db)
