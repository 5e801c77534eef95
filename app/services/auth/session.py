"""
Sessions.

A session is opened by a successful login and closed by logout. The session
id travels inside the JWT and is recorded in Redis for the token lifetime;
a token whose session id is no longer in Redis (logout, or sign-out from
another place) no longer resolves to a user.
"""
import json
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, Optional
from uuid import uuid4

import redis

from app.config.security import get_jwt_access_token_expire_minutes
from app.models.domain import User
from app.services.auth.identity import GENERIC_LOGIN_FAILURE, IdentityProvider
from app.services.auth.permissions import PermissionRegistry
from app.services.auth.tokens import create_access_token, decode_access_token
from app.utils.errors import ServiceUnavailableError
from app.utils.logger import get_logger

logger = get_logger(__name__)

SESSION_KEY_PREFIX = "session:"


class SessionContext:
    """The current principal and the permission registry it is checked against."""

    def __init__(self, user: Optional[User], registry: PermissionRegistry, session_id: Optional[str] = None):
        self.user = user
        self.registry = registry
        self.session_id = session_id

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def has_permission(self, permission: str) -> bool:
        """False without a user; otherwise the registry decides for the primary role."""
        if self.user is None:
            return False
        return self.registry.has_permission(self.user.role, permission)

    def has_any_permission(self, permissions: Iterable[str]) -> bool:
        if self.user is None:
            return False
        return self.registry.has_any(self.user.role, permissions)

    def permissions(self) -> frozenset:
        if self.user is None:
            return frozenset()
        return self.registry.permissions_for(self.user.role)


class SessionStore:
    """Session ids recorded in Redis with an expiry."""

    def __init__(self, client: redis.Redis):
        self.client = client

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{SESSION_KEY_PREFIX}{session_id}"

    def open(self, session_id: str, user_id: str, ttl: timedelta) -> None:
        payload = json.dumps({"user_id": user_id})
        try:
            self.client.setex(self._key(session_id), int(ttl.total_seconds()), payload)
        except redis.RedisError as e:
            logger.error("Failed to open session", error=str(e))
            raise ServiceUnavailableError("Session store unavailable")

    def get_user_id(self, session_id: str) -> Optional[str]:
        try:
            raw = self.client.get(self._key(session_id))
        except redis.RedisError as e:
            logger.error("Failed to read session", error=str(e))
            raise ServiceUnavailableError("Session store unavailable")
        if not raw:
            return None
        return json.loads(raw).get("user_id")

    def close(self, session_id: str) -> None:
        try:
            self.client.delete(self._key(session_id))
        except redis.RedisError as e:
            logger.error("Failed to close session", error=str(e))
            raise ServiceUnavailableError("Session store unavailable")


@dataclass(frozen=True)
class LoginResult:
    success: bool
    user: Optional[User] = None
    access_token: Optional[str] = None
    session_id: Optional[str] = None
    expires_in: int = 0
    error: Optional[str] = None


class SessionManager:
    """Login, logout and token resolution."""

    def __init__(self, identity: IdentityProvider, store: SessionStore, registry: PermissionRegistry):
        self.identity = identity
        self.store = store
        self.registry = registry

    def login(self, email: str, secret: str) -> LoginResult:
        """Authenticate and open a session; failures carry one generic message."""
        user = self.identity.authenticate(email, secret)
        if user is None:
            return LoginResult(success=False, error=GENERIC_LOGIN_FAILURE)

        session_id = uuid4().hex
        ttl = timedelta(minutes=get_jwt_access_token_expire_minutes())
        self.store.open(session_id, user.id, ttl)
        token = create_access_token({"sub": user.id, "sid": session_id, "mode": self.identity.mode.value}, ttl)
        logger.info("Session opened", user_id=user.id, session_id=session_id)
        return LoginResult(
            success=True,
            user=user,
            access_token=token,
            session_id=session_id,
            expires_in=int(ttl.total_seconds()),
        )

    def logout(self, session_id: Optional[str]) -> None:
        """Close the session; calling it again, or without a session, is harmless."""
        if not session_id:
            return
        self.store.close(session_id)
        logger.info("Session closed", session_id=session_id)

    def resolve(self, token: Optional[str]) -> SessionContext:
        """Context for a bearer token; anonymous when the token or session is invalid."""
        anonymous = SessionContext(None, self.registry)
        if not token:
            return anonymous

        payload = decode_access_token(token)
        if not payload or not payload.get("sub") or not payload.get("sid"):
            return anonymous
        if payload.get("mode") != self.identity.mode.value:
            return anonymous

        session_id = payload["sid"]
        if self.store.get_user_id(session_id) != payload["sub"]:
            logger.info("Token refers to a closed session", session_id=session_id)
            return anonymous

        user = self.identity.get_user(payload["sub"])
        if user is None:
            return anonymous
        return SessionContext(user, self.registry, session_id)
