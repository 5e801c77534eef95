"""JWT access tokens carrying the user id and the session id."""
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from app.config.security import get_jwt_algorithm, get_jwt_access_token_expire_minutes, get_jwt_secret


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=get_jwt_access_token_expire_minutes())
    )
    # JWT exp claim must be numeric
    to_encode.update({"exp": int(expire.timestamp())})
    return jwt.encode(to_encode, get_jwt_secret(), algorithm=get_jwt_algorithm())


def decode_access_token(token: str) -> Optional[dict]:
    """Decoded claims of a valid, unexpired token; None otherwise."""
    try:
        return jwt.decode(token, get_jwt_secret(), algorithms=[get_jwt_algorithm()])
    except JWTError:
        return None
