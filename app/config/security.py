"""Security configuration and validation.

This module provides the security settings of the claims service: JWT signing,
password hashing cost, CORS and authentication enforcement.

All security settings are validated on module import to prevent the application
from starting with insecure configurations.
"""
import math
import os
import re
from collections import Counter
from typing import List, Set
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.utils.logger import get_logger
from app.utils.errors import AppError

logger = get_logger(__name__)

# Default value that should NEVER be used in any environment
DEFAULT_JWT_SECRET = "change-me-in-production-min-32-characters-required"

ALLOWED_JWT_ALGORITHMS: Set[str] = {"HS256", "HS384", "HS512"}

WEAK_KEY_PATTERNS = [
    r"^(password|secret|key|token).*$",
    r"^.*(123|abc|test|demo|example).*$",
    r"^[a-z]+$",
    r"^[A-Z]+$",
    r"^[0-9]+$",
    r"^(.)\1+$",
]

PREDICTABLE_SUBSTRINGS = (
    "password", "secret", "token", "admin", "login", "assurflow",
    "test", "demo", "example", "default", "change",
    "qwerty", "azerty", "1234", "abcd",
)

# Bits per character; random base64 keys are close to 6
MIN_ENTROPY_JWT_SECRET = 4.0

HOW_TO_FIX = "Generate a secure key with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""


def calculate_entropy(text: str) -> float:
    """
    Calculate Shannon entropy of a string.

    Returns:
        Entropy value (bits per character)
    """
    if not text:
        return 0.0

    length = len(text)
    entropy = 0.0
    for count in Counter(text).values():
        probability = count / length
        entropy -= probability * math.log2(probability)
    return entropy


def check_weak_patterns(key: str) -> List[str]:
    """
    Check a secret key for weak patterns.

    Detects regex-matched weak shapes, low character diversity, repeated
    4-character substrings and predictable words.

    Returns:
        List of detected weak patterns (empty if key is strong)
    """
    detected_patterns: List[str] = []
    if not key:
        return detected_patterns

    for pattern in WEAK_KEY_PATTERNS:
        if re.match(pattern, key, re.IGNORECASE):
            detected_patterns.append(f"Matches weak pattern: {pattern}")

    unique_ratio = len(set(key)) / len(key)
    if unique_ratio < 0.3:
        detected_patterns.append(
            f"Key has too many repeated characters ({unique_ratio * 100:.1f}% unique)"
        )

    if len(key) >= 8:
        seen = set()
        for i in range(len(key) - 3):
            substring = key[i:i + 4]
            if substring in seen:
                detected_patterns.append(
                    f"Repeated substring detected: '{substring}' appears {key.count(substring)} times"
                )
                break
            seen.add(substring)

    key_lower = key.lower()
    for word in PREDICTABLE_SUBSTRINGS:
        if word in key_lower:
            detected_patterns.append(f"Contains predictable substring: '{word}'")
            break

    return detected_patterns


def validate_url_format(url: str) -> tuple[bool, str]:
    """
    Validate a CORS origin.

    Returns:
        Tuple of (is_valid, error_message)
    """
    url = url.strip()
    if not url:
        return False, "Empty URL"

    parsed = urlparse(url)
    if not parsed.scheme:
        return False, f"URL missing scheme: {url}"
    if not parsed.netloc:
        return False, f"URL missing domain: {url}"
    if parsed.scheme not in ("http", "https"):
        return False, f"Invalid scheme '{parsed.scheme}'. Must be http or https"
    if "*" in parsed.netloc:
        return False, f"Wildcards not allowed in domain: {url}"
    return True, ""


class SecuritySettings(BaseSettings):
    """Security settings with validation.

    Default values are provided for development but MUST be overridden in production.
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    jwt_secret_key: str = Field(
        default=DEFAULT_JWT_SECRET,
        description="JWT signing key. Minimum 32 characters, cryptographically random.",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm (HMAC family).")
    jwt_access_token_expire_minutes: int = Field(
        default=480,  # one working day
        ge=5,
        le=10080,
        description="Access token and session lifetime in minutes.",
    )
    bcrypt_rounds: int = Field(default=12, ge=4, le=15, description="Bcrypt hashing cost.")

    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Wildcards are never allowed.",
    )

    require_auth: bool = Field(
        default=True,
        description="Reject unauthenticated API requests and redirect page requests to /login.",
    )
    auth_exempt_paths: str = Field(
        default="/,/login,/api/v1/health,/api/v1/auth/login,/api/v1/auth/register,/api/v1/auth/logout,/docs,/openapi.json",
        description="Comma-separated list of paths exempt from authentication.",
    )

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Validate JWT algorithm is in allowed list."""
        if v not in ALLOWED_JWT_ALGORITHMS:
            raise ValueError(
                f"JWT algorithm '{v}' is not allowed. "
                f"Allowed algorithms: {', '.join(sorted(ALLOWED_JWT_ALGORITHMS))}"
            )
        return v

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret_key(cls, v: str) -> str:
        """
        Validate JWT secret key strength.

        The default value passes here and is rejected by validate_security_settings().

        Raises:
            ValueError: If the key is empty, short, low-entropy or weak
        """
        if v == DEFAULT_JWT_SECRET or v.startswith("change-me"):
            return v

        if not v or not v.strip():
            raise ValueError(f"JWT_SECRET_KEY cannot be empty or whitespace-only. {HOW_TO_FIX}")

        if len(v) < 32:
            raise ValueError(
                f"JWT_SECRET_KEY must be at least 32 characters, got {len(v)} characters. {HOW_TO_FIX}"
            )

        entropy = calculate_entropy(v)
        if entropy < MIN_ENTROPY_JWT_SECRET:
            raise ValueError(
                f"JWT_SECRET_KEY has insufficient entropy ({entropy:.2f} bits/char, "
                f"minimum {MIN_ENTROPY_JWT_SECRET:.1f} required). {HOW_TO_FIX}"
            )

        weak_patterns = check_weak_patterns(v)
        if weak_patterns:
            raise ValueError(f"JWT_SECRET_KEY contains weak patterns: {'; '.join(weak_patterns)}. {HOW_TO_FIX}")

        return v


settings = SecuritySettings()


def is_production() -> bool:
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


def validate_security_settings() -> None:
    """
    Validate security settings in all environments.

    Checks default secrets, CORS origins, and production-only requirements
    (authentication enforced, HTTPS origins, no localhost, DEBUG off).

    Raises:
        AppError: If critical security issues are detected
    """
    errors: List[str] = []
    warnings: List[str] = []

    if settings.jwt_secret_key == DEFAULT_JWT_SECRET or settings.jwt_secret_key.startswith("change-me"):
        errors.append(f"JWT_SECRET_KEY is using the default value. {HOW_TO_FIX}")

    if settings.bcrypt_rounds < 10:
        if is_production():
            errors.append(f"Bcrypt rounds ({settings.bcrypt_rounds}) is too low for production. Minimum is 10.")
        else:
            warnings.append(f"Bcrypt rounds ({settings.bcrypt_rounds}) is below the recommended 12.")

    cors_origins_list = get_cors_origins()
    if not cors_origins_list:
        errors.append("CORS_ORIGINS is empty. At least one origin must be specified.")
    elif "*" in settings.cors_origins:
        if is_production():
            errors.append("CORS_ORIGINS contains '*' - NEVER use wildcards in production")
        else:
            warnings.append("CORS_ORIGINS contains '*' - specify exact origins instead.")
    else:
        for origin in cors_origins_list:
            is_valid, error_msg = validate_url_format(origin)
            if not is_valid:
                errors.append(f"CORS origin validation failed: {error_msg}")

    if is_production():
        if os.getenv("DEBUG", "false").lower() == "true":
            errors.append("DEBUG is set to true - MUST be false in production")
        if not settings.require_auth:
            errors.append("REQUIRE_AUTH is false - MUST be true in production.")
        if any("localhost" in o.lower() or "127.0.0.1" in o for o in cors_origins_list):
            errors.append("CORS_ORIGINS contains localhost/127.0.0.1 - NOT allowed in production.")
        if any(o.startswith("http://") for o in cors_origins_list):
            errors.append("CORS_ORIGINS contains HTTP (non-HTTPS) origins - HTTPS is REQUIRED in production.")

    for warning in warnings:
        logger.warning("Security warning", warning=warning)

    if errors:
        logger.error("Security validation failed", errors=errors)
        raise AppError(
            "Security validation failed. Application cannot start with insecure settings.",
            status_code=500,
            details={"errors": errors, "warnings": warnings},
        )


def get_cors_origins() -> List[str]:
    """Get CORS origins as a list."""
    return [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]


def get_cors_methods() -> List[str]:
    return ["GET", "POST", "PUT", "PATCH", "OPTIONS"]


def get_cors_headers() -> List[str]:
    """Headers the browser client may send, including If-Match for claim versions."""
    return ["Content-Type", "Authorization", "Accept", "If-Match", "X-Requested-With"]


def get_jwt_secret() -> str:
    """Get JWT secret key."""
    return settings.jwt_secret_key


def get_jwt_algorithm() -> str:
    """Get JWT algorithm."""
    return settings.jwt_algorithm


def get_jwt_access_token_expire_minutes() -> int:
    """Get JWT access token expiration time in minutes."""
    return settings.jwt_access_token_expire_minutes


def get_bcrypt_rounds() -> int:
    """Get bcrypt rounds."""
    return settings.bcrypt_rounds


def is_auth_required() -> bool:
    """Check if authentication is required."""
    return settings.require_auth


def get_auth_exempt_paths() -> List[str]:
    """Get list of paths exempt from authentication."""
    return [path.strip() for path in settings.auth_exempt_paths.split(",") if path.strip()]


# Validate security settings on module import (all environments)
validate_security_settings()
