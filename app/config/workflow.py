"""Claim workflow configuration.

Selects the identity mode and holds the legal delay thresholds used by the
deadline checks and dashboards. All values can be overridden from the
environment or ``.env``.
"""
from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.utils.logger import get_logger

logger = get_logger(__name__)


class AuthMode(str, Enum):
    """Which identity provider and permission vocabulary are active."""

    STORE = "store"
    DEMO = "demo"


class WorkflowSettings(BaseSettings):
    """Workflow settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    auth_mode: AuthMode = Field(
        default=AuthMode.STORE,
        description="'store' authenticates against the credential table with the full role table; "
                    "'demo' accepts the fixed mock users with the demo role table.",
    )
    demo_shared_secret: str = Field(default="demo123", description="Password accepted for every demo user.")

    # Legal delays, in days
    declaration_delay_days: int = Field(default=5, ge=1)
    instruction_delay_days: int = Field(default=7, ge=1)
    expertise_delay_days: int = Field(default=14, ge=1)
    medical_report_delay_days: int = Field(default=20, ge=1)
    payment_delay_days: int = Field(default=30, ge=1)
    urgent_after_days: int = Field(default=10, ge=1)

    event_display_limit: int = Field(default=20, ge=1)
    claim_number_padding: int = Field(default=3, ge=1, le=10)


settings = WorkflowSettings()


def get_workflow_settings() -> WorkflowSettings:
    """Get workflow settings."""
    return settings


def is_demo_mode() -> bool:
    return settings.auth_mode == AuthMode.DEMO


if is_demo_mode():
    logger.warning("Demo authentication mode is active; do not use in production")
