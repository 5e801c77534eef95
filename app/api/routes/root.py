"""
Root endpoint.

Provides application information for discovery and simple liveness checks.
"""
from fastapi import APIRouter

from app.config.workflow import get_workflow_settings

router = APIRouter()

APP_NAME = "AssurFlow - Gestion des sinistres"
APP_VERSION = "1.0.0"


@router.get("/")
async def root():
    """
    Root endpoint providing application information.

    **Returns:**
    - `name`: Application name
    - `version`: Application version
    - `status`: Current application status
    - `auth_mode`: Active identity mode (`store` or `demo`)
    """
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "status": "running",
        "auth_mode": get_workflow_settings().auth_mode.value,
    }
