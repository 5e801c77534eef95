"""
Application factory and setup functions.

This module provides functions to build and configure the FastAPI application,
including middleware setup, route registration and error handlers.
"""
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.api.middleware.auth_middleware import AuthEnforcementMiddleware
from app.api.middleware.request_log import RequestLogMiddleware
from app.api.routes.root import APP_NAME, APP_VERSION
from app.config.database import SessionLocal, init_db
from app.config.redis import close_redis_client
from app.config.security import get_cors_headers, get_cors_methods, get_cors_origins
from app.config.workflow import is_demo_mode
from app.services.auth.identity import DemoIdentityProvider
from app.services.claims.collection import WorkspaceRegistry
from app.utils.errors import (
    AppError,
    app_error_handler,
    general_exception_handler,
    validation_error_handler,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)


def seed_demo_profiles() -> None:
    """Demo users need profiles so their claims and events can reference them."""
    db = SessionLocal()
    try:
        DemoIdentityProvider(db).ensure_profiles()
    finally:
        db.close()


def create_lifespan() -> Callable:
    """
    Create application lifespan context manager.

    Returns:
        Async context manager for application startup and shutdown events.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        logger.info("Starting application...")
        await init_db()
        if is_demo_mode():
            logger.warning("Demo authentication mode: fixed accounts with a shared password")
            seed_demo_profiles()
        logger.info("Application started successfully")
        yield
        logger.info("Shutting down application...")
        app.state.workspaces.clear()
        close_redis_client()

    return lifespan


def setup_middleware(app: FastAPI) -> None:
    """
    Configure all application middleware.

    Middleware order matters - they are executed in reverse order of registration:
    1. CORS (last registered, first executed)
    2. Authentication enforcement
    3. Request logging (first registered, last executed)

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(AuthEnforcementMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_credentials=True,
        allow_methods=get_cors_methods(),
        allow_headers=get_cors_headers(),
        expose_headers=["ETag", "X-Request-ID"],
    )

    logger.info("Middleware configured successfully")


def setup_error_handlers(app: FastAPI) -> None:
    """
    Register all application error handlers.

    Error handlers are registered in order of specificity:
    1. AppError (most specific application errors)
    2. RequestValidationError (FastAPI validation errors)
    3. Exception (catch-all for unexpected errors)

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Error handlers registered successfully")


def register_routes(app: FastAPI) -> None:
    """
    Register all API route routers.

    Routes are organized by domain:
    - Root and page endpoints (no prefix)
    - Health checks, authentication, claims, process steps, expertise,
      dashboard and user administration under /api/v1

    Args:
        app: FastAPI application instance
    """
    from app.api.routes import (
        auth,
        claims,
        dashboard,
        expertise,
        health,
        pages,
        root,
        users,
        workflow,
    )

    app.include_router(root.router, tags=["root"])
    app.include_router(pages.router, tags=["pages"])

    app.include_router(health.router, prefix="/api/v1", tags=["health"])
    app.include_router(auth.router, prefix="/api/v1", tags=["auth"])
    app.include_router(claims.router, prefix="/api/v1", tags=["claims"])
    app.include_router(workflow.router, prefix="/api/v1", tags=["workflow"])
    app.include_router(expertise.router, prefix="/api/v1", tags=["expertise"])
    app.include_router(dashboard.router, prefix="/api/v1", tags=["dashboard"])
    app.include_router(users.router, prefix="/api/v1", tags=["users"])

    logger.info("Routes registered successfully")


def create_application() -> FastAPI:
    """
    Create and configure FastAPI application instance.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=APP_NAME,
        description="Claims management workflow for insurance staff and policyholders",
        version=APP_VERSION,
        lifespan=create_lifespan(),
    )
    app.state.workspaces = WorkspaceRegistry()

    setup_middleware(app)
    setup_error_handlers(app)
    register_routes(app)

    return app
