"""
FastAPI application entry point.

Runs early initialization, then builds the application with the factory in
``app/core/application.py``::

    uvicorn app.main:app --reload
"""
from app.core.setup import setup_application
from app.core.application import create_application

# Must run before the application is created
setup_application()

app = create_application()
