"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires all services, registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from backend.controllers.queue_controller import router as queue_router
from backend.controllers.venue_controller import router as venue_router
from backend.repository.data_repository import DataRepository
from backend.services.auth_service import AuthService
from backend.services.estimation_service import EstimationService
from backend.services.queue_service import QueueService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Instantiates all services with explicit dependency injection via app.state.
    No global singletons; every dependency is traceable from this function.
    """
    settings = settings or get_settings()

    # --- Repository (single SQLite connection factory) ---
    repository = DataRepository(settings)

    # --- Services (queue logic, no direct DB access) ---
    estimation_service = EstimationService(
        repository=repository,
        settings=settings,
    )
    queue_service = QueueService(
        repository=repository,
        estimation_service=estimation_service,
        settings=settings,
    )
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(queue_router)
    app.include_router(venue_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.repository = repository
    app.state.estimation_service = estimation_service
    app.state.queue_service = queue_service
    app.state.auth_service = auth_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema must exist before default courses and capacity are seeded.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    logger.info("Startup: seeding default courses and venue capacity (skipped if present)")
    repository.seed_defaults()

    logger.info("Startup complete, queue ready")


# Module-level app object for uvicorn
app = create_app()
