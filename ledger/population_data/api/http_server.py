"""
FastAPI application factory for the population data ledger.

This module creates the HTTP app with:
- State store lifecycle management (connect on startup, close on shutdown)
- Optional seeding on startup
- Error mapping from the record error hierarchy to HTTP status codes
- CORS configuration

Invariants:
    - Every endpoint maps to exactly one RecordService operation
    - Error bodies have the shape {"error", "error_code", "details"}
    - The app never retries a failed store call

How to change safely:
    - Keep the status mapping in sync with errors.py
    - Version the API prefix if breaking changes are needed
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .._version import __version__
from ..config import ServerConfig
from ..errors import (
    AlreadyExistsError,
    BackendUnavailableError,
    CorruptRecordError,
    InvalidRecordError,
    NotFoundError,
    PopulationDataError,
)
from ..records import RecordService, seed_ledger
from ..state import VersionedStateStore, create_state_store
from .routes import router

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[PopulationDataError], int] = {
    AlreadyExistsError: 409,
    NotFoundError: 404,
    InvalidRecordError: 422,
    CorruptRecordError: 500,
    BackendUnavailableError: 503,
}


def status_for_error(error: PopulationDataError) -> int:
    """HTTP status code for a record service error."""
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


def create_app(
    config: ServerConfig | None = None,
    store: VersionedStateStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Server configuration (loaded from env if not provided)
        store: Optional pre-built state store; created from config otherwise

    Returns:
        FastAPI application
    """
    config = config or ServerConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage state store lifecycle."""
        state_store = store or create_state_store(config)
        await state_store.connect()

        service = RecordService(state_store)
        app.state.record_service = service
        app.state.config = config

        if config.seed.on_startup:
            await seed_ledger(service)

        logger.info("Population data API ready")
        try:
            yield
        finally:
            await state_store.close()

    app = FastAPI(
        title="Population Data Ledger",
        description="Versioned person records keyed by passport number.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.http.cors_origins),
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(PopulationDataError)
    async def handle_record_error(request: Request, exc: PopulationDataError) -> JSONResponse:
        status = status_for_error(exc)
        if status >= 500:
            logger.error(
                f"Request failed: {exc.message}",
                extra={"path": request.url.path, "error_code": exc.code},
            )
        return JSONResponse(status_code=status, content=exc.to_dict())

    app.include_router(router, prefix="/api/v1")

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "service": "population-data-ledger",
            "version": __version__,
        }

    return app
