"""FastAPI application factory for the Wave Ledger service."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from .config import LedgerConfig
from .core import WaveService
from .middleware import CorrelationIdMiddleware
from .router import build_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for startup/shutdown."""
    logger.info("Starting Wave Ledger service...")

    yield

    logger.info("Shutting down Wave Ledger service...")
    service: WaveService | None = getattr(app.state, "wave_service", None)
    if service is not None:
        service.close()
    logger.info("Wave Ledger service shutdown complete")


def create_ledger_app(
    config: LedgerConfig,
    **service_kwargs,
) -> FastAPI:
    """Create and configure the Wave Ledger FastAPI application.

    Args:
        config: LedgerConfig instance
        **service_kwargs: Additional kwargs passed to WaveService

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Wave Ledger",
        description="Durable append-only log of wave events",
        version=__version__,
        lifespan=_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    wave_service = WaveService(config, **service_kwargs)
    app.include_router(build_router(wave_service))

    app.state.wave_service = wave_service
    app.state.config = config

    @app.get("/healthz")
    def healthz() -> dict:
        """Health check endpoint with storage verification."""
        storage = wave_service.storage_health()
        return {
            "status": "degraded" if storage["status"] == "unhealthy" else "ok",
            "service": "wave-ledger",
            "version": __version__,
            "checks": {"storage": storage},
        }

    @app.get("/ready")
    def ready() -> dict:
        """Readiness check - true once the ledger and its store are usable."""
        return {
            "ready": wave_service.storage_health()["status"] != "unhealthy",
            "service": "wave-ledger",
        }

    return app


def create_app_from_env() -> FastAPI:
    """Create app using environment variable configuration."""
    config = LedgerConfig.from_env()
    return create_ledger_app(config)


__all__ = ["create_ledger_app", "create_app_from_env"]
