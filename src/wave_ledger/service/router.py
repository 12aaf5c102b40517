"""FastAPI router for the Wave Ledger service.

Implements the API endpoints for:
- Submission (POST /waves)
- Queries (/waves, /waves/count, /waves/{index})
- Event streaming (/events/stream)
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from fastapi import APIRouter, Path, status
from fastapi.responses import StreamingResponse

from .models import (
    TotalCountResponse,
    WaveListResponse,
    WaveRecord,
    WaveSubmitRequest,
    WaveSubmitResponse,
)

if TYPE_CHECKING:
    from .core import WaveService


def build_router(service: WaveService) -> APIRouter:
    """Build the Wave Ledger API router.

    Args:
        service: The WaveService instance

    Returns:
        Configured APIRouter
    """
    router = APIRouter()

    # -----------------------------------------------------------------------
    # Submission
    # -----------------------------------------------------------------------

    @router.post(
        "/waves",
        response_model=WaveSubmitResponse,
        status_code=status.HTTP_201_CREATED,
    )
    def submit_wave(request: WaveSubmitRequest) -> WaveSubmitResponse:
        """Append a wave on behalf of the given sender."""
        return service.submit_wave(request)

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    @router.get("/waves", response_model=WaveListResponse)
    def list_waves() -> WaveListResponse:
        """Every wave in append order."""
        return service.list_waves()

    @router.get("/waves/count", response_model=TotalCountResponse)
    def total_count() -> TotalCountResponse:
        return service.total_count()

    @router.get("/waves/{index}", response_model=WaveRecord)
    def get_wave(index: int = Path(...)) -> WaveRecord:
        """Get a single wave by its zero-based index."""
        return service.get_wave(index)

    # -----------------------------------------------------------------------
    # Event Streaming
    # -----------------------------------------------------------------------

    @router.get("/events/stream")
    async def events_stream() -> StreamingResponse:
        """Server-Sent Events stream, one NewWave event per append."""

        async def event_iterator() -> AsyncIterator[str]:
            async for payload in service.subscribe_events():
                yield payload

        return StreamingResponse(event_iterator(), media_type="text/event-stream")

    return router
