"""Core Wave Ledger service - submission, query and event surfaces."""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator
from typing import Any

from fastapi import HTTPException, status

from ..persistence.database import SqliteWaveStore
from ..persistence.journal import JsonlWaveStore
from ..persistence.ledger import (
    NewWave,
    ObserverFailure,
    OutOfRangeError,
    WaveLedger,
    WaveStore,
)
from .config import LedgerConfig, StorageBackend
from .logging import get_logger
from .models import (
    TotalCountResponse,
    WaveEvent,
    WaveListResponse,
    WaveRecord,
    WaveSubmitRequest,
    WaveSubmitResponse,
)

logger = get_logger(__name__)


def build_store(config: LedgerConfig) -> WaveStore | None:
    """Open the durable store selected by ``config``."""
    path = config.resolved_data_path
    if config.storage_backend is StorageBackend.JSONL:
        return JsonlWaveStore(path, fsync=config.fsync)
    if config.storage_backend is StorageBackend.SQLITE:
        return SqliteWaveStore(path)
    return None


def _report_observer_failure(failure: ObserverFailure) -> None:
    logger.warning(
        "wave.observer_failed",
        index=failure.event.index,
        observer=getattr(failure.observer, "__qualname__", repr(failure.observer)),
        error=str(failure.error),
    )


class WaveService:
    """Service layer around a single WaveLedger.

    Provides:
    - Submission (append a caller-identified wave)
    - Queries (count, full history, single wave)
    - Server-Sent Events for every new wave
    """

    def __init__(
        self,
        config: LedgerConfig,
        *,
        ledger: WaveLedger | None = None,
    ) -> None:
        self.config = config
        if ledger is None:
            ledger = WaveLedger(
                build_store(config),
                on_observer_failure=_report_observer_failure,
            )
        self._ledger = ledger

        logger.info(
            "wave.ledger_opened",
            backend=config.storage_backend.value,
            data_path=config.resolved_data_path,
            total_count=self._ledger.get_total_count(),
        )

    @property
    def ledger(self) -> WaveLedger:
        return self._ledger

    # -----------------------------------------------------------------------
    # Submission
    # -----------------------------------------------------------------------

    def submit_wave(self, request: WaveSubmitRequest) -> WaveSubmitResponse:
        """Append a wave and return the record it was stored as."""
        index = self._ledger.append(request.sender, request.message)
        wave = self._ledger.get(index)

        logger.info(
            "wave.submitted",
            index=index,
            sender=wave.sender,
            message=wave.message,
        )

        return WaveSubmitResponse(
            index=index,
            sender=wave.sender,
            message=wave.message,
            timestamp=wave.timestamp,
        )

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def list_waves(self) -> WaveListResponse:
        """Full history in append order, with the count it was taken at."""
        snapshot = self._ledger.get_all()
        return WaveListResponse(
            waves=[WaveRecord.from_wave(i, wave) for i, wave in enumerate(snapshot)],
            total_count=len(snapshot),
        )

    def total_count(self) -> TotalCountResponse:
        return TotalCountResponse(total_count=self._ledger.get_total_count())

    def get_wave(self, index: int) -> WaveRecord:
        """Get one wave by index (404 when out of range)."""
        try:
            wave = self._ledger.get(index)
        except OutOfRangeError as e:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=str(e),
            ) from e
        return WaveRecord.from_wave(index, wave)

    # -----------------------------------------------------------------------
    # Health
    # -----------------------------------------------------------------------

    def storage_health(self) -> dict[str, Any]:
        """Check the durable store behind the ledger."""
        store = self._ledger.store
        if store is None:
            return {"status": "not_configured", "backend": StorageBackend.MEMORY.value}

        try:
            if isinstance(store, SqliteWaveStore):
                store.ping()
                backend = StorageBackend.SQLITE
            elif isinstance(store, JsonlWaveStore):
                backend = StorageBackend.JSONL
                directory = store.journal_path.parent
                if not os.access(directory, os.W_OK):
                    raise OSError(f"{directory} is not writable")
            else:
                return {"status": "healthy", "backend": type(store).__name__}
        except Exception as e:
            return {"status": "unhealthy", "error": str(e)}

        return {
            "status": "healthy",
            "backend": backend.value,
            "total_count": self._ledger.get_total_count(),
        }

    def close(self) -> None:
        self._ledger.close()

    # -----------------------------------------------------------------------
    # Event Streaming
    # -----------------------------------------------------------------------

    @staticmethod
    def _format_event(event: NewWave) -> str:
        return f"data: {WaveEvent.from_event(event).model_dump_json()}\n\n"

    @staticmethod
    def _offer(queue: asyncio.Queue[str], message: str) -> None:
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("wave.event_dropped", queue_size=queue.maxsize)

    async def subscribe_events(self) -> AsyncIterator[str]:
        """Subscribe to the SSE stream of new waves.

        Appends run on worker threads, so each notification is handed to
        this subscriber's event loop rather than put on the queue directly.
        """
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self.config.event_queue_size)
        loop = asyncio.get_running_loop()

        def deliver(event: NewWave) -> None:
            loop.call_soon_threadsafe(self._offer, queue, self._format_event(event))

        unsubscribe = self._ledger.subscribe(deliver)
        try:
            while True:
                message = await queue.get()
                yield message
        finally:
            unsubscribe()
