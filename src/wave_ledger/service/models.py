"""Pydantic models backing the Wave Ledger API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from ..persistence.ledger import NewWave, Wave


class WaveSubmitRequest(BaseModel):
    """A caller-identified wave to append.

    The sender is trusted as supplied; the message is stored verbatim.
    """

    sender: str = Field(..., min_length=1)
    message: str = ""


class WaveRecord(BaseModel):
    """A wave as returned by the query surface."""

    index: int
    sender: str
    message: str
    timestamp: int

    @classmethod
    def from_wave(cls, index: int, wave: Wave) -> WaveRecord:
        return cls(
            index=index,
            sender=wave.sender,
            message=wave.message,
            timestamp=wave.timestamp,
        )


class WaveSubmitResponse(WaveRecord):
    """Result of a successful append."""


class WaveListResponse(BaseModel):
    """The full history plus the count observed with it."""

    waves: list[WaveRecord] = Field(default_factory=list)
    total_count: int = 0


class TotalCountResponse(BaseModel):
    total_count: int


class WaveEvent(BaseModel):
    """Envelope for one event on the SSE stream."""

    event_type: str = "NewWave"
    payload: WaveRecord

    @classmethod
    def from_event(cls, event: NewWave) -> WaveEvent:
        return cls(
            payload=WaveRecord(
                index=event.index,
                sender=event.sender,
                message=event.message,
                timestamp=event.timestamp,
            )
        )
