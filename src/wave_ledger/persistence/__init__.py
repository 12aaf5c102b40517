"""Persistence layer - the wave ledger and its durable stores."""

from .database import SqliteWaveStore
from .journal import JsonlWaveStore
from .ledger import (
    LedgerCorruptionError,
    LedgerError,
    NewWave,
    ObserverFailure,
    OutOfRangeError,
    Wave,
    WaveLedger,
    WaveStore,
)

__all__ = [
    "JsonlWaveStore",
    "LedgerCorruptionError",
    "LedgerError",
    "NewWave",
    "ObserverFailure",
    "OutOfRangeError",
    "SqliteWaveStore",
    "Wave",
    "WaveLedger",
    "WaveStore",
]
