"""Configuration primitives for the Wave Ledger service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum


class StorageBackend(str, Enum):
    """Supported durable stores."""

    MEMORY = "memory"
    JSONL = "jsonl"
    SQLITE = "sqlite"


DEFAULT_DATA_PATHS = {
    StorageBackend.JSONL: "data/waves.jsonl",
    StorageBackend.SQLITE: "data/waves.db",
}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(slots=True)
class LedgerConfig:
    """Runtime configuration for the Wave Ledger service.

    Configuration Sources (priority order):
    1. Direct constructor arguments
    2. Environment variables (WAVE_LEDGER_*)
    3. Default values

    Attributes:
        port: Service port (default: 4950)
        storage_backend: Where waves are persisted (default: jsonl)
        data_path: Journal or database path (default depends on backend)
        fsync: fsync the journal after every wave (default: False)
        event_queue_size: Per-client buffer for the event stream (default: 100)
        cors_origins: Origins allowed to call the API from a browser
    """

    port: int = 4950
    storage_backend: StorageBackend = StorageBackend.JSONL
    data_path: str | None = None
    fsync: bool = False
    event_queue_size: int = 100
    cors_origins: list[str] = field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    )

    @property
    def resolved_data_path(self) -> str | None:
        """Data path for the configured backend, or None for memory."""
        if self.storage_backend is StorageBackend.MEMORY:
            return None
        return self.data_path or DEFAULT_DATA_PATHS[self.storage_backend]

    @classmethod
    def from_env(cls) -> LedgerConfig:
        """Create configuration from environment variables.

        Optional:
            WAVE_LEDGER_PORT: Service port (default: 4950)
            WAVE_LEDGER_STORAGE: 'memory', 'jsonl' or 'sqlite'
            WAVE_LEDGER_DATA_PATH: Journal or database path
            WAVE_LEDGER_FSYNC: '1' to fsync every journal write
            WAVE_LEDGER_EVENT_QUEUE_SIZE: Per-client event buffer
            WAVE_LEDGER_CORS_ORIGINS: Comma-separated list of origins
        """
        config = cls(
            port=int(os.environ.get("WAVE_LEDGER_PORT", "4950")),
            storage_backend=StorageBackend(
                os.environ.get("WAVE_LEDGER_STORAGE", "jsonl").lower()
            ),
            data_path=os.environ.get("WAVE_LEDGER_DATA_PATH") or None,
            fsync=_env_flag("WAVE_LEDGER_FSYNC"),
            event_queue_size=int(
                os.environ.get("WAVE_LEDGER_EVENT_QUEUE_SIZE", "100")
            ),
        )

        origins_str = os.environ.get("WAVE_LEDGER_CORS_ORIGINS", "")
        if origins_str:
            config.cors_origins = [
                origin.strip() for origin in origins_str.split(",") if origin.strip()
            ]

        return config
