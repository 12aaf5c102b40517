"""Wave Repository - SQLite persistence for the wave ledger.

Stores each wave as one row keyed by its ledger index, so the primary
key itself refuses a skipped or reused index.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from .ledger import LedgerCorruptionError, Wave


# SQL schema for waves
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS waves (
    idx INTEGER PRIMARY KEY,
    sender TEXT NOT NULL,
    message TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_waves_sender ON waves(sender);
"""


class SqliteWaveStore:
    """Durable wave store backed by SQLite.

    Example:
        with SqliteWaveStore("data/waves.db") as store:
            ledger = WaveLedger(store)
            ledger.append("0xA11CE", "gm")
    """

    def __init__(self, db_path: str | Path | None = None) -> None:
        """Initialize repository with database connection.

        Args:
            db_path: Path to SQLite database file. Defaults to data/waves.db
        """
        if db_path is None:
            db_path = Path.cwd() / "data" / "waves.db"
        else:
            db_path = Path(db_path)

        # Ensure directory exists
        db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db_path = str(db_path)
        self._conn: sqlite3.Connection | None = None
        self._ensure_connection()
        self._ensure_schema()

    def _ensure_connection(self) -> None:
        """Ensure database connection is established."""
        if self._conn is None:
            # Writes are serialized by the ledger's lock, not by thread affinity
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
            # Every committed wave must survive a crash
            self._conn.execute("PRAGMA synchronous = FULL")
            self._conn.execute("PRAGMA busy_timeout = 5000")

    def _ensure_schema(self) -> None:
        """Ensure database schema exists."""
        conn = self._get_conn()
        conn.executescript(SCHEMA_SQL)
        conn.commit()

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection, ensuring it's established."""
        self._ensure_connection()
        assert self._conn is not None
        return self._conn

    def load(self) -> list[Wave]:
        """Read all waves ordered by index."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT idx, sender, message, timestamp FROM waves ORDER BY idx"
        )

        waves = []
        for expected, row in enumerate(cursor.fetchall()):
            if row["idx"] != expected:
                raise LedgerCorruptionError(
                    f"Wave index gap in {self.db_path}: expected {expected}, found {row['idx']}"
                )
            waves.append(
                Wave(
                    sender=row["sender"],
                    message=row["message"],
                    timestamp=row["timestamp"],
                )
            )
        return waves

    def append(self, index: int, wave: Wave) -> None:
        """Insert a wave row and commit."""
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO waves (idx, sender, message, timestamp)
                VALUES (?, ?, ?, ?)
                """,
                (index, wave.sender, wave.message, wave.timestamp),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise LedgerCorruptionError(f"Wave index {index} already stored") from e

    def count(self) -> int:
        """Count total waves in database."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT COUNT(*) as count FROM waves")
        row = cursor.fetchone()
        return row["count"] if row else 0

    def ping(self) -> None:
        """Run a trivial query to verify the connection."""
        self._get_conn().execute("SELECT 1")

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> SqliteWaveStore:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - closes connection."""
        self.close()
