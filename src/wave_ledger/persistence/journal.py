"""JSONL journal - append-only file store for waves.

One JSON object per line, in index order. Each append is written and
flushed before the ledger exposes the wave, so the file is always a
prefix-complete copy of the history.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from .ledger import LedgerCorruptionError, Wave

logger = logging.getLogger(__name__)


class JsonlWaveStore:
    """Durable wave store backed by a JSONL file.

    A crash in the middle of a write can leave a final line without its
    trailing newline. That torn line is ignored on load and cut off before
    the next append; any other unreadable line is corruption.

    Example:
        store = JsonlWaveStore("data/waves.jsonl")
        ledger = WaveLedger(store)
    """

    def __init__(
        self,
        journal_path: Path | str | None = None,
        fsync: bool = False,
    ):
        """Initialize the journal.

        Args:
            journal_path: Path to JSONL file. Defaults to data/waves.jsonl
            fsync: Whether to fsync after each write (every write is flushed)
        """
        if journal_path is None:
            journal_path = Path.cwd() / "data" / "waves.jsonl"
        else:
            journal_path = Path(journal_path)

        self._journal_path = journal_path
        self._fsync = fsync
        # Byte offset where a torn tail starts, if load() found one
        self._torn_offset: int | None = None
        self._count = 0

        # Ensure directory exists
        self._journal_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def journal_path(self) -> Path:
        """Get the journal file path."""
        return self._journal_path

    def load(self) -> list[Wave]:
        """Read every complete wave from the journal."""
        if not self._journal_path.exists():
            self._count = 0
            return []

        waves: list[Wave] = []
        offset = 0
        with open(self._journal_path, "rb") as f:
            for lineno, raw in enumerate(f, start=1):
                if not raw.endswith(b"\n"):
                    logger.warning(
                        f"Ignoring torn final line {lineno} in {self._journal_path}"
                    )
                    self._torn_offset = offset
                    break
                offset += len(raw)

                try:
                    line = raw.decode("utf-8").strip()
                    if not line:
                        continue
                    waves.append(Wave.from_dict(json.loads(line)))
                except (ValueError, KeyError, TypeError) as e:
                    raise LedgerCorruptionError(
                        f"Unreadable wave at {self._journal_path}:{lineno}: {e}"
                    ) from e

        self._count = len(waves)
        return waves

    def append(self, index: int, wave: Wave) -> None:
        """Write a single wave to the journal.

        A write that fails part way is cut back off the file before the
        error propagates, so the journal never holds a wave the ledger
        reported as not appended.
        """
        if index != self._count:
            raise LedgerCorruptionError(
                f"Journal holds {self._count} waves, refusing to write index {index}"
            )

        if self._torn_offset is not None:
            with open(self._journal_path, "r+b") as f:
                f.truncate(self._torn_offset)
            self._torn_offset = None

        data = memoryview((json.dumps(wave.to_dict(), ensure_ascii=False) + "\n").encode("utf-8"))
        # Unbuffered, so nothing is left to flush after a truncate
        with open(self._journal_path, "ab", buffering=0) as f:
            start = f.tell()
            try:
                while data:
                    data = data[f.write(data):]
                if self._fsync:
                    os.fsync(f.fileno())
            except BaseException:
                f.truncate(start)
                raise

        self._count += 1

    def close(self) -> None:
        """Nothing is held open between writes."""
