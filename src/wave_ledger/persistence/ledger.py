"""Wave Ledger - authoritative, append-only history of waves.

The ledger owns:
- The ordered sequence of Wave records (insertion order = index order)
- The total count, which is always the length of that sequence
- The commit point subscribers are notified from

The ledger is the SINGLE WRITER of its history. Callers get copies, never
handles into the internal list, and the only mutation is ``append``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any, Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Wave:
    """A single appended wave.

    Attributes:
        sender: Opaque identity token supplied by the caller
        message: Message text, stored verbatim
        timestamp: Unix seconds captured when the wave was appended
    """

    sender: str
    message: str
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Wave:
        return cls(
            sender=data["sender"],
            message=data["message"],
            timestamp=int(data["timestamp"]),
        )


@dataclass(frozen=True, slots=True)
class NewWave:
    """Notification delivered to subscribers after a successful append."""

    index: int
    sender: str
    timestamp: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class LedgerError(Exception):
    """Base exception for ledger errors."""


class OutOfRangeError(LedgerError, IndexError):
    """Index-based read outside ``[0, total_count)``."""

    def __init__(self, index: int, total_count: int):
        super().__init__(
            f"Wave index {index} out of range (total_count={total_count})"
        )
        self.index = index
        self.total_count = total_count


class ObserverFailure(LedgerError):
    """A subscriber raised while handling a notification.

    Never raised out of ``append``; it is logged and handed to the
    ledger's ``on_observer_failure`` hook instead.
    """

    def __init__(self, observer: Callable[..., Any], event: NewWave, error: BaseException):
        name = getattr(observer, "__qualname__", repr(observer))
        super().__init__(f"Observer {name} failed on wave {event.index}: {error}")
        self.observer = observer
        self.event = event
        self.error = error


class LedgerCorruptionError(LedgerError):
    """A durable store holds data that cannot be read back as waves."""


# ---------------------------------------------------------------------------
# Storage protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class WaveStore(Protocol):
    """Durable backing store for a ledger.

    ``append`` must either persist the wave completely or raise.
    """

    def load(self) -> list[Wave]:
        """Return every persisted wave in index order."""
        ...

    def append(self, index: int, wave: Wave) -> None:
        """Persist ``wave`` at ``index`` (always the current count)."""
        ...

    def close(self) -> None:
        ...


Observer = Callable[[NewWave], None]


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class WaveLedger:
    """Append-only ordered store of waves plus its count.

    Example:
        ledger = WaveLedger()
        unsubscribe = ledger.subscribe(lambda event: print(event.message))

        index = ledger.append("0xA11CE", "Hello, Linea!")
        assert ledger.get(index).message == "Hello, Linea!"
        assert ledger.get_total_count() == 1

        unsubscribe()
    """

    def __init__(
        self,
        store: WaveStore | None = None,
        *,
        clock: Callable[[], int] | None = None,
        on_observer_failure: Callable[[ObserverFailure], None] | None = None,
    ) -> None:
        """Initialize the ledger.

        Args:
            store: Durable store to persist to and rehydrate from.
                ``None`` keeps the history in memory only.
            clock: Returns the current Unix time in seconds
            on_observer_failure: Called with each isolated observer failure
        """
        self._store = store
        self._clock = clock or (lambda: int(time.time()))
        self._on_observer_failure = on_observer_failure

        self._waves: list[Wave] = list(store.load()) if store is not None else []
        self._observers: list[Observer] = []

        # Held for the whole of one append: persist, extend, notify
        self._write_lock = threading.RLock()
        # Events appended from inside an observer wait here; only the
        # outermost append drains them, in index order
        self._pending: deque[tuple[NewWave, list[Observer]]] = deque()
        self._dispatching = False
        self._observer_lock = threading.Lock()

        if self._waves:
            logger.info(f"Ledger rehydrated with {len(self._waves)} waves")

    @property
    def store(self) -> WaveStore | None:
        return self._store

    # -----------------------------------------------------------------------
    # Mutation
    # -----------------------------------------------------------------------

    def append(self, sender: str, message: str) -> int:
        """Append a wave and notify subscribers.

        Args:
            sender: Caller-supplied identity, trusted as-is
            message: Any text, including empty

        Returns:
            Zero-based index assigned to the new wave

        Raises:
            Whatever the durable store raises; in that case nothing was
            appended and nobody was notified.
        """
        with self._write_lock:
            index = len(self._waves)
            wave = Wave(sender=sender, message=message, timestamp=self._clock())

            if self._store is not None:
                self._store.append(index, wave)

            # list.append is atomic: readers see the old or the new length
            self._waves.append(wave)
            logger.debug(f"Wave {index} appended from {sender}")

            event = NewWave(
                index=index,
                sender=wave.sender,
                timestamp=wave.timestamp,
                message=wave.message,
            )
            with self._observer_lock:
                self._pending.append((event, list(self._observers)))

            if not self._dispatching:
                self._dispatching = True
                try:
                    while self._pending:
                        self._publish(*self._pending.popleft())
                finally:
                    self._dispatching = False
            return index

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def get(self, index: int) -> Wave:
        """Get the wave at ``index``.

        Raises:
            OutOfRangeError: if ``index`` is negative or >= total count
        """
        waves = self._waves
        total = len(waves)
        if index < 0 or index >= total:
            raise OutOfRangeError(index, total)
        return waves[index]

    def get_all(self) -> list[Wave]:
        """Snapshot of every wave in append order."""
        return list(self._waves)

    def get_total_count(self) -> int:
        return len(self._waves)

    def __len__(self) -> int:
        return len(self._waves)

    # -----------------------------------------------------------------------
    # Subscription
    # -----------------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer`` for every append that happens from now on.

        Returns:
            A callable that removes the registration
        """
        with self._observer_lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            self.unsubscribe(observer)

        return unsubscribe

    def unsubscribe(self, observer: Observer) -> bool:
        """Remove ``observer``. Returns True if it was registered."""
        with self._observer_lock:
            try:
                self._observers.remove(observer)
            except ValueError:
                return False
            return True

    @property
    def observer_count(self) -> int:
        with self._observer_lock:
            return len(self._observers)

    def _publish(self, event: NewWave, observers: list[Observer]) -> None:
        """Deliver ``event`` to the observers registered at append time."""
        for observer in observers:
            try:
                observer(event)
            except Exception as exc:
                failure = ObserverFailure(observer, event, exc)
                logger.error(str(failure), exc_info=True)
                if self._on_observer_failure is not None:
                    try:
                        self._on_observer_failure(failure)
                    except Exception:
                        logger.exception("Observer failure hook raised")

    def close(self) -> None:
        """Close the durable store, if any."""
        if self._store is not None:
            self._store.close()
