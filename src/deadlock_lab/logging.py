"""Analysis audit log.

The analysers themselves are pure functions and never log.  The
application that drives them (the web app) keeps an audit trail of
every analysis it ran and every input it rejected, so a learner can
scroll back through "what did I ask, and what did the system say".

- **LogLevel** orders severities so ``select`` can take a floor.
- **AuditEntry** is one numbered record: who (source), what (message)
  and the structured outcome (detail, e.g. ``safe=True``).
- **AuditLog** is a bounded ring of entries.  Sequence numbers keep
  counting after old entries fall off or the log is cleared, so a
  client polling with ``since(last_seen)`` never sees an entry twice.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum

DEFAULT_CAPACITY = 500


class LogLevel(IntEnum):
    """Severity of an audit entry."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class AuditEntry:
    """A single numbered audit record.

    Attributes:
        seq: Position in the log, starting at 1 and never reused.
        level: Severity of the event.
        source: The analysis or layer that produced it (``"safety"``, ``"api"``).
        message: Human-readable summary.
        detail: Structured outcome as sorted ``(key, value)`` pairs.

    """

    seq: int
    level: LogLevel
    source: str
    message: str
    detail: tuple[tuple[str, object], ...] = field(default=())

    def __str__(self) -> str:
        """Format as ``#seq [LEVEL] source: message``."""
        return f"#{self.seq} [{self.level.name}] {self.source}: {self.message}"

    def to_dict(self) -> dict[str, object]:
        """Serialize for the JSON API."""
        return {
            "seq": self.seq,
            "level": self.level.name,
            "source": self.source,
            "message": self.message,
            "detail": dict(self.detail),
        }


class AuditLog:
    """Bounded, append-only audit trail."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        """Create an empty log keeping at most *capacity* entries.

        Raises:
            ValueError: If capacity is not positive.

        """
        if capacity < 1:
            msg = f"Audit log capacity must be positive, got {capacity}"
            raise ValueError(msg)
        self._entries: deque[AuditEntry] = deque(maxlen=capacity)
        self._last_seq = 0

    @property
    def capacity(self) -> int:
        """Return the maximum number of retained entries."""
        return self._entries.maxlen or 0

    @property
    def entries(self) -> list[AuditEntry]:
        """Return retained entries, oldest first."""
        return list(self._entries)

    def __len__(self) -> int:
        """Return the number of retained entries."""
        return len(self._entries)

    def record(self, level: LogLevel, source: str, message: str, **detail: object) -> AuditEntry:
        """Append an entry, evicting the oldest one when full.

        Args:
            level: Severity of the event.
            source: Analysis or layer that produced it.
            message: Human-readable summary.
            **detail: Structured outcome fields, JSON-serializable.

        Returns:
            The new entry.

        """
        self._last_seq += 1
        entry = AuditEntry(self._last_seq, level, source, message, tuple(sorted(detail.items())))
        self._entries.append(entry)
        return entry

    def info(self, source: str, message: str, **detail: object) -> AuditEntry:
        """Record an analysis outcome."""
        return self.record(LogLevel.INFO, source, message, **detail)

    def warning(self, source: str, message: str, **detail: object) -> AuditEntry:
        """Record a rejected input."""
        return self.record(LogLevel.WARNING, source, message, **detail)

    def since(self, seq: int) -> list[AuditEntry]:
        """Return retained entries numbered after *seq*."""
        return [e for e in self._entries if e.seq > seq]

    def select(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
    ) -> list[AuditEntry]:
        """Return retained entries at or above *min_level* from *source*."""
        return [
            e
            for e in self._entries
            if (min_level is None or e.level >= min_level) and (source is None or e.source == source)
        ]

    def clear(self) -> None:
        """Drop every retained entry; numbering continues."""
        self._entries.clear()
