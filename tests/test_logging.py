"""Tests for the analysis audit log.

The analysers are pure and never log; the application records what
it analysed and what input it rejected.
"""

import pytest

from deadlock_lab.logging import DEFAULT_CAPACITY, AuditEntry, AuditLog, LogLevel

SMALL_CAPACITY = 2
THIRD_SEQ = 3


class TestLogLevel:
    """Verify log level ordering."""

    def test_levels_are_ordered(self) -> None:
        """DEBUG < INFO < WARNING < ERROR."""
        assert LogLevel.DEBUG < LogLevel.INFO < LogLevel.WARNING < LogLevel.ERROR


class TestAuditEntry:
    """Verify entry formatting."""

    def test_entry_str(self) -> None:
        """String form is ``#seq [LEVEL] source: message``."""
        entry = AuditEntry(seq=4, level=LogLevel.WARNING, source="api", message="ragged matrix")
        assert str(entry) == "#4 [WARNING] api: ragged matrix"

    def test_entry_to_dict(self) -> None:
        """Entries serialize with the level name and their detail."""
        log = AuditLog()
        entry = log.info("safety", "state is safe", safe=True, processes=5)
        assert entry.to_dict() == {
            "seq": 1,
            "level": "INFO",
            "source": "safety",
            "message": "state is safe",
            "detail": {"processes": 5, "safe": True},
        }


class TestAuditLog:
    """Verify the bounded audit trail."""

    def test_default_capacity(self) -> None:
        """A fresh log uses the default bound and is empty."""
        log = AuditLog()
        assert log.capacity == DEFAULT_CAPACITY
        assert len(log) == 0

    def test_entries_are_numbered_in_order(self) -> None:
        """Sequence numbers start at 1 and follow insertion order."""
        log = AuditLog()
        log.info("safety", "first")
        log.warning("api", "second")
        assert [(e.seq, e.message) for e in log.entries] == [(1, "first"), (2, "second")]

    def test_oldest_entry_evicted(self) -> None:
        """A full log drops its oldest entry."""
        log = AuditLog(capacity=SMALL_CAPACITY)
        for message in ("a", "b", "c"):
            log.info("cycle", message)
        assert [e.message for e in log.entries] == ["b", "c"]
        assert len(log) == SMALL_CAPACITY

    def test_since(self) -> None:
        """Polling returns only entries after the last one seen."""
        log = AuditLog()
        for message in ("a", "b", "c"):
            log.info("cycle", message)
        assert [e.seq for e in log.since(1)] == [2, THIRD_SEQ]
        assert log.since(THIRD_SEQ) == []

    def test_numbering_survives_clear(self) -> None:
        """Clearing keeps counting, so pollers never see a number reused."""
        log = AuditLog()
        log.info("safety", "a")
        log.info("safety", "b")
        log.clear()
        assert log.entries == []
        assert log.info("safety", "c").seq == THIRD_SEQ

    def test_select_by_level(self) -> None:
        """Only entries at or above the floor are returned."""
        log = AuditLog()
        log.record(LogLevel.DEBUG, "cycle", "visited P0")
        log.info("cycle", "no cycle")
        log.warning("api", "bad input")
        warnings = log.select(min_level=LogLevel.WARNING)
        assert [e.source for e in warnings] == ["api"]

    def test_select_by_source(self) -> None:
        """Only entries from the given source are returned."""
        log = AuditLog()
        log.info("safety", "safe")
        log.info("cycle", "no cycle")
        assert [e.message for e in log.select(source="cycle")] == ["no cycle"]

    def test_capacity_must_be_positive(self) -> None:
        """A log that keeps nothing is a configuration error."""
        with pytest.raises(ValueError, match="positive"):
            AuditLog(capacity=0)
