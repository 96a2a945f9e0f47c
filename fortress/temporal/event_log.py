"""
Session Event Log
=================

Append-only, totally ordered sequence of domain events for ONE session.

INVARIANTS:
- No updates or deletes - append only
- Every entry has a monotonic sequence number (1-based)
- Hash chain over canonical event JSON for integrity verification
- Append never raises: once a slice produced its batch, appending it
  is the unconditional terminal step

This is the SOURCE OF TRUTH for a game session.
Every view is DERIVED from this log, never stored separately.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, Optional, List, Sequence, Tuple
from datetime import datetime, timezone

from ..contracts.base import Error, ErrorCode
from ..contracts.events import Event
from ..contracts.temporal import LogSequence, LogEntry, compute_entry_hash


@dataclass(frozen=True)
class LogState:
    """
    Immutable snapshot of log state.

    Captures the log head at a point in time so callers can detect
    whether a cached view is stale.
    """
    head_sequence: LogSequence
    head_hash: str
    entry_count: int

    @staticmethod
    def empty() -> 'LogState':
        return LogState(
            head_sequence=LogSequence(0),
            head_hash="",
            entry_count=0
        )


class SessionEventLog:
    """
    Append-only event log.

    GUARANTEES:
    ===========
    1. NO updates - entries are immutable once written
    2. NO deletes - log only grows
    3. Deterministic - same events in same order produce the same head hash
    4. Verifiable - hash chain ensures integrity

    Not thread-safe on its own: the session that owns the log serializes
    writers.
    """

    def __init__(self, events: Optional[Sequence[Event]] = None):
        self._entries: List[LogEntry] = []
        self._sequence_counter = LogSequence(0)
        self._head_hash = ""
        if events:
            self.append(events)

    @property
    def state(self) -> LogState:
        """Get current log state (immutable snapshot)."""
        return LogState(
            head_sequence=self._sequence_counter,
            head_hash=self._head_hash,
            entry_count=len(self._entries)
        )

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, events: Sequence[Event]) -> int:
        """
        Append an ordered batch of events.

        This is the ONLY write operation. Returns the new log length.
        """
        for event in events:
            new_sequence = self._sequence_counter.next()
            entry = LogEntry.create(
                sequence=new_sequence,
                event=event,
                previous_hash=self._head_hash
            )
            self._entries.append(entry)
            self._sequence_counter = new_sequence
            self._head_hash = entry.entry_hash
        return len(self._entries)

    def load_verified_entry(self, entry: LogEntry) -> bool:
        """
        Load an existing entry from storage.

        VERIFIES:
        1. Sequence is the next in line
        2. Previous hash matches current head
        3. Entry hash is valid for its content

        Used for hydration from disk. Raises ValueError on any mismatch.
        """
        expected_seq = self._sequence_counter.next()
        if entry.sequence.value != expected_seq.value:
            raise ValueError(
                f"Invalid sequence load: expected {expected_seq.value}, got {entry.sequence.value}"
            )

        if entry.previous_hash != self._head_hash:
            raise ValueError(
                f"Broken hash chain at {entry.sequence.value}: "
                f"prev {entry.previous_hash} != head {self._head_hash}"
            )

        computed_hash = compute_entry_hash(entry.sequence, entry.event, entry.previous_hash)
        if computed_hash != entry.entry_hash:
            raise ValueError(f"Corrupt entry at {entry.sequence.value}: Hash mismatch")

        self._entries.append(entry)
        self._sequence_counter = entry.sequence
        self._head_hash = entry.entry_hash
        return True

    def events(self) -> List[Event]:
        """All events, oldest first."""
        return [entry.event for entry in self._entries]

    def events_since(self, count: int) -> List[Event]:
        """Events appended after the first `count` entries."""
        return [entry.event for entry in self._entries[count:]]

    def replay(
        self,
        from_seq: Optional[LogSequence] = None,
        until_seq: Optional[LogSequence] = None
    ) -> Iterator[LogEntry]:
        """
        Replay entries in sequence order.

        Args:
            from_seq: Start from this sequence (inclusive), None = start
            until_seq: Stop at this sequence (inclusive), None = end
        """
        start = (from_seq.value if from_seq else 1)
        end = (until_seq.value if until_seq else len(self._entries))

        for entry in self._entries:
            if entry.sequence.value < start:
                continue
            if entry.sequence.value > end:
                break
            yield entry

    def get_entry(self, sequence: LogSequence) -> Optional[LogEntry]:
        """Get specific entry by sequence number."""
        if sequence.value < 1 or sequence.value > len(self._entries):
            return None
        return self._entries[sequence.value - 1]

    def verify_integrity(self) -> Tuple[bool, Optional[Error]]:
        """
        Verify hash chain integrity.

        Returns (is_valid, error) tuple.
        """
        expected_previous = ""

        for entry in self._entries:
            if entry.previous_hash != expected_previous:
                return (False, Error(
                    code=ErrorCode.LOG_CORRUPTION,
                    message=f"Hash chain broken at sequence {entry.sequence.value}",
                    timestamp=datetime.now(timezone.utc),
                    context=(
                        ("expected_hash", expected_previous),
                        ("actual_hash", entry.previous_hash),
                    )
                ))
            recomputed = compute_entry_hash(entry.sequence, entry.event, entry.previous_hash)
            if recomputed != entry.entry_hash:
                return (False, Error(
                    code=ErrorCode.LOG_CORRUPTION,
                    message=f"Entry hash mismatch at sequence {entry.sequence.value}",
                    timestamp=datetime.now(timezone.utc),
                    context=(("sequence", str(entry.sequence.value)),)
                ))
            expected_previous = entry.entry_hash

        return (True, None)
