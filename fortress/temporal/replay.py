"""
Replay Engine
=============

Point-in-time reconstruction and determinism checks over a session log.

INVARIANT: Replay is deterministic.
Same log at same sequence = same derived state.

Two checks are offered:
- verify_determinism: the full fold, computed twice, hashes identically
- verify_incremental: folding a prefix and then the rest yields the same
  state as one full fold
"""

from __future__ import annotations
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Sequence, Tuple
import hashlib
import json

from ..contracts.base import Error, ErrorCode
from ..contracts.events import Event
from ..contracts.temporal import LogSequence
from ..projections.game_state import GameState, GameStateProjector, project_game_state
from .event_log import SessionEventLog


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return str(value)


def state_hash(state: Any) -> str:
    """Canonical sha256 of a projected dataclass view."""
    payload = json.dumps(asdict(state), sort_keys=True, default=_jsonable, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class ReplayResult:
    """Derived state at a log position, or the error that prevented it."""
    success: bool
    sequence: int = 0
    state: Optional[GameState] = None
    state_hash: str = ""
    error: Optional[Error] = None


class ReplayEngine:
    """
    Rebuilds game state from a session log.

    GUARANTEES:
    ===========
    1. Replay produces identical state for identical log
    2. Nothing is patched: every answer is a fresh fold
    3. A broken hash chain is reported, never replayed past
    """

    def __init__(self, total_positions: int = 5):
        self._total_positions = total_positions

    def derive(self, events: Sequence[Event]) -> GameState:
        return project_game_state(events, self._total_positions)

    def replay_to(self, log: SessionEventLog, sequence: Optional[LogSequence] = None) -> ReplayResult:
        """Replay the log up to `sequence` (inclusive), the whole log when None."""
        is_valid, error = log.verify_integrity()
        if not is_valid:
            return ReplayResult(success=False, error=error)

        until = sequence or log.state.head_sequence
        if until.value > len(log):
            return ReplayResult(success=False, error=Error(
                code=ErrorCode.LOG_CORRUPTION,
                message=f"Sequence {until.value} is beyond the log head {len(log)}",
                timestamp=datetime.now(timezone.utc),
                context=(("sequence", str(until.value)),)
            ))

        events = [entry.event for entry in log.replay(until_seq=until)]
        state = self.derive(events)
        return ReplayResult(success=True, sequence=until.value, state=state, state_hash=state_hash(state))

    def get_state_at(self, log: SessionEventLog, sequence: LogSequence) -> Optional[GameState]:
        result = self.replay_to(log, sequence)
        return result.state if result.success else None

    def verify_determinism(self, events: Sequence[Event]) -> Tuple[bool, Optional[str]]:
        """
        Fold the same events twice and compare state hashes.

        Returns (is_deterministic, difference_description).
        """
        first = state_hash(self.derive(events))
        second = state_hash(self.derive(events))
        if first != second:
            return (False, f"State hash mismatch: {first[:12]} != {second[:12]}")
        return (True, None)

    def verify_incremental(self, events: Sequence[Event], split: int) -> Tuple[bool, Optional[str]]:
        """
        Fold events[:split], then events[split:] on the same projector,
        and compare with a single full fold.
        """
        split = max(0, min(split, len(events)))
        projector = GameStateProjector(self._total_positions)
        projector.apply_all(events[:split])
        incremental = projector.apply_all(events[split:])
        full = self.derive(events)
        if incremental != full:
            return (False, f"Incremental fold split at {split} diverges from the full fold")
        return (True, None)
