"""
Logical Clock for Deterministic Replay
======================================

Injectable clock that supplies the single timestamp stamped on every
event of a command batch.

MODES:
- LIVE: reads system time
- REPLAY: returns a pre-recorded tick sequence
- STEPPING: starts at a fixed instant and advances by a fixed step
  (deterministic sessions and tests)

LIVE and STEPPING clocks keep their ticks only when built with
record=True, so a long-running engine holds no tick history.

Slices never read time themselves; the engine reads the clock once per
command and hands the ISO string down.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from pathlib import Path
import json


class ClockExhausted(Exception):
    """Raised when replay clock runs out of ticks."""
    pass


@dataclass
class LogicalClock:
    _ticks: List[datetime] = field(default_factory=list)
    _current_index: int = 0
    _is_live: bool = True
    _step: Optional[timedelta] = None
    _cursor: Optional[datetime] = None
    _record: bool = False

    def now(self) -> datetime:
        """
        Get current logical time.

        In LIVE mode: reads system time (kept if recording)
        In STEPPING mode: returns the cursor then advances it
        In REPLAY mode: returns next tick from recorded sequence
        """
        if self._step is not None:
            current = self._cursor
            self._cursor = current + self._step
            return self._advance(current)
        if self._is_live:
            return self._advance(datetime.now(timezone.utc))
        if self._current_index >= len(self._ticks):
            raise ClockExhausted(
                f"Replay clock exhausted at index {self._current_index}. "
                f"Original execution had {len(self._ticks)} ticks."
            )
        tick = self._ticks[self._current_index]
        self._current_index += 1
        return tick

    def _advance(self, current: datetime) -> datetime:
        if self._record:
            self._ticks.append(current)
        self._current_index += 1
        return current

    def now_iso(self) -> str:
        return self.now().isoformat()

    def tick_count(self) -> int:
        """Number of ticks recorded/consumed."""
        return self._current_index

    def is_live(self) -> bool:
        return self._is_live and self._step is None

    @classmethod
    def live(cls, record: bool = False) -> 'LogicalClock':
        """Create clock in LIVE mode (uses system time)."""
        return cls(_is_live=True, _record=record)

    @classmethod
    def stepping(
        cls,
        start: datetime,
        step: timedelta = timedelta(seconds=1),
        record: bool = False
    ) -> 'LogicalClock':
        """Create a deterministic clock advancing by `step` on every read."""
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        return cls(_is_live=False, _step=step, _cursor=start, _record=record)

    @classmethod
    def from_ticks(cls, ticks: List[datetime]) -> 'LogicalClock':
        return cls(_ticks=list(ticks), _current_index=0, _is_live=False)

    @classmethod
    def from_log(cls, tick_log_path: Path) -> 'LogicalClock':
        """Create clock in REPLAY mode from a recorded tick log."""
        with open(tick_log_path, 'r') as f:
            data = json.load(f)
        return cls.from_ticks([datetime.fromisoformat(t) for t in data['ticks']])

    def save_log(self, tick_log_path: Path) -> None:
        """Save tick log for future replay."""
        tick_log_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            'version': '1.0',
            'tick_count': len(self._ticks),
            'ticks': [t.isoformat() for t in self._ticks]
        }

        with open(tick_log_path, 'w') as f:
            json.dump(data, f, indent=2)

    def __repr__(self) -> str:
        if self._step is not None:
            mode = "STEPPING"
        else:
            mode = "LIVE" if self._is_live else "REPLAY"
        return f"LogicalClock({mode}, ticks={len(self._ticks)}, index={self._current_index})"
