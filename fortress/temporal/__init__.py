"""
Temporal Layer
==============

The append-only session log, the clock that stamps command batches, and
replay over both.

INVARIANTS:
- All state is derived from the append-only event log
- No mutation of stored events
- Same log -> same derived state (deterministic)

Modules:
- event_log: Append-only, hash-chained session log
- clock: Live, stepping and replay clocks
- replay: Point-in-time reconstruction and determinism checks
"""

from .event_log import SessionEventLog, LogState
from .clock import LogicalClock, ClockExhausted
from .replay import ReplayEngine, ReplayResult, state_hash

__all__ = [
    'SessionEventLog',
    'LogState',
    'LogicalClock',
    'ClockExhausted',
    'ReplayEngine',
    'ReplayResult',
    'state_hash',
]
