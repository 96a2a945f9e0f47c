"""
Fortress Game Core

An event-sourced narrative strategy game. Every change to a game is an
immutable event appended to a per-session log; everything the player sees
is a projection folded from that log.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Responsibility: Errors, identities, events, commands, domain vocabulary
   - Outputs: Frozen value types and the wire format
   - MUST NOT: Hold state or perform I/O

2. SLICES (slices/)
   - Responsibility: One command type each; validate against projections
     and return the events that record the decision
   - Allowed inputs: A narrowed projection, the command, content lookups
   - MUST NOT: Append to the log, read the clock, mutate anything

3. PROJECTIONS (projections/)
   - Responsibility: Fold events into game state and read-side views
   - MUST NOT: Validate commands or emit events

4. NARRATIVE ENGINE (narrative/)
   - Responsibility: Branching graphs, conditions, effects, transitions
   - Outputs: Events describing node entry, exits and effects
   - MUST NOT: Write to the log directly

5. TEMPORAL LAYER (temporal/)
   - Responsibility: Hash-chained append-only log, logical clock, replay

6. STORAGE (storage/)
   - Responsibility: Event streams and save slots (memory or JSONL files)

7. ORCHESTRATION (engine.py, api/)
   - Responsibility: Sessions, locking, dispatch, subscribers, HTTP

CONSTRAINTS ENFORCED:
=====================
- A rejected command appends nothing
- Replaying the same log always yields the same state
- All events of one command share one timestamp
"""

from .config import GameConfig, configure_logging
from .contracts import (
    Command, CommandType, Event, EventType, ErrorCode, GameError,
    GamePhase, GameStatus,
)
from .content import ContentRepository, InMemoryContentRepository, default_repository
from .engine import DispatchResult, GameEngine, GameSession
from .storage import EventStore, FileEventStore, InMemoryEventStore

__all__ = [
    "GameConfig", "configure_logging",
    "Command", "CommandType", "Event", "EventType", "ErrorCode", "GameError",
    "GamePhase", "GameStatus",
    "ContentRepository", "InMemoryContentRepository", "default_repository",
    "DispatchResult", "GameEngine", "GameSession",
    "EventStore", "FileEventStore", "InMemoryEventStore",
]

__version__ = "0.1.0"
