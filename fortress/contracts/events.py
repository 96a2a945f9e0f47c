"""
Event Contracts

Events are immutable facts, the sole source of truth of a game session.

WIRE FORMAT:
============
    {"type": "<EVENT_TYPE>", "data": {...}, "timestamp": "<ISO-8601>"}

Serialization is compact JSON that preserves key order, so a persisted
line read back and written again is byte-identical. The event vocabulary
is closed: an unknown tag is rejected at the boundary with UnknownEventType.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Tuple
from enum import Enum
import json

from .base import UnknownEventType, ErrorCode, ValidationError


class EventType(Enum):
    """Closed event vocabulary. Every fold must handle every member."""
    # Game lifecycle
    GAME_STARTED = "GAME_STARTED"
    GAME_ENDED = "GAME_ENDED"
    PHASE_CHANGED = "PHASE_CHANGED"

    # Quests
    QUESTS_GENERATED = "QUESTS_GENERATED"
    QUEST_ACCEPTED = "QUEST_ACCEPTED"
    QUEST_COMPLETED = "QUEST_COMPLETED"
    QUEST_FAILED = "QUEST_FAILED"
    QUEST_SUMMARY_PRESENTED = "QUEST_SUMMARY_PRESENTED"
    QUEST_SUMMARY_ACKNOWLEDGED = "QUEST_SUMMARY_ACKNOWLEDGED"

    # Dilemmas and choices
    DILEMMA_PRESENTED = "DILEMMA_PRESENTED"
    CHOICE_MADE = "CHOICE_MADE"
    FLAG_SET = "FLAG_SET"
    CHOICE_CONSEQUENCE_PRESENTED = "CHOICE_CONSEQUENCE_PRESENTED"
    CHOICE_CONSEQUENCE_ACKNOWLEDGED = "CHOICE_CONSEQUENCE_ACKNOWLEDGED"

    # Alliances
    ALLIANCE_FORMED = "ALLIANCE_FORMED"
    ALLIANCE_REJECTED = "ALLIANCE_REJECTED"
    ALLIANCES_DECLINED = "ALLIANCES_DECLINED"

    # Mediation
    MEDIATION_STARTED = "MEDIATION_STARTED"
    MEDIATION_LEANED = "MEDIATION_LEANED"
    MEDIATION_COLLAPSED = "MEDIATION_COLLAPSED"
    COMPROMISE_ACCEPTED = "COMPROMISE_ACCEPTED"

    # Reputation
    REPUTATION_CHANGED = "REPUTATION_CHANGED"
    REPUTATION_THRESHOLD_CROSSED = "REPUTATION_THRESHOLD_CROSSED"

    # Cards
    CARD_GAINED = "CARD_GAINED"
    CARD_LOST = "CARD_LOST"

    # Battle
    BATTLE_TRIGGERED = "BATTLE_TRIGGERED"
    CARD_SELECTED = "CARD_SELECTED"
    CARD_DESELECTED = "CARD_DESELECTED"
    FLEET_COMMITTED = "FLEET_COMMITTED"
    CARD_POSITIONED = "CARD_POSITIONED"
    ORDERS_LOCKED = "ORDERS_LOCKED"
    BATTLE_RESOLVED = "BATTLE_RESOLVED"

    # Consequences
    BOUNTY_MODIFIED = "BOUNTY_MODIFIED"
    OUTCOME_ACKNOWLEDGED = "OUTCOME_ACKNOWLEDGED"

    # Narrative graph traversal
    NARRATIVE_SESSION_STARTED = "NARRATIVE_SESSION_STARTED"
    NARRATIVE_NODE_ENTERED = "NARRATIVE_NODE_ENTERED"
    NARRATIVE_CHOICE_MADE = "NARRATIVE_CHOICE_MADE"
    NARRATIVE_TRANSITION_TRIGGERED = "NARRATIVE_TRANSITION_TRIGGERED"
    NARRATIVE_FLAG_SET = "NARRATIVE_FLAG_SET"
    NARRATIVE_CHECKPOINT_REACHED = "NARRATIVE_CHECKPOINT_REACHED"
    NARRATIVE_ENDING_REACHED = "NARRATIVE_ENDING_REACHED"

    @staticmethod
    def parse(tag: str) -> EventType:
        try:
            return EventType(tag)
        except ValueError:
            raise UnknownEventType(f"Unknown event type: {tag}", event_type=tag)


# Events a collaborator outside the pure core must act on
TRIGGER_EVENT_TYPES = frozenset({
    EventType.BATTLE_TRIGGERED,
    EventType.CARD_GAINED,
    EventType.CARD_LOST,
})

# Events external collaborators are allowed to submit into a session log
EXTERNAL_EVENT_TYPES = frozenset({
    EventType.BATTLE_RESOLVED,
    EventType.CARD_GAINED,
    EventType.CARD_LOST,
})


@dataclass(frozen=True)
class Event:
    """
    Immutable domain event.

    `data` is treated as read-only once the event exists; every
    producer builds a fresh dict per event.
    """
    type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = ""

    def __hash__(self):
        return hash(self.to_json())

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "data": self.data,
            "timestamp": self.timestamp,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_wire(), separators=(",", ":"), ensure_ascii=False)

    @staticmethod
    def from_wire(payload: Mapping[str, Any]) -> Event:
        if not isinstance(payload, Mapping) or "type" not in payload:
            raise ValidationError(
                "Event payload must be an object with a type tag",
                code=ErrorCode.INVALID_PAYLOAD
            )
        event_type = EventType.parse(payload["type"])
        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise ValidationError(
                f"Event data for {event_type.value} must be an object",
                code=ErrorCode.INVALID_PAYLOAD,
                event_type=event_type.value
            )
        timestamp = payload.get("timestamp", "")
        if not isinstance(timestamp, str):
            raise ValidationError(
                "Event timestamp must be an ISO-8601 string",
                code=ErrorCode.INVALID_PAYLOAD,
                event_type=event_type.value
            )
        return Event(type=event_type, data=dict(data), timestamp=timestamp)

    @staticmethod
    def from_json(line: str) -> Event:
        return Event.from_wire(json.loads(line))


def create_batch(
    timestamp: str,
    items: Iterable[Tuple[EventType, Dict[str, Any]]]
) -> List[Event]:
    """Stamp one timestamp on every event produced by a single command."""
    return [Event(type=event_type, data=data, timestamp=timestamp) for event_type, data in items]


def assert_exhaustive(handled: Iterable[EventType], fold_name: str) -> None:
    """
    Fail at import time when a fold does not cover the whole vocabulary.

    Adding an EventType member without updating every full fold is an
    error raised on first import, never a silently ignored event.
    """
    missing = set(EventType) - set(handled)
    if missing:
        names = ", ".join(sorted(m.value for m in missing))
        raise RuntimeError(f"{fold_name} does not handle event types: {names}")
