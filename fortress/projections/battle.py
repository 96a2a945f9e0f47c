"""
Battle Record Read Model

Status of the battle in progress plus the history of resolved battles.
Battles are resolved by an external collaborator; this view only reads
the BATTLE_* events it submitted back into the log.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..contracts.events import Event, EventType


@dataclass(frozen=True)
class ResolvedBattle:
    battle_id: str
    quest_id: Optional[str]
    opponent_type: str
    opponent_faction_id: str
    difficulty: str
    context: str
    outcome: str
    rounds_won: int
    rounds_lost: int
    rounds_drawn: int
    resolved_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "battleId": self.battle_id,
            "questId": self.quest_id,
            "opponentType": self.opponent_type,
            "opponentFactionId": self.opponent_faction_id,
            "difficulty": self.difficulty,
            "context": self.context,
            "outcome": self.outcome,
            "roundsWon": self.rounds_won,
            "roundsLost": self.rounds_lost,
            "roundsDrawn": self.rounds_drawn,
            "resolvedAt": self.resolved_at,
        }


@dataclass(frozen=True)
class CurrentBattleView:
    battle_id: str
    quest_id: Optional[str]
    status: str
    opponent_type: str
    opponent_faction_id: str
    difficulty: str
    context: str
    selected_card_ids: Tuple[str, ...] = field(default_factory=tuple)
    committed_card_ids: Tuple[str, ...] = field(default_factory=tuple)
    positions: Tuple[Optional[str], ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "battleId": self.battle_id,
            "questId": self.quest_id,
            "status": self.status,
            "opponentType": self.opponent_type,
            "opponentFactionId": self.opponent_faction_id,
            "difficulty": self.difficulty,
            "context": self.context,
            "selectedCardIds": list(self.selected_card_ids),
            "committedCardIds": list(self.committed_card_ids),
            "positions": list(self.positions),
        }


@dataclass(frozen=True)
class BattleRecord:
    current: Optional[CurrentBattleView]
    history: Tuple[ResolvedBattle, ...]

    @property
    def victories(self) -> int:
        return sum(1 for b in self.history if b.outcome == "victory")

    @property
    def defeats(self) -> int:
        return sum(1 for b in self.history if b.outcome == "defeat")

    @property
    def draws(self) -> int:
        return sum(1 for b in self.history if b.outcome == "draw")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current": self.current.to_dict() if self.current else None,
            "history": [b.to_dict() for b in self.history],
            "totals": {
                "battles": len(self.history),
                "victories": self.victories,
                "defeats": self.defeats,
                "draws": self.draws,
            },
        }


def project_battle_record(events: Sequence[Event], total_positions: int = 5) -> BattleRecord:
    triggers: Dict[str, Event] = {}
    history: List[ResolvedBattle] = []
    current: Optional[CurrentBattleView] = None

    for event in events:
        if event.type == EventType.BATTLE_TRIGGERED:
            battle_id = event.get("battleId", "")
            triggers[battle_id] = event
            current = CurrentBattleView(
                battle_id=battle_id,
                quest_id=event.get("questId"),
                status="selection",
                opponent_type=event.get("opponentType", ""),
                opponent_faction_id=event.get("opponentFactionId", ""),
                difficulty=event.get("difficulty", ""),
                context=event.get("context", ""),
                positions=(None,) * total_positions,
            )
        elif event.type == EventType.BATTLE_RESOLVED:
            battle_id = event.get("battleId", "")
            trigger = triggers.get(battle_id)
            history.append(ResolvedBattle(
                battle_id=battle_id,
                quest_id=trigger.get("questId") if trigger else None,
                opponent_type=trigger.get("opponentType", "") if trigger else "",
                opponent_faction_id=trigger.get("opponentFactionId", "") if trigger else "",
                difficulty=trigger.get("difficulty", "") if trigger else "",
                context=trigger.get("context", "") if trigger else "",
                outcome=event.get("outcome", ""),
                rounds_won=int(event.get("roundsWon", 0)),
                rounds_lost=int(event.get("roundsLost", 0)),
                rounds_drawn=int(event.get("roundsDrawn", 0)),
                resolved_at=event.timestamp,
            ))
            if current is not None and current.battle_id == battle_id:
                current = None
        elif event.type in (EventType.QUEST_COMPLETED, EventType.QUEST_FAILED):
            current = None
        elif current is None:
            continue
        elif event.type == EventType.CARD_SELECTED:
            current = replace(current, selected_card_ids=current.selected_card_ids + (event.get("cardId"),))
        elif event.type == EventType.CARD_DESELECTED:
            card_id = event.get("cardId")
            current = replace(current, selected_card_ids=tuple(c for c in current.selected_card_ids if c != card_id))
        elif event.type == EventType.FLEET_COMMITTED:
            current = replace(current, status="deployment", committed_card_ids=tuple(event.get("cardIds", ())))
        elif event.type == EventType.CARD_POSITIONED:
            card_id = event.get("cardId")
            index = int(event.get("position", 0)) - 1
            positions: List[Optional[str]] = [None if p == card_id else p for p in current.positions]
            if 0 <= index < len(positions):
                positions[index] = card_id
            current = replace(current, positions=tuple(positions))
        elif event.type == EventType.ORDERS_LOCKED:
            current = replace(current, status="execution", positions=tuple(event.get("positions", current.positions)))

    return BattleRecord(current=current, history=tuple(history))
