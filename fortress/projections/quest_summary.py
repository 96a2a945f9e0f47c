"""
Quest Summary Read Model

Report of the most recently presented quest summary.

ANCHORS:
========
1. The last QUEST_SUMMARY_PRESENTED picks the quest
2. The last QUEST_ACCEPTED of that quest before it opens the window
3. Only events between the two anchors are folded into the report

Anchor seeking is an optimization only: the window holds exactly the
events a full scan would attribute to the quest.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from ..contracts.events import Event, EventType
from ..contracts.game import FACTION_IDS, reputation_status


@dataclass(frozen=True)
class FactionDelta:
    faction_id: str
    start_value: int
    end_value: int

    @property
    def net_change(self) -> int:
        return self.end_value - self.start_value


@dataclass(frozen=True)
class CardChange:
    card_id: str
    faction_id: str


@dataclass(frozen=True)
class ChoiceRecord:
    dilemma_id: str
    choice_id: str


@dataclass(frozen=True)
class QuestSummaryView:
    quest_id: str = ""
    quest_title: str = ""
    faction_id: str = ""
    outcome: str = "completed"
    starting_bounty: int = 0
    ending_bounty: int = 0
    reputation_summary: Tuple[FactionDelta, ...] = field(default_factory=tuple)
    cards_gained: Tuple[CardChange, ...] = field(default_factory=tuple)
    cards_lost: Tuple[CardChange, ...] = field(default_factory=tuple)
    choices: Tuple[ChoiceRecord, ...] = field(default_factory=tuple)
    battles_won: int = 0
    battles_lost: int = 0
    battles_drawn: int = 0
    remaining_quests: int = 0
    is_ready: bool = False

    @property
    def net_bounty(self) -> int:
        return self.ending_bounty - self.starting_bounty

    @property
    def net_card_change(self) -> int:
        return len(self.cards_gained) - len(self.cards_lost)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questId": self.quest_id,
            "questTitle": self.quest_title,
            "factionId": self.faction_id,
            "outcome": self.outcome,
            "startingBounty": self.starting_bounty,
            "endingBounty": self.ending_bounty,
            "netBounty": self.net_bounty,
            "reputationSummary": [
                {
                    "factionId": d.faction_id,
                    "startValue": d.start_value,
                    "endValue": d.end_value,
                    "netChange": d.net_change,
                    "status": reputation_status(d.end_value).value,
                }
                for d in self.reputation_summary
            ],
            "cardsGained": [{"cardId": c.card_id, "factionId": c.faction_id} for c in self.cards_gained],
            "cardsLost": [{"cardId": c.card_id, "factionId": c.faction_id} for c in self.cards_lost],
            "netCardChange": self.net_card_change,
            "choices": [{"dilemmaId": c.dilemma_id, "choiceId": c.choice_id} for c in self.choices],
            "battlesWon": self.battles_won,
            "battlesLost": self.battles_lost,
            "battlesDrawn": self.battles_drawn,
            "remainingQuests": self.remaining_quests,
            "isReady": self.is_ready,
        }


def order_reputation_deltas(deltas: Iterable[FactionDelta]) -> Tuple[FactionDelta, ...]:
    """Drop zero net changes; sort by absolute net change, descending, stable."""
    changed = [d for d in deltas if d.net_change != 0]
    return tuple(sorted(changed, key=lambda d: abs(d.net_change), reverse=True))


def _last_index(events: Sequence[Event], event_type: EventType, before: int, **match) -> int:
    for i in range(before - 1, -1, -1):
        event = events[i]
        if event.type == event_type and all(event.get(k) == v for k, v in match.items()):
            return i
    return -1


def project_quest_summary(events: Sequence[Event], total_quests: int = 3) -> QuestSummaryView:
    summary_index = _last_index(events, EventType.QUEST_SUMMARY_PRESENTED, len(events))
    if summary_index == -1:
        return QuestSummaryView()

    summary = events[summary_index]
    quest_id = summary.get("questId", "")
    completed = {e.get("questId") for e in events if e.type == EventType.QUEST_COMPLETED}
    base = dict(
        quest_id=quest_id,
        quest_title=summary.get("questTitle", ""),
        outcome=summary.get("outcome", "completed"),
        remaining_quests=max(0, total_quests - len(completed)),
        is_ready=True,
    )

    accepted_index = _last_index(events, EventType.QUEST_ACCEPTED, summary_index, questId=quest_id)
    if accepted_index == -1:
        return QuestSummaryView(**base)

    # Standing before the quest opened
    reputation_start: Dict[str, int] = {f: 0 for f in FACTION_IDS}
    bounty = 0
    for event in events[:accepted_index]:
        if event.type == EventType.REPUTATION_CHANGED:
            reputation_start[event.get("factionId")] = int(event.get("newValue", 0))
        elif event.type == EventType.BOUNTY_MODIFIED:
            bounty = int(event.get("newValue", bounty))
        elif event.type == EventType.QUEST_ACCEPTED:
            bounty += int(event.get("initialBounty", 0))

    accepted = events[accepted_index]
    starting_bounty = bounty + int(accepted.get("initialBounty", 0))
    ending_bounty = starting_bounty
    reputation_end = dict(reputation_start)
    gained: List[CardChange] = []
    lost: List[CardChange] = []
    choices: List[ChoiceRecord] = []
    won = lost_battles = drawn = 0

    for event in events[accepted_index + 1:summary_index + 1]:
        if event.type == EventType.REPUTATION_CHANGED:
            reputation_end[event.get("factionId")] = int(event.get("newValue", 0))
        elif event.type == EventType.BOUNTY_MODIFIED:
            ending_bounty = int(event.get("newValue", ending_bounty))
        elif event.type == EventType.CARD_GAINED:
            gained.append(CardChange(event.get("cardId", ""), event.get("factionId", "")))
        elif event.type == EventType.CARD_LOST:
            lost.append(CardChange(event.get("cardId", ""), event.get("factionId", "")))
        elif event.type == EventType.CHOICE_MADE:
            choices.append(ChoiceRecord(event.get("dilemmaId", ""), event.get("choiceId", "")))
        elif event.type == EventType.BATTLE_RESOLVED:
            outcome = event.get("outcome")
            if outcome == "victory":
                won += 1
            elif outcome == "defeat":
                lost_battles += 1
            else:
                drawn += 1

    deltas = [
        FactionDelta(f, reputation_start.get(f, 0), reputation_end.get(f, 0))
        for f in reputation_end
    ]
    return QuestSummaryView(
        faction_id=accepted.get("factionId", ""),
        starting_bounty=starting_bounty,
        ending_bounty=ending_bounty,
        reputation_summary=order_reputation_deltas(deltas),
        cards_gained=tuple(gained),
        cards_lost=tuple(lost),
        choices=tuple(choices),
        battles_won=won,
        battles_lost=lost_battles,
        battles_drawn=drawn,
        **base
    )
