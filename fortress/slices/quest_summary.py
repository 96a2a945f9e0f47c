"""
Quest Summary Slice

ACKNOWLEDGE_QUEST_SUMMARY closes the active quest.

EMITS:
======
    QUEST_SUMMARY_ACKNOWLEDGED
    QUEST_COMPLETED
    then, if completed + 1 >= total quests:
        GAME_ENDED, PHASE_CHANGED(quest_summary -> ending)
    otherwise:
        PHASE_CHANGED(quest_summary -> quest_hub)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

from ..contracts.commands import Command
from ..contracts.events import Event, EventType
from ..contracts.game import GamePhase
from .base import EventItem, SliceContext, batch, phase_changed, require_active_quest, require_phase


@dataclass(frozen=True)
class QuestSummaryState:
    phase: GamePhase
    active_quest_id: Optional[str] = None
    completed_quests_count: int = 0
    bounty: int = 0


def select(game_state) -> QuestSummaryState:
    return QuestSummaryState(
        phase=game_state.phase,
        active_quest_id=game_state.active_quest.quest_id if game_state.active_quest else None,
        completed_quests_count=len(game_state.completed_quests),
        bounty=game_state.bounty,
    )


def is_final_quest(completed_quests_count: int, total_quests: int) -> bool:
    return completed_quests_count + 1 >= total_quests


def handle_acknowledge_quest_summary(command: Command, state: QuestSummaryState, ctx: SliceContext) -> List[Event]:
    require_phase(state.phase, command, GamePhase.QUEST_SUMMARY)
    quest_id = require_active_quest(state.active_quest_id, command, state.phase)

    items: List[EventItem] = [
        (EventType.QUEST_SUMMARY_ACKNOWLEDGED, {"questId": quest_id}),
        (EventType.QUEST_COMPLETED, {
            "questId": quest_id,
            "outcome": "completed",
            "finalBounty": state.bounty,
        }),
    ]

    total = ctx.config.total_quests
    if is_final_quest(state.completed_quests_count, total):
        items.append((EventType.GAME_ENDED, {
            "finalBounty": state.bounty,
            "questsCompleted": state.completed_quests_count + 1,
            "totalQuests": total,
        }))
        items.append(phase_changed(GamePhase.QUEST_SUMMARY, GamePhase.ENDING))
    else:
        items.append(phase_changed(GamePhase.QUEST_SUMMARY, GamePhase.QUEST_HUB))
    return batch(ctx, items)
