"""
Accept Quest Slice

ACCEPT_QUEST moves the player from the quest hub into the first dilemma
of a quest. Emits exactly three events, in order:

    QUEST_ACCEPTED, PHASE_CHANGED(quest_hub -> narrative), DILEMMA_PRESENTED
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple

from ..contracts.base import ErrorCode
from ..contracts.commands import Command
from ..contracts.events import Event, EventType
from ..contracts.game import GamePhase, GameStatus
from .base import SliceContext, batch, not_found, phase_changed, precondition, require_in_progress


@dataclass(frozen=True)
class AcceptQuestState:
    status: GameStatus
    phase: GamePhase = GamePhase.QUEST_HUB
    active_quest_id: Optional[str] = None
    completed_quest_ids: Tuple[str, ...] = field(default_factory=tuple)
    reputation: Mapping[str, int] = field(default_factory=dict)


def select(game_state) -> AcceptQuestState:
    return AcceptQuestState(
        status=game_state.status,
        phase=game_state.phase,
        active_quest_id=game_state.active_quest.quest_id if game_state.active_quest else None,
        completed_quest_ids=tuple(q.quest_id for q in game_state.completed_quests),
        reputation=dict(game_state.reputation),
    )


def handle_accept_quest(command: Command, state: AcceptQuestState, ctx: SliceContext) -> List[Event]:
    require_in_progress(state.status, command)

    if state.active_quest_id is not None:
        raise precondition(
            "Already have an active quest",
            command,
            active_quest_id=state.active_quest_id,
            current_phase=state.phase.value
        )

    quest_id = command.require_str("questId")
    if quest_id in state.completed_quest_ids:
        raise precondition(f"Quest already completed: {quest_id}", command, quest_id=quest_id)

    quest = ctx.content.get_quest_by_id(quest_id)
    if quest is None:
        raise not_found(f"Quest not found: {quest_id}", ErrorCode.QUEST_NOT_FOUND, quest_id=quest_id)

    first_dilemma = ctx.content.get_quest_first_dilemma(quest_id)
    if first_dilemma is None:
        raise not_found(f"Quest has no dilemmas: {quest_id}", ErrorCode.DILEMMA_NOT_FOUND, quest_id=quest_id)

    standing = state.reputation.get(quest.faction_id, 0)
    if standing < quest.reputation_required:
        raise precondition(
            f"{quest.faction_id} reputation {standing} is below the {quest.reputation_required} this quest requires",
            command,
            quest_id=quest_id,
            faction_id=quest.faction_id
        )

    return batch(ctx, [
        (EventType.QUEST_ACCEPTED, {
            "questId": quest_id,
            "factionId": quest.faction_id,
            "initialBounty": quest.initial_bounty,
            "initialCardIds": list(quest.initial_card_ids),
        }),
        phase_changed(GamePhase.QUEST_HUB, GamePhase.NARRATIVE),
        (EventType.DILEMMA_PRESENTED, {"dilemmaId": first_dilemma.dilemma_id, "questId": quest_id}),
    ])
