"""
Choice Consequence Slice

ACKNOWLEDGE_CHOICE_CONSEQUENCE leaves the consequence screen and routes
by what the choice triggered:

- battle, alliance  -> alliance phase (allies are gathered before a battle)
- mediation         -> MEDIATION_STARTED, mediation phase
- quest_complete    -> QUEST_SUMMARY_PRESENTED, quest_summary phase
- next_dilemma      -> DILEMMA_PRESENTED, narrative phase
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..contracts.base import derive_id
from ..contracts.commands import Command
from ..contracts.events import Event, EventType
from ..contracts.game import GamePhase, TriggersNext
from .base import (
    EventItem, SliceContext, advance_quest, batch, phase_changed, quest_summary_presented,
    require_active_quest, require_phase,
)

DEFAULT_MEDIATION_PARTIES: Tuple[str, str] = ("ironveil", "ashfall")


@dataclass(frozen=True)
class ChoiceConsequenceState:
    phase: GamePhase
    active_quest_id: Optional[str] = None
    current_dilemma_id: Optional[str] = None
    last_choice_id: Optional[str] = None
    triggers_next: Optional[str] = None


def select(game_state) -> ChoiceConsequenceState:
    return ChoiceConsequenceState(
        phase=game_state.phase,
        active_quest_id=game_state.active_quest.quest_id if game_state.active_quest else None,
        current_dilemma_id=game_state.current_dilemma_id,
        last_choice_id=game_state.last_choice_id,
        triggers_next=game_state.choice_triggers_next,
    )


def _mediation_parties(ctx: SliceContext, state: ChoiceConsequenceState) -> Tuple[str, ...]:
    dilemma = ctx.content.get_dilemma_by_id(state.current_dilemma_id) if state.current_dilemma_id else None
    choice = dilemma.get_choice(state.last_choice_id) if dilemma and state.last_choice_id else None
    if choice is not None and len(choice.consequences.mediation_parties) >= 2:
        return choice.consequences.mediation_parties[:2]
    return DEFAULT_MEDIATION_PARTIES


def handle_acknowledge_choice_consequence(
    command: Command,
    state: ChoiceConsequenceState,
    ctx: SliceContext,
) -> List[Event]:
    require_phase(state.phase, command, GamePhase.CHOICE_CONSEQUENCE)
    quest_id = require_active_quest(state.active_quest_id, command, state.phase)

    items: List[EventItem] = [
        (EventType.CHOICE_CONSEQUENCE_ACKNOWLEDGED, {
            "dilemmaId": state.current_dilemma_id or "",
            "choiceId": state.last_choice_id or "",
        }),
    ]

    following = state.triggers_next
    if following in (TriggersNext.BATTLE.value, TriggersNext.ALLIANCE.value):
        items.append(phase_changed(GamePhase.CHOICE_CONSEQUENCE, GamePhase.ALLIANCE))
    elif following == TriggersNext.MEDIATION.value:
        parties = _mediation_parties(ctx, state)
        items.append((EventType.MEDIATION_STARTED, {
            "mediationId": derive_id("mediation", quest_id, state.current_dilemma_id, state.last_choice_id, ctx.timestamp),
            "questId": quest_id,
            "partyFactionIds": list(parties),
        }))
        items.append(phase_changed(GamePhase.CHOICE_CONSEQUENCE, GamePhase.MEDIATION))
    elif following == TriggersNext.QUEST_COMPLETE.value:
        items.append(quest_summary_presented(ctx, quest_id))
        items.append(phase_changed(GamePhase.CHOICE_CONSEQUENCE, GamePhase.QUEST_SUMMARY))
    else:
        items.extend(advance_quest(
            ctx, quest_id, state.current_dilemma_id, state.last_choice_id, GamePhase.CHOICE_CONSEQUENCE
        ))
    return batch(ctx, items)
