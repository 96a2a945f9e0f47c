"""
Consequence Slice

The aftermath screen after a battle or a struck compromise.

- ACKNOWLEDGE_OUTCOME: once per resolved battle
- CONTINUE_TO_NEXT_PHASE: next dilemma, quest summary, or back to the hub
  when no quest is active
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

from ..contracts.commands import Command
from ..contracts.events import Event, EventType
from ..contracts.game import GamePhase
from .base import SliceContext, advance_quest, batch, phase_changed, precondition, require_phase


@dataclass(frozen=True)
class ConsequenceState:
    phase: GamePhase
    active_quest_id: Optional[str] = None
    current_dilemma_id: Optional[str] = None
    last_choice_id: Optional[str] = None
    battle_id: Optional[str] = None
    battle_resolved: bool = False
    outcome_acknowledged: bool = False


def select(game_state) -> ConsequenceState:
    battle = game_state.current_battle
    return ConsequenceState(
        phase=game_state.phase,
        active_quest_id=game_state.active_quest.quest_id if game_state.active_quest else None,
        current_dilemma_id=game_state.current_dilemma_id,
        last_choice_id=game_state.last_choice_id,
        battle_id=battle.battle_id if battle else None,
        battle_resolved=battle is not None and battle.outcome is not None,
        outcome_acknowledged=battle.outcome_acknowledged if battle else False,
    )


def handle_acknowledge_outcome(command: Command, state: ConsequenceState, ctx: SliceContext) -> List[Event]:
    require_phase(state.phase, command, GamePhase.CONSEQUENCE)
    if not state.battle_resolved:
        raise precondition("Battle not yet resolved", command, current_phase=state.phase.value)
    if state.outcome_acknowledged:
        raise precondition("Outcome already acknowledged", command, battle_id=state.battle_id)
    return batch(ctx, [(EventType.OUTCOME_ACKNOWLEDGED, {"battleId": state.battle_id})])


def handle_continue_to_next_phase(command: Command, state: ConsequenceState, ctx: SliceContext) -> List[Event]:
    require_phase(state.phase, command, GamePhase.CONSEQUENCE)
    if not state.active_quest_id:
        return batch(ctx, [phase_changed(GamePhase.CONSEQUENCE, GamePhase.QUEST_HUB)])
    return batch(ctx, advance_quest(
        ctx, state.active_quest_id, state.current_dilemma_id, state.last_choice_id, GamePhase.CONSEQUENCE
    ))
