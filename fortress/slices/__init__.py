"""
Slice Registry

Maps every CommandType to the handler that validates it and the selector
that narrows the projected session down to the state that handler reads.

    binding = binding_for(command.type)
    events = binding.handle(command, projection, ctx)

The table is checked at import time to cover the whole command vocabulary.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from ..config import GameConfig
from ..contracts.base import UnknownCommand
from ..contracts.commands import Command, CommandType
from ..contracts.events import Event
from ..narrative.engine import NarrativeSessionState
from .base import SliceContext
from . import (
    accept_quest,
    alliance,
    battle_resolution,
    card_selection,
    choice_consequence,
    consequence,
    deployment,
    make_choice,
    mediation,
    narrative,
    quest_summary,
    start_game,
)


@dataclass(frozen=True)
class SessionProjection:
    """Projected views of one session that selectors may read."""
    game_state: Any
    narrative_session: NarrativeSessionState
    config: GameConfig


Selector = Callable[[SessionProjection], Any]
Handler = Callable[[Command, Any, SliceContext], List[Event]]


@dataclass(frozen=True)
class SliceBinding:
    command_type: CommandType
    handler: Handler
    select: Selector

    def handle(self, command: Command, projection: SessionProjection, ctx: SliceContext) -> List[Event]:
        return self.handler(command, self.select(projection), ctx)


def _plain(select: Callable[[Any], Any]) -> Selector:
    return lambda p: select(p.game_state)


def _locking(select: Callable[[Any, int], Any]) -> Selector:
    return lambda p: select(p.game_state, p.config.card_lock_threshold)


def _narrative(p: SessionProjection) -> narrative.NarrativeSliceState:
    return narrative.select(p.game_state, p.narrative_session)


_BINDINGS: Dict[CommandType, SliceBinding] = {
    binding.command_type: binding
    for binding in (
        SliceBinding(CommandType.START_GAME, start_game.handle_start_game, _plain(start_game.select)),
        SliceBinding(CommandType.ACCEPT_QUEST, accept_quest.handle_accept_quest, _plain(accept_quest.select)),
        SliceBinding(CommandType.MAKE_CHOICE, make_choice.handle_make_choice, _plain(make_choice.select)),
        SliceBinding(
            CommandType.ACKNOWLEDGE_CHOICE_CONSEQUENCE,
            choice_consequence.handle_acknowledge_choice_consequence,
            _plain(choice_consequence.select),
        ),
        SliceBinding(CommandType.FORM_ALLIANCE, alliance.handle_form_alliance, _locking(alliance.select)),
        SliceBinding(CommandType.REJECT_ALLIANCE_TERMS, alliance.handle_reject_alliance_terms, _locking(alliance.select)),
        SliceBinding(CommandType.DECLINE_ALL_ALLIANCES, alliance.handle_decline_all_alliances, _locking(alliance.select)),
        SliceBinding(CommandType.FINALIZE_ALLIANCES, alliance.handle_finalize_alliances, _locking(alliance.select)),
        SliceBinding(CommandType.LEAN_TOWARD_FACTION, mediation.handle_lean_toward_faction, _locking(mediation.select)),
        SliceBinding(CommandType.REFUSE_TO_LEAN, mediation.handle_refuse_to_lean, _locking(mediation.select)),
        SliceBinding(CommandType.ACCEPT_COMPROMISE, mediation.handle_accept_compromise, _locking(mediation.select)),
        SliceBinding(CommandType.SELECT_CARD, card_selection.handle_select_card, _locking(card_selection.select)),
        SliceBinding(CommandType.DESELECT_CARD, card_selection.handle_deselect_card, _locking(card_selection.select)),
        SliceBinding(CommandType.COMMIT_FLEET, card_selection.handle_commit_fleet, _locking(card_selection.select)),
        SliceBinding(CommandType.SET_CARD_POSITION, deployment.handle_set_card_position, _plain(deployment.select)),
        SliceBinding(CommandType.LOCK_ORDERS, deployment.handle_lock_orders, _plain(deployment.select)),
        SliceBinding(
            CommandType.RESOLVE_BATTLE,
            battle_resolution.handle_resolve_battle,
            _plain(battle_resolution.select),
        ),
        SliceBinding(CommandType.ACKNOWLEDGE_OUTCOME, consequence.handle_acknowledge_outcome, _plain(consequence.select)),
        SliceBinding(
            CommandType.CONTINUE_TO_NEXT_PHASE,
            consequence.handle_continue_to_next_phase,
            _plain(consequence.select),
        ),
        SliceBinding(
            CommandType.ACKNOWLEDGE_QUEST_SUMMARY,
            quest_summary.handle_acknowledge_quest_summary,
            _plain(quest_summary.select),
        ),
        SliceBinding(CommandType.BEGIN_NARRATIVE, narrative.handle_begin_narrative, _narrative),
        SliceBinding(CommandType.CHOOSE_TRANSITION, narrative.handle_choose_transition, _narrative),
    )
}

_missing = [t.value for t in CommandType if t not in _BINDINGS]
if _missing:
    raise RuntimeError(f"Slice registry has no handler for: {', '.join(_missing)}")


def binding_for(command_type: CommandType) -> SliceBinding:
    try:
        return _BINDINGS[command_type]
    except KeyError:
        raise UnknownCommand(f"No slice handles {command_type}", command_type=str(command_type))


def handle_command(command: Command, projection: SessionProjection, ctx: SliceContext) -> List[Event]:
    """Validate a command against the projection and return its event batch."""
    return binding_for(command.type).handle(command, projection, ctx)


__all__ = [
    "SliceContext", "SessionProjection", "SliceBinding",
    "binding_for", "handle_command",
]
