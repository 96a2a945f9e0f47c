"""
Mediation Slice

Two factions at the table, the player in between. The player may lean
toward one party once; only then can a compromise be struck. Refusing to
lean collapses the talks into a battle.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..contracts.commands import Command
from ..contracts.events import Event, EventType
from ..contracts.game import GamePhase
from .base import (
    EventItem, SliceContext, batch, battle_triggered, phase_changed, precondition,
    require_active_quest, require_phase,
)


@dataclass(frozen=True)
class MediationSliceState:
    phase: GamePhase
    active_quest_id: Optional[str] = None
    mediation_id: Optional[str] = None
    parties: Tuple[str, ...] = field(default_factory=tuple)
    has_leaned: bool = False
    bounty: int = 0
    available_card_count: int = 0
    current_dilemma_id: Optional[str] = None
    last_choice_id: Optional[str] = None
    battles_fought: int = 0


def select(game_state, lock_threshold: int = -25) -> MediationSliceState:
    mediation = game_state.mediation
    return MediationSliceState(
        phase=game_state.phase,
        active_quest_id=game_state.active_quest.quest_id if game_state.active_quest else None,
        mediation_id=mediation.mediation_id if mediation else None,
        parties=mediation.parties if mediation else (),
        has_leaned=mediation.has_leaned if mediation else False,
        bounty=game_state.bounty,
        available_card_count=len(game_state.available_card_ids(lock_threshold)),
        current_dilemma_id=game_state.current_dilemma_id,
        last_choice_id=game_state.last_choice_id,
        battles_fought=len(game_state.battle_outcomes),
    )


def _require_mediation(command: Command, state: MediationSliceState) -> str:
    require_phase(state.phase, command, GamePhase.MEDIATION)
    if not state.mediation_id:
        raise precondition("No mediation in progress", command, current_phase=state.phase.value)
    return state.mediation_id


def handle_lean_toward_faction(command: Command, state: MediationSliceState, ctx: SliceContext) -> List[Event]:
    mediation_id = _require_mediation(command, state)
    if state.has_leaned:
        raise precondition("Already leaned toward a faction", command, mediation_id=mediation_id)

    toward = command.require_str("towardFactionId")
    if toward not in state.parties:
        raise precondition(
            f"{toward} is not a party to this mediation",
            command,
            faction_id=toward,
            mediation_id=mediation_id
        )
    away = next((party for party in state.parties if party != toward), "")
    return batch(ctx, [(EventType.MEDIATION_LEANED, {
        "mediationId": mediation_id,
        "towardFactionId": toward,
        "awayFromFactionId": away,
    })])


def handle_refuse_to_lean(command: Command, state: MediationSliceState, ctx: SliceContext) -> List[Event]:
    mediation_id = _require_mediation(command, state)
    quest_id = require_active_quest(state.active_quest_id, command, state.phase)
    if state.available_card_count < ctx.config.min_battle_cards:
        raise precondition(
            f"Refusing would start a battle, but you have {state.available_card_count} cards "
            f"and battle requires {ctx.config.min_battle_cards}.",
            command,
            mediation_id=mediation_id
        )

    items: List[EventItem] = [
        (EventType.MEDIATION_COLLAPSED, {
            "mediationId": mediation_id,
            "reason": "Player refused to lean toward either party",
            "battleTriggered": True,
        }),
        battle_triggered(
            ctx, quest_id, "Mediation collapsed - the talks end in gunfire",
            seed=(mediation_id, state.battles_fought),
        ),
        phase_changed(GamePhase.MEDIATION, GamePhase.CARD_SELECTION),
    ]
    return batch(ctx, items)


def handle_accept_compromise(command: Command, state: MediationSliceState, ctx: SliceContext) -> List[Event]:
    mediation_id = _require_mediation(command, state)
    if not state.has_leaned:
        raise precondition(
            "Must lean toward a faction before accepting compromise",
            command,
            mediation_id=mediation_id
        )

    modifier = ctx.config.compromise_bounty_modifier
    items: List[EventItem] = [
        (EventType.COMPROMISE_ACCEPTED, {
            "mediationId": mediation_id,
            "terms": "Diplomatic resolution reached",
            "bountyModifier": modifier,
        }),
    ]
    new_bounty = max(0, int(state.bounty * modifier))
    if new_bounty != state.bounty:
        items.append((EventType.BOUNTY_MODIFIED, {
            "amount": new_bounty - state.bounty,
            "newValue": new_bounty,
            "source": "mediation",
            "reason": "Compromise terms",
        }))
    items.append(phase_changed(GamePhase.MEDIATION, GamePhase.CONSEQUENCE))
    return batch(ctx, items)
