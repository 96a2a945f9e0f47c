"""
Deployment Slice

Place the committed fleet on the battle line, then lock orders.
Positions are 1-based; placing a card moves it off any slot it held.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..contracts.commands import Command
from ..contracts.events import Event, EventType
from ..contracts.game import GamePhase
from .base import SliceContext, batch, phase_changed, precondition, require_phase


@dataclass(frozen=True)
class DeploymentState:
    phase: GamePhase
    battle_id: Optional[str] = None
    fleet_card_ids: Tuple[str, ...] = field(default_factory=tuple)
    positions: Tuple[Optional[str], ...] = field(default_factory=tuple)


def select(game_state) -> DeploymentState:
    battle = game_state.current_battle
    if battle is None:
        return DeploymentState(phase=game_state.phase)
    return DeploymentState(
        phase=game_state.phase,
        battle_id=battle.battle_id,
        fleet_card_ids=battle.selected_card_ids,
        positions=battle.positions,
    )


def _require_deployment(command: Command, state: DeploymentState) -> str:
    require_phase(state.phase, command, GamePhase.DEPLOYMENT)
    if not state.battle_id:
        raise precondition("No active battle", command, current_phase=state.phase.value)
    return state.battle_id


def handle_set_card_position(command: Command, state: DeploymentState, ctx: SliceContext) -> List[Event]:
    battle_id = _require_deployment(command, state)
    card_id = command.require_str("cardId")
    position = command.require_int("position")

    total = ctx.config.total_positions
    if not 1 <= position <= total:
        raise precondition(f"Position must be between 1 and {total}", command, position=position)
    if card_id not in state.fleet_card_ids:
        raise precondition(f"Card not in fleet: {card_id}", command, card_id=card_id)

    return batch(ctx, [(EventType.CARD_POSITIONED, {
        "cardId": card_id,
        "position": position,
        "battleId": battle_id,
    })])


def handle_lock_orders(command: Command, state: DeploymentState, ctx: SliceContext) -> List[Event]:
    """
    Lock the battle line.

    An explicit `positions` list overrides the projected placements; either
    way every slot must hold a distinct fleet card.
    """
    battle_id = _require_deployment(command, state)
    raw = command.data.get("positions")
    positions = list(raw) if raw is not None else list(state.positions)

    total = ctx.config.total_positions
    if len(positions) != total or any(not p for p in positions):
        raise precondition(f"All {total} positions must be filled", command, battle_id=battle_id)
    if len(set(positions)) != total:
        raise precondition("A card may hold only one position", command, battle_id=battle_id)
    for card_id in positions:
        if card_id not in state.fleet_card_ids:
            raise precondition(f"Card not in fleet: {card_id}", command, card_id=card_id)

    return batch(ctx, [
        (EventType.ORDERS_LOCKED, {"battleId": battle_id, "positions": positions}),
        phase_changed(GamePhase.DEPLOYMENT, GamePhase.BATTLE),
    ])
