"""
Card Selection Slice

Choose the fleet for the triggered battle. Only owned cards whose
faction still tolerates the player (not locked) may be fielded.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..contracts.commands import Command
from ..contracts.events import Event, EventType
from ..contracts.game import GamePhase
from .base import SliceContext, batch, phase_changed, precondition, require_phase


@dataclass(frozen=True)
class CardSelectionState:
    phase: GamePhase
    battle_id: Optional[str] = None
    selected_card_ids: Tuple[str, ...] = field(default_factory=tuple)
    owned_card_ids: Tuple[str, ...] = field(default_factory=tuple)
    locked_card_ids: Tuple[str, ...] = field(default_factory=tuple)


def select(game_state, lock_threshold: int = -25) -> CardSelectionState:
    battle = game_state.current_battle
    owned = game_state.owned_card_ids()
    return CardSelectionState(
        phase=game_state.phase,
        battle_id=battle.battle_id if battle else None,
        selected_card_ids=battle.selected_card_ids if battle else (),
        owned_card_ids=owned,
        locked_card_ids=tuple(c for c in owned if game_state.is_card_locked(c, lock_threshold)),
    )


def _require_battle(command: Command, state: CardSelectionState) -> str:
    require_phase(state.phase, command, GamePhase.CARD_SELECTION)
    if not state.battle_id:
        raise precondition("No active battle", command, current_phase=state.phase.value)
    return state.battle_id


def _require_fieldable(command: Command, state: CardSelectionState, card_id: str) -> None:
    if card_id not in state.owned_card_ids:
        raise precondition(f"Card not owned: {card_id}", command, card_id=card_id)
    if card_id in state.locked_card_ids:
        raise precondition(f"Card is locked: {card_id}", command, card_id=card_id)


def handle_select_card(command: Command, state: CardSelectionState, ctx: SliceContext) -> List[Event]:
    battle_id = _require_battle(command, state)
    card_id = command.require_str("cardId")
    if len(state.selected_card_ids) >= ctx.config.max_fleet_size:
        raise precondition(f"Already selected {ctx.config.max_fleet_size} cards", command, card_id=card_id)
    if card_id in state.selected_card_ids:
        raise precondition("Card already selected", command, card_id=card_id)
    _require_fieldable(command, state, card_id)
    return batch(ctx, [(EventType.CARD_SELECTED, {"cardId": card_id, "battleId": battle_id})])


def handle_deselect_card(command: Command, state: CardSelectionState, ctx: SliceContext) -> List[Event]:
    battle_id = _require_battle(command, state)
    card_id = command.require_str("cardId")
    if card_id not in state.selected_card_ids:
        raise precondition("Card not selected", command, card_id=card_id)
    return batch(ctx, [(EventType.CARD_DESELECTED, {"cardId": card_id, "battleId": battle_id})])


def handle_commit_fleet(command: Command, state: CardSelectionState, ctx: SliceContext) -> List[Event]:
    """Commit the listed cards, or the current selection when none are listed."""
    battle_id = _require_battle(command, state)
    raw = command.data.get("cardIds")
    card_ids = list(raw) if raw is not None else list(state.selected_card_ids)

    size = ctx.config.max_fleet_size
    if len(card_ids) != size or len(set(card_ids)) != size:
        raise precondition(f"Must select exactly {size} distinct cards", command, battle_id=battle_id)
    for card_id in card_ids:
        _require_fieldable(command, state, card_id)

    return batch(ctx, [
        (EventType.FLEET_COMMITTED, {"battleId": battle_id, "cardIds": card_ids}),
        phase_changed(GamePhase.CARD_SELECTION, GamePhase.DEPLOYMENT),
    ])
