"""
Battle Resolution Slice

RESOLVE_BATTLE is submitted by the external battle resolver once the
locked orders have been fought out. The core only records the result.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

from ..contracts.base import ErrorCode, ValidationError
from ..contracts.commands import Command
from ..contracts.events import Event, EventType
from ..contracts.game import BattleOutcome, GamePhase
from .base import SliceContext, batch, phase_changed, precondition, require_phase


@dataclass(frozen=True)
class BattleResolutionState:
    phase: GamePhase
    battle_id: Optional[str] = None
    outcome: Optional[str] = None


def select(game_state) -> BattleResolutionState:
    battle = game_state.current_battle
    return BattleResolutionState(
        phase=game_state.phase,
        battle_id=battle.battle_id if battle else None,
        outcome=battle.outcome if battle else None,
    )


def _rounds(command: Command, key: str) -> int:
    value = command.data.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(
            f"{command.type.value} field '{key}' must be a non-negative integer",
            code=ErrorCode.INVALID_PAYLOAD,
            command_type=command.type.value
        )
    return value


def handle_resolve_battle(command: Command, state: BattleResolutionState, ctx: SliceContext) -> List[Event]:
    require_phase(state.phase, command, GamePhase.BATTLE)
    if not state.battle_id:
        raise precondition("No active battle", command, current_phase=state.phase.value)
    if state.outcome is not None:
        raise precondition("Battle already resolved", command, battle_id=state.battle_id)

    battle_id = command.require_str("battleId")
    if battle_id != state.battle_id:
        raise precondition(
            f"Battle {battle_id} is not the current battle",
            command,
            battle_id=battle_id,
            current_battle_id=state.battle_id
        )

    raw_outcome = command.require_str("outcome")
    try:
        outcome = BattleOutcome(raw_outcome)
    except ValueError:
        raise ValidationError(
            f"Unknown battle outcome: {raw_outcome}",
            code=ErrorCode.INVALID_PAYLOAD,
            command_type=command.type.value
        )

    return batch(ctx, [
        (EventType.BATTLE_RESOLVED, {
            "battleId": battle_id,
            "outcome": outcome.value,
            "roundsWon": _rounds(command, "roundsWon"),
            "roundsLost": _rounds(command, "roundsLost"),
            "roundsDrawn": _rounds(command, "roundsDrawn"),
        }),
        phase_changed(GamePhase.BATTLE, GamePhase.CONSEQUENCE),
    ])
