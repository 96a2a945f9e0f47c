"""
Start Game Slice

START_GAME opens a session: the starter fleet is granted and the quest
board is generated from content.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List

from ..contracts.base import ErrorCode, ValidationError
from ..contracts.commands import Command
from ..contracts.events import Event, EventType
from ..contracts.game import GamePhase, GameStatus
from .base import SliceContext, batch, phase_changed

DEFAULT_PLAYER_ID = "player"


@dataclass(frozen=True)
class StartGameState:
    status: GameStatus
    phase: GamePhase


def select(game_state) -> StartGameState:
    return StartGameState(status=game_state.status, phase=game_state.phase)


def handle_start_game(command: Command, state: StartGameState, ctx: SliceContext) -> List[Event]:
    if state.status != GameStatus.NOT_STARTED:
        raise ValidationError(
            "Game already started",
            code=ErrorCode.INVALID_PHASE,
            command_type=command.type.value,
            current_phase=state.phase.value
        )

    player_id = command.data.get("playerId") or DEFAULT_PLAYER_ID
    items = [
        (EventType.GAME_STARTED, {"playerId": player_id}),
        phase_changed(GamePhase.NOT_STARTED, GamePhase.QUEST_HUB),
    ]
    for card_id in ctx.content.starter_card_ids():
        items.append((EventType.CARD_GAINED, {
            "cardId": card_id,
            "factionId": ctx.content.get_card_faction(card_id) or "",
            "source": "starter",
        }))
    items.append((EventType.QUESTS_GENERATED, {"questIds": list(ctx.content.list_quest_ids())}))
    return batch(ctx, items)
