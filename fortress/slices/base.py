"""
Slice Building Blocks

A slice pairs one command type with its validation rules and the events
it produces. Every handler has the same shape:

    handle_<command>(command, state, ctx) -> List[Event]

RULES:
======
- Pure: no I/O, no clock reads, no mutation of `state`
- Rules are checked in a fixed order: phase, preconditions, content
- A failed rule raises before any event exists (no partial batches)
- Every event of one command carries ctx.timestamp
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..config import GameConfig
from ..content.repository import ContentRepository
from ..contracts.base import ErrorCode, NotFoundError, ValidationError, derive_id
from ..contracts.commands import Command
from ..contracts.events import Event, EventType, create_batch
from ..contracts.game import BattleTrigger, GamePhase, GameStatus

EventItem = Tuple[EventType, Dict[str, Any]]

DEFAULT_OPPONENT_TYPE = "enemy_forces"
DEFAULT_OPPONENT_FACTION = "scavengers"
DEFAULT_DIFFICULTY = "medium"


@dataclass(frozen=True)
class SliceContext:
    """Everything a handler may read besides its state slice."""
    content: ContentRepository
    config: GameConfig
    timestamp: str


# =============================================================================
# RULE HELPERS
# =============================================================================

def require_in_progress(status: GameStatus, command: Command) -> None:
    if status != GameStatus.IN_PROGRESS:
        raise ValidationError(
            "Game not in progress",
            code=ErrorCode.GAME_NOT_IN_PROGRESS,
            command_type=command.type.value,
            status=status.value
        )


def require_phase(phase: GamePhase, command: Command, *allowed: GamePhase) -> None:
    if phase not in allowed:
        expected = " or ".join(p.value for p in allowed)
        raise ValidationError(
            f"{command.type.value} requires phase {expected}, current phase is {phase.value}",
            code=ErrorCode.INVALID_PHASE,
            command_type=command.type.value,
            current_phase=phase.value
        )


def require_active_quest(quest_id: Optional[str], command: Command, phase: GamePhase) -> str:
    if not quest_id:
        raise ValidationError(
            "No active quest",
            code=ErrorCode.PRECONDITION_FAILED,
            command_type=command.type.value,
            current_phase=phase.value
        )
    return quest_id


def precondition(message: str, command: Command, **context: object) -> ValidationError:
    return ValidationError(
        message,
        code=ErrorCode.PRECONDITION_FAILED,
        command_type=command.type.value,
        **context
    )


def not_found(message: str, code: ErrorCode, **context: object) -> NotFoundError:
    return NotFoundError(message, code=code, **context)


# =============================================================================
# EVENT ITEM BUILDERS
# =============================================================================

def phase_changed(from_phase: GamePhase, to_phase: GamePhase) -> EventItem:
    return (EventType.PHASE_CHANGED, {"fromPhase": from_phase.value, "toPhase": to_phase.value})


def battle_triggered(
    ctx: SliceContext,
    quest_id: Optional[str],
    context: str,
    trigger: Optional[BattleTrigger] = None,
    seed: Iterable[object] = (),
) -> EventItem:
    """
    BATTLE_TRIGGERED for the battle resolver.

    The battle id is derived from the quest, the seed parts and the command
    timestamp, so replaying the same commands yields the same id.
    """
    battle_id = derive_id("battle", quest_id, ctx.timestamp, *seed)
    return (EventType.BATTLE_TRIGGERED, {
        "battleId": battle_id,
        "questId": quest_id,
        "context": trigger.context if trigger else context,
        "opponentType": trigger.opponent_type if trigger else DEFAULT_OPPONENT_TYPE,
        "opponentFactionId": (trigger.opponent_faction_id if trigger else None) or DEFAULT_OPPONENT_FACTION,
        "difficulty": trigger.difficulty if trigger else DEFAULT_DIFFICULTY,
        "source": "slice",
    })


def quest_summary_presented(ctx: SliceContext, quest_id: str) -> EventItem:
    quest = ctx.content.get_quest_by_id(quest_id)
    return (EventType.QUEST_SUMMARY_PRESENTED, {
        "questId": quest_id,
        "questTitle": quest.title if quest else quest_id,
        "outcome": "completed",
    })


def batch(ctx: SliceContext, items: Iterable[EventItem]) -> List[Event]:
    return create_batch(ctx.timestamp, items)


def next_dilemma_id(ctx: SliceContext, quest_id: str, dilemma_id: Optional[str], choice_id: Optional[str]) -> Optional[str]:
    """The dilemma a choice leads to: its explicit follow-up, else the next in quest order."""
    if dilemma_id is None:
        return None
    dilemma = ctx.content.get_dilemma_by_id(dilemma_id)
    choice = dilemma.get_choice(choice_id) if dilemma is not None and choice_id else None
    if choice is not None and choice.consequences.next_dilemma_id:
        return choice.consequences.next_dilemma_id
    following = ctx.content.get_next_dilemma(quest_id, dilemma_id)
    return following.dilemma_id if following is not None else None


def advance_quest(
    ctx: SliceContext,
    quest_id: str,
    dilemma_id: Optional[str],
    choice_id: Optional[str],
    from_phase: GamePhase,
) -> List[EventItem]:
    """Present the next dilemma, or the quest summary once the chain is exhausted."""
    following = None
    if not ctx.content.is_last_dilemma(quest_id, dilemma_id):
        following = next_dilemma_id(ctx, quest_id, dilemma_id, choice_id)
    if following is None:
        return [quest_summary_presented(ctx, quest_id), phase_changed(from_phase, GamePhase.QUEST_SUMMARY)]
    return [
        (EventType.DILEMMA_PRESENTED, {"dilemmaId": following, "questId": quest_id}),
        phase_changed(from_phase, GamePhase.NARRATIVE),
    ]
