"""
API Mapper
==========

Transforms projected game state and typed failures into response DTOs.
Keys are camelCase to match the event wire format.
"""
from typing import Any, Dict

from ..contracts.base import (
    GameError, InvalidTransition, NotFoundError, StructuralError,
    UnknownCommand, UnknownEventType, ValidationError, ErrorCode,
)
from ..projections.game_state import BattleState, GameState
from ..storage import SavePreview


def map_battle(battle: BattleState) -> Dict[str, Any]:
    return {
        "battleId": battle.battle_id,
        "questId": battle.quest_id,
        "phase": battle.phase,
        "selectedCardIds": list(battle.selected_card_ids),
        "positions": list(battle.positions),
        "opponentType": battle.opponent_type,
        "opponentFactionId": battle.opponent_faction_id,
        "difficulty": battle.difficulty,
        "context": battle.context,
        "outcome": battle.outcome,
        "outcomeAcknowledged": battle.outcome_acknowledged,
    }


def map_state_to_dto(state: GameState) -> Dict[str, Any]:
    """Map a projected GameState to its response DTO."""
    quest = state.active_quest
    return {
        "playerId": state.player_id,
        "status": state.status.value,
        "phase": state.phase.value,
        "bounty": state.bounty,
        "reputation": dict(state.reputation),
        "ownedCards": [
            {"cardId": c.card_id, "factionId": c.faction_id, "source": c.source, "acquiredAt": c.acquired_at}
            for c in state.owned_cards
        ],
        "availableQuestIds": list(state.available_quest_ids),
        "activeQuest": None if quest is None else {
            "questId": quest.quest_id,
            "factionId": quest.faction_id,
            "currentDilemmaIndex": quest.current_dilemma_index,
            "dilemmasCompleted": quest.dilemmas_completed,
            "alliances": [
                {"factionId": a.faction_id, "bountyShare": a.bounty_share, "isSecret": a.is_secret}
                for a in quest.alliances
            ],
            "battlesWon": quest.battles_won,
            "battlesLost": quest.battles_lost,
        },
        "completedQuests": [
            {"questId": q.quest_id, "outcome": q.outcome, "finalBounty": q.final_bounty, "completedAt": q.completed_at}
            for q in state.completed_quests
        ],
        "currentDilemmaId": state.current_dilemma_id,
        "currentBattle": map_battle(state.current_battle) if state.current_battle else None,
        "mediation": None if state.mediation is None else {
            "mediationId": state.mediation.mediation_id,
            "parties": list(state.mediation.parties),
            "hasLeaned": state.mediation.has_leaned,
            "leanedToward": state.mediation.leaned_toward,
        },
        "flags": dict(state.flags),
        "choicesMade": state.choices_made,
        "narrativeSessionId": state.narrative_session_id,
        "eventsApplied": state.events_applied,
    }


def map_save_preview(preview: SavePreview) -> Dict[str, Any]:
    return preview.to_dict()


def status_for(error: GameError) -> int:
    """HTTP status of a typed failure."""
    if isinstance(error, (UnknownCommand, UnknownEventType)):
        return 422
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, StructuralError):
        return 409
    if isinstance(error, (ValidationError, InvalidTransition)):
        return 400
    if error.code == ErrorCode.STORE_WRITE_FAILED:
        return 500
    return 400


def map_error(error: GameError) -> Dict[str, Any]:
    return {
        "error": {
            "code": error.code.name,
            "message": error.message,
            "context": dict(error.error.context),
        }
    }
