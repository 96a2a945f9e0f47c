"""
Contracts shared by every layer: errors, identities, events, commands and
the game's domain vocabulary.
"""

from .base import (
    ErrorCode, Error, GameError, ValidationError, NotFoundError,
    StructuralError, NodeNotRevisitable, InvalidTransition,
    UnknownCommand, UnknownEventType, SessionId, Timestamp, derive_id,
)
from .events import Event, EventType, create_batch
from .commands import Command, CommandType
from .game import GamePhase, GameStatus, ReputationStatus, reputation_status

__all__ = [
    "ErrorCode", "Error", "GameError", "ValidationError", "NotFoundError",
    "StructuralError", "NodeNotRevisitable", "InvalidTransition",
    "UnknownCommand", "UnknownEventType", "SessionId", "Timestamp", "derive_id",
    "Event", "EventType", "create_batch",
    "Command", "CommandType",
    "GamePhase", "GameStatus", "ReputationStatus", "reputation_status",
]
