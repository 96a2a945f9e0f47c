"""
Command Contracts

A command is a requested player intent: {"type": ..., "data": {...}}.
Commands are never persisted. They are validated by exactly one slice and
translated into zero or more events.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping
from enum import Enum

from .base import UnknownCommand, ValidationError, ErrorCode


class CommandType(Enum):
    """Closed command vocabulary."""
    START_GAME = "START_GAME"
    ACCEPT_QUEST = "ACCEPT_QUEST"
    MAKE_CHOICE = "MAKE_CHOICE"
    ACKNOWLEDGE_CHOICE_CONSEQUENCE = "ACKNOWLEDGE_CHOICE_CONSEQUENCE"
    FORM_ALLIANCE = "FORM_ALLIANCE"
    REJECT_ALLIANCE_TERMS = "REJECT_ALLIANCE_TERMS"
    DECLINE_ALL_ALLIANCES = "DECLINE_ALL_ALLIANCES"
    FINALIZE_ALLIANCES = "FINALIZE_ALLIANCES"
    LEAN_TOWARD_FACTION = "LEAN_TOWARD_FACTION"
    REFUSE_TO_LEAN = "REFUSE_TO_LEAN"
    ACCEPT_COMPROMISE = "ACCEPT_COMPROMISE"
    SELECT_CARD = "SELECT_CARD"
    DESELECT_CARD = "DESELECT_CARD"
    COMMIT_FLEET = "COMMIT_FLEET"
    SET_CARD_POSITION = "SET_CARD_POSITION"
    LOCK_ORDERS = "LOCK_ORDERS"
    RESOLVE_BATTLE = "RESOLVE_BATTLE"
    ACKNOWLEDGE_OUTCOME = "ACKNOWLEDGE_OUTCOME"
    CONTINUE_TO_NEXT_PHASE = "CONTINUE_TO_NEXT_PHASE"
    ACKNOWLEDGE_QUEST_SUMMARY = "ACKNOWLEDGE_QUEST_SUMMARY"
    BEGIN_NARRATIVE = "BEGIN_NARRATIVE"
    CHOOSE_TRANSITION = "CHOOSE_TRANSITION"

    @staticmethod
    def parse(tag: str) -> CommandType:
        try:
            return CommandType(tag)
        except ValueError:
            raise UnknownCommand(f"Unknown command type: {tag}", command_type=tag)


@dataclass(frozen=True)
class Command:
    type: CommandType
    data: Dict[str, Any] = field(default_factory=dict)

    def __hash__(self):
        return hash((self.type, tuple(sorted((k, repr(v)) for k, v in self.data.items()))))

    def require(self, key: str) -> Any:
        """Fetch a mandatory payload field."""
        if key not in self.data or self.data[key] is None:
            raise ValidationError(
                f"{self.type.value} requires '{key}'",
                code=ErrorCode.INVALID_PAYLOAD,
                command_type=self.type.value
            )
        return self.data[key]

    def require_str(self, key: str) -> str:
        value = self.require(key)
        if not isinstance(value, str) or not value:
            raise ValidationError(
                f"{self.type.value} field '{key}' must be a non-empty string",
                code=ErrorCode.INVALID_PAYLOAD,
                command_type=self.type.value
            )
        return value

    def require_int(self, key: str) -> int:
        value = self.require(key)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(
                f"{self.type.value} field '{key}' must be an integer",
                code=ErrorCode.INVALID_PAYLOAD,
                command_type=self.type.value
            )
        return value

    @staticmethod
    def from_wire(payload: Mapping[str, Any]) -> Command:
        if not isinstance(payload, Mapping) or "type" not in payload:
            raise ValidationError(
                "Command payload must be an object with a type tag",
                code=ErrorCode.INVALID_PAYLOAD
            )
        command_type = CommandType.parse(payload["type"])
        data = payload.get("data") or {}
        if not isinstance(data, Mapping):
            raise ValidationError(
                f"Command data for {command_type.value} must be an object",
                code=ErrorCode.INVALID_PAYLOAD
            )
        return Command(type=command_type, data=dict(data))

    @staticmethod
    def of(tag: str, **data: Any) -> Command:
        return Command.from_wire({"type": tag, "data": data})
