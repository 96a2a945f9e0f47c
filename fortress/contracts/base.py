"""
Base Contracts and Shared Types

These are the foundational types used across all layers of the game core.
All value types here are IMMUTABLE and represent pure data.

BOUNDARY ENFORCEMENT:
=====================
- Every layer may import from this module, it imports from no layer
- Errors are data (Error) carried by exceptions (GameError subclasses)
- Timestamps are always UTC and always serialized as ISO-8601 strings
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple
from enum import Enum, auto
import hashlib


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    Every failure a caller can observe is enumerated here.
    """
    # Command validation errors
    INVALID_PHASE = auto()
    GAME_NOT_IN_PROGRESS = auto()
    PRECONDITION_FAILED = auto()
    INVALID_PAYLOAD = auto()

    # Content lookup errors
    QUEST_NOT_FOUND = auto()
    DILEMMA_NOT_FOUND = auto()
    CHOICE_NOT_FOUND = auto()
    CARD_NOT_FOUND = auto()
    FACTION_NOT_FOUND = auto()
    GRAPH_NOT_FOUND = auto()
    SESSION_NOT_FOUND = auto()

    # Narrative graph errors
    BROKEN_LINK = auto()
    NODE_NOT_REVISITABLE = auto()
    INVALID_TRANSITION = auto()
    STRUCTURAL_INCONSISTENCY = auto()

    # Boundary errors
    UNKNOWN_COMMAND = auto()
    UNKNOWN_EVENT_TYPE = auto()

    # Storage errors
    LOG_CORRUPTION = auto()
    STORE_WRITE_FAILED = auto()
    SAVE_NOT_FOUND = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data - they can be stored in diagnostics history and queried.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, value),)
        )

    def context_value(self, key: str) -> Optional[str]:
        for k, v in self.context:
            if k == key:
                return v
        return None


class GameError(Exception):
    """
    Base exception for every typed failure raised by the game core.

    The exception wraps an Error record so the failure can be reported
    to the caller (offending id, current phase) and kept in diagnostics.
    """
    default_code = ErrorCode.PRECONDITION_FAILED

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        **context: object
    ):
        super().__init__(message)
        self.error = Error(
            code=code or self.default_code,
            message=message,
            timestamp=datetime.now(timezone.utc),
            context=tuple((k, str(v)) for k, v in context.items() if v is not None)
        )

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @property
    def message(self) -> str:
        return self.error.message


class ValidationError(GameError):
    """A command failed a business rule. Nothing was appended."""
    default_code = ErrorCode.PRECONDITION_FAILED


class NotFoundError(GameError):
    """A referenced content id (or session id) does not resolve."""
    default_code = ErrorCode.QUEST_NOT_FOUND


class StructuralError(GameError):
    """A narrative graph is malformed. Indicates a content-authoring defect."""
    default_code = ErrorCode.STRUCTURAL_INCONSISTENCY


class NodeNotRevisitable(StructuralError):
    """A non-revisitable node was about to be entered a second time."""
    default_code = ErrorCode.NODE_NOT_REVISITABLE


class InvalidTransition(GameError):
    """The requested transition is not in the eligible set of the current node."""
    default_code = ErrorCode.INVALID_TRANSITION


class UnknownCommand(GameError):
    """A command tag is not part of the closed command vocabulary."""
    default_code = ErrorCode.UNKNOWN_COMMAND


class UnknownEventType(GameError):
    """An event tag is not part of the closed event vocabulary."""
    default_code = ErrorCode.UNKNOWN_EVENT_TYPE


# =============================================================================
# IDENTITY TYPES (Deterministic, hash-derived)
# =============================================================================

@dataclass(frozen=True)
class SessionId:
    """Immutable game session identifier."""
    value: str

    def __post_init__(self):
        if not self.value or not isinstance(self.value, str):
            raise ValueError("SessionId value must be a non-empty string")

    @staticmethod
    def generate(seed: str) -> SessionId:
        """Generate deterministic session ID from seed."""
        session_hash = hashlib.sha256(seed.encode('utf-8')).hexdigest()[:16]
        return SessionId(value=f"session_{session_hash}")


def derive_id(prefix: str, *parts: object) -> str:
    """
    Derive a stable identifier from its inputs.

    Used wherever the game needs a fresh id (battles, mediations,
    narrative sessions) without reading randomness or wall-clock time.
    """
    seed = "|".join(str(p) for p in parts)
    digest = hashlib.sha256(seed.encode('utf-8')).hexdigest()[:12]
    return f"{prefix}_{digest}"


# =============================================================================
# TEMPORAL TYPES (Immutable, explicit semantics)
# =============================================================================

@dataclass(frozen=True)
class Timestamp:
    """
    Immutable timestamp with explicit semantics.
    All timestamps are UTC, never local time.
    """
    value: datetime

    def __post_init__(self):
        # Ensure UTC timezone
        if self.value.tzinfo is None:
            object.__setattr__(self, 'value', self.value.replace(tzinfo=timezone.utc))

    @staticmethod
    def now() -> Timestamp:
        return Timestamp(value=datetime.now(timezone.utc))

    @staticmethod
    def from_iso(iso_string: str) -> Timestamp:
        dt = datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return Timestamp(value=dt)

    def to_iso(self) -> str:
        return self.value.isoformat()


def elapsed_ms(start_iso: str, end_iso: str) -> int:
    """Milliseconds between two ISO timestamps, never negative."""
    delta = Timestamp.from_iso(end_iso).value - Timestamp.from_iso(start_iso).value
    return max(0, int(delta.total_seconds() * 1000))
