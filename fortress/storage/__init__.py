"""
Event Storage Layer

RESPONSIBILITY: Persist session event streams and save-game slots
ALLOWED INPUTS: Events already appended to a session log
OUTPUTS: StoreWriteResult, stored event sequences, SavePreview

WHAT THIS LAYER MUST NOT DO:
============================
- Interpret events or derive game state
- Validate commands
- Reorder, edit or drop events of a stream (append-only)

WIRE FORMAT:
============
One event per line, exactly Event.to_json(). Loading a line with
Event.from_json and writing it again yields the same bytes.

Save slots are named snapshots of a stream: a preview header plus the
events at save time. Saving under an existing name replaces that slot.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
import json
import logging
import os
import re

from ..contracts.base import Error, ErrorCode, NotFoundError, Timestamp, ValidationError
from ..contracts.events import Event

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_.-]{1,64}$")


# =============================================================================
# RESULTS AND PREVIEWS
# =============================================================================

@dataclass(frozen=True)
class StoreWriteResult:
    """Outcome of a write. A failed write carries an Error, never raises."""
    success: bool
    stream_id: str
    entry_count: int = 0
    write_timestamp: Optional[Timestamp] = None
    error: Optional[Error] = None


@dataclass(frozen=True)
class SavePreview:
    """What a save-game list shows without loading the events."""
    save_name: str
    session_id: str
    player_id: str
    phase: str
    bounty: int
    quests_completed: int
    saved_at: str
    event_count: int = 0
    active_quest_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "saveName": self.save_name,
            "sessionId": self.session_id,
            "playerId": self.player_id,
            "phase": self.phase,
            "activeQuestId": self.active_quest_id,
            "bounty": self.bounty,
            "questsCompleted": self.quests_completed,
            "eventCount": self.event_count,
            "savedAt": self.saved_at,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> SavePreview:
        return SavePreview(
            save_name=data.get("saveName", ""),
            session_id=data.get("sessionId", ""),
            player_id=data.get("playerId", ""),
            phase=data.get("phase", ""),
            bounty=int(data.get("bounty", 0)),
            quests_completed=int(data.get("questsCompleted", 0)),
            saved_at=data.get("savedAt", ""),
            event_count=int(data.get("eventCount", 0)),
            active_quest_id=data.get("activeQuestId"),
        )


def _check_name(kind: str, name: str) -> str:
    if not isinstance(name, str) or not _SAFE_NAME.match(name):
        raise ValidationError(
            f"Invalid {kind} name: {name!r}",
            code=ErrorCode.INVALID_PAYLOAD,
            name=name
        )
    return name


def _write_failed(stream_id: str, message: str) -> StoreWriteResult:
    logger.error("store write failed for %s: %s", stream_id, message)
    return StoreWriteResult(
        success=False,
        stream_id=stream_id,
        error=Error(
            code=ErrorCode.STORE_WRITE_FAILED,
            message=message,
            timestamp=datetime.now(timezone.utc),
            context=(("stream_id", stream_id),)
        )
    )


def _save_not_found(save_name: str) -> NotFoundError:
    return NotFoundError(f"Save not found: {save_name}", code=ErrorCode.SAVE_NOT_FOUND, save_name=save_name)


# =============================================================================
# STORE INTERFACE (Dependency Inversion)
# =============================================================================

class EventStore:
    """
    Abstract event store.

    Implementations keep append-only streams keyed by session id and
    named save slots.
    """

    def append(self, stream_id: str, events: Sequence[Event]) -> StoreWriteResult:
        raise NotImplementedError

    def load(self, stream_id: str) -> List[Event]:
        """All events of a stream, oldest first. Unknown streams are empty."""
        raise NotImplementedError

    def stream_ids(self) -> List[str]:
        raise NotImplementedError

    def save_slot(self, preview: SavePreview, events: Sequence[Event]) -> StoreWriteResult:
        raise NotImplementedError

    def load_slot(self, save_name: str) -> Tuple[SavePreview, List[Event]]:
        """Raises NotFoundError(SAVE_NOT_FOUND) for an unknown slot."""
        raise NotImplementedError

    def list_slots(self) -> List[SavePreview]:
        """Previews, newest first."""
        raise NotImplementedError

    def delete_slot(self, save_name: str) -> bool:
        raise NotImplementedError


# =============================================================================
# IN-MEMORY STORE (Reference Implementation)
# =============================================================================

class InMemoryEventStore(EventStore):
    """
    In-memory event store. Suitable for tests and single-process play.
    Events are kept as their JSON lines so reads go through the same
    parse path as the file store.
    """

    def __init__(self):
        self._streams: Dict[str, List[str]] = {}
        self._slots: Dict[str, Tuple[SavePreview, Tuple[str, ...]]] = {}

    def append(self, stream_id: str, events: Sequence[Event]) -> StoreWriteResult:
        lines = self._streams.setdefault(stream_id, [])
        lines.extend(event.to_json() for event in events)
        return StoreWriteResult(
            success=True,
            stream_id=stream_id,
            entry_count=len(lines),
            write_timestamp=Timestamp.now()
        )

    def load(self, stream_id: str) -> List[Event]:
        return [Event.from_json(line) for line in self._streams.get(stream_id, [])]

    def stream_ids(self) -> List[str]:
        return sorted(self._streams)

    def save_slot(self, preview: SavePreview, events: Sequence[Event]) -> StoreWriteResult:
        name = _check_name("save", preview.save_name)
        self._slots[name] = (preview, tuple(event.to_json() for event in events))
        return StoreWriteResult(
            success=True,
            stream_id=preview.session_id,
            entry_count=len(events),
            write_timestamp=Timestamp.now()
        )

    def load_slot(self, save_name: str) -> Tuple[SavePreview, List[Event]]:
        if save_name not in self._slots:
            raise _save_not_found(save_name)
        preview, lines = self._slots[save_name]
        return preview, [Event.from_json(line) for line in lines]

    def list_slots(self) -> List[SavePreview]:
        return sorted((p for p, _ in self._slots.values()), key=lambda p: p.saved_at, reverse=True)

    def delete_slot(self, save_name: str) -> bool:
        return self._slots.pop(save_name, None) is not None


# =============================================================================
# FILE STORE
# =============================================================================

class FileEventStore(EventStore):
    """
    File-based event store.

    Layout under `storage_dir`:
        streams/<stream_id>.jsonl   one event per line, append-only
        saves/<save_name>.jsonl     preview header line, then events
    """

    def __init__(self, storage_dir: str):
        self._storage_dir = storage_dir
        self._streams_dir = os.path.join(storage_dir, "streams")
        self._saves_dir = os.path.join(storage_dir, "saves")
        os.makedirs(self._streams_dir, exist_ok=True)
        os.makedirs(self._saves_dir, exist_ok=True)

    def _stream_path(self, stream_id: str) -> str:
        return os.path.join(self._streams_dir, f"{_check_name('stream', stream_id)}.jsonl")

    def _save_path(self, save_name: str) -> str:
        return os.path.join(self._saves_dir, f"{_check_name('save', save_name)}.jsonl")

    def append(self, stream_id: str, events: Sequence[Event]) -> StoreWriteResult:
        path = self._stream_path(stream_id)
        try:
            with open(path, 'a', encoding='utf-8') as f:
                for event in events:
                    f.write(event.to_json() + '\n')
        except OSError as e:
            return _write_failed(stream_id, f"Failed to append events: {e}")
        return StoreWriteResult(
            success=True,
            stream_id=stream_id,
            entry_count=len(self.load(stream_id)),
            write_timestamp=Timestamp.now()
        )

    def load(self, stream_id: str) -> List[Event]:
        path = self._stream_path(stream_id)
        if not os.path.exists(path):
            return []
        with open(path, 'r', encoding='utf-8') as f:
            return [Event.from_json(line) for line in f if line.strip()]

    def stream_ids(self) -> List[str]:
        return sorted(
            name[:-len(".jsonl")] for name in os.listdir(self._streams_dir) if name.endswith(".jsonl")
        )

    def save_slot(self, preview: SavePreview, events: Sequence[Event]) -> StoreWriteResult:
        path = self._save_path(preview.save_name)
        tmp_path = path + ".tmp"
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                f.write(json.dumps(preview.to_dict(), separators=(",", ":")) + '\n')
                for event in events:
                    f.write(event.to_json() + '\n')
            os.replace(tmp_path, path)
        except OSError as e:
            return _write_failed(preview.session_id, f"Failed to write save {preview.save_name}: {e}")
        return StoreWriteResult(
            success=True,
            stream_id=preview.session_id,
            entry_count=len(events),
            write_timestamp=Timestamp.now()
        )

    def _read_slot(self, path: str) -> Tuple[SavePreview, List[Event]]:
        with open(path, 'r', encoding='utf-8') as f:
            header = f.readline()
            preview = SavePreview.from_dict(json.loads(header))
            events = [Event.from_json(line) for line in f if line.strip()]
        return preview, events

    def load_slot(self, save_name: str) -> Tuple[SavePreview, List[Event]]:
        path = self._save_path(save_name)
        if not os.path.exists(path):
            raise _save_not_found(save_name)
        return self._read_slot(path)

    def list_slots(self) -> List[SavePreview]:
        previews = []
        for name in os.listdir(self._saves_dir):
            if not name.endswith(".jsonl"):
                continue
            with open(os.path.join(self._saves_dir, name), 'r', encoding='utf-8') as f:
                previews.append(SavePreview.from_dict(json.loads(f.readline())))
        return sorted(previews, key=lambda p: p.saved_at, reverse=True)

    def delete_slot(self, save_name: str) -> bool:
        path = self._save_path(save_name)
        if not os.path.exists(path):
            return False
        os.remove(path)
        return True


def create_store(backend: str, storage_dir: Optional[str] = None) -> EventStore:
    """Store for a configured backend name ("memory" or "file")."""
    if backend == "file":
        return FileEventStore(storage_dir or os.path.join(os.getcwd(), "data", "sessions"))
    return InMemoryEventStore()


__all__ = [
    "StoreWriteResult", "SavePreview",
    "EventStore", "InMemoryEventStore", "FileEventStore", "create_store",
]
