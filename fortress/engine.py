"""
Engine Orchestration Module

Owns game sessions and is the only writer of their event logs.

DESIGN PRINCIPLES:
==================
1. One command at a time per session (per-session lock); sessions never
   share mutable state
2. A command is validated against projections that already reflect every
   previously appended event
3. A rejected command appends nothing; an accepted one appends its whole
   batch, then persists it, then notifies subscribers
4. All I/O (clock, store, subscribers) happens here, around the pure core

COMMAND FLOW:
=============
    Command -> registry selects slice -> selector narrows projections
            -> slice validates and returns events -> log.append
            -> projections fold the new events -> store.append
            -> subscribers see trigger events (BATTLE_TRIGGERED, ...)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union
import logging
import threading
import time

from .config import GameConfig
from .content import ContentRepository, default_repository
from .contracts.base import ErrorCode, GameError, NotFoundError, SessionId, Timestamp, ValidationError
from .contracts.commands import Command
from .contracts.events import EXTERNAL_EVENT_TYPES, Event, EventType
from .narrative.engine import NarrativeSessionFold, NarrativeSessionState, NarrativeView, external_state_from
from .observability import AuditCollector, AuditOutcome, DiagnosticsContext, MetricsCollector
from .projections import (
    BattleRecord, GameState, GameStateProjector, QuestSummaryView, ReputationDashboard,
    project_battle_record, project_quest_summary, project_reputation_dashboard,
)
from .slices import SessionProjection, SliceContext, handle_command
from .slices.narrative import engine_for
from .storage import EventStore, SavePreview, create_store
from .temporal import LogicalClock, ReplayEngine, SessionEventLog

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, Event], None]


@dataclass(frozen=True)
class DispatchResult:
    """Events appended by one command and the log length after appending."""
    session_id: str
    events: Tuple[Event, ...]
    log_length: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "events": [e.to_wire() for e in self.events],
            "logLength": self.log_length,
        }


# =============================================================================
# SESSION
# =============================================================================

class GameSession:
    """
    One game: its log, the incremental projections over it and its
    diagnostics. Only GameEngine writes to a session, under `lock`.
    """

    def __init__(self, session_id: str, config: GameConfig, diagnostics: DiagnosticsContext):
        self.session_id = session_id
        self.lock = threading.Lock()
        self.log = SessionEventLog()
        self.diagnostics = diagnostics
        self._projector = GameStateProjector(config.total_positions)
        self._narrative = NarrativeSessionFold()

    @property
    def game_state(self) -> GameState:
        return self._projector.state

    @property
    def narrative_session(self) -> NarrativeSessionState:
        return self._narrative.state

    def events(self) -> List[Event]:
        return self.log.events()

    def commit(self, events: Sequence[Event]) -> int:
        """Append a batch and fold it into the projections."""
        length = self.log.append(events)
        for event in events:
            self._projector.apply(event)
            self._narrative.apply(event.type, event.data, event.timestamp)
            self.diagnostics.debug_event(event)
        return length


# =============================================================================
# ENGINE
# =============================================================================

class GameEngine:
    """
    Session orchestrator.

    Collaborators are injected: content (read-only lookups), the event
    store, and the clock that stamps every command batch.
    """

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        content: Optional[ContentRepository] = None,
        store: Optional[EventStore] = None,
        clock: Optional[LogicalClock] = None,
    ):
        self.config = config or GameConfig()
        self.content = content or default_repository()
        self.store = store or create_store(self.config.storage_backend, self.config.storage_dir)
        self.clock = clock or LogicalClock.live()
        self.metrics = MetricsCollector(self.config.max_metric_points)
        self.audit = AuditCollector(self.config.max_audit_entries)
        self._replay = ReplayEngine(self.config.total_positions)

        self._sessions: Dict[str, GameSession] = {}
        self._sessions_lock = threading.Lock()
        self._session_counter = 0
        self._clock_lock = threading.Lock()
        self._subscribers: Dict[EventType, List[EventHandler]] = {}

    # =========================================================================
    # SESSIONS
    # =========================================================================

    def create_session(self, session_id: Optional[str] = None) -> str:
        """
        Open a session. An id already known to the store is hydrated
        from its persisted stream before any command can reach it.
        """
        with self._sessions_lock:
            self._session_counter += 1
            if session_id is None:
                session_id = SessionId.generate(f"{self._session_counter}|{Timestamp.now().to_iso()}").value
            if session_id in self._sessions:
                raise ValidationError(
                    f"Session already open: {session_id}",
                    code=ErrorCode.PRECONDITION_FAILED,
                    session_id=session_id
                )
            session = self._new_session(session_id)
            # Held until hydrated; a racing dispatch waits on it
            session.lock.acquire()
            self._sessions[session_id] = session

        try:
            persisted = self.store.load(session_id)
            if persisted:
                session.commit(persisted)
        except Exception:
            self._discard(session_id)
            raise
        finally:
            session.lock.release()

        if persisted:
            logger.info("session %s hydrated with %d events", session_id, len(persisted))
        else:
            logger.info("session %s created", session_id)
        return session_id

    def _discard(self, session_id: str) -> None:
        with self._sessions_lock:
            self._sessions.pop(session_id, None)

    def _new_session(self, session_id: str) -> GameSession:
        diagnostics = DiagnosticsContext(
            session_id,
            debug=self.config.debug,
            max_error_history=self.config.max_error_history,
        )
        return GameSession(session_id, self.config, diagnostics)

    def get_session(self, session_id: str) -> GameSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(
                f"Session not found: {session_id}",
                code=ErrorCode.SESSION_NOT_FOUND,
                session_id=session_id
            )
        return session

    def session_ids(self) -> List[str]:
        return list(self._sessions)

    def close_session(self, session_id: str) -> None:
        with self._sessions_lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise NotFoundError(
                f"Session not found: {session_id}",
                code=ErrorCode.SESSION_NOT_FOUND,
                session_id=session_id
            )
        session.diagnostics.close()
        logger.info("session %s closed after %d events", session_id, len(session.log))

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def _timestamp(self) -> str:
        with self._clock_lock:
            return self.clock.now_iso()

    def dispatch(self, session_id: str, command: Union[Command, Mapping[str, Any]]) -> DispatchResult:
        """
        Validate one command and append its events.

        Raises the slice's GameError on rejection; the log is untouched.
        """
        session = self.get_session(session_id)
        if not isinstance(command, Command):
            command = Command.from_wire(command)
        labels = {"command_type": command.type.value}

        with session.lock:
            started = time.perf_counter()
            timestamp = self._timestamp()
            projection = SessionProjection(
                game_state=session.game_state,
                narrative_session=session.narrative_session,
                config=self.config,
            )
            ctx = SliceContext(content=self.content, config=self.config, timestamp=timestamp)
            try:
                events = handle_command(command, projection, ctx)
            except GameError as e:
                self._reject(session, command, timestamp, e)
                raise
            length = self._append(session, events)
            duration_ms = (time.perf_counter() - started) * 1000

        self.metrics.record("commands_accepted_total", 1, labels)
        self.metrics.record("command_duration_ms", duration_ms, labels)
        self.audit.log(session_id, command.type.value, AuditOutcome.ACCEPTED, timestamp, {
            "events": len(events),
            "log_length": length,
        })
        logger.debug("%s accepted for %s: %d events", command.type.value, session_id, len(events))
        self._notify(session_id, events)
        return DispatchResult(session_id=session_id, events=tuple(events), log_length=length)

    def _reject(self, session: GameSession, command: Command, timestamp: str, error: GameError) -> None:
        session.diagnostics.record_error(error.message, context=command.type.value, error=error.error)
        self.metrics.record("commands_rejected_total", 1, {
            "command_type": command.type.value,
            "code": error.code.name,
        })
        self.audit.log(session.session_id, command.type.value, AuditOutcome.REJECTED, timestamp, {
            "code": error.code.name,
            "message": error.message,
        })
        logger.info("%s rejected for %s: %s", command.type.value, session.session_id, error.message)

    def _append(self, session: GameSession, events: Sequence[Event]) -> int:
        length = session.commit(events)
        self.metrics.record("events_appended_total", len(events))
        result = self.store.append(session.session_id, events)
        if not result.success:
            session.diagnostics.record_error(result.error.message, context="store", error=result.error)
        return length

    def submit_external(
        self,
        session_id: str,
        events: Sequence[Union[Event, Mapping[str, Any]]],
    ) -> DispatchResult:
        """
        Append events produced by an external collaborator (battle
        resolver, card inventory). Only collaborator event types are
        accepted; events without a timestamp are stamped now.
        """
        session = self.get_session(session_id)
        with session.lock:
            timestamp = self._timestamp()
            batch: List[Event] = []
            for raw in events:
                event = raw if isinstance(raw, Event) else Event.from_wire(raw)
                if event.type not in EXTERNAL_EVENT_TYPES:
                    raise ValidationError(
                        f"{event.type.value} cannot be submitted by a collaborator",
                        code=ErrorCode.INVALID_PAYLOAD,
                        event_type=event.type.value
                    )
                if not event.timestamp:
                    event = Event(type=event.type, data=event.data, timestamp=timestamp)
                batch.append(event)
            length = self._append(session, batch)

        self.audit.log(session_id, "SUBMIT_EXTERNAL", AuditOutcome.SYSTEM, timestamp, {"events": len(batch)})
        self._notify(session_id, batch)
        return DispatchResult(session_id=session_id, events=tuple(batch), log_length=length)

    # =========================================================================
    # TRIGGER DISPATCH
    # =========================================================================

    def subscribe(self, event_type: EventType, handler: EventHandler) -> Callable[[], None]:
        """
        Call `handler(session_id, event)` for every appended event of the
        given type. Handlers run after the session lock is released, so
        they may dispatch further commands. Returns an unsubscribe callable.
        """
        self._subscribers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def _notify(self, session_id: str, events: Sequence[Event]) -> None:
        for event in events:
            for handler in list(self._subscribers.get(event.type, ())):
                handler(session_id, event)

    # =========================================================================
    # VIEWS
    # =========================================================================

    def events(self, session_id: str, since: int = 0) -> List[Event]:
        session = self.get_session(session_id)
        with session.lock:
            return session.log.events_since(since)

    def game_state(self, session_id: str) -> GameState:
        return self.get_session(session_id).game_state

    def reputation_view(self, session_id: str) -> ReputationDashboard:
        session = self.get_session(session_id)
        names = {}
        for faction_id in session.game_state.reputation:
            faction = self.content.get_faction_by_id(faction_id)
            if faction is not None:
                names[faction_id] = faction.name
        return project_reputation_dashboard(
            session.events(),
            state=session.game_state,
            lock_threshold=self.config.card_lock_threshold,
            faction_names=names,
        )

    def quest_summary_view(self, session_id: str) -> QuestSummaryView:
        return project_quest_summary(self.get_session(session_id).events(), self.config.total_quests)

    def battle_view(self, session_id: str) -> BattleRecord:
        return project_battle_record(self.get_session(session_id).events(), self.config.total_positions)

    def narrative_view(self, session_id: str) -> NarrativeView:
        session = self.get_session(session_id)
        narrative = session.narrative_session
        graph = self.content.get_graph_by_id(narrative.graph_id) if narrative.graph_id else None
        if graph is None:
            return NarrativeView(narrative.session_id, narrative.graph_id, None, None, ended=narrative.ended)
        ctx = SliceContext(content=self.content, config=self.config, timestamp="")
        return engine_for(graph, ctx).resolve_view(narrative, external_state_from(session.game_state))

    def verify_session(self, session_id: str) -> Tuple[bool, Optional[str]]:
        """Hash-chain integrity plus replay determinism of a session log."""
        session = self.get_session(session_id)
        with session.lock:
            is_valid, error = session.log.verify_integrity()
            if not is_valid:
                return (False, error.message)
            events = session.events()
        ok, difference = self._replay.verify_determinism(events)
        if ok and self._replay.derive(events) != session.game_state:
            return (False, "Incremental projection diverges from replay")
        return (ok, difference)

    # =========================================================================
    # SAVE GAMES
    # =========================================================================

    def save_game(self, session_id: str, save_name: str) -> SavePreview:
        session = self.get_session(session_id)
        with session.lock:
            state = session.game_state
            events = session.events()
        preview = SavePreview(
            save_name=save_name,
            session_id=session_id,
            player_id=state.player_id,
            phase=state.phase.value,
            bounty=state.bounty,
            quests_completed=len(state.completed_quests),
            saved_at=Timestamp.now().to_iso(),
            event_count=len(events),
            active_quest_id=state.active_quest.quest_id if state.active_quest else None,
        )
        result = self.store.save_slot(preview, events)
        if not result.success:
            session.diagnostics.record_error(result.error.message, context="SaveGame", error=result.error)
            raise GameError(result.error.message, code=ErrorCode.STORE_WRITE_FAILED, save_name=save_name)
        logger.info("session %s saved as %s (%d events)", session_id, save_name, len(events))
        return preview

    def load_game(self, save_name: str) -> str:
        """Open a fresh session rebuilt from a save slot. Returns its id."""
        preview, events = self.store.load_slot(save_name)
        with self._sessions_lock:
            self._session_counter += 1
            session_id = SessionId.generate(
                f"load|{save_name}|{self._session_counter}|{Timestamp.now().to_iso()}"
            ).value
            session = self._new_session(session_id)
            session.lock.acquire()
            self._sessions[session_id] = session
        try:
            self._append(session, events)
        except Exception:
            self._discard(session_id)
            raise
        finally:
            session.lock.release()
        logger.info("save %s loaded into session %s (%d events)", save_name, session_id, len(events))
        return session_id

    def list_saves(self) -> List[SavePreview]:
        return self.store.list_slots()

    def delete_save(self, save_name: str) -> bool:
        return self.store.delete_slot(save_name)
