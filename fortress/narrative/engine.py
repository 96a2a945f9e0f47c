"""
Narrative Traversal Engine
==========================

Drives one narrative session through a NarrativeGraph and translates every
step into events. The engine holds no session state between calls: the
caller folds the log into a NarrativeSessionState and hands it in, the
engine returns the (type, data) pairs of the batch to append.

TRAVERSAL RULES:
================
- Entry emits NARRATIVE_SESSION_STARTED then NARRATIVE_NODE_ENTERED with
  enteredFrom None and visitNumber 1
- Eligible transitions: not disabled, condition satisfied, transition and
  target-node flag requirements satisfied. Hidden transitions stay eligible
  but are not listed
- Effects are applied strictly in list order; counters are emitted with
  their new value, never as a raw delta
- A non-revisitable node is never entered twice (NodeNotRevisitable)
- Branch nodes follow their first eligible automatic transition, else
  their fallback, bounded by max_auto_transitions
- Ending nodes emit NARRATIVE_ENDING_REACHED with a PathSummary folded
  from the session's own events
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
import logging

from ..contracts.base import (
    ErrorCode, InvalidTransition, NodeNotRevisitable, NotFoundError,
    StructuralError, ValidationError, derive_id, elapsed_ms,
)
from ..contracts.events import Event, EventType
from ..contracts.game import FACTION_IDS, Voice, clamp_reputation
from .conditions import ConditionContext, ExternalState, evaluate, flags_satisfied
from .graph import (
    NarrativeGraph, NarrativeNode, NodeType, Transition, TransitionType,
    ConsequenceLevel, Effect, Increment, Decrement, SetFlag, TriggerEvent,
)

logger = logging.getLogger(__name__)

EventItem = Tuple[EventType, Dict[str, Any]]

PLAYER_TRANSITION_TYPES = frozenset({
    TransitionType.CHOICE,
    TransitionType.TIMED,
    TransitionType.EVENT,
})

REPUTATION_PREFIX = "reputation_"


# =============================================================================
# SESSION STATE (folded from the log)
# =============================================================================

@dataclass(frozen=True)
class PathSummary:
    total_nodes_visited: int
    unique_nodes_visited: int
    choices_made: int
    flags_set: int
    checkpoints_reached: int
    session_duration_ms: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalNodesVisited": self.total_nodes_visited,
            "uniqueNodesVisited": self.unique_nodes_visited,
            "choicesMade": self.choices_made,
            "flagsSet": self.flags_set,
            "checkpointsReached": self.checkpoints_reached,
            "sessionDurationMs": self.session_duration_ms,
        }


@dataclass(frozen=True)
class NarrativeSessionState:
    """Traversal state of the latest narrative session in a log."""
    session_id: Optional[str] = None
    graph_id: Optional[str] = None
    entry_point_id: Optional[str] = None
    current_node_id: Optional[str] = None
    visit_counts: Mapping[str, int] = field(default_factory=dict)
    flags: Mapping[str, Any] = field(default_factory=dict)
    total_visits: int = 0
    choices_made: int = 0
    flags_set: int = 0
    checkpoints_reached: int = 0
    started_at: Optional[str] = None
    ended: bool = False
    ending_node_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.session_id is not None and not self.ended

    def path_summary(self, now: str) -> PathSummary:
        return PathSummary(
            total_nodes_visited=self.total_visits,
            unique_nodes_visited=len(self.visit_counts),
            choices_made=self.choices_made,
            flags_set=self.flags_set,
            checkpoints_reached=self.checkpoints_reached,
            session_duration_ms=elapsed_ms(self.started_at, now) if self.started_at else 0,
        )


class NarrativeSessionFold:
    """
    Fold of narrative events into NarrativeSessionState.

    Flags are folded from the whole log (FLAG_SET and NARRATIVE_FLAG_SET);
    everything else only from events carrying the current session id.
    The engine reuses this fold on its pending batch so a PathSummary never
    diverges from what a replay of the log would report.
    """

    def __init__(self, state: Optional[NarrativeSessionState] = None):
        self.state = state or NarrativeSessionState()

    def apply(self, event_type: EventType, data: Mapping[str, Any], timestamp: str) -> NarrativeSessionState:
        s = self.state
        if event_type in (EventType.FLAG_SET, EventType.NARRATIVE_FLAG_SET):
            flags = dict(s.flags)
            flags[data.get("flagName")] = data.get("value", True)
            s = replace(s, flags=flags)
            if event_type == EventType.NARRATIVE_FLAG_SET and data.get("sessionId") == s.session_id:
                s = replace(s, flags_set=s.flags_set + 1)
        elif event_type == EventType.NARRATIVE_SESSION_STARTED:
            s = NarrativeSessionState(
                session_id=data.get("sessionId"),
                graph_id=data.get("graphId"),
                entry_point_id=data.get("entryPointId"),
                flags=s.flags,
                started_at=timestamp,
            )
        elif data.get("sessionId") != s.session_id:
            pass
        elif event_type == EventType.NARRATIVE_NODE_ENTERED:
            node_id = data.get("nodeId")
            visits = dict(s.visit_counts)
            visits[node_id] = visits.get(node_id, 0) + 1
            s = replace(s, current_node_id=node_id, visit_counts=visits, total_visits=s.total_visits + 1)
        elif event_type == EventType.NARRATIVE_CHOICE_MADE:
            s = replace(s, choices_made=s.choices_made + 1)
        elif event_type == EventType.NARRATIVE_CHECKPOINT_REACHED:
            s = replace(s, checkpoints_reached=s.checkpoints_reached + 1)
        elif event_type == EventType.NARRATIVE_ENDING_REACHED:
            s = replace(s, ended=True, ending_node_id=data.get("endingNodeId"))
        self.state = s
        return s

    def apply_events(self, events: Iterable[Event]) -> NarrativeSessionState:
        for event in events:
            self.apply(event.type, event.data, event.timestamp)
        return self.state


def fold_narrative_session(events: Iterable[Event]) -> NarrativeSessionState:
    return NarrativeSessionFold().apply_events(events)


# =============================================================================
# VIEW
# =============================================================================

@dataclass(frozen=True)
class ChoiceOption:
    transition_id: str
    text: str
    short_label: str = ""
    preview_hint: str = ""
    consequence_level: Optional[ConsequenceLevel] = None
    available: bool = True
    unavailable_reason: str = ""


@dataclass(frozen=True)
class NarrativeView:
    session_id: Optional[str]
    graph_id: Optional[str]
    node_id: Optional[str]
    node_type: Optional[NodeType]
    text: str = ""
    speaker_id: str = ""
    voices: Tuple[Voice, ...] = field(default_factory=tuple)
    choices: Tuple[ChoiceOption, ...] = field(default_factory=tuple)
    ended: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "graphId": self.graph_id,
            "nodeId": self.node_id,
            "nodeType": self.node_type.value if self.node_type else None,
            "text": self.text,
            "speakerId": self.speaker_id,
            "voices": [
                {"npcName": v.npc_name, "factionId": v.faction_id, "dialogue": v.dialogue}
                for v in self.voices
            ],
            "choices": [
                {
                    "transitionId": c.transition_id,
                    "text": c.text,
                    "shortLabel": c.short_label,
                    "previewHint": c.preview_hint,
                    "consequenceLevel": c.consequence_level.value if c.consequence_level else None,
                    "available": c.available,
                    "unavailableReason": c.unavailable_reason,
                }
                for c in self.choices
            ],
            "ended": self.ended,
        }


# =============================================================================
# ENGINE
# =============================================================================

class _Traversal:
    """Working copy of one command's traversal: pending items plus folded state."""

    def __init__(self, session: NarrativeSessionState, external: ExternalState, timestamp: str):
        self.fold = NarrativeSessionFold(session)
        self.reputation: Dict[str, int] = dict(external.reputation)
        self.bounty = external.bounty
        self.external = external
        self.timestamp = timestamp
        self.items: List[EventItem] = []

    @property
    def session(self) -> NarrativeSessionState:
        return self.fold.state

    def emit(self, event_type: EventType, data: Dict[str, Any]) -> None:
        self.items.append((event_type, data))
        self.fold.apply(event_type, data, self.timestamp)

    def external_view(self) -> ExternalState:
        return replace(self.external, reputation=dict(self.reputation), bounty=self.bounty)


class NarrativeEngine:
    """
    Stateless traversal of one graph.

    `card_faction` resolves the faction of a card named by a CARD_GAINED or
    CARD_LOST trigger; the engine never looks content up itself.
    """

    def __init__(
        self,
        graph: NarrativeGraph,
        max_auto_transitions: int = 64,
        reputation_bounds: Tuple[int, int] = (-100, 100),
        card_faction: Optional[Callable[[str], Optional[str]]] = None,
    ):
        self.graph = graph
        self.max_auto_transitions = max_auto_transitions
        self.reputation_bounds = reputation_bounds
        self._card_faction = card_faction or (lambda card_id: None)

    # -------------------------------------------------------------------------
    # Eligibility
    # -------------------------------------------------------------------------

    def _context(self, session: NarrativeSessionState, external: ExternalState) -> ConditionContext:
        return ConditionContext(
            flags=session.flags,
            visit_counts=session.visit_counts,
            external=external,
            global_conditions=self.graph.global_conditions,
        )

    def _blocked_by(self, transition: Transition, ctx: ConditionContext) -> Tuple[str, ...]:
        """Reasons a transition is ineligible; empty when eligible."""
        if transition.presentation.is_disabled:
            return ("disabled",)
        target = self.graph.get_node(transition.target_node_id)
        failed = evaluate(transition.condition, ctx).failed
        failed += flags_satisfied(transition.requires_flags, ctx.flags).failed
        failed += flags_satisfied(target.metadata.requires_flags, ctx.flags).failed
        return failed

    def eligible_transitions(
        self,
        node: NarrativeNode,
        session: NarrativeSessionState,
        external: ExternalState = ExternalState(),
    ) -> Tuple[Transition, ...]:
        ctx = self._context(session, external)
        return tuple(t for t in node.transitions if not self._blocked_by(t, ctx))

    def resolve_view(
        self,
        session: NarrativeSessionState,
        external: ExternalState = ExternalState(),
    ) -> NarrativeView:
        """Visible choices of the current node, with availability."""
        if session.current_node_id is None:
            return NarrativeView(session.session_id, session.graph_id, None, None, ended=session.ended)

        node = self.graph.get_node(session.current_node_id)
        ctx = self._context(session, external)
        options: List[ChoiceOption] = []
        if not session.ended:
            for transition in node.transitions:
                if transition.transition_type not in PLAYER_TRANSITION_TYPES:
                    continue
                presentation = transition.presentation
                blocked = self._blocked_by(transition, ctx)
                if presentation.is_hidden or (blocked and blocked != ("disabled",)):
                    continue
                target = self.graph.get_node(transition.target_node_id)
                revisit_blocked = (
                    not target.metadata.is_revisitable
                    and session.visit_counts.get(target.node_id, 0) > 0
                )
                reason = ""
                if blocked:
                    reason = presentation.disabled_reason or "disabled"
                elif revisit_blocked:
                    reason = "already_visited"
                options.append(ChoiceOption(
                    transition_id=transition.transition_id,
                    text=presentation.choice_text,
                    short_label=presentation.short_label,
                    preview_hint=presentation.preview_hint,
                    consequence_level=presentation.consequence_level,
                    available=not reason,
                    unavailable_reason=reason,
                ))

        return NarrativeView(
            session_id=session.session_id,
            graph_id=session.graph_id,
            node_id=node.node_id,
            node_type=node.node_type,
            text=node.content.text,
            speaker_id=node.content.speaker_id,
            voices=node.content.voices,
            choices=tuple(options),
            ended=session.ended,
        )

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def start(
        self,
        entry_point_id: str,
        session: NarrativeSessionState,
        external: ExternalState,
        timestamp: str,
        session_id: str,
        quest_id: Optional[str] = None,
    ) -> List[EventItem]:
        entry = self.graph.get_entry_point(entry_point_id)
        if entry is None:
            raise NotFoundError(
                f"Graph '{self.graph.graph_id}' has no entry point '{entry_point_id}'",
                code=ErrorCode.GRAPH_NOT_FOUND,
                graph_id=self.graph.graph_id,
                entry_point_id=entry_point_id
            )
        missing = flags_satisfied(entry.required_flags, session.flags)
        if not missing.satisfied:
            raise ValidationError(
                f"Entry point '{entry_point_id}' requires flags: {', '.join(missing.failed)}",
                code=ErrorCode.PRECONDITION_FAILED,
                entry_point_id=entry_point_id
            )

        run = _Traversal(session, external, timestamp)
        run.emit(EventType.NARRATIVE_SESSION_STARTED, {
            "sessionId": session_id,
            "graphId": self.graph.graph_id,
            "graphVersion": self.graph.version,
            "entryPointId": entry_point_id,
        })
        self._enter(run, entry.starting_node_id, None, quest_id)
        logger.debug("narrative session %s started at %s", session_id, entry.starting_node_id)
        return run.items

    def choose(
        self,
        transition_id: str,
        session: NarrativeSessionState,
        external: ExternalState,
        timestamp: str,
        quest_id: Optional[str] = None,
    ) -> List[EventItem]:
        if not session.is_active or session.current_node_id is None:
            raise ValidationError(
                "No narrative session in progress",
                code=ErrorCode.PRECONDITION_FAILED,
                session_id=session.session_id
            )

        node = self.graph.get_node(session.current_node_id)
        eligible = [
            t for t in self.eligible_transitions(node, session, external)
            if t.transition_type in PLAYER_TRANSITION_TYPES
        ]
        transition = next((t for t in eligible if t.transition_id == transition_id), None)
        if transition is None:
            raise InvalidTransition(
                f"Transition '{transition_id}' is not available from node '{node.node_id}'",
                node_id=node.node_id,
                transition_id=transition_id
            )

        run = _Traversal(session, external, timestamp)
        run.emit(EventType.NARRATIVE_CHOICE_MADE, {
            "sessionId": session.session_id,
            "nodeId": node.node_id,
            "transitionId": transition.transition_id,
            "targetNodeId": transition.target_node_id,
            "choiceText": transition.presentation.choice_text,
        })
        self._apply_effects(run, transition, quest_id)
        self._enter(run, transition.target_node_id, node.node_id, quest_id)
        return run.items

    # -------------------------------------------------------------------------
    # Traversal
    # -------------------------------------------------------------------------

    def _enter(self, run: _Traversal, node_id: str, entered_from: Optional[str], quest_id: Optional[str]) -> None:
        hops = 0
        while True:
            node = self.graph.get_node(node_id)
            visits = run.session.visit_counts.get(node_id, 0)
            if visits > 0 and not node.metadata.is_revisitable:
                raise NodeNotRevisitable(
                    f"Node '{node_id}' cannot be entered twice",
                    graph_id=self.graph.graph_id,
                    node_id=node_id
                )

            session_id = run.session.session_id
            run.emit(EventType.NARRATIVE_NODE_ENTERED, {
                "sessionId": session_id,
                "nodeId": node_id,
                "nodeType": node.node_type.value,
                "enteredFrom": entered_from,
                "visitNumber": visits + 1,
            })
            for flag in node.metadata.sets_flags:
                run.emit(EventType.NARRATIVE_FLAG_SET, {
                    "sessionId": session_id,
                    "flagName": flag,
                    "value": True,
                    "source": "node_entry",
                })

            if node.node_type == NodeType.CHECKPOINT:
                run.emit(EventType.NARRATIVE_CHECKPOINT_REACHED, {
                    "sessionId": session_id,
                    "nodeId": node_id,
                })

            if node.node_type == NodeType.ENDING:
                summary = run.session.path_summary(run.timestamp)
                run.emit(EventType.NARRATIVE_ENDING_REACHED, {
                    "sessionId": session_id,
                    "endingNodeId": node_id,
                    "endingType": node.ending_type.value,
                    "pathSummary": summary.to_dict(),
                })
                return

            if node.node_type != NodeType.BRANCH:
                return

            hops += 1
            if hops > self.max_auto_transitions:
                raise StructuralError(
                    f"Automatic transitions exceeded {self.max_auto_transitions} hops at '{node_id}'",
                    code=ErrorCode.STRUCTURAL_INCONSISTENCY,
                    graph_id=self.graph.graph_id,
                    node_id=node_id
                )
            transition = self._auto_transition(node, run)
            run.emit(EventType.NARRATIVE_TRANSITION_TRIGGERED, {
                "sessionId": session_id,
                "transitionId": transition.transition_id,
                "fromNodeId": node_id,
                "toNodeId": transition.target_node_id,
                "transitionType": transition.transition_type.value,
            })
            self._apply_effects(run, transition, quest_id)
            entered_from, node_id = node_id, transition.target_node_id

    def _auto_transition(self, node: NarrativeNode, run: _Traversal) -> Transition:
        eligible = self.eligible_transitions(node, run.session, run.external_view())
        for transition in eligible:
            if transition.transition_type == TransitionType.AUTOMATIC:
                return transition
        for transition in eligible:
            if transition.transition_type == TransitionType.FALLBACK:
                return transition
        raise StructuralError(
            f"Branch node '{node.node_id}' has no eligible automatic or fallback transition",
            code=ErrorCode.STRUCTURAL_INCONSISTENCY,
            graph_id=self.graph.graph_id,
            node_id=node.node_id
        )

    # -------------------------------------------------------------------------
    # Effects
    # -------------------------------------------------------------------------

    def _apply_effects(self, run: _Traversal, transition: Transition, quest_id: Optional[str]) -> None:
        for index, effect in enumerate(transition.effects):
            self._apply_effect(run, effect, transition, index, quest_id)

    def _apply_effect(
        self,
        run: _Traversal,
        effect: Effect,
        transition: Transition,
        index: int,
        quest_id: Optional[str],
    ) -> None:
        if isinstance(effect, (Increment, Decrement)):
            delta = effect.amount if isinstance(effect, Increment) else -effect.amount
            self._apply_counter(run, effect.target, delta, transition)
        elif isinstance(effect, SetFlag):
            run.emit(EventType.NARRATIVE_FLAG_SET, {
                "sessionId": run.session.session_id,
                "flagName": effect.flag,
                "value": effect.value,
                "source": "effect",
            })
        elif isinstance(effect, TriggerEvent):
            run.emit(effect.event_type, self._trigger_payload(run, effect, transition, index, quest_id))
        else:
            raise StructuralError(
                f"Unsupported effect variant: {type(effect).__name__}",
                code=ErrorCode.STRUCTURAL_INCONSISTENCY,
                transition_id=transition.transition_id
            )

    def _apply_counter(self, run: _Traversal, target: str, delta: int, transition: Transition) -> None:
        if target == "bounty":
            run.bounty = max(0, run.bounty + delta)
            run.emit(EventType.BOUNTY_MODIFIED, {
                "amount": delta,
                "newValue": run.bounty,
                "source": "narrative",
                "reason": transition.transition_id,
            })
            return

        if target.startswith(REPUTATION_PREFIX):
            faction_id = target[len(REPUTATION_PREFIX):]
            if faction_id not in FACTION_IDS:
                raise StructuralError(
                    f"Effect targets unknown faction '{faction_id}'",
                    code=ErrorCode.STRUCTURAL_INCONSISTENCY,
                    transition_id=transition.transition_id
                )
            low, high = self.reputation_bounds
            new_value = clamp_reputation(run.reputation.get(faction_id, 0) + delta, low, high)
            run.reputation[faction_id] = new_value
            run.emit(EventType.REPUTATION_CHANGED, {
                "factionId": faction_id,
                "delta": delta,
                "newValue": new_value,
                "source": "narrative",
            })
            return

        # Any other target is a numeric flag counter
        current = run.session.flags.get(target, 0)
        if not isinstance(current, (int, float)) or isinstance(current, bool):
            current = 0
        run.emit(EventType.NARRATIVE_FLAG_SET, {
            "sessionId": run.session.session_id,
            "flagName": target,
            "value": current + delta,
            "source": "effect",
        })

    def _trigger_payload(
        self,
        run: _Traversal,
        effect: TriggerEvent,
        transition: Transition,
        index: int,
        quest_id: Optional[str],
    ) -> Dict[str, Any]:
        payload = effect.payload_dict()
        session_id = run.session.session_id

        if effect.event_type == EventType.BATTLE_TRIGGERED:
            battle_id = derive_id("battle", session_id, transition.transition_id, index, len(run.items))
            return {
                "battleId": payload.get("battleId", battle_id),
                "questId": payload.get("questId", quest_id),
                "context": payload.get("context", ""),
                "opponentType": payload.get("opponentType", "enemy_forces"),
                "opponentFactionId": payload.get("opponentFactionId", "scavengers"),
                "difficulty": payload.get("difficulty", "medium"),
                "source": "narrative",
            }

        card_id = payload.get("cardId")
        if not card_id:
            raise StructuralError(
                f"{effect.event_type.value} trigger requires a cardId",
                code=ErrorCode.STRUCTURAL_INCONSISTENCY,
                transition_id=transition.transition_id
            )
        return {
            "cardId": card_id,
            "factionId": payload.get("factionId") or self._card_faction(card_id) or "",
            "source": payload.get("source", "narrative"),
        }


def external_state_from(game_state) -> ExternalState:
    """Snapshot of a projected GameState visible to external conditions."""
    alliances: Tuple[str, ...] = ()
    if game_state.active_quest is not None:
        alliances = tuple(a.faction_id for a in game_state.active_quest.alliances)
    return ExternalState(
        reputation=dict(game_state.reputation),
        owned_card_ids=game_state.owned_card_ids(),
        bounty=game_state.bounty,
        completed_quest_ids=tuple(q.quest_id for q in game_state.completed_quests),
        alliance_faction_ids=alliances,
        battle_outcomes=game_state.battle_outcomes,
    )
