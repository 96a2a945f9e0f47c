"""
Narrative Slice

Bridges player commands to the narrative traversal engine.

- BEGIN_NARRATIVE {graphId, entryPointId}: opens a session on a graph
- CHOOSE_TRANSITION {transitionId}: follows a player transition from the
  current node of the open session

The engine returns the event items; this slice only resolves the graph,
guards the game phase and stamps the batch.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

from ..contracts.base import ErrorCode, derive_id
from ..contracts.commands import Command
from ..contracts.events import Event
from ..contracts.game import GamePhase, GameStatus
from ..narrative.conditions import ExternalState
from ..narrative.engine import NarrativeEngine, NarrativeSessionState, external_state_from
from ..narrative.graph import NarrativeGraph
from .base import SliceContext, batch, not_found, precondition, require_in_progress, require_phase

NARRATIVE_PHASES = (GamePhase.QUEST_HUB, GamePhase.NARRATIVE)


@dataclass(frozen=True)
class NarrativeSliceState:
    status: GameStatus
    phase: GamePhase
    session: NarrativeSessionState = field(default_factory=NarrativeSessionState)
    external: ExternalState = field(default_factory=ExternalState)
    active_quest_id: Optional[str] = None
    events_applied: int = 0


def select(game_state, narrative_session: NarrativeSessionState) -> NarrativeSliceState:
    return NarrativeSliceState(
        status=game_state.status,
        phase=game_state.phase,
        session=narrative_session,
        external=external_state_from(game_state),
        active_quest_id=game_state.active_quest.quest_id if game_state.active_quest else None,
        events_applied=game_state.events_applied,
    )


def engine_for(graph: NarrativeGraph, ctx: SliceContext) -> NarrativeEngine:
    config = ctx.config
    return NarrativeEngine(
        graph,
        max_auto_transitions=config.max_auto_transitions,
        reputation_bounds=(config.reputation_min, config.reputation_max),
        card_faction=ctx.content.get_card_faction,
    )


def _graph(ctx: SliceContext, graph_id: str) -> NarrativeGraph:
    graph = ctx.content.get_graph_by_id(graph_id)
    if graph is None:
        raise not_found(f"Narrative graph not found: {graph_id}", ErrorCode.GRAPH_NOT_FOUND, graph_id=graph_id)
    return graph


def handle_begin_narrative(command: Command, state: NarrativeSliceState, ctx: SliceContext) -> List[Event]:
    require_in_progress(state.status, command)
    require_phase(state.phase, command, *NARRATIVE_PHASES)
    if state.session.is_active:
        raise precondition(
            "A narrative session is already in progress",
            command,
            session_id=state.session.session_id
        )

    graph_id = command.require_str("graphId")
    entry_point_id = command.require_str("entryPointId")
    graph = _graph(ctx, graph_id)

    session_id = derive_id("narrative", graph_id, entry_point_id, ctx.timestamp, state.events_applied)
    items = engine_for(graph, ctx).start(
        entry_point_id,
        state.session,
        state.external,
        ctx.timestamp,
        session_id,
        quest_id=state.active_quest_id,
    )
    return batch(ctx, items)


def handle_choose_transition(command: Command, state: NarrativeSliceState, ctx: SliceContext) -> List[Event]:
    require_in_progress(state.status, command)
    require_phase(state.phase, command, *NARRATIVE_PHASES)
    if not state.session.is_active or not state.session.graph_id:
        raise precondition("No narrative session in progress", command, current_phase=state.phase.value)

    transition_id = command.require_str("transitionId")
    graph = _graph(ctx, state.session.graph_id)
    items = engine_for(graph, ctx).choose(
        transition_id,
        state.session,
        state.external,
        ctx.timestamp,
        quest_id=state.active_quest_id,
    )
    return batch(ctx, items)
