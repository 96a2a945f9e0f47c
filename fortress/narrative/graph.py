"""
Narrative Graph Model
=====================

Immutable description of a branching story: an arena of nodes addressed
by id, with transitions that reference target ids (never own nodes), so
cycles in the story never become cycles in ownership.

CLOSED VARIANTS:
- Effect:    Increment | Decrement | SetFlag | TriggerEvent
- Condition: HasFlag | LacksFlag | VisitedNode | NotVisitedNode | VisitCount
             | FlagValue | External | AllOf | AnyOf | Not

Consumers match these exhaustively; an unsupported variant is a
StructuralError, never a silent no-op.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple, Union
from enum import Enum

from ..contracts.base import StructuralError, ErrorCode
from ..contracts.events import EventType, TRIGGER_EVENT_TYPES
from ..contracts.game import Voice


class NodeType(Enum):
    STORY = "story"
    CHOICE = "choice"
    BRANCH = "branch"
    HUB = "hub"
    ENDING = "ending"
    CHECKPOINT = "checkpoint"


class TransitionType(Enum):
    CHOICE = "choice"
    AUTOMATIC = "automatic"
    FALLBACK = "fallback"
    TIMED = "timed"
    EVENT = "event"


class ConsequenceLevel(Enum):
    MINOR = "minor"
    MAJOR = "major"
    IRREVERSIBLE = "irreversible"


class EndingType(Enum):
    GOOD = "good"
    BAD = "bad"
    NEUTRAL = "neutral"
    SECRET = "secret"


# =============================================================================
# EFFECTS
# =============================================================================

@dataclass(frozen=True)
class Increment:
    """Raise a named quantity: "bounty" or "reputation_<faction>"."""
    target: str
    amount: int


@dataclass(frozen=True)
class Decrement:
    target: str
    amount: int


@dataclass(frozen=True)
class SetFlag:
    """Set a flag. Clearing is SetFlag with value False."""
    flag: str
    value: Any = True


@dataclass(frozen=True)
class TriggerEvent:
    """Request a cross-cutting domain event handled by a collaborator."""
    event_type: EventType
    payload: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.event_type not in TRIGGER_EVENT_TYPES:
            raise StructuralError(
                f"trigger_event cannot emit {self.event_type.value}",
                code=ErrorCode.STRUCTURAL_INCONSISTENCY,
                event_type=self.event_type.value
            )

    def payload_dict(self) -> Dict[str, Any]:
        return dict(self.payload)


Effect = Union[Increment, Decrement, SetFlag, TriggerEvent]


# =============================================================================
# CONDITIONS
# =============================================================================

@dataclass(frozen=True)
class HasFlag:
    flag: str


@dataclass(frozen=True)
class LacksFlag:
    flag: str


@dataclass(frozen=True)
class VisitedNode:
    node_id: str


@dataclass(frozen=True)
class NotVisitedNode:
    node_id: str


@dataclass(frozen=True)
class VisitCount:
    node_id: str
    operator: str
    value: int


@dataclass(frozen=True)
class FlagValue:
    flag: str
    operator: str
    value: Any


@dataclass(frozen=True)
class External:
    """Condition answered by game state outside the graph (reputation, cards...)."""
    check: str
    params: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    def param(self, key: str, default: Any = None) -> Any:
        return dict(self.params).get(key, default)


@dataclass(frozen=True)
class AllOf:
    conditions: Tuple['Condition', ...]


@dataclass(frozen=True)
class AnyOf:
    conditions: Tuple['Condition', ...]


@dataclass(frozen=True)
class Not:
    condition: 'Condition'


Condition = Union[
    HasFlag, LacksFlag, VisitedNode, NotVisitedNode, VisitCount,
    FlagValue, External, AllOf, AnyOf, Not
]


# =============================================================================
# NODES AND TRANSITIONS
# =============================================================================

@dataclass(frozen=True)
class Presentation:
    choice_text: str = ""
    short_label: str = ""
    is_hidden: bool = False
    is_disabled: bool = False
    disabled_reason: str = ""
    preview_hint: str = ""
    consequence_level: Optional[ConsequenceLevel] = None


@dataclass(frozen=True)
class Transition:
    transition_id: str
    target_node_id: str
    transition_type: TransitionType = TransitionType.CHOICE
    presentation: Presentation = field(default_factory=Presentation)
    effects: Tuple[Effect, ...] = field(default_factory=tuple)
    condition: Optional[Condition] = None
    requires_flags: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class NodeContent:
    text: str = ""
    speaker_id: str = ""
    mood: str = ""
    voices: Tuple[Voice, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class NodeMetadata:
    is_revisitable: bool = True
    requires_flags: Tuple[str, ...] = field(default_factory=tuple)
    sets_flags: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class NarrativeNode:
    node_id: str
    node_type: NodeType
    content: NodeContent = field(default_factory=NodeContent)
    transitions: Tuple[Transition, ...] = field(default_factory=tuple)
    metadata: NodeMetadata = field(default_factory=NodeMetadata)
    ending_type: EndingType = EndingType.NEUTRAL

    def get_transition(self, transition_id: str) -> Optional[Transition]:
        for transition in self.transitions:
            if transition.transition_id == transition_id:
                return transition
        return None


@dataclass(frozen=True)
class EntryPoint:
    entry_point_id: str
    starting_node_id: str
    required_flags: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class NarrativeGraph:
    """
    Arena of nodes keyed by node id.

    Construct through `NarrativeGraph.build` so duplicate ids are rejected;
    the mapping is never mutated after construction.
    """
    graph_id: str
    version: str
    nodes: Mapping[str, NarrativeNode]
    entry_points: Tuple[EntryPoint, ...] = field(default_factory=tuple)
    global_conditions: Mapping[str, Condition] = field(default_factory=dict)
    title: str = ""
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def __hash__(self):
        return hash((self.graph_id, self.version))

    @staticmethod
    def build(
        graph_id: str,
        version: str,
        nodes: Tuple[NarrativeNode, ...],
        entry_points: Tuple[EntryPoint, ...],
        global_conditions: Optional[Dict[str, Condition]] = None,
        title: str = "",
        tags: Tuple[str, ...] = ()
    ) -> NarrativeGraph:
        arena: Dict[str, NarrativeNode] = {}
        for node in nodes:
            if node.node_id in arena:
                raise StructuralError(
                    f"Duplicate node id '{node.node_id}' in graph '{graph_id}'",
                    code=ErrorCode.STRUCTURAL_INCONSISTENCY,
                    graph_id=graph_id,
                    node_id=node.node_id
                )
            arena[node.node_id] = node
        return NarrativeGraph(
            graph_id=graph_id,
            version=version,
            nodes=arena,
            entry_points=tuple(entry_points),
            global_conditions=dict(global_conditions or {}),
            title=title,
            tags=tuple(tags)
        )

    def get_node(self, node_id: str) -> NarrativeNode:
        node = self.nodes.get(node_id)
        if node is None:
            raise StructuralError(
                f"Graph '{self.graph_id}' references missing node '{node_id}'",
                code=ErrorCode.BROKEN_LINK,
                graph_id=self.graph_id,
                node_id=node_id
            )
        return node

    def get_entry_point(self, entry_point_id: str) -> Optional[EntryPoint]:
        for entry in self.entry_points:
            if entry.entry_point_id == entry_point_id:
                return entry
        return None

    def iter_transitions(self) -> Iterator[Tuple[NarrativeNode, Transition]]:
        for node in self.nodes.values():
            for transition in node.transitions:
                yield node, transition
