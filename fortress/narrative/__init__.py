"""
Narrative Layer

Graph model, loading, static validation, condition resolution and the
traversal engine. Nothing here appends to a log; the engine only returns
event batches for the caller to commit.
"""

from .graph import (
    NarrativeGraph, NarrativeNode, NodeType, Transition, TransitionType,
    Presentation, ConsequenceLevel, EndingType, EntryPoint, NodeContent, NodeMetadata,
    Increment, Decrement, SetFlag, TriggerEvent,
    HasFlag, LacksFlag, VisitedNode, NotVisitedNode, VisitCount, FlagValue,
    External, AllOf, AnyOf, Not,
)
from .conditions import ConditionContext, ConditionResult, ExternalState, evaluate
from .loader import graph_from_dict, load_graph
from .validation import ValidationIssue, ValidationReport, GraphStats, validate_graph, ensure_valid
from .engine import (
    NarrativeEngine, NarrativeSessionState, NarrativeSessionFold, NarrativeView,
    ChoiceOption, PathSummary, fold_narrative_session, external_state_from,
)
from .quest_adapter import quest_to_graph

__all__ = [
    "NarrativeGraph", "NarrativeNode", "NodeType", "Transition", "TransitionType",
    "Presentation", "ConsequenceLevel", "EndingType", "EntryPoint", "NodeContent", "NodeMetadata",
    "Increment", "Decrement", "SetFlag", "TriggerEvent",
    "HasFlag", "LacksFlag", "VisitedNode", "NotVisitedNode", "VisitCount", "FlagValue",
    "External", "AllOf", "AnyOf", "Not",
    "ConditionContext", "ConditionResult", "ExternalState", "evaluate",
    "graph_from_dict", "load_graph",
    "ValidationIssue", "ValidationReport", "GraphStats", "validate_graph", "ensure_valid",
    "NarrativeEngine", "NarrativeSessionState", "NarrativeSessionFold", "NarrativeView",
    "ChoiceOption", "PathSummary", "fold_narrative_session", "external_state_from",
    "quest_to_graph",
]
