"""
Static Graph Validation
=======================

Structural analysis of a NarrativeGraph before any session traverses it.

The graph is mirrored into a networkx DiGraph (one edge per transition)
and checked purely geometrically: links, reachability from entry points,
reachability of endings. No condition is evaluated here; conditional
exits are only reported as potential softlocks.

SEVERITIES:
===========
- error:   the graph cannot be traversed safely (ensure_valid raises)
- warning: authoring smell, traversal still deterministic
- info:    worth a human look
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple
import networkx as nx

from ..contracts.base import ErrorCode, StructuralError
from .graph import NarrativeGraph, NodeType, TransitionType


@dataclass(frozen=True)
class ValidationIssue:
    severity: str
    issue_type: str
    message: str
    node_id: Optional[str] = None
    transition_id: Optional[str] = None


@dataclass(frozen=True)
class GraphStats:
    total_nodes: int
    nodes_by_type: Dict[str, int]
    total_transitions: int
    entry_points: int
    endings: int
    max_depth: int
    average_branching_factor: float


@dataclass(frozen=True)
class ValidationReport:
    graph_id: str
    issues: Tuple[ValidationIssue, ...]
    stats: GraphStats

    @property
    def errors(self) -> Tuple[ValidationIssue, ...]:
        return tuple(i for i in self.issues if i.severity == "error")

    @property
    def warnings(self) -> Tuple[ValidationIssue, ...]:
        return tuple(i for i in self.issues if i.severity == "warning")

    @property
    def info(self) -> Tuple[ValidationIssue, ...]:
        return tuple(i for i in self.issues if i.severity == "info")

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def issue_types(self) -> Set[str]:
        return {i.issue_type for i in self.issues}


def to_digraph(graph: NarrativeGraph) -> nx.DiGraph:
    """Directed topology of the graph. Broken links are left out."""
    g = nx.DiGraph()
    for node_id, node in graph.nodes.items():
        g.add_node(node_id, node_type=node.node_type.value)
    for node, transition in graph.iter_transitions():
        if transition.target_node_id in graph.nodes:
            g.add_edge(node.node_id, transition.target_node_id, transition_id=transition.transition_id)
    return g


def _entry_nodes(graph: NarrativeGraph) -> List[str]:
    return [e.starting_node_id for e in graph.entry_points if e.starting_node_id in graph.nodes]


def _reachable(g: nx.DiGraph, sources: List[str]) -> Set[str]:
    reached: Set[str] = set()
    for source in sources:
        if source in reached:
            continue
        reached.add(source)
        reached |= nx.descendants(g, source)
    return reached


def _reaching_ending(g: nx.DiGraph, endings: List[str]) -> Set[str]:
    reaching: Set[str] = set(endings)
    for ending in endings:
        reaching |= nx.ancestors(g, ending)
    return reaching


def compute_stats(graph: NarrativeGraph, g: Optional[nx.DiGraph] = None) -> GraphStats:
    g = g if g is not None else to_digraph(graph)
    by_type: Dict[str, int] = {}
    for node in graph.nodes.values():
        by_type[node.node_type.value] = by_type.get(node.node_type.value, 0) + 1

    max_depth = 0
    for source in _entry_nodes(graph):
        lengths = nx.single_source_shortest_path_length(g, source)
        max_depth = max(max_depth, max(lengths.values(), default=0))

    total_transitions = sum(len(n.transitions) for n in graph.nodes.values())
    branching = [len(n.transitions) for n in graph.nodes.values() if n.transitions]

    return GraphStats(
        total_nodes=len(graph.nodes),
        nodes_by_type=by_type,
        total_transitions=total_transitions,
        entry_points=len(graph.entry_points),
        endings=by_type.get(NodeType.ENDING.value, 0),
        max_depth=max_depth,
        average_branching_factor=(sum(branching) / len(branching)) if branching else 0.0,
    )


def validate_graph(graph: NarrativeGraph) -> ValidationReport:
    issues: List[ValidationIssue] = []
    g = to_digraph(graph)

    if not graph.nodes:
        issues.append(ValidationIssue("error", "empty_graph", "Graph has no nodes"))
        return ValidationReport(graph.graph_id, tuple(issues), compute_stats(graph, g))

    # Entry points
    if not graph.entry_points:
        issues.append(ValidationIssue("error", "missing_entry", "Graph has no entry points"))
    for entry in graph.entry_points:
        if entry.starting_node_id not in graph.nodes:
            issues.append(ValidationIssue(
                "error", "missing_entry",
                f"Entry point '{entry.entry_point_id}' starts at non-existent node '{entry.starting_node_id}'",
                node_id=entry.starting_node_id,
            ))

    # Nodes and transitions
    for node_id, node in graph.nodes.items():
        if not node.content.text:
            issues.append(ValidationIssue("warning", "missing_content", f"Node '{node_id}' has no text", node_id))

        if node.node_type == NodeType.ENDING and node.transitions:
            issues.append(ValidationIssue(
                "error", "ending_with_transitions",
                f"Ending node '{node_id}' has outgoing transitions", node_id,
            ))
        if node.node_type != NodeType.ENDING and not node.transitions:
            issues.append(ValidationIssue(
                "error", "dead_end",
                f"Node '{node_id}' has no transitions and is not an ending", node_id,
            ))

        for transition in node.transitions:
            if transition.target_node_id not in graph.nodes:
                issues.append(ValidationIssue(
                    "error", "broken_link",
                    f"Transition '{transition.transition_id}' in node '{node_id}' targets "
                    f"non-existent node '{transition.target_node_id}'",
                    node_id, transition.transition_id,
                ))
            if (
                node.node_type == NodeType.CHOICE
                and transition.transition_type == TransitionType.CHOICE
                and not transition.presentation.choice_text
            ):
                issues.append(ValidationIssue(
                    "warning", "missing_choice_text",
                    f"Choice transition '{transition.transition_id}' in node '{node_id}' has no choice text",
                    node_id, transition.transition_id,
                ))

    # Reachability
    reachable = _reachable(g, _entry_nodes(graph))
    endings = [n for n, node in graph.nodes.items() if node.node_type == NodeType.ENDING]

    for node_id in graph.nodes:
        if node_id not in reachable:
            issues.append(ValidationIssue(
                "warning", "orphan_node", f"Node '{node_id}' is not reachable from any entry point", node_id,
            ))

    if not endings:
        issues.append(ValidationIssue("warning", "no_endings", "Graph has no ending nodes"))
    for ending in endings:
        if ending not in reachable:
            issues.append(ValidationIssue(
                "warning", "unreachable_ending",
                f"Ending node '{ending}' is not reachable from any entry point", ending,
            ))

    # Softlocks
    reaching = _reaching_ending(g, endings)
    for node_id, node in graph.nodes.items():
        if node.node_type == NodeType.ENDING or not node.transitions:
            continue
        unconditional = any(t.condition is None and not t.requires_flags for t in node.transitions)
        fallback = any(t.transition_type == TransitionType.FALLBACK for t in node.transitions)
        if not unconditional and not fallback:
            issues.append(ValidationIssue(
                "info", "potential_softlock",
                f"Node '{node_id}' has only conditional transitions", node_id,
            ))
        if endings and node_id in reachable and node_id not in reaching:
            issues.append(ValidationIssue(
                "warning", "circular_only",
                f"Node '{node_id}' cannot reach any ending", node_id,
            ))

    return ValidationReport(graph.graph_id, tuple(issues), compute_stats(graph, g))


def ensure_valid(graph: NarrativeGraph) -> ValidationReport:
    """Validate and raise StructuralError on the first error-level issue."""
    report = validate_graph(graph)
    if report.errors:
        first = report.errors[0]
        code = ErrorCode.BROKEN_LINK if first.issue_type == "broken_link" else ErrorCode.STRUCTURAL_INCONSISTENCY
        raise StructuralError(
            f"Graph '{graph.graph_id}' is invalid: {first.message}",
            code=code,
            graph_id=graph.graph_id,
            issue_type=first.issue_type,
            node_id=first.node_id,
            error_count=len(report.errors)
        )
    return report
