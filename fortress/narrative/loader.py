"""
Graph loading from plain data (JSON-compatible dicts).

Authoring format mirrors the wire vocabulary: camelCase keys, effects as
{effectType, target, value} and conditions as simple/compound objects.
Everything is translated into the closed variants of `graph.py` here, so
an unknown effect or condition kind fails at load time.
"""

from __future__ import annotations
from typing import Any, Dict, List, Mapping
import json

from ..contracts.base import StructuralError, UnknownEventType, ErrorCode
from ..contracts.events import EventType
from ..contracts.game import Voice
from .graph import (
    NarrativeGraph, NarrativeNode, NodeType, NodeContent, NodeMetadata,
    Transition, TransitionType, Presentation, ConsequenceLevel, EndingType,
    EntryPoint, Effect, Increment, Decrement, SetFlag, TriggerEvent,
    Condition, HasFlag, LacksFlag, VisitedNode, NotVisitedNode, VisitCount,
    FlagValue, External, AllOf, AnyOf, Not,
)


def _fail(message: str, **context) -> StructuralError:
    return StructuralError(message, code=ErrorCode.STRUCTURAL_INCONSISTENCY, **context)


def _enum(enum_cls, raw: Any, what: str):
    try:
        return enum_cls(raw)
    except ValueError:
        raise _fail(f"Unknown {what}: {raw}")


def parse_effect(raw: Mapping[str, Any]) -> Effect:
    effect_type = raw.get("effectType")
    target = raw.get("target", "")
    value = raw.get("value")

    if effect_type == "increment":
        return Increment(target=target, amount=int(value))
    if effect_type == "decrement":
        return Decrement(target=target, amount=int(value))
    if effect_type == "set_flag":
        return SetFlag(flag=target, value=True if value is None else value)
    if effect_type == "clear_flag":
        return SetFlag(flag=target, value=False)
    if effect_type == "trigger_event":
        try:
            event_type = EventType.parse(target)
        except UnknownEventType:
            raise _fail(f"trigger_event targets unknown event '{target}'")
        payload = tuple(sorted((value or {}).items()))
        return TriggerEvent(event_type=event_type, payload=payload)
    raise _fail(f"Unknown effect type: {effect_type}")


def parse_condition(raw: Mapping[str, Any]) -> Condition:
    kind = raw.get("type", "simple")

    if kind == "compound":
        operator = raw.get("operator")
        children = tuple(parse_condition(c) for c in raw.get("conditions", []))
        if operator == "and":
            return AllOf(conditions=children)
        if operator == "or":
            return AnyOf(conditions=children)
        if operator == "not":
            if len(children) != 1:
                raise _fail("'not' condition takes exactly one operand")
            return Not(condition=children[0])
        raise _fail(f"Unknown compound operator: {operator}")

    condition_type = raw.get("conditionType")
    params = raw.get("params", {})

    if condition_type == "has_flag":
        return HasFlag(flag=params["flag"])
    if condition_type == "lacks_flag":
        return LacksFlag(flag=params["flag"])
    if condition_type == "visited_node":
        return VisitedNode(node_id=params["nodeId"])
    if condition_type == "not_visited_node":
        return NotVisitedNode(node_id=params["nodeId"])
    if condition_type == "visit_count":
        return VisitCount(
            node_id=params["nodeId"],
            operator=params.get("operator", ">="),
            value=int(params["value"])
        )
    if condition_type == "flag_value":
        return FlagValue(
            flag=params["flag"],
            operator=params.get("operator", "=="),
            value=params.get("value")
        )
    if condition_type == "external":
        check = params.get("conditionId")
        rest = tuple(sorted((k, v) for k, v in params.items() if k != "conditionId"))
        return External(check=check, params=rest)
    if condition_type == "random":
        raise _fail("random conditions are not supported: traversal must be deterministic")
    raise _fail(f"Unknown condition type: {condition_type}")


def _parse_presentation(raw: Mapping[str, Any]) -> Presentation:
    level = raw.get("consequenceLevel")
    return Presentation(
        choice_text=raw.get("choiceText", ""),
        short_label=raw.get("shortLabel", ""),
        is_hidden=bool(raw.get("isHidden", False)),
        is_disabled=bool(raw.get("isDisabled", False)),
        disabled_reason=raw.get("disabledReason", ""),
        preview_hint=raw.get("previewHint", ""),
        consequence_level=_enum(ConsequenceLevel, level, "consequence level") if level else None,
    )


def _parse_transition(raw: Mapping[str, Any]) -> Transition:
    condition = raw.get("condition")
    return Transition(
        transition_id=raw["transitionId"],
        target_node_id=raw["targetNodeId"],
        transition_type=_enum(TransitionType, raw.get("transitionType", "choice"), "transition type"),
        presentation=_parse_presentation(raw.get("presentation", {})),
        effects=tuple(parse_effect(e) for e in raw.get("effects", [])),
        condition=parse_condition(condition) if condition else None,
        requires_flags=tuple(raw.get("requiresFlags", [])),
    )


def _parse_node(raw: Mapping[str, Any]) -> NarrativeNode:
    content = raw.get("content", {})
    metadata = raw.get("metadata", {})
    return NarrativeNode(
        node_id=raw["nodeId"],
        node_type=_enum(NodeType, raw["nodeType"], "node type"),
        content=NodeContent(
            text=content.get("text", ""),
            speaker_id=content.get("speakerId", ""),
            mood=content.get("mood", ""),
            voices=tuple(
                Voice(
                    npc_name=v["npcName"],
                    faction_id=v.get("factionId", "other"),
                    dialogue=v.get("dialogue", ""),
                    position=v.get("position", ""),
                )
                for v in content.get("voices", [])
            ),
        ),
        transitions=tuple(_parse_transition(t) for t in raw.get("transitions", [])),
        metadata=NodeMetadata(
            is_revisitable=bool(metadata.get("isRevisitable", True)),
            requires_flags=tuple(metadata.get("requiresFlags", [])),
            sets_flags=tuple(metadata.get("setsFlags", [])),
        ),
        ending_type=_enum(EndingType, raw.get("endingType", "neutral"), "ending type"),
    )


def graph_from_dict(raw: Mapping[str, Any]) -> NarrativeGraph:
    """Build an immutable graph from authoring data."""
    try:
        metadata = raw.get("metadata", {})
        nodes: List[NarrativeNode] = [_parse_node(n) for n in raw.get("nodes", [])]
        entry_points = tuple(
            EntryPoint(
                entry_point_id=e["entryPointId"],
                starting_node_id=e["startingNodeId"],
                required_flags=tuple(e.get("requiredFlags", [])),
            )
            for e in raw.get("entryPoints", [])
        )
        global_conditions: Dict[str, Condition] = {
            key: parse_condition(value)
            for key, value in raw.get("globalConditions", {}).items()
        }
        return NarrativeGraph.build(
            graph_id=raw["graphId"],
            version=raw.get("version", "1.0.0"),
            nodes=tuple(nodes),
            entry_points=entry_points,
            global_conditions=global_conditions,
            title=metadata.get("title", ""),
            tags=tuple(metadata.get("tags", [])),
        )
    except KeyError as e:
        raise _fail(f"Graph definition is missing required key {e}")


def load_graph(path: str) -> NarrativeGraph:
    with open(path, 'r', encoding='utf-8') as f:
        return graph_from_dict(json.load(f))
