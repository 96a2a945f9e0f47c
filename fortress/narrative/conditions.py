"""
Condition Resolution

Evaluates transition guards against session-derived state only: flags
folded from the log, per-node visit counts, and an ExternalState snapshot
of the game (reputation, cards, bounty...). Never reads the graph
definition for flag values.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
import operator

from ..contracts.base import StructuralError, ErrorCode
from .graph import (
    Condition, HasFlag, LacksFlag, VisitedNode, NotVisitedNode, VisitCount,
    FlagValue, External, AllOf, AnyOf, Not,
)


COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}


@dataclass(frozen=True)
class ExternalState:
    """Read-only snapshot of game state visible to external conditions."""
    reputation: Mapping[str, int] = field(default_factory=dict)
    owned_card_ids: Tuple[str, ...] = field(default_factory=tuple)
    bounty: int = 0
    completed_quest_ids: Tuple[str, ...] = field(default_factory=tuple)
    alliance_faction_ids: Tuple[str, ...] = field(default_factory=tuple)
    battle_outcomes: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ConditionContext:
    flags: Mapping[str, Any]
    visit_counts: Mapping[str, int]
    external: ExternalState = field(default_factory=ExternalState)
    global_conditions: Mapping[str, Condition] = field(default_factory=dict)


@dataclass(frozen=True)
class ConditionResult:
    satisfied: bool
    failed: Tuple[str, ...] = field(default_factory=tuple)

    @staticmethod
    def ok() -> 'ConditionResult':
        return ConditionResult(satisfied=True)

    @staticmethod
    def fail(reason: str) -> 'ConditionResult':
        return ConditionResult(satisfied=False, failed=(reason,))


def flag_is_set(flags: Mapping[str, Any], name: str) -> bool:
    value = flags.get(name)
    return value is not None and value is not False


def _compare(op: str, left: Any, right: Any) -> bool:
    comparator = COMPARATORS.get(op)
    if comparator is None:
        raise StructuralError(f"Unknown comparison operator: {op}", code=ErrorCode.STRUCTURAL_INCONSISTENCY)
    try:
        return comparator(left, right)
    except TypeError:
        return False


def _evaluate_external(condition: External, ctx: ConditionContext) -> bool:
    state = ctx.external
    check = condition.check

    if check == "reputation_gte":
        return state.reputation.get(condition.param("factionId"), 0) >= condition.param("value", 0)
    if check == "reputation_lte":
        return state.reputation.get(condition.param("factionId"), 0) <= condition.param("value", 0)
    if check == "has_card":
        return condition.param("cardId") in state.owned_card_ids
    if check == "card_count_gte":
        return len(state.owned_card_ids) >= condition.param("count", 0)
    if check == "bounty_gte":
        return state.bounty >= condition.param("value", 0)
    if check == "quest_completed":
        return condition.param("questId") in state.completed_quest_ids
    if check == "alliance_formed":
        return condition.param("factionId") in state.alliance_faction_ids
    if check == "battle_outcome":
        wanted = condition.param("outcome")
        battle_id = condition.param("battleId")
        return any(
            outcome == wanted and (battle_id is None or bid == battle_id)
            for bid, outcome in state.battle_outcomes
        )
    if check in ctx.global_conditions:
        return evaluate(ctx.global_conditions[check], ctx).satisfied
    raise StructuralError(
        f"Unknown external condition: {check}",
        code=ErrorCode.STRUCTURAL_INCONSISTENCY,
        condition=check
    )


def evaluate(condition: Optional[Condition], ctx: ConditionContext) -> ConditionResult:
    """Evaluate a condition tree. A missing condition is always satisfied."""
    if condition is None:
        return ConditionResult.ok()

    if isinstance(condition, HasFlag):
        if flag_is_set(ctx.flags, condition.flag):
            return ConditionResult.ok()
        return ConditionResult.fail(f"has_flag:{condition.flag}")

    if isinstance(condition, LacksFlag):
        if not flag_is_set(ctx.flags, condition.flag):
            return ConditionResult.ok()
        return ConditionResult.fail(f"lacks_flag:{condition.flag}")

    if isinstance(condition, VisitedNode):
        if ctx.visit_counts.get(condition.node_id, 0) > 0:
            return ConditionResult.ok()
        return ConditionResult.fail(f"visited_node:{condition.node_id}")

    if isinstance(condition, NotVisitedNode):
        if ctx.visit_counts.get(condition.node_id, 0) == 0:
            return ConditionResult.ok()
        return ConditionResult.fail(f"not_visited_node:{condition.node_id}")

    if isinstance(condition, VisitCount):
        count = ctx.visit_counts.get(condition.node_id, 0)
        if _compare(condition.operator, count, condition.value):
            return ConditionResult.ok()
        return ConditionResult.fail(f"visit_count:{condition.node_id}{condition.operator}{condition.value}")

    if isinstance(condition, FlagValue):
        if _compare(condition.operator, ctx.flags.get(condition.flag), condition.value):
            return ConditionResult.ok()
        return ConditionResult.fail(f"flag_value:{condition.flag}{condition.operator}{condition.value}")

    if isinstance(condition, External):
        if _evaluate_external(condition, ctx):
            return ConditionResult.ok()
        return ConditionResult.fail(f"external:{condition.check}")

    if isinstance(condition, AllOf):
        failed: Tuple[str, ...] = ()
        for child in condition.conditions:
            failed += evaluate(child, ctx).failed
        return ConditionResult(satisfied=not failed, failed=failed)

    if isinstance(condition, AnyOf):
        failed = ()
        for child in condition.conditions:
            result = evaluate(child, ctx)
            if result.satisfied:
                return ConditionResult.ok()
            failed += result.failed
        return ConditionResult(satisfied=False, failed=failed)

    if isinstance(condition, Not):
        if evaluate(condition.condition, ctx).satisfied:
            return ConditionResult.fail("not")
        return ConditionResult.ok()

    raise StructuralError(
        f"Unsupported condition variant: {type(condition).__name__}",
        code=ErrorCode.STRUCTURAL_INCONSISTENCY
    )


def flags_satisfied(required: Tuple[str, ...], flags: Mapping[str, Any]) -> ConditionResult:
    missing = tuple(f"requires_flag:{name}" for name in required if not flag_is_set(flags, name))
    return ConditionResult(satisfied=not missing, failed=missing)
