"""
Make Choice Slice

MAKE_CHOICE answers the current dilemma. The choice's consequences are
emitted as their own events, followed by the consequence screen:

    CHOICE_MADE
    REPUTATION_CHANGED*  (new value, clamped)
    CARD_GAINED* / CARD_LOST*
    BOUNTY_MODIFIED?     (floor 0)
    FLAG_SET*
    CHOICE_CONSEQUENCE_PRESENTED
    PHASE_CHANGED(narrative -> choice_consequence)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple
import hashlib

from ..contracts.base import ErrorCode
from ..contracts.commands import Command
from ..contracts.events import Event, EventType
from ..contracts.game import (
    Choice, ChoiceConsequences, GamePhase, GameStatus, TriggersNext, clamp_reputation,
)
from .base import (
    EventItem, SliceContext, batch, not_found, phase_changed, precondition,
    require_active_quest, require_in_progress, require_phase,
)


NARRATIVE_TEMPLATES: Dict[str, Tuple[str, ...]] = {
    "positive_rep": (
        "Your decision strengthens old bonds and forges new alliances.",
        "Word of your actions spreads quickly through the sector.",
        "Your reputation precedes you now.",
    ),
    "negative_rep": (
        "Some doors close as others open.",
        "Your choice will not be forgotten.",
        "The consequences of your decision ripple through the void.",
    ),
    "bounty_gain": (
        "Your coffers grow heavier with credits.",
        "A profitable outcome, though profit is not everything.",
    ),
    "bounty_loss": (
        "Credits flow from your account, but some things are worth more than money.",
        "The cost is steep, but you made your choice.",
    ),
    "battle_ahead": (
        "Steel yourself. Conflict awaits beyond the next jump.",
        "The path ahead leads through fire and fury.",
    ),
    "mediation_ahead": (
        "A delicate negotiation lies ahead. Choose your words carefully.",
        "Diplomacy may yet prevail, if you can find common ground.",
    ),
    "quest_complete": (
        "Your quest nears its conclusion. The sector will remember this.",
        "The final threads of this tale are weaving together.",
    ),
    "default": (
        "Your choice echoes through the void...",
        "The consequences of your decision unfold.",
        "What comes next remains to be seen.",
    ),
}


@dataclass(frozen=True)
class MakeChoiceState:
    status: GameStatus
    phase: GamePhase
    active_quest_id: Optional[str] = None
    current_dilemma_id: Optional[str] = None
    reputation: Mapping[str, int] = field(default_factory=dict)
    bounty: int = 0
    owned_card_ids: Tuple[str, ...] = field(default_factory=tuple)


def select(game_state) -> MakeChoiceState:
    return MakeChoiceState(
        status=game_state.status,
        phase=game_state.phase,
        active_quest_id=game_state.active_quest.quest_id if game_state.active_quest else None,
        current_dilemma_id=game_state.current_dilemma_id,
        reputation=dict(game_state.reputation),
        bounty=game_state.bounty,
        owned_card_ids=game_state.owned_card_ids(),
    )


def triggers_next(consequences: ChoiceConsequences, is_last_dilemma: bool) -> TriggersNext:
    """What the consequence screen leads to. Battle outranks alliance outranks mediation."""
    if consequences.triggers_battle is not None:
        return TriggersNext.BATTLE
    if consequences.triggers_alliance:
        return TriggersNext.ALLIANCE
    if consequences.triggers_mediation:
        return TriggersNext.MEDIATION
    if consequences.next_dilemma_id:
        return TriggersNext.NEXT_DILEMMA
    if is_last_dilemma:
        return TriggersNext.QUEST_COMPLETE
    return TriggersNext.ALLIANCE


def narrative_text(choice: Choice, following: TriggersNext) -> str:
    """Authored aftermath text, else a template picked by hashing the choice id."""
    if choice.narrative_text:
        return choice.narrative_text

    cons = choice.consequences
    if following == TriggersNext.BATTLE:
        category = "battle_ahead"
    elif following == TriggersNext.MEDIATION:
        category = "mediation_ahead"
    elif following == TriggersNext.QUEST_COMPLETE:
        category = "quest_complete"
    elif cons.reputation_changes:
        net = sum(change.delta for change in cons.reputation_changes)
        category = "positive_rep" if net >= 0 else "negative_rep"
    elif cons.bounty_modifier:
        category = "bounty_gain" if cons.bounty_modifier > 0 else "bounty_loss"
    else:
        category = "default"

    options = NARRATIVE_TEMPLATES[category]
    digest = int(hashlib.sha256(choice.choice_id.encode("utf-8")).hexdigest(), 16)
    return options[digest % len(options)]


def handle_make_choice(command: Command, state: MakeChoiceState, ctx: SliceContext) -> List[Event]:
    require_in_progress(state.status, command)
    require_phase(state.phase, command, GamePhase.NARRATIVE)
    quest_id = require_active_quest(state.active_quest_id, command, state.phase)

    dilemma_id = command.require_str("dilemmaId")
    choice_id = command.require_str("choiceId")
    if state.current_dilemma_id is not None and dilemma_id != state.current_dilemma_id:
        raise precondition(
            f"Dilemma {dilemma_id} is not the one being presented",
            command,
            dilemma_id=dilemma_id,
            current_dilemma_id=state.current_dilemma_id
        )

    dilemma = ctx.content.get_dilemma_by_id(dilemma_id)
    if dilemma is None:
        raise not_found(f"Dilemma not found: {dilemma_id}", ErrorCode.DILEMMA_NOT_FOUND, dilemma_id=dilemma_id)
    choice = dilemma.get_choice(choice_id)
    if choice is None:
        raise not_found(
            f"Choice not found: {choice_id}",
            ErrorCode.CHOICE_NOT_FOUND,
            dilemma_id=dilemma_id,
            choice_id=choice_id
        )

    cons = choice.consequences
    owned = set(state.owned_card_ids)
    lost = [card_id for card_id in cons.cards_lost if card_id in owned]
    gained = [
        card_id for card_id in cons.cards_gained
        if card_id not in owned and ctx.content.get_card_by_id(card_id) is not None
    ]
    if lost:
        projected = len(owned) + len(gained) - len(lost)
        if projected < ctx.config.min_battle_cards:
            raise precondition(
                f"This choice would leave you with {projected} cards, but you need at least "
                f"{ctx.config.min_battle_cards} for battle. Choose differently.",
                command,
                choice_id=choice_id
            )

    items: List[EventItem] = [
        (EventType.CHOICE_MADE, {"dilemmaId": dilemma_id, "choiceId": choice_id, "questId": quest_id}),
    ]
    display: Dict[str, Any] = {
        "reputationChanges": [],
        "cardsGained": [],
        "cardsLost": [],
        "bountyChange": None,
        "flagsSet": [],
    }

    reputation = dict(state.reputation)
    for change in cons.reputation_changes:
        new_value = clamp_reputation(
            reputation.get(change.faction_id, 0) + change.delta,
            ctx.config.reputation_min,
            ctx.config.reputation_max,
        )
        reputation[change.faction_id] = new_value
        items.append((EventType.REPUTATION_CHANGED, {
            "factionId": change.faction_id,
            "delta": change.delta,
            "newValue": new_value,
            "source": "choice",
        }))
        display["reputationChanges"].append(
            {"factionId": change.faction_id, "delta": change.delta, "newValue": new_value}
        )

    for card_id in gained:
        items.append((EventType.CARD_GAINED, {
            "cardId": card_id,
            "factionId": ctx.content.get_card_faction(card_id),
            "source": "choice",
        }))
        display["cardsGained"].append(card_id)

    for card_id in lost:
        items.append((EventType.CARD_LOST, {
            "cardId": card_id,
            "factionId": ctx.content.get_card_faction(card_id) or "",
            "reason": "choice",
        }))
        display["cardsLost"].append(card_id)

    if cons.bounty_modifier:
        new_bounty = max(0, state.bounty + cons.bounty_modifier)
        items.append((EventType.BOUNTY_MODIFIED, {
            "amount": cons.bounty_modifier,
            "newValue": new_bounty,
            "source": "choice",
            "reason": f"Choice: {choice.label}",
        }))
        display["bountyChange"] = {"amount": cons.bounty_modifier, "newValue": new_bounty}

    for flag_name, value in cons.flags:
        items.append((EventType.FLAG_SET, {"flagName": flag_name, "value": value}))
        if value:
            display["flagsSet"].append(flag_name)

    following = triggers_next(cons, ctx.content.is_last_dilemma(quest_id, dilemma_id))
    items.append((EventType.CHOICE_CONSEQUENCE_PRESENTED, {
        "dilemmaId": dilemma_id,
        "choiceId": choice_id,
        "questId": quest_id,
        "choiceLabel": choice.label,
        "narrativeText": narrative_text(choice, following),
        "triggersNext": following.value,
        "consequences": display,
    }))
    items.append(phase_changed(GamePhase.NARRATIVE, GamePhase.CHOICE_CONSEQUENCE))
    return batch(ctx, items)
