"""
Alliance Slice

Allies are gathered before every battle of a quest.

COMMANDS:
=========
- FORM_ALLIANCE {factionId}: ALLIANCE_FORMED + CARD_GAINED per alliance card.
  The faction keeps a bounty share that shrinks as its regard for you grows.
- REJECT_ALLIANCE_TERMS {factionId}: ALLIANCE_REJECTED
- DECLINE_ALL_ALLIANCES: ALLIANCES_DECLINED, BATTLE_TRIGGERED, card_selection
- FINALIZE_ALLIANCES: BATTLE_TRIGGERED, card_selection

Leaving the alliance phase requires enough unlocked cards to field a fleet.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple

from ..contracts.base import ErrorCode
from ..contracts.commands import Command
from ..contracts.events import Event, EventType
from ..contracts.game import BattleTrigger, GamePhase, ReputationStatus, reputation_status
from .base import (
    EventItem, SliceContext, batch, battle_triggered, not_found, phase_changed,
    precondition, require_active_quest, require_phase,
)


@dataclass(frozen=True)
class AllianceState:
    phase: GamePhase
    active_quest_id: Optional[str] = None
    allied_faction_ids: Tuple[str, ...] = field(default_factory=tuple)
    reputation: Mapping[str, int] = field(default_factory=dict)
    owned_card_ids: Tuple[str, ...] = field(default_factory=tuple)
    available_card_count: int = 0
    current_dilemma_id: Optional[str] = None
    last_choice_id: Optional[str] = None
    battles_fought: int = 0


def select(game_state, lock_threshold: int = -25) -> AllianceState:
    quest = game_state.active_quest
    return AllianceState(
        phase=game_state.phase,
        active_quest_id=quest.quest_id if quest else None,
        allied_faction_ids=tuple(a.faction_id for a in quest.alliances) if quest else (),
        reputation=dict(game_state.reputation),
        owned_card_ids=game_state.owned_card_ids(),
        available_card_count=len(game_state.available_card_ids(lock_threshold)),
        current_dilemma_id=game_state.current_dilemma_id,
        last_choice_id=game_state.last_choice_id,
        battles_fought=len(game_state.battle_outcomes),
    )


def bounty_share(status: ReputationStatus, ctx: SliceContext) -> float:
    if status == ReputationStatus.DEVOTED:
        return ctx.config.devoted_bounty_share
    if status == ReputationStatus.FRIENDLY:
        return ctx.config.friendly_bounty_share
    return ctx.config.alliance_bounty_share


def _triggering_battle(ctx: SliceContext, state: AllianceState) -> Optional[BattleTrigger]:
    """Battle parameters of the choice that led here, if it named any."""
    if not state.current_dilemma_id or not state.last_choice_id:
        return None
    dilemma = ctx.content.get_dilemma_by_id(state.current_dilemma_id)
    choice = dilemma.get_choice(state.last_choice_id) if dilemma else None
    return choice.consequences.triggers_battle if choice else None


def _require_fleet(command: Command, state: AllianceState, ctx: SliceContext, message: str) -> None:
    minimum = ctx.config.min_battle_cards
    if state.available_card_count < minimum:
        raise precondition(
            message.format(have=state.available_card_count, need=minimum),
            command,
            available_cards=state.available_card_count
        )


def _to_battle(ctx: SliceContext, state: AllianceState, quest_id: str, context: str) -> List[EventItem]:
    return [
        battle_triggered(
            ctx, quest_id, context,
            trigger=_triggering_battle(ctx, state),
            seed=(state.current_dilemma_id, state.last_choice_id, state.battles_fought),
        ),
        phase_changed(GamePhase.ALLIANCE, GamePhase.CARD_SELECTION),
    ]


def handle_form_alliance(command: Command, state: AllianceState, ctx: SliceContext) -> List[Event]:
    require_phase(state.phase, command, GamePhase.ALLIANCE)
    require_active_quest(state.active_quest_id, command, state.phase)

    faction_id = command.require_str("factionId")
    if faction_id in state.allied_faction_ids:
        raise precondition(f"Already allied with {faction_id}", command, faction_id=faction_id)
    status = reputation_status(state.reputation.get(faction_id, 0))
    if status == ReputationStatus.HOSTILE:
        raise precondition("Faction is hostile and will not ally with you", command, faction_id=faction_id)

    if ctx.content.get_faction_by_id(faction_id) is None:
        raise not_found(f"Faction not found: {faction_id}", ErrorCode.FACTION_NOT_FOUND, faction_id=faction_id)

    card_ids = ctx.content.get_alliance_card_ids(faction_id)
    items: List[EventItem] = [
        (EventType.ALLIANCE_FORMED, {
            "factionId": faction_id,
            "bountyShare": bounty_share(status, ctx),
            "cardIdsProvided": list(card_ids),
            "isSecret": False,
        }),
    ]
    owned = set(state.owned_card_ids)
    for card_id in card_ids:
        if card_id in owned:
            continue
        items.append((EventType.CARD_GAINED, {"cardId": card_id, "factionId": faction_id, "source": "alliance"}))
    return batch(ctx, items)


def handle_reject_alliance_terms(command: Command, state: AllianceState, ctx: SliceContext) -> List[Event]:
    require_phase(state.phase, command, GamePhase.ALLIANCE)
    faction_id = command.require_str("factionId")
    return batch(ctx, [(EventType.ALLIANCE_REJECTED, {"factionId": faction_id})])


def handle_decline_all_alliances(command: Command, state: AllianceState, ctx: SliceContext) -> List[Event]:
    require_phase(state.phase, command, GamePhase.ALLIANCE)
    quest_id = require_active_quest(state.active_quest_id, command, state.phase)
    _require_fleet(
        command, state, ctx,
        "Cannot proceed without allies. You have {have} cards but battle requires {need}. "
        "Form an alliance to continue."
    )
    items: List[EventItem] = [(EventType.ALLIANCES_DECLINED, {"questId": quest_id})]
    items.extend(_to_battle(ctx, state, quest_id, "Going it alone - prepare for battle"))
    return batch(ctx, items)


def handle_finalize_alliances(command: Command, state: AllianceState, ctx: SliceContext) -> List[Event]:
    require_phase(state.phase, command, GamePhase.ALLIANCE)
    quest_id = require_active_quest(state.active_quest_id, command, state.phase)
    _require_fleet(
        command, state, ctx,
        "Need {need} cards for battle but only have {have}. Form more alliances to continue."
    )
    return batch(ctx, _to_battle(ctx, state, quest_id, "Alliances finalized - prepare for battle"))
