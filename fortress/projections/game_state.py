"""
Game State Projection
=====================

Pure fold of the whole event vocabulary into one immutable GameState.

GUARANTEES:
- Total: every EventType has a handler (checked at import time)
- Deterministic: no clock reads, no randomness inside the fold
- Incremental == full: a projector fed a prefix and then the suffix
  yields exactly the state of a projector fed the whole log

Slices never receive this object directly; each one narrows it to the
minimal state slice it declares.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..contracts.events import Event, EventType, assert_exhaustive
from ..contracts.game import FACTION_IDS, GamePhase, GameStatus


# =============================================================================
# STATE TYPES (Immutable)
# =============================================================================

@dataclass(frozen=True)
class OwnedCard:
    card_id: str
    faction_id: str
    source: str
    acquired_at: str


@dataclass(frozen=True)
class QuestAlliance:
    faction_id: str
    bounty_share: float
    is_secret: bool = False


@dataclass(frozen=True)
class ActiveQuest:
    quest_id: str
    faction_id: str
    current_dilemma_index: int = 0
    dilemmas_completed: int = 0
    alliances: Tuple[QuestAlliance, ...] = field(default_factory=tuple)
    battles_won: int = 0
    battles_lost: int = 0

    def is_allied_with(self, faction_id: str) -> bool:
        return any(a.faction_id == faction_id for a in self.alliances)


@dataclass(frozen=True)
class CompletedQuest:
    quest_id: str
    outcome: str
    final_bounty: int
    completed_at: str


@dataclass(frozen=True)
class BattleState:
    battle_id: str
    quest_id: Optional[str]
    phase: str
    selected_card_ids: Tuple[str, ...]
    positions: Tuple[Optional[str], ...]
    opponent_type: str = ""
    opponent_faction_id: str = ""
    difficulty: str = ""
    context: str = ""
    outcome: Optional[str] = None
    outcome_acknowledged: bool = False


@dataclass(frozen=True)
class MediationState:
    mediation_id: str
    parties: Tuple[str, ...]
    has_leaned: bool = False
    leaned_toward: Optional[str] = None


@dataclass(frozen=True)
class GameState:
    player_id: str = ""
    status: GameStatus = GameStatus.NOT_STARTED
    phase: GamePhase = GamePhase.NOT_STARTED
    started_at: Optional[str] = None
    reputation: Mapping[str, int] = field(default_factory=lambda: {f: 0 for f in FACTION_IDS})
    owned_cards: Tuple[OwnedCard, ...] = field(default_factory=tuple)
    available_quest_ids: Tuple[str, ...] = field(default_factory=tuple)
    active_quest: Optional[ActiveQuest] = None
    completed_quests: Tuple[CompletedQuest, ...] = field(default_factory=tuple)
    current_dilemma_id: Optional[str] = None
    last_choice_id: Optional[str] = None
    choice_triggers_next: Optional[str] = None
    current_battle: Optional[BattleState] = None
    battle_outcomes: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    mediation: Optional[MediationState] = None
    bounty: int = 0
    flags: Mapping[str, Any] = field(default_factory=dict)
    choices_made: int = 0
    narrative_session_id: Optional[str] = None
    narrative_graph_id: Optional[str] = None
    events_applied: int = 0

    def owned_card_ids(self) -> Tuple[str, ...]:
        return tuple(card.card_id for card in self.owned_cards)

    def get_owned_card(self, card_id: str) -> Optional[OwnedCard]:
        for card in self.owned_cards:
            if card.card_id == card_id:
                return card
        return None

    def is_card_locked(self, card_id: str, lock_threshold: int) -> bool:
        """A card is locked while its faction's reputation is below the threshold."""
        card = self.get_owned_card(card_id)
        if card is None:
            return False
        return self.reputation.get(card.faction_id, 0) < lock_threshold

    def available_card_ids(self, lock_threshold: int) -> Tuple[str, ...]:
        return tuple(
            card.card_id for card in self.owned_cards
            if not self.is_card_locked(card.card_id, lock_threshold)
        )


# =============================================================================
# PROJECTOR
# =============================================================================

class GameStateProjector:
    """
    Incremental fold over the event log.

    Holds the latest immutable GameState; `apply` replaces it with the next
    state. The projector never mutates a state it already handed out.
    """

    def __init__(self, total_positions: int = 5):
        self._total_positions = total_positions
        self._state = GameState()

    @property
    def state(self) -> GameState:
        return self._state

    def apply(self, event: Event) -> GameState:
        handler = _HANDLERS[event.type]
        next_state = handler(self, self._state, event)
        self._state = replace(next_state, events_applied=next_state.events_applied + 1)
        return self._state

    def apply_all(self, events: Iterable[Event]) -> GameState:
        for event in events:
            self.apply(event)
        return self._state

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _game_started(self, s: GameState, e: Event) -> GameState:
        return replace(s, player_id=e.get("playerId", ""), status=GameStatus.IN_PROGRESS, started_at=e.timestamp)

    def _game_ended(self, s: GameState, e: Event) -> GameState:
        return replace(s, status=GameStatus.ENDED)

    def _phase_changed(self, s: GameState, e: Event) -> GameState:
        try:
            phase = GamePhase(e.get("toPhase"))
        except ValueError:
            return s
        return replace(s, phase=phase)

    # -------------------------------------------------------------------------
    # Quests
    # -------------------------------------------------------------------------

    def _quests_generated(self, s: GameState, e: Event) -> GameState:
        return replace(s, available_quest_ids=tuple(e.get("questIds", ())))

    def _quest_accepted(self, s: GameState, e: Event) -> GameState:
        quest_id = e.get("questId", "")
        faction_id = e.get("factionId", "")
        cards = list(s.owned_cards)
        owned = set(s.owned_card_ids())
        for card_id in e.get("initialCardIds", ()):
            if card_id not in owned:
                cards.append(OwnedCard(card_id, faction_id, "quest", e.timestamp))
                owned.add(card_id)
        return replace(
            s,
            active_quest=ActiveQuest(quest_id=quest_id, faction_id=faction_id),
            bounty=s.bounty + int(e.get("initialBounty", 0)),
            owned_cards=tuple(cards),
            available_quest_ids=tuple(q for q in s.available_quest_ids if q != quest_id),
            current_dilemma_id=None,
            last_choice_id=None,
            choice_triggers_next=None,
        )

    def _quest_completed(self, s: GameState, e: Event) -> GameState:
        completed = CompletedQuest(
            quest_id=e.get("questId", ""),
            outcome=e.get("outcome", "completed"),
            final_bounty=int(e.get("finalBounty", 0)),
            completed_at=e.timestamp,
        )
        return replace(
            s,
            active_quest=None,
            completed_quests=s.completed_quests + (completed,),
            current_dilemma_id=None,
            current_battle=None,
            mediation=None,
        )

    def _quest_failed(self, s: GameState, e: Event) -> GameState:
        return replace(s, active_quest=None, current_dilemma_id=None, current_battle=None, mediation=None)

    # -------------------------------------------------------------------------
    # Dilemmas and choices
    # -------------------------------------------------------------------------

    def _dilemma_presented(self, s: GameState, e: Event) -> GameState:
        dilemma_id = e.get("dilemmaId")
        quest = s.active_quest
        advancing = quest is not None and s.current_dilemma_id is not None and s.current_dilemma_id != dilemma_id
        if advancing:
            quest = replace(quest, current_dilemma_index=quest.current_dilemma_index + 1)
        return replace(s, current_dilemma_id=dilemma_id, active_quest=quest, choice_triggers_next=None)

    def _choice_made(self, s: GameState, e: Event) -> GameState:
        quest = s.active_quest
        if quest is not None:
            quest = replace(quest, dilemmas_completed=quest.dilemmas_completed + 1)
        return replace(s, last_choice_id=e.get("choiceId"), choices_made=s.choices_made + 1, active_quest=quest)

    def _flag_set(self, s: GameState, e: Event) -> GameState:
        flags = dict(s.flags)
        flags[e.get("flagName")] = e.get("value", True)
        return replace(s, flags=flags)

    def _consequence_presented(self, s: GameState, e: Event) -> GameState:
        return replace(s, choice_triggers_next=e.get("triggersNext"))

    # -------------------------------------------------------------------------
    # Alliances and mediation
    # -------------------------------------------------------------------------

    def _alliance_formed(self, s: GameState, e: Event) -> GameState:
        if s.active_quest is None:
            return s
        alliance = QuestAlliance(
            faction_id=e.get("factionId", ""),
            bounty_share=float(e.get("bountyShare", 0.0)),
            is_secret=bool(e.get("isSecret", False)),
        )
        quest = replace(s.active_quest, alliances=s.active_quest.alliances + (alliance,))
        return replace(s, active_quest=quest)

    def _mediation_started(self, s: GameState, e: Event) -> GameState:
        mediation = MediationState(
            mediation_id=e.get("mediationId", ""),
            parties=tuple(e.get("partyFactionIds", ())),
        )
        return replace(s, mediation=mediation)

    def _mediation_leaned(self, s: GameState, e: Event) -> GameState:
        if s.mediation is None:
            return s
        return replace(s, mediation=replace(s.mediation, has_leaned=True, leaned_toward=e.get("towardFactionId")))

    def _mediation_closed(self, s: GameState, e: Event) -> GameState:
        return replace(s, mediation=None)

    # -------------------------------------------------------------------------
    # Reputation, cards, bounty
    # -------------------------------------------------------------------------

    def _reputation_changed(self, s: GameState, e: Event) -> GameState:
        reputation = dict(s.reputation)
        reputation[e.get("factionId")] = int(e.get("newValue", 0))
        return replace(s, reputation=reputation)

    def _card_gained(self, s: GameState, e: Event) -> GameState:
        card_id = e.get("cardId")
        if s.get_owned_card(card_id) is not None:
            return s
        card = OwnedCard(card_id, e.get("factionId", ""), e.get("source", ""), e.timestamp)
        return replace(s, owned_cards=s.owned_cards + (card,))

    def _card_lost(self, s: GameState, e: Event) -> GameState:
        card_id = e.get("cardId")
        return replace(s, owned_cards=tuple(c for c in s.owned_cards if c.card_id != card_id))

    def _bounty_modified(self, s: GameState, e: Event) -> GameState:
        return replace(s, bounty=int(e.get("newValue", s.bounty)))

    # -------------------------------------------------------------------------
    # Battle
    # -------------------------------------------------------------------------

    def _battle_triggered(self, s: GameState, e: Event) -> GameState:
        battle = BattleState(
            battle_id=e.get("battleId", ""),
            quest_id=e.get("questId"),
            phase="selection",
            selected_card_ids=(),
            positions=(None,) * self._total_positions,
            opponent_type=e.get("opponentType", ""),
            opponent_faction_id=e.get("opponentFactionId", ""),
            difficulty=e.get("difficulty", ""),
            context=e.get("context", ""),
        )
        return replace(s, current_battle=battle)

    def _with_battle(self, s: GameState, **changes) -> GameState:
        if s.current_battle is None:
            return s
        return replace(s, current_battle=replace(s.current_battle, **changes))

    def _card_selected(self, s: GameState, e: Event) -> GameState:
        if s.current_battle is None:
            return s
        return self._with_battle(s, selected_card_ids=s.current_battle.selected_card_ids + (e.get("cardId"),))

    def _card_deselected(self, s: GameState, e: Event) -> GameState:
        if s.current_battle is None:
            return s
        card_id = e.get("cardId")
        remaining = tuple(c for c in s.current_battle.selected_card_ids if c != card_id)
        return self._with_battle(s, selected_card_ids=remaining)

    def _fleet_committed(self, s: GameState, e: Event) -> GameState:
        return self._with_battle(s, phase="deployment", selected_card_ids=tuple(e.get("cardIds", ())))

    def _card_positioned(self, s: GameState, e: Event) -> GameState:
        if s.current_battle is None:
            return s
        card_id = e.get("cardId")
        index = int(e.get("position", 0)) - 1
        positions: List[Optional[str]] = [None if p == card_id else p for p in s.current_battle.positions]
        if 0 <= index < len(positions):
            positions[index] = card_id
        return self._with_battle(s, positions=tuple(positions))

    def _orders_locked(self, s: GameState, e: Event) -> GameState:
        if s.current_battle is None:
            return s
        positions = tuple(e.get("positions", s.current_battle.positions))
        return self._with_battle(s, phase="execution", positions=positions)

    def _battle_resolved(self, s: GameState, e: Event) -> GameState:
        outcome = e.get("outcome")
        quest = s.active_quest
        if quest is not None:
            quest = replace(
                quest,
                battles_won=quest.battles_won + (1 if outcome == "victory" else 0),
                battles_lost=quest.battles_lost + (1 if outcome == "defeat" else 0),
            )
        resolved = self._with_battle(s, phase="resolved", outcome=outcome)
        return replace(
            resolved,
            active_quest=quest,
            battle_outcomes=s.battle_outcomes + ((e.get("battleId", ""), outcome),),
        )

    def _outcome_acknowledged(self, s: GameState, e: Event) -> GameState:
        return self._with_battle(s, outcome_acknowledged=True)

    # -------------------------------------------------------------------------
    # Narrative
    # -------------------------------------------------------------------------

    def _narrative_started(self, s: GameState, e: Event) -> GameState:
        return replace(s, narrative_session_id=e.get("sessionId"), narrative_graph_id=e.get("graphId"))

    def _narrative_ended(self, s: GameState, e: Event) -> GameState:
        if s.narrative_session_id != e.get("sessionId"):
            return s
        return replace(s, narrative_session_id=None, narrative_graph_id=None)

    def _unchanged(self, s: GameState, e: Event) -> GameState:
        return s


_HANDLERS: Dict[EventType, Callable[[GameStateProjector, GameState, Event], GameState]] = {
    EventType.GAME_STARTED: GameStateProjector._game_started,
    EventType.GAME_ENDED: GameStateProjector._game_ended,
    EventType.PHASE_CHANGED: GameStateProjector._phase_changed,
    EventType.QUESTS_GENERATED: GameStateProjector._quests_generated,
    EventType.QUEST_ACCEPTED: GameStateProjector._quest_accepted,
    EventType.QUEST_COMPLETED: GameStateProjector._quest_completed,
    EventType.QUEST_FAILED: GameStateProjector._quest_failed,
    EventType.QUEST_SUMMARY_PRESENTED: GameStateProjector._unchanged,
    EventType.QUEST_SUMMARY_ACKNOWLEDGED: GameStateProjector._unchanged,
    EventType.DILEMMA_PRESENTED: GameStateProjector._dilemma_presented,
    EventType.CHOICE_MADE: GameStateProjector._choice_made,
    EventType.FLAG_SET: GameStateProjector._flag_set,
    EventType.CHOICE_CONSEQUENCE_PRESENTED: GameStateProjector._consequence_presented,
    EventType.CHOICE_CONSEQUENCE_ACKNOWLEDGED: GameStateProjector._unchanged,
    EventType.ALLIANCE_FORMED: GameStateProjector._alliance_formed,
    EventType.ALLIANCE_REJECTED: GameStateProjector._unchanged,
    EventType.ALLIANCES_DECLINED: GameStateProjector._unchanged,
    EventType.MEDIATION_STARTED: GameStateProjector._mediation_started,
    EventType.MEDIATION_LEANED: GameStateProjector._mediation_leaned,
    EventType.MEDIATION_COLLAPSED: GameStateProjector._mediation_closed,
    EventType.COMPROMISE_ACCEPTED: GameStateProjector._mediation_closed,
    EventType.REPUTATION_CHANGED: GameStateProjector._reputation_changed,
    EventType.REPUTATION_THRESHOLD_CROSSED: GameStateProjector._unchanged,
    EventType.CARD_GAINED: GameStateProjector._card_gained,
    EventType.CARD_LOST: GameStateProjector._card_lost,
    EventType.BATTLE_TRIGGERED: GameStateProjector._battle_triggered,
    EventType.CARD_SELECTED: GameStateProjector._card_selected,
    EventType.CARD_DESELECTED: GameStateProjector._card_deselected,
    EventType.FLEET_COMMITTED: GameStateProjector._fleet_committed,
    EventType.CARD_POSITIONED: GameStateProjector._card_positioned,
    EventType.ORDERS_LOCKED: GameStateProjector._orders_locked,
    EventType.BATTLE_RESOLVED: GameStateProjector._battle_resolved,
    EventType.BOUNTY_MODIFIED: GameStateProjector._bounty_modified,
    EventType.OUTCOME_ACKNOWLEDGED: GameStateProjector._outcome_acknowledged,
    EventType.NARRATIVE_SESSION_STARTED: GameStateProjector._narrative_started,
    EventType.NARRATIVE_NODE_ENTERED: GameStateProjector._unchanged,
    EventType.NARRATIVE_CHOICE_MADE: GameStateProjector._unchanged,
    EventType.NARRATIVE_TRANSITION_TRIGGERED: GameStateProjector._unchanged,
    EventType.NARRATIVE_FLAG_SET: GameStateProjector._flag_set,
    EventType.NARRATIVE_CHECKPOINT_REACHED: GameStateProjector._unchanged,
    EventType.NARRATIVE_ENDING_REACHED: GameStateProjector._narrative_ended,
}

assert_exhaustive(_HANDLERS, "GameStateProjector")


def project_game_state(events: Iterable[Event], total_positions: int = 5) -> GameState:
    """Full fold from the empty state."""
    return GameStateProjector(total_positions).apply_all(events)
