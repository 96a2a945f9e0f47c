"""
Content Repository

RESPONSIBILITY: Read-only lookup of static game content by id
OUTPUTS: Quest, Dilemma, Card, Faction, NarrativeGraph records

WHAT THIS LAYER MUST NOT DO:
============================
- Fail on an unknown id (absent content is None, the caller decides)
- Read or write the event log
- Mutate any record it serves
"""

from __future__ import annotations
from typing import Dict, Iterable, Optional, Tuple

from ..contracts.game import Card, Dilemma, Faction, Quest
from ..narrative.graph import NarrativeGraph
from ..narrative.validation import ensure_valid


class ContentRepository:
    """
    Abstract content interface.

    Every lookup is total and side-effect free: an unknown id yields None.
    """

    def get_quest_by_id(self, quest_id: str) -> Optional[Quest]:
        raise NotImplementedError

    def get_card_by_id(self, card_id: str) -> Optional[Card]:
        raise NotImplementedError

    def get_faction_by_id(self, faction_id: str) -> Optional[Faction]:
        raise NotImplementedError

    def get_dilemma_by_id(self, dilemma_id: str) -> Optional[Dilemma]:
        raise NotImplementedError

    def get_graph_by_id(self, graph_id: str) -> Optional[NarrativeGraph]:
        raise NotImplementedError

    def list_quest_ids(self) -> Tuple[str, ...]:
        raise NotImplementedError

    def starter_card_ids(self) -> Tuple[str, ...]:
        raise NotImplementedError

    def get_alliance_card_ids(self, faction_id: str) -> Tuple[str, ...]:
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Derived lookups (shared by every implementation)
    # -------------------------------------------------------------------------

    def get_quest_first_dilemma(self, quest_id: str) -> Optional[Dilemma]:
        quest = self.get_quest_by_id(quest_id)
        if quest is None or not quest.dilemma_ids:
            return None
        return self.get_dilemma_by_id(quest.dilemma_ids[0])

    def get_next_dilemma(self, quest_id: str, dilemma_id: str) -> Optional[Dilemma]:
        """The dilemma after `dilemma_id` in quest order, None after the last one."""
        quest = self.get_quest_by_id(quest_id)
        if quest is None or dilemma_id not in quest.dilemma_ids:
            return None
        index = quest.dilemma_ids.index(dilemma_id)
        if index + 1 >= len(quest.dilemma_ids):
            return None
        return self.get_dilemma_by_id(quest.dilemma_ids[index + 1])

    def is_last_dilemma(self, quest_id: str, dilemma_id: Optional[str]) -> bool:
        quest = self.get_quest_by_id(quest_id)
        if quest is None or not quest.dilemma_ids:
            return False
        return quest.dilemma_ids[-1] == dilemma_id

    def get_card_faction(self, card_id: str) -> Optional[str]:
        card = self.get_card_by_id(card_id)
        return card.faction_id if card else None


class InMemoryContentRepository(ContentRepository):
    """
    Content held in immutable mappings built once at construction.

    Every graph is validated on the way in; a structurally broken graph
    raises StructuralError here instead of failing mid-traversal.
    """

    def __init__(
        self,
        factions: Iterable[Faction] = (),
        cards: Iterable[Card] = (),
        quests: Iterable[Quest] = (),
        dilemmas: Iterable[Dilemma] = (),
        graphs: Iterable[NarrativeGraph] = (),
        starter_cards: Iterable[str] = (),
        alliance_cards: Optional[Dict[str, Tuple[str, ...]]] = None,
    ):
        self._factions: Dict[str, Faction] = {f.faction_id: f for f in factions}
        self._cards: Dict[str, Card] = {c.card_id: c for c in cards}
        self._quests: Dict[str, Quest] = {q.quest_id: q for q in quests}
        self._dilemmas: Dict[str, Dilemma] = {d.dilemma_id: d for d in dilemmas}
        self._graphs: Dict[str, NarrativeGraph] = {}
        for graph in graphs:
            ensure_valid(graph)
            self._graphs[graph.graph_id] = graph
        self._starter_cards = tuple(starter_cards)
        self._alliance_cards = dict(alliance_cards or {})

    def get_quest_by_id(self, quest_id: str) -> Optional[Quest]:
        return self._quests.get(quest_id)

    def get_card_by_id(self, card_id: str) -> Optional[Card]:
        return self._cards.get(card_id)

    def get_faction_by_id(self, faction_id: str) -> Optional[Faction]:
        return self._factions.get(faction_id)

    def get_dilemma_by_id(self, dilemma_id: str) -> Optional[Dilemma]:
        return self._dilemmas.get(dilemma_id)

    def get_graph_by_id(self, graph_id: str) -> Optional[NarrativeGraph]:
        return self._graphs.get(graph_id)

    def list_quest_ids(self) -> Tuple[str, ...]:
        return tuple(self._quests)

    def list_graph_ids(self) -> Tuple[str, ...]:
        return tuple(self._graphs)

    def starter_card_ids(self) -> Tuple[str, ...]:
        return self._starter_cards

    def get_alliance_card_ids(self, faction_id: str) -> Tuple[str, ...]:
        """Alliance cards of a faction: configured, else its first two cards."""
        if faction_id in self._alliance_cards:
            return self._alliance_cards[faction_id]
        faction_cards = [c.card_id for c in self._cards.values() if c.faction_id == faction_id]
        return tuple(faction_cards[:2])
