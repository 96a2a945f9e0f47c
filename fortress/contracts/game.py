"""
Game Domain Contracts

Closed vocabularies (phases, factions, reputation bands) and the immutable
content records served by the content repository.

WHY THESE ARE CONTRACTS:
========================
- Slices, projections and the narrative engine all speak this vocabulary
- Content records are read-only data, queried by id, never mutated
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple
from enum import Enum


# =============================================================================
# LIFECYCLE STATES
# =============================================================================

class GamePhase(Enum):
    """Explicit game phases. Transitions only happen through PHASE_CHANGED."""
    NOT_STARTED = "not_started"
    QUEST_HUB = "quest_hub"
    NARRATIVE = "narrative"
    CHOICE_CONSEQUENCE = "choice_consequence"
    ALLIANCE = "alliance"
    MEDIATION = "mediation"
    CARD_SELECTION = "card_selection"
    DEPLOYMENT = "deployment"
    BATTLE = "battle"
    CONSEQUENCE = "consequence"
    POST_BATTLE_DILEMMA = "post_battle_dilemma"
    QUEST_SUMMARY = "quest_summary"
    ENDING = "ending"


class GameStatus(Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    ENDED = "ended"


class TriggersNext(Enum):
    """What follows a choice once its consequence has been acknowledged."""
    BATTLE = "battle"
    ALLIANCE = "alliance"
    MEDIATION = "mediation"
    NEXT_DILEMMA = "next_dilemma"
    QUEST_COMPLETE = "quest_complete"


class BattleOutcome(Enum):
    VICTORY = "victory"
    DEFEAT = "defeat"
    DRAW = "draw"


# =============================================================================
# FACTIONS AND REPUTATION
# =============================================================================

FACTION_IDS: Tuple[str, ...] = (
    "ironveil",
    "ashfall",
    "meridian",
    "void_wardens",
    "sundered_oath",
)


class ReputationStatus(Enum):
    """Reputation bands, ordered from worst to best."""
    HOSTILE = "hostile"
    UNFRIENDLY = "unfriendly"
    NEUTRAL = "neutral"
    FRIENDLY = "friendly"
    DEVOTED = "devoted"


# Lower bound of each band, best band first
REPUTATION_BANDS: Tuple[Tuple[int, ReputationStatus], ...] = (
    (75, ReputationStatus.DEVOTED),
    (25, ReputationStatus.FRIENDLY),
    (-24, ReputationStatus.NEUTRAL),
    (-74, ReputationStatus.UNFRIENDLY),
)


def reputation_status(value: int) -> ReputationStatus:
    """Band a reputation value. Monotonic: a higher value never bands lower."""
    for lower_bound, status in REPUTATION_BANDS:
        if value >= lower_bound:
            return status
    return ReputationStatus.HOSTILE


def clamp_reputation(value: int, minimum: int = -100, maximum: int = 100) -> int:
    return max(minimum, min(maximum, value))


# =============================================================================
# CONTENT RECORDS (Read-only, queried by id)
# =============================================================================

@dataclass(frozen=True)
class Faction:
    faction_id: str
    name: str
    description: str = ""
    values: Tuple[str, ...] = field(default_factory=tuple)
    card_profile: str = ""
    conflicts_with: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Card:
    card_id: str
    name: str
    faction_id: str
    attack: int
    armor: int
    agility: int
    flavor_text: str = ""


@dataclass(frozen=True)
class Voice:
    """One speaker's line in a dilemma or narrative node."""
    npc_name: str
    faction_id: str
    dialogue: str
    position: str = ""


@dataclass(frozen=True)
class ReputationChange:
    faction_id: str
    delta: int


@dataclass(frozen=True)
class BattleTrigger:
    opponent_type: str
    context: str
    difficulty: str = "medium"
    opponent_faction_id: Optional[str] = None


@dataclass(frozen=True)
class ChoiceConsequences:
    reputation_changes: Tuple[ReputationChange, ...] = field(default_factory=tuple)
    cards_gained: Tuple[str, ...] = field(default_factory=tuple)
    cards_lost: Tuple[str, ...] = field(default_factory=tuple)
    bounty_modifier: int = 0
    triggers_battle: Optional[BattleTrigger] = None
    triggers_alliance: bool = False
    triggers_mediation: bool = False
    mediation_parties: Tuple[str, ...] = field(default_factory=tuple)
    next_dilemma_id: Optional[str] = None
    flags: Tuple[Tuple[str, bool], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Choice:
    choice_id: str
    label: str
    consequences: ChoiceConsequences = field(default_factory=ChoiceConsequences)
    description: str = ""
    narrative_text: str = ""


@dataclass(frozen=True)
class Dilemma:
    dilemma_id: str
    quest_id: str
    situation: str
    voices: Tuple[Voice, ...] = field(default_factory=tuple)
    choices: Tuple[Choice, ...] = field(default_factory=tuple)

    def get_choice(self, choice_id: str) -> Optional[Choice]:
        for choice in self.choices:
            if choice.choice_id == choice_id:
                return choice
        return None


@dataclass(frozen=True)
class Quest:
    quest_id: str
    faction_id: str
    title: str
    brief_description: str
    quest_giver_name: str
    initial_bounty: int
    dilemma_ids: Tuple[str, ...]
    initial_card_ids: Tuple[str, ...] = field(default_factory=tuple)
    reputation_required: int = -100
    warning_text: str = ""
