"""
Projections Layer

Pure, total folds over an event prefix. Nothing here reads a clock,
touches storage or raises on unknown data: missing data yields the
view's zero value.
"""

from .game_state import (
    GameState, GameStateProjector, project_game_state,
    ActiveQuest, BattleState, CompletedQuest, MediationState, OwnedCard, QuestAlliance,
)
from .reputation import (
    ReputationDashboard, FactionStanding, FactionDetail,
    project_reputation_dashboard, project_faction_detail, calculate_trends,
)
from .quest_summary import QuestSummaryView, FactionDelta, order_reputation_deltas, project_quest_summary
from .battle import BattleRecord, CurrentBattleView, ResolvedBattle, project_battle_record

__all__ = [
    "GameState", "GameStateProjector", "project_game_state",
    "ActiveQuest", "BattleState", "CompletedQuest", "MediationState", "OwnedCard", "QuestAlliance",
    "ReputationDashboard", "FactionStanding", "FactionDetail",
    "project_reputation_dashboard", "project_faction_detail", "calculate_trends",
    "QuestSummaryView", "FactionDelta", "order_reputation_deltas", "project_quest_summary",
    "BattleRecord", "CurrentBattleView", "ResolvedBattle", "project_battle_record",
]
