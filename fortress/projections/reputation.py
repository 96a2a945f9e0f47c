"""
Reputation Read Models

Dashboard of every faction's standing plus a per-faction detail view.
Both are pure functions of an event prefix; an optional GameState can be
handed in when the caller already folded the same prefix.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..contracts.events import Event, EventType
from ..contracts.game import FACTION_IDS, REPUTATION_BANDS, ReputationStatus, reputation_status
from .game_state import GameState, project_game_state

TREND_WINDOW = 5
TREND_THRESHOLD = 5
HISTORY_LIMIT = 10
DOMINANT_MINIMUM = 25


@dataclass(frozen=True)
class FactionStanding:
    faction_id: str
    faction_name: str
    reputation: int
    status: ReputationStatus
    trend: str
    bar_percentage: int
    available_cards: int
    locked_cards: int


@dataclass(frozen=True)
class ReputationDashboard:
    factions: Tuple[FactionStanding, ...]
    total_cards: int
    total_locked_cards: int
    dominant_faction: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "factions": [
                {
                    "factionId": f.faction_id,
                    "factionName": f.faction_name,
                    "reputation": f.reputation,
                    "status": f.status.value,
                    "trend": f.trend,
                    "barPercentage": f.bar_percentage,
                    "availableCards": f.available_cards,
                    "lockedCards": f.locked_cards,
                }
                for f in self.factions
            ],
            "totalCards": self.total_cards,
            "totalLockedCards": self.total_locked_cards,
            "dominantFaction": self.dominant_faction,
        }


@dataclass(frozen=True)
class ThresholdView:
    threshold: int
    status: ReputationStatus
    is_current: bool
    is_above: bool


@dataclass(frozen=True)
class ReputationHistoryEntry:
    delta: int
    new_value: int
    source: str
    timestamp: str


@dataclass(frozen=True)
class FactionDetail:
    faction_id: str
    faction_name: str
    reputation: int
    status: ReputationStatus
    trend: str
    thresholds: Tuple[ThresholdView, ...]
    history: Tuple[ReputationHistoryEntry, ...]
    available_card_ids: Tuple[str, ...]
    locked_card_ids: Tuple[str, ...]
    lock_threshold: int
    unlock_progress: int
    conflicts_with: Tuple[str, ...] = field(default_factory=tuple)


def bar_percentage(reputation: int) -> int:
    """Map -100..100 onto 0..100."""
    return int(round((reputation + 100) / 200 * 100))


def calculate_trends(events: Sequence[Event]) -> Dict[str, str]:
    """Trend over the last few changes per faction: rising, falling or stable."""
    deltas: Dict[str, List[int]] = {f: [] for f in FACTION_IDS}
    for event in events:
        if event.type == EventType.REPUTATION_CHANGED:
            deltas.setdefault(event.get("factionId"), []).append(int(event.get("delta", 0)))

    trends: Dict[str, str] = {}
    for faction_id, changes in deltas.items():
        total = sum(changes[-TREND_WINDOW:])
        if total > TREND_THRESHOLD:
            trends[faction_id] = "rising"
        elif total < -TREND_THRESHOLD:
            trends[faction_id] = "falling"
        else:
            trends[faction_id] = "stable"
    return trends


def _card_split(state: GameState, faction_id: str, lock_threshold: int) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    cards = [c.card_id for c in state.owned_cards if c.faction_id == faction_id]
    locked = tuple(c for c in cards if state.is_card_locked(c, lock_threshold))
    available = tuple(c for c in cards if c not in locked)
    return available, locked


def project_reputation_dashboard(
    events: Sequence[Event],
    state: Optional[GameState] = None,
    lock_threshold: int = -25,
    faction_names: Optional[Dict[str, str]] = None,
) -> ReputationDashboard:
    state = state if state is not None else project_game_state(events)
    trends = calculate_trends(events)
    names = faction_names or {}

    standings: List[FactionStanding] = []
    for faction_id in FACTION_IDS:
        rep = state.reputation.get(faction_id, 0)
        available, locked = _card_split(state, faction_id, lock_threshold)
        standings.append(FactionStanding(
            faction_id=faction_id,
            faction_name=names.get(faction_id, faction_id),
            reputation=rep,
            status=reputation_status(rep),
            trend=trends.get(faction_id, "stable"),
            bar_percentage=bar_percentage(rep),
            available_cards=len(available),
            locked_cards=len(locked),
        ))

    dominant: Optional[str] = None
    best = None
    for standing in standings:
        if standing.reputation >= DOMINANT_MINIMUM and (best is None or standing.reputation > best):
            best = standing.reputation
            dominant = standing.faction_id

    return ReputationDashboard(
        factions=tuple(standings),
        total_cards=len(state.owned_cards),
        total_locked_cards=sum(s.locked_cards for s in standings),
        dominant_faction=dominant,
    )


def project_faction_detail(
    events: Sequence[Event],
    faction_id: str,
    state: Optional[GameState] = None,
    lock_threshold: int = -25,
    faction_name: str = "",
    conflicts_with: Tuple[str, ...] = (),
) -> FactionDetail:
    state = state if state is not None else project_game_state(events)
    rep = state.reputation.get(faction_id, 0)
    status = reputation_status(rep)

    thresholds = tuple(
        ThresholdView(bound, band, is_current=status == band, is_above=rep >= bound)
        for bound, band in REPUTATION_BANDS
    ) + (ThresholdView(-100, ReputationStatus.HOSTILE, status == ReputationStatus.HOSTILE, True),)

    changes = [
        ReputationHistoryEntry(
            delta=int(e.get("delta", 0)),
            new_value=int(e.get("newValue", 0)),
            source=e.get("source", ""),
            timestamp=e.timestamp,
        )
        for e in events
        if e.type == EventType.REPUTATION_CHANGED and e.get("factionId") == faction_id
    ]
    history = tuple(reversed(changes))[:HISTORY_LIMIT]

    if rep < lock_threshold:
        unlock_progress = int(round((rep + 100) / (lock_threshold + 100) * 100))
    else:
        unlock_progress = 100

    available, locked = _card_split(state, faction_id, lock_threshold)
    return FactionDetail(
        faction_id=faction_id,
        faction_name=faction_name or faction_id,
        reputation=rep,
        status=status,
        trend=calculate_trends(events).get(faction_id, "stable"),
        thresholds=thresholds,
        history=history,
        available_card_ids=available,
        locked_card_ids=locked,
        lock_threshold=lock_threshold,
        unlock_progress=unlock_progress,
        conflicts_with=conflicts_with,
    )
