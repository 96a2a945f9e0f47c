"""
Test Fixtures

Deterministic engines, slice contexts and scripted playthroughs.
All fixtures are explicit - fixed clock, no randomness.
"""

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional, Tuple

from fortress.config import GameConfig
from fortress.content import default_repository
from fortress.contracts.commands import Command
from fortress.contracts.events import Event, EventType
from fortress.engine import DispatchResult, GameEngine
from fortress.slices.base import SliceContext
from fortress.storage import EventStore, InMemoryEventStore
from fortress.temporal import LogicalClock


# =============================================================================
# FIXED TIMESTAMPS (deterministic)
# =============================================================================

EPOCH = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


def tick(seconds: int) -> str:
    return (EPOCH + timedelta(seconds=seconds)).isoformat()


T0 = tick(0)
T1 = tick(1)
T2 = tick(2)


# =============================================================================
# ENGINES AND CONTEXTS
# =============================================================================

CONTENT = default_repository()

# Four cards the player owns after accepting the salvage claim, plus one
# from a Meridian alliance
FLEET: Tuple[str, ...] = (
    "starter_scout",
    "starter_freighter",
    "starter_corvette",
    "ironveil_ironclad",
    "meridian_negotiator",
)


def make_engine(store: Optional[EventStore] = None, config: Optional[GameConfig] = None) -> GameEngine:
    return GameEngine(
        config=config or GameConfig(),
        content=CONTENT,
        store=store or InMemoryEventStore(),
        clock=LogicalClock.stepping(EPOCH),
    )


def make_ctx(timestamp: str = T0, config: Optional[GameConfig] = None) -> SliceContext:
    return SliceContext(content=CONTENT, config=config or GameConfig(), timestamp=timestamp)


def run(engine: GameEngine, session_id: str, tag: str, **data: Any) -> DispatchResult:
    return engine.dispatch(session_id, Command.of(tag, **data))


def types_of(events: Iterable[Event]) -> List[EventType]:
    return [e.type for e in events]


def first(events: Iterable[Event], event_type: EventType) -> Event:
    return next(e for e in events if e.type == event_type)


# =============================================================================
# SCRIPTED PLAYTHROUGHS (The Salvage Claim)
# =============================================================================

def start_salvage(engine: GameEngine, session_id: Optional[str] = None) -> str:
    """New game with the salvage claim accepted. Phase: narrative."""
    session_id = engine.create_session(session_id)
    run(engine, session_id, "START_GAME", playerId="captain")
    run(engine, session_id, "ACCEPT_QUEST", questId="quest_salvage_claim")
    return session_id


def reach_alliance(engine: GameEngine, session_id: str) -> None:
    """Attack the scavengers and leave the consequence screen. Phase: alliance."""
    run(engine, session_id, "MAKE_CHOICE",
        dilemmaId="dilemma_salvage_1_approach", choiceId="choice_attack_immediately")
    run(engine, session_id, "ACKNOWLEDGE_CHOICE_CONSEQUENCE")


def reach_card_selection(engine: GameEngine, session_id: str) -> str:
    """Ally with Meridian and head into battle. Returns the battle id."""
    reach_alliance(engine, session_id)
    run(engine, session_id, "FORM_ALLIANCE", factionId="meridian")
    result = run(engine, session_id, "FINALIZE_ALLIANCES")
    return first(result.events, EventType.BATTLE_TRIGGERED).get("battleId")


def reach_battle(engine: GameEngine, session_id: str) -> str:
    """Select, commit and deploy FLEET. Phase: battle."""
    battle_id = reach_card_selection(engine, session_id)
    for card_id in FLEET:
        run(engine, session_id, "SELECT_CARD", cardId=card_id)
    run(engine, session_id, "COMMIT_FLEET")
    run(engine, session_id, "LOCK_ORDERS", positions=list(FLEET))
    return battle_id


def finish_battle(engine: GameEngine, session_id: str, battle_id: str, outcome: str = "victory") -> None:
    """Resolve, acknowledge and continue. Phase: narrative (second dilemma)."""
    run(engine, session_id, "RESOLVE_BATTLE", battleId=battle_id, outcome=outcome, roundsWon=3, roundsLost=2)
    run(engine, session_id, "ACKNOWLEDGE_OUTCOME")
    run(engine, session_id, "CONTINUE_TO_NEXT_PHASE")


def finish_quest(engine: GameEngine, session_id: str) -> None:
    """Side with Ironveil, then take the Warden escort out. Phase: quest_summary."""
    run(engine, session_id, "MAKE_CHOICE",
        dilemmaId="dilemma_salvage_2_discovery", choiceId="choice_syndicate_claim")
    run(engine, session_id, "ACKNOWLEDGE_CHOICE_CONSEQUENCE")
    run(engine, session_id, "MAKE_CHOICE",
        dilemmaId="dilemma_salvage_3_confrontation", choiceId="choice_accept_warden_escort")
    run(engine, session_id, "ACKNOWLEDGE_CHOICE_CONSEQUENCE")


@lru_cache(maxsize=None)
def salvage_events() -> Tuple[Event, ...]:
    """Complete log of one salvage claim, from START_GAME to the quest hub."""
    engine = make_engine()
    session_id = start_salvage(engine)
    battle_id = reach_battle(engine, session_id)
    finish_battle(engine, session_id, battle_id)
    finish_quest(engine, session_id)
    run(engine, session_id, "ACKNOWLEDGE_QUEST_SUMMARY")
    return tuple(engine.events(session_id))


# =============================================================================
# NARRATIVE GRAPHS
# =============================================================================

def _choice(transition_id: str, target: str, text: str, **extra: Any) -> Dict[str, Any]:
    transition = {
        "transitionId": transition_id,
        "targetNodeId": target,
        "presentation": {"choiceText": text},
    }
    for key, value in extra.items():
        if key == "presentation":
            transition["presentation"].update(value)
        else:
            transition[key] = value
    return transition


TRAIL_GRAPH: Dict[str, Any] = {
    "graphId": "trail",
    "version": "1.0.0",
    "metadata": {"title": "The Trail"},
    "entryPoints": [
        {"entryPointId": "trail_start", "startingNodeId": "trailhead"},
        {"entryPointId": "trail_secret", "startingNodeId": "trailhead", "requiredFlags": ["map_found"]},
    ],
    "globalConditions": {
        "well_liked": {
            "conditionType": "external",
            "params": {"conditionId": "reputation_gte", "factionId": "meridian", "value": 25},
        },
    },
    "nodes": [
        {
            "nodeId": "trailhead",
            "nodeType": "choice",
            "content": {"text": "Two paths split at the trailhead."},
            "metadata": {"isRevisitable": False},
            "transitions": [
                _choice("go_left", "camp", "Take the left path", effects=[
                    {"effectType": "set_flag", "target": "went_left"},
                    {"effectType": "increment", "target": "reputation_meridian", "value": 10},
                    {"effectType": "increment", "target": "supplies", "value": 2},
                ]),
                _choice("go_right", "bad_end", "Take the right path",
                        condition={"conditionType": "has_flag", "params": {"flag": "has_key"}}),
                _choice("go_secret", "good_end", "Squeeze through the gap",
                        presentation={"isHidden": True}),
                _choice("go_closed", "bad_end", "Climb the ridge",
                        presentation={"isDisabled": True, "disabledReason": "Rockslide"}),
            ],
        },
        {
            "nodeId": "camp",
            "nodeType": "checkpoint",
            "content": {"text": "A quiet camp."},
            "transitions": [
                _choice("back", "trailhead", "Go back"),
                _choice("onward", "fork", "Press onward"),
            ],
        },
        {
            "nodeId": "fork",
            "nodeType": "branch",
            "content": {"text": "The path forks."},
            "transitions": [
                {
                    "transitionId": "fork_good",
                    "targetNodeId": "good_end",
                    "transitionType": "automatic",
                    "condition": {
                        "type": "compound",
                        "operator": "and",
                        "conditions": [
                            {"conditionType": "has_flag", "params": {"flag": "went_left"}},
                            {"conditionType": "external", "params": {"conditionId": "well_liked"}},
                        ],
                    },
                },
                {"transitionId": "fork_bad", "targetNodeId": "bad_end", "transitionType": "fallback"},
            ],
        },
        {"nodeId": "good_end", "nodeType": "ending", "endingType": "good", "content": {"text": "Home at last."}},
        {"nodeId": "bad_end", "nodeType": "ending", "endingType": "bad", "content": {"text": "Lost."}},
    ],
}


CACHE_GRAPH: Dict[str, Any] = {
    "graphId": "cache",
    "entryPoints": [{"entryPointId": "cache_start", "startingNodeId": "cache"}],
    "nodes": [
        {
            "nodeId": "cache",
            "nodeType": "story",
            "content": {"text": "A supply cache, guarded."},
            "transitions": [
                _choice("loot", "cache_end", "Take it", effects=[
                    {"effectType": "trigger_event", "target": "CARD_GAINED", "value": {"cardId": "ashfall_ember"}},
                    {"effectType": "trigger_event", "target": "BATTLE_TRIGGERED",
                     "value": {"opponentType": "guards", "difficulty": "hard"}},
                    {"effectType": "decrement", "target": "bounty", "value": 50},
                ]),
            ],
        },
        {"nodeId": "cache_end", "nodeType": "ending", "content": {"text": "Done."}},
    ],
}
