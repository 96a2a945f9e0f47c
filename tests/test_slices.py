"""
Slice Tests

Each handler is called directly with a hand-built state slice, so every
rule is exercised without an engine or a log.

INVARIANTS TESTED:
==================
1. Events come out in the documented order, all carrying ctx.timestamp
2. Rules are checked in a fixed order and fail before any event exists
3. Every command type is bound to exactly one slice
"""

import pytest

from fortress.config import GameConfig
from fortress.contracts.base import ErrorCode, NotFoundError, ValidationError
from fortress.contracts.commands import Command, CommandType
from fortress.contracts.events import EventType
from fortress.contracts.game import (
    BattleTrigger, ChoiceConsequences, GamePhase, GameStatus, ReputationStatus, TriggersNext,
)
from fortress.projections import GameState, OwnedCard
from fortress.slices import binding_for
from fortress.slices.accept_quest import AcceptQuestState, handle_accept_quest
from fortress.slices.alliance import (
    AllianceState, bounty_share, handle_decline_all_alliances, handle_finalize_alliances, handle_form_alliance,
    handle_reject_alliance_terms,
)
from fortress.slices.battle_resolution import BattleResolutionState, handle_resolve_battle
from fortress.slices.card_selection import (
    CardSelectionState, handle_commit_fleet, handle_deselect_card, handle_select_card,
)
from fortress.slices import card_selection
from fortress.slices.deployment import DeploymentState, handle_lock_orders, handle_set_card_position
from fortress.slices.make_choice import MakeChoiceState, handle_make_choice, narrative_text, triggers_next
from fortress.slices.mediation import (
    MediationSliceState, handle_accept_compromise, handle_lean_toward_faction, handle_refuse_to_lean,
)
from fortress.slices.quest_summary import QuestSummaryState, handle_acknowledge_quest_summary, is_final_quest
from fortress.slices.start_game import StartGameState, handle_start_game

from .fixtures import CONTENT, FLEET, T0, T1, make_ctx, types_of


def cmd(tag, **data):
    return Command.of(tag, **data)


NEUTRAL = {"ironveil": 0, "ashfall": 0, "meridian": 0, "void_wardens": 0, "sundered_oath": 0}


# =============================================================================
# START GAME
# =============================================================================

class TestStartGame:

    def test_grants_starters_and_quest_board(self, ctx):
        events = handle_start_game(cmd("START_GAME"), StartGameState(GameStatus.NOT_STARTED, GamePhase.NOT_STARTED), ctx)
        assert types_of(events) == [
            EventType.GAME_STARTED,
            EventType.PHASE_CHANGED,
            EventType.CARD_GAINED,
            EventType.CARD_GAINED,
            EventType.CARD_GAINED,
            EventType.QUESTS_GENERATED,
        ]
        assert events[0].data == {"playerId": "player"}
        assert events[1].data == {"fromPhase": "not_started", "toPhase": "quest_hub"}
        assert [e.get("cardId") for e in events[2:5]] == ["starter_scout", "starter_freighter", "starter_corvette"]
        assert {e.get("source") for e in events[2:5]} == {"starter"}
        assert events[5].get("questIds") == ["quest_salvage_claim", "quest_sanctuary_run", "quest_brokers_gambit"]

    def test_player_id_from_command(self, ctx):
        events = handle_start_game(
            cmd("START_GAME", playerId="captain"), StartGameState(GameStatus.NOT_STARTED, GamePhase.NOT_STARTED), ctx
        )
        assert events[0].get("playerId") == "captain"

    def test_second_start_rejected(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_start_game(cmd("START_GAME"), StartGameState(GameStatus.IN_PROGRESS, GamePhase.QUEST_HUB), ctx)
        assert exc.value.code == ErrorCode.INVALID_PHASE


# =============================================================================
# ACCEPT QUEST
# =============================================================================

class TestAcceptQuest:

    def test_emits_three_events_sharing_one_timestamp(self, ctx):
        events = handle_accept_quest(
            cmd("ACCEPT_QUEST", questId="quest_salvage_claim"), AcceptQuestState(GameStatus.IN_PROGRESS), ctx
        )
        assert types_of(events) == [EventType.QUEST_ACCEPTED, EventType.PHASE_CHANGED, EventType.DILEMMA_PRESENTED]
        assert {e.timestamp for e in events} == {T0}
        assert events[0].data == {
            "questId": "quest_salvage_claim",
            "factionId": "ironveil",
            "initialBounty": 500,
            "initialCardIds": ["ironveil_ironclad"],
        }
        assert events[1].data == {"fromPhase": "quest_hub", "toPhase": "narrative"}
        assert events[2].data == {"dilemmaId": "dilemma_salvage_1_approach", "questId": "quest_salvage_claim"}

    def test_second_active_quest_rejected(self, ctx):
        state = AcceptQuestState(GameStatus.IN_PROGRESS, GamePhase.NARRATIVE, active_quest_id="quest_sanctuary_run")
        with pytest.raises(ValidationError) as exc:
            handle_accept_quest(cmd("ACCEPT_QUEST", questId="quest_salvage_claim"), state, ctx)
        assert exc.value.code == ErrorCode.PRECONDITION_FAILED
        assert exc.value.message == "Already have an active quest"
        assert exc.value.error.context_value("active_quest_id") == "quest_sanctuary_run"

    def test_active_quest_checked_before_payload(self, ctx):
        state = AcceptQuestState(GameStatus.IN_PROGRESS, GamePhase.NARRATIVE, active_quest_id="quest_sanctuary_run")
        with pytest.raises(ValidationError) as exc:
            handle_accept_quest(cmd("ACCEPT_QUEST"), state, ctx)
        assert exc.value.code == ErrorCode.PRECONDITION_FAILED

    def test_unknown_quest(self, ctx):
        with pytest.raises(NotFoundError) as exc:
            handle_accept_quest(cmd("ACCEPT_QUEST", questId="quest_nowhere"), AcceptQuestState(GameStatus.IN_PROGRESS), ctx)
        assert exc.value.code == ErrorCode.QUEST_NOT_FOUND

    def test_requires_game_in_progress(self, ctx):
        state = AcceptQuestState(GameStatus.NOT_STARTED, GamePhase.NOT_STARTED)
        with pytest.raises(ValidationError) as exc:
            handle_accept_quest(cmd("ACCEPT_QUEST", questId="quest_salvage_claim"), state, ctx)
        assert exc.value.code == ErrorCode.GAME_NOT_IN_PROGRESS

    def test_completed_quest_cannot_be_repeated(self, ctx):
        state = AcceptQuestState(GameStatus.IN_PROGRESS, completed_quest_ids=("quest_salvage_claim",))
        with pytest.raises(ValidationError):
            handle_accept_quest(cmd("ACCEPT_QUEST", questId="quest_salvage_claim"), state, ctx)

    def test_reputation_requirement(self, ctx):
        state = AcceptQuestState(GameStatus.IN_PROGRESS, reputation=dict(NEUTRAL, meridian=-5))
        with pytest.raises(ValidationError) as exc:
            handle_accept_quest(cmd("ACCEPT_QUEST", questId="quest_brokers_gambit"), state, ctx)
        assert exc.value.error.context_value("faction_id") == "meridian"

    def test_missing_quest_id(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_accept_quest(cmd("ACCEPT_QUEST"), AcceptQuestState(GameStatus.IN_PROGRESS), ctx)
        assert exc.value.code == ErrorCode.INVALID_PAYLOAD


# =============================================================================
# MAKE CHOICE
# =============================================================================

def choice_state(dilemma_id="dilemma_salvage_1_approach", **kw):
    values = dict(
        status=GameStatus.IN_PROGRESS,
        phase=GamePhase.NARRATIVE,
        active_quest_id="quest_salvage_claim",
        current_dilemma_id=dilemma_id,
        reputation=dict(NEUTRAL),
        bounty=500,
        owned_card_ids=("starter_scout", "starter_freighter", "starter_corvette", "ironveil_ironclad"),
    )
    values.update(kw)
    return MakeChoiceState(**values)


class TestMakeChoice:

    def test_consequence_events_in_order(self, ctx):
        events = handle_make_choice(
            cmd("MAKE_CHOICE", dilemmaId="dilemma_salvage_1_approach", choiceId="choice_attack_immediately"),
            choice_state(), ctx,
        )
        assert types_of(events) == [
            EventType.CHOICE_MADE,
            EventType.REPUTATION_CHANGED,
            EventType.REPUTATION_CHANGED,
            EventType.FLAG_SET,
            EventType.CHOICE_CONSEQUENCE_PRESENTED,
            EventType.PHASE_CHANGED,
        ]
        assert events[1].data == {"factionId": "ironveil", "delta": 10, "newValue": 10, "source": "choice"}
        assert events[2].data == {"factionId": "ashfall", "delta": -15, "newValue": -15, "source": "choice"}
        assert events[3].data == {"flagName": "salvage_attacked_first", "value": True}
        assert events[4].get("triggersNext") == "battle"
        assert events[5].data == {"fromPhase": "narrative", "toPhase": "choice_consequence"}

    def test_reputation_is_clamped(self, ctx):
        events = handle_make_choice(
            cmd("MAKE_CHOICE", dilemmaId="dilemma_salvage_1_approach", choiceId="choice_attack_immediately"),
            choice_state(reputation=dict(NEUTRAL, ironveil=95)), ctx,
        )
        assert events[1].data == {"factionId": "ironveil", "delta": 10, "newValue": 100, "source": "choice"}

    def test_bounty_never_goes_negative(self, ctx):
        events = handle_make_choice(
            cmd("MAKE_CHOICE", dilemmaId="dilemma_salvage_2_discovery", choiceId="choice_release_survivors"),
            choice_state("dilemma_salvage_2_discovery", bounty=100), ctx,
        )
        bounty = next(e for e in events if e.type == EventType.BOUNTY_MODIFIED)
        assert bounty.get("amount") == -200
        assert bounty.get("newValue") == 0
        gained = next(e for e in events if e.type == EventType.CARD_GAINED)
        assert gained.data == {"cardId": "ashfall_ember", "factionId": "ashfall", "source": "choice"}

    def test_cards_precede_bounty_and_flags(self, ctx):
        events = handle_make_choice(
            cmd("MAKE_CHOICE", dilemmaId="dilemma_salvage_2_discovery", choiceId="choice_release_survivors"),
            choice_state("dilemma_salvage_2_discovery"), ctx,
        )
        kinds = types_of(events)
        assert kinds.index(EventType.CARD_GAINED) < kinds.index(EventType.BOUNTY_MODIFIED) < kinds.index(EventType.FLAG_SET)

    def test_dilemma_must_be_the_presented_one(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_make_choice(
                cmd("MAKE_CHOICE", dilemmaId="dilemma_salvage_2_discovery", choiceId="choice_syndicate_claim"),
                choice_state(), ctx,
            )
        assert exc.value.code == ErrorCode.PRECONDITION_FAILED

    def test_unknown_choice(self, ctx):
        with pytest.raises(NotFoundError) as exc:
            handle_make_choice(
                cmd("MAKE_CHOICE", dilemmaId="dilemma_salvage_1_approach", choiceId="choice_surrender"),
                choice_state(), ctx,
            )
        assert exc.value.code == ErrorCode.CHOICE_NOT_FOUND

    def test_requires_narrative_phase(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_make_choice(
                cmd("MAKE_CHOICE", dilemmaId="dilemma_salvage_1_approach", choiceId="choice_hail_first"),
                choice_state(phase=GamePhase.ALLIANCE), ctx,
            )
        assert exc.value.code == ErrorCode.INVALID_PHASE

    def test_losing_cards_below_a_fleet_is_refused(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_make_choice(
                cmd("MAKE_CHOICE", dilemmaId="dilemma_salvage_3_confrontation", choiceId="choice_switch_to_ashfall"),
                choice_state("dilemma_salvage_3_confrontation"), ctx,
            )
        assert "would leave you with 4 cards" in exc.value.message

    def test_losing_a_card_with_a_fleet_to_spare(self, ctx):
        owned = FLEET + ("meridian_courier",)
        events = handle_make_choice(
            cmd("MAKE_CHOICE", dilemmaId="dilemma_salvage_3_confrontation", choiceId="choice_switch_to_ashfall"),
            choice_state("dilemma_salvage_3_confrontation", owned_card_ids=owned), ctx,
        )
        lost = next(e for e in events if e.type == EventType.CARD_LOST)
        assert lost.data == {"cardId": "ironveil_ironclad", "factionId": "ironveil", "reason": "choice"}

    def test_last_dilemma_without_follow_up_completes_quest(self, ctx):
        events = handle_make_choice(
            cmd("MAKE_CHOICE", dilemmaId="dilemma_salvage_3_confrontation", choiceId="choice_accept_warden_escort"),
            choice_state("dilemma_salvage_3_confrontation"), ctx,
        )
        assert events[-2].get("triggersNext") == "quest_complete"


class TestTriggersNext:

    @pytest.mark.parametrize("consequences,is_last,expected", [
        (ChoiceConsequences(triggers_battle=BattleTrigger("pirates", "ctx"), triggers_alliance=True), False, TriggersNext.BATTLE),
        (ChoiceConsequences(triggers_alliance=True, triggers_mediation=True), False, TriggersNext.ALLIANCE),
        (ChoiceConsequences(triggers_mediation=True, next_dilemma_id="d2"), False, TriggersNext.MEDIATION),
        (ChoiceConsequences(next_dilemma_id="d2"), True, TriggersNext.NEXT_DILEMMA),
        (ChoiceConsequences(), True, TriggersNext.QUEST_COMPLETE),
        (ChoiceConsequences(), False, TriggersNext.ALLIANCE),
    ])
    def test_priority(self, consequences, is_last, expected):
        assert triggers_next(consequences, is_last) == expected

    def test_authored_text_wins(self):
        choice = CONTENT.get_dilemma_by_id("dilemma_salvage_2_discovery").get_choice("choice_syndicate_claim")
        assert narrative_text(choice, TriggersNext.NEXT_DILEMMA).startswith("The law is clear")

    def test_template_text_is_stable(self):
        choice = CONTENT.get_dilemma_by_id("dilemma_salvage_1_approach").get_choice("choice_hail_first")
        assert narrative_text(choice, TriggersNext.NEXT_DILEMMA) == narrative_text(choice, TriggersNext.NEXT_DILEMMA)


# =============================================================================
# ALLIANCE
# =============================================================================

def alliance_state(**kw):
    values = dict(
        phase=GamePhase.ALLIANCE,
        active_quest_id="quest_salvage_claim",
        reputation=dict(NEUTRAL),
        owned_card_ids=("starter_scout", "starter_freighter", "starter_corvette", "ironveil_ironclad"),
        available_card_count=4,
        current_dilemma_id="dilemma_salvage_1_approach",
        last_choice_id="choice_attack_immediately",
    )
    values.update(kw)
    return AllianceState(**values)


class TestAlliance:

    def test_form_alliance_grants_cards(self, ctx):
        events = handle_form_alliance(cmd("FORM_ALLIANCE", factionId="meridian"), alliance_state(), ctx)
        assert types_of(events) == [EventType.ALLIANCE_FORMED, EventType.CARD_GAINED, EventType.CARD_GAINED]
        assert events[0].get("bountyShare") == 0.30
        assert [e.get("cardId") for e in events[1:]] == ["meridian_negotiator", "meridian_courier"]
        assert {e.get("source") for e in events[1:]} == {"alliance"}

    def test_owned_alliance_cards_are_not_granted_twice(self, ctx):
        state = alliance_state(owned_card_ids=("meridian_negotiator",))
        events = handle_form_alliance(cmd("FORM_ALLIANCE", factionId="meridian"), state, ctx)
        assert [e.get("cardId") for e in events[1:]] == ["meridian_courier"]

    @pytest.mark.parametrize("standing,share", [(80, 0.15), (30, 0.25), (0, 0.30), (-50, 0.30)])
    def test_bounty_share_follows_standing(self, ctx, standing, share):
        state = alliance_state(reputation=dict(NEUTRAL, ironveil=standing))
        events = handle_form_alliance(cmd("FORM_ALLIANCE", factionId="ironveil"), state, ctx)
        assert events[0].get("bountyShare") == share

    def test_devoted_share_from_config(self):
        ctx = make_ctx(config=GameConfig(devoted_bounty_share=0.05))
        assert bounty_share(ReputationStatus.DEVOTED, ctx) == 0.05

    def test_hostile_faction_refuses(self, ctx):
        state = alliance_state(reputation=dict(NEUTRAL, ashfall=-80))
        with pytest.raises(ValidationError) as exc:
            handle_form_alliance(cmd("FORM_ALLIANCE", factionId="ashfall"), state, ctx)
        assert "hostile" in exc.value.message

    def test_already_allied(self, ctx):
        state = alliance_state(allied_faction_ids=("meridian",))
        with pytest.raises(ValidationError):
            handle_form_alliance(cmd("FORM_ALLIANCE", factionId="meridian"), state, ctx)

    def test_unknown_faction(self, ctx):
        with pytest.raises(NotFoundError) as exc:
            handle_form_alliance(cmd("FORM_ALLIANCE", factionId="pirates"), alliance_state(), ctx)
        assert exc.value.code == ErrorCode.FACTION_NOT_FOUND

    def test_reject_terms(self, ctx):
        events = handle_reject_alliance_terms(cmd("REJECT_ALLIANCE_TERMS", factionId="ashfall"), alliance_state(), ctx)
        assert events[0].type == EventType.ALLIANCE_REJECTED
        assert events[0].data == {"factionId": "ashfall"}

    def test_going_alone_needs_a_full_fleet(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_decline_all_alliances(cmd("DECLINE_ALL_ALLIANCES"), alliance_state(), ctx)
        assert "You have 4 cards but battle requires 5" in exc.value.message

    def test_going_alone_with_a_full_fleet(self, ctx):
        events = handle_decline_all_alliances(cmd("DECLINE_ALL_ALLIANCES"), alliance_state(available_card_count=5), ctx)
        assert types_of(events) == [EventType.ALLIANCES_DECLINED, EventType.BATTLE_TRIGGERED, EventType.PHASE_CHANGED]
        assert events[2].get("toPhase") == "card_selection"

    def test_finalize_uses_the_choice_battle(self, ctx):
        events = handle_finalize_alliances(cmd("FINALIZE_ALLIANCES"), alliance_state(available_card_count=6), ctx)
        assert types_of(events) == [EventType.BATTLE_TRIGGERED, EventType.PHASE_CHANGED]
        battle = events[0]
        assert battle.get("questId") == "quest_salvage_claim"
        assert battle.get("opponentType") == "scavengers"
        assert battle.get("context") == "Defending the salvage claim"
        assert battle.get("difficulty") == "easy"
        assert battle.get("opponentFactionId") == "scavengers"
        assert battle.get("source") == "slice"

    def test_finalize_without_triggering_choice_uses_defaults(self, ctx):
        state = alliance_state(available_card_count=5, last_choice_id="choice_negotiate_split",
                               current_dilemma_id="dilemma_salvage_2_discovery")
        battle = handle_finalize_alliances(cmd("FINALIZE_ALLIANCES"), state, ctx)[0]
        assert battle.get("opponentType") == "enemy_forces"
        assert battle.get("difficulty") == "medium"

    def test_battle_id_is_derived_from_inputs(self):
        state = alliance_state(available_card_count=5)
        first = handle_finalize_alliances(cmd("FINALIZE_ALLIANCES"), state, make_ctx(T0))[0].get("battleId")
        again = handle_finalize_alliances(cmd("FINALIZE_ALLIANCES"), state, make_ctx(T0))[0].get("battleId")
        later = handle_finalize_alliances(cmd("FINALIZE_ALLIANCES"), state, make_ctx(T1))[0].get("battleId")
        assert first == again
        assert first != later

    def test_wrong_phase(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_finalize_alliances(cmd("FINALIZE_ALLIANCES"), alliance_state(phase=GamePhase.NARRATIVE), ctx)
        assert exc.value.code == ErrorCode.INVALID_PHASE


# =============================================================================
# MEDIATION
# =============================================================================

def mediation_state(**kw):
    values = dict(
        phase=GamePhase.MEDIATION,
        active_quest_id="quest_sanctuary_run",
        mediation_id="mediation_1",
        parties=("void_wardens", "ashfall"),
        bounty=400,
        available_card_count=4,
    )
    values.update(kw)
    return MediationSliceState(**values)


class TestMediation:

    def test_lean_toward_a_party(self, ctx):
        events = handle_lean_toward_faction(cmd("LEAN_TOWARD_FACTION", towardFactionId="ashfall"), mediation_state(), ctx)
        assert events[0].type == EventType.MEDIATION_LEANED
        assert events[0].data == {
            "mediationId": "mediation_1",
            "towardFactionId": "ashfall",
            "awayFromFactionId": "void_wardens",
        }

    def test_lean_only_once(self, ctx):
        with pytest.raises(ValidationError):
            handle_lean_toward_faction(
                cmd("LEAN_TOWARD_FACTION", towardFactionId="ashfall"), mediation_state(has_leaned=True), ctx
            )

    def test_lean_only_toward_a_party(self, ctx):
        with pytest.raises(ValidationError):
            handle_lean_toward_faction(cmd("LEAN_TOWARD_FACTION", towardFactionId="meridian"), mediation_state(), ctx)

    def test_compromise_needs_a_lean(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_accept_compromise(cmd("ACCEPT_COMPROMISE"), mediation_state(), ctx)
        assert exc.value.message == "Must lean toward a faction before accepting compromise"

    def test_compromise_halves_bounty(self, ctx):
        events = handle_accept_compromise(cmd("ACCEPT_COMPROMISE"), mediation_state(has_leaned=True), ctx)
        assert types_of(events) == [EventType.COMPROMISE_ACCEPTED, EventType.BOUNTY_MODIFIED, EventType.PHASE_CHANGED]
        assert events[0].get("bountyModifier") == 0.5
        assert events[1].get("amount") == -200
        assert events[1].get("newValue") == 200
        assert events[2].data == {"fromPhase": "mediation", "toPhase": "consequence"}

    def test_compromise_with_empty_purse(self, ctx):
        events = handle_accept_compromise(cmd("ACCEPT_COMPROMISE"), mediation_state(has_leaned=True, bounty=0), ctx)
        assert types_of(events) == [EventType.COMPROMISE_ACCEPTED, EventType.PHASE_CHANGED]

    def test_refusing_collapses_into_battle(self, ctx):
        events = handle_refuse_to_lean(cmd("REFUSE_TO_LEAN"), mediation_state(available_card_count=5), ctx)
        assert types_of(events) == [EventType.MEDIATION_COLLAPSED, EventType.BATTLE_TRIGGERED, EventType.PHASE_CHANGED]
        assert events[0].get("battleTriggered") is True
        assert events[2].get("toPhase") == "card_selection"

    def test_refusing_needs_a_fleet(self, ctx):
        with pytest.raises(ValidationError):
            handle_refuse_to_lean(cmd("REFUSE_TO_LEAN"), mediation_state(), ctx)

    def test_requires_mediation(self, ctx):
        with pytest.raises(ValidationError):
            handle_accept_compromise(cmd("ACCEPT_COMPROMISE"), mediation_state(mediation_id=None), ctx)


# =============================================================================
# CARD SELECTION
# =============================================================================

def selection_state(**kw):
    values = dict(
        phase=GamePhase.CARD_SELECTION,
        battle_id="battle_1",
        owned_card_ids=FLEET + ("ashfall_ember",),
    )
    values.update(kw)
    return CardSelectionState(**values)


class TestCardSelection:

    def test_select(self, ctx):
        events = handle_select_card(cmd("SELECT_CARD", cardId="starter_scout"), selection_state(), ctx)
        assert events[0].type == EventType.CARD_SELECTED
        assert events[0].data == {"cardId": "starter_scout", "battleId": "battle_1"}

    def test_full_fleet_checked_before_ownership(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_select_card(cmd("SELECT_CARD", cardId="void_bulwark"), selection_state(selected_card_ids=FLEET), ctx)
        assert exc.value.message == "Already selected 5 cards"

    def test_duplicate_selection(self, ctx):
        state = selection_state(selected_card_ids=("starter_scout",))
        with pytest.raises(ValidationError) as exc:
            handle_select_card(cmd("SELECT_CARD", cardId="starter_scout"), state, ctx)
        assert exc.value.message == "Card already selected"

    def test_unowned_card(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_select_card(cmd("SELECT_CARD", cardId="void_bulwark"), selection_state(), ctx)
        assert exc.value.message == "Card not owned: void_bulwark"

    def test_locked_card(self, ctx):
        state = selection_state(locked_card_ids=("ashfall_ember",))
        with pytest.raises(ValidationError) as exc:
            handle_select_card(cmd("SELECT_CARD", cardId="ashfall_ember"), state, ctx)
        assert exc.value.message == "Card is locked: ashfall_ember"

    def test_lock_threshold_is_strict(self):
        def owner_at(standing):
            return GameState(
                phase=GamePhase.CARD_SELECTION,
                reputation=dict(NEUTRAL, ashfall=standing),
                owned_cards=(OwnedCard("ashfall_ember", "ashfall", "choice", T0),),
            )
        assert card_selection.select(owner_at(-26)).locked_card_ids == ("ashfall_ember",)
        assert card_selection.select(owner_at(-25)).locked_card_ids == ()

    def test_wrong_phase(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_select_card(cmd("SELECT_CARD", cardId="starter_scout"), selection_state(phase=GamePhase.DEPLOYMENT), ctx)
        assert exc.value.code == ErrorCode.INVALID_PHASE

    def test_deselect_requires_selection(self, ctx):
        with pytest.raises(ValidationError):
            handle_deselect_card(cmd("DESELECT_CARD", cardId="starter_scout"), selection_state(), ctx)

    def test_commit_current_selection(self, ctx):
        events = handle_commit_fleet(cmd("COMMIT_FLEET"), selection_state(selected_card_ids=FLEET), ctx)
        assert types_of(events) == [EventType.FLEET_COMMITTED, EventType.PHASE_CHANGED]
        assert events[0].get("cardIds") == list(FLEET)
        assert events[1].get("toPhase") == "deployment"

    def test_commit_explicit_list(self, ctx):
        events = handle_commit_fleet(cmd("COMMIT_FLEET", cardIds=list(FLEET)), selection_state(), ctx)
        assert events[0].get("cardIds") == list(FLEET)

    @pytest.mark.parametrize("card_ids", [
        list(FLEET[:4]),
        list(FLEET[:4]) + ["starter_scout"],
        list(FLEET) + ["ashfall_ember"],
    ])
    def test_commit_needs_exactly_five_distinct(self, ctx, card_ids):
        with pytest.raises(ValidationError) as exc:
            handle_commit_fleet(cmd("COMMIT_FLEET", cardIds=card_ids), selection_state(), ctx)
        assert exc.value.message == "Must select exactly 5 distinct cards"

    def test_commit_rejects_locked_cards(self, ctx):
        fleet = list(FLEET[:4]) + ["ashfall_ember"]
        state = selection_state(locked_card_ids=("ashfall_ember",))
        with pytest.raises(ValidationError):
            handle_commit_fleet(cmd("COMMIT_FLEET", cardIds=fleet), state, ctx)


# =============================================================================
# DEPLOYMENT
# =============================================================================

def deployment_state(**kw):
    values = dict(
        phase=GamePhase.DEPLOYMENT,
        battle_id="battle_1",
        fleet_card_ids=FLEET,
        positions=(None,) * 5,
    )
    values.update(kw)
    return DeploymentState(**values)


class TestDeployment:

    def test_position_card(self, ctx):
        events = handle_set_card_position(
            cmd("SET_CARD_POSITION", cardId="starter_scout", position=3), deployment_state(), ctx
        )
        assert events[0].data == {"cardId": "starter_scout", "position": 3, "battleId": "battle_1"}

    @pytest.mark.parametrize("position", [0, 6, -1])
    def test_position_out_of_range(self, ctx, position):
        with pytest.raises(ValidationError) as exc:
            handle_set_card_position(
                cmd("SET_CARD_POSITION", cardId="starter_scout", position=position), deployment_state(), ctx
            )
        assert exc.value.message == "Position must be between 1 and 5"

    def test_position_must_be_integer(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_set_card_position(
                cmd("SET_CARD_POSITION", cardId="starter_scout", position="2"), deployment_state(), ctx
            )
        assert exc.value.code == ErrorCode.INVALID_PAYLOAD

    def test_card_outside_fleet(self, ctx):
        with pytest.raises(ValidationError):
            handle_set_card_position(
                cmd("SET_CARD_POSITION", cardId="ashfall_ember", position=1), deployment_state(), ctx
            )

    def test_lock_orders_from_projected_positions(self, ctx):
        events = handle_lock_orders(cmd("LOCK_ORDERS"), deployment_state(positions=FLEET), ctx)
        assert types_of(events) == [EventType.ORDERS_LOCKED, EventType.PHASE_CHANGED]
        assert events[0].get("positions") == list(FLEET)
        assert events[1].data == {"fromPhase": "deployment", "toPhase": "battle"}

    def test_lock_orders_needs_every_slot(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_lock_orders(cmd("LOCK_ORDERS"), deployment_state(positions=FLEET[:4] + (None,)), ctx)
        assert exc.value.message == "All 5 positions must be filled"

    def test_lock_orders_one_slot_per_card(self, ctx):
        positions = list(FLEET[:4]) + ["starter_scout"]
        with pytest.raises(ValidationError) as exc:
            handle_lock_orders(cmd("LOCK_ORDERS", positions=positions), deployment_state(), ctx)
        assert exc.value.message == "A card may hold only one position"


# =============================================================================
# BATTLE RESOLUTION
# =============================================================================

class TestBattleResolution:

    def test_records_outcome(self, ctx):
        events = handle_resolve_battle(
            cmd("RESOLVE_BATTLE", battleId="battle_1", outcome="victory", roundsWon=3, roundsLost=2),
            BattleResolutionState(GamePhase.BATTLE, "battle_1"), ctx,
        )
        assert events[0].data == {
            "battleId": "battle_1", "outcome": "victory", "roundsWon": 3, "roundsLost": 2, "roundsDrawn": 0,
        }
        assert events[1].data == {"fromPhase": "battle", "toPhase": "consequence"}

    def test_unknown_outcome(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_resolve_battle(
                cmd("RESOLVE_BATTLE", battleId="battle_1", outcome="stalemate"),
                BattleResolutionState(GamePhase.BATTLE, "battle_1"), ctx,
            )
        assert exc.value.code == ErrorCode.INVALID_PAYLOAD

    def test_other_battle(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_resolve_battle(
                cmd("RESOLVE_BATTLE", battleId="battle_2", outcome="defeat"),
                BattleResolutionState(GamePhase.BATTLE, "battle_1"), ctx,
            )
        assert exc.value.code == ErrorCode.PRECONDITION_FAILED

    def test_resolved_only_once(self, ctx):
        with pytest.raises(ValidationError):
            handle_resolve_battle(
                cmd("RESOLVE_BATTLE", battleId="battle_1", outcome="draw"),
                BattleResolutionState(GamePhase.BATTLE, "battle_1", outcome="victory"), ctx,
            )

    def test_negative_rounds(self, ctx):
        with pytest.raises(ValidationError):
            handle_resolve_battle(
                cmd("RESOLVE_BATTLE", battleId="battle_1", outcome="draw", roundsWon=-1),
                BattleResolutionState(GamePhase.BATTLE, "battle_1"), ctx,
            )


# =============================================================================
# QUEST SUMMARY
# =============================================================================

class TestQuestSummary:

    def test_earlier_quest_returns_to_hub(self, ctx):
        state = QuestSummaryState(GamePhase.QUEST_SUMMARY, "quest_salvage_claim", completed_quests_count=0, bounty=550)
        events = handle_acknowledge_quest_summary(cmd("ACKNOWLEDGE_QUEST_SUMMARY"), state, ctx)
        assert types_of(events) == [
            EventType.QUEST_SUMMARY_ACKNOWLEDGED, EventType.QUEST_COMPLETED, EventType.PHASE_CHANGED,
        ]
        assert events[1].data == {"questId": "quest_salvage_claim", "outcome": "completed", "finalBounty": 550}
        assert events[2].get("toPhase") == "quest_hub"

    def test_last_quest_ends_the_game(self, ctx):
        state = QuestSummaryState(GamePhase.QUEST_SUMMARY, "quest_brokers_gambit", completed_quests_count=2, bounty=750)
        events = handle_acknowledge_quest_summary(cmd("ACKNOWLEDGE_QUEST_SUMMARY"), state, ctx)
        assert types_of(events) == [
            EventType.QUEST_SUMMARY_ACKNOWLEDGED,
            EventType.QUEST_COMPLETED,
            EventType.GAME_ENDED,
            EventType.PHASE_CHANGED,
        ]
        assert events[2].data == {"finalBounty": 750, "questsCompleted": 3, "totalQuests": 3}
        assert events[3].data == {"fromPhase": "quest_summary", "toPhase": "ending"}

    @pytest.mark.parametrize("completed,total,final", [(0, 3, False), (1, 3, False), (2, 3, True), (3, 3, True)])
    def test_is_final_quest(self, completed, total, final):
        assert is_final_quest(completed, total) is final

    def test_requires_summary_phase(self, ctx):
        with pytest.raises(ValidationError) as exc:
            handle_acknowledge_quest_summary(
                cmd("ACKNOWLEDGE_QUEST_SUMMARY"), QuestSummaryState(GamePhase.NARRATIVE, "quest_salvage_claim"), ctx
            )
        assert exc.value.code == ErrorCode.INVALID_PHASE


# =============================================================================
# REGISTRY
# =============================================================================

class TestRegistry:

    @pytest.mark.parametrize("command_type", list(CommandType))
    def test_every_command_is_bound(self, command_type):
        binding = binding_for(command_type)
        assert binding.command_type == command_type
        assert callable(binding.handler)
