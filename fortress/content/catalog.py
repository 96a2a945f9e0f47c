"""
Bundled Game Content

Five factions, their card rosters, three quests with three dilemmas each,
and the authored narrative graph of the salvage claim. The remaining
quests are served as graphs adapted from their dilemma chains.
"""

from __future__ import annotations
from typing import Any, Dict, List, Tuple

from ..contracts.game import (
    BattleTrigger, Card, Choice, ChoiceConsequences, Dilemma, Faction, Quest,
    ReputationChange, Voice,
)
from ..narrative.loader import graph_from_dict
from ..narrative.quest_adapter import quest_to_graph
from .repository import InMemoryContentRepository


# =============================================================================
# FACTIONS
# =============================================================================

FACTIONS: Tuple[Faction, ...] = (
    Faction(
        "ironveil", "Ironveil Syndicate",
        "Runs the station's industrial sector. Order comes from commerce, and commerce requires enforcement.",
        ("Profit", "Contracts", "Order"),
        "Heavy siege vessels: high attack, strong armor, slow",
        ("ashfall",),
    ),
    Faction(
        "ashfall", "Ashfall Remnants",
        "Survivors of the Meridian Collapse who shelter the displaced and raid corporate shipments.",
        ("Freedom", "Survival", "Defiance"),
        "Swift interceptors: high agility, fragile hulls",
        ("ironveil",),
    ),
    Faction(
        "meridian", "Meridian Accord",
        "The station's diplomatic corps and trading guilds. Their neutrality is their shield and their product.",
        ("Diplomacy", "Balance", "Information"),
        "Balanced traders: moderate stats across the board",
        (),
    ),
    Faction(
        "void_wardens", "Void Wardens",
        "Patrol the outer reaches and enforce the older code of salvage rights and beacon protocols.",
        ("Duty", "Tradition", "Protection"),
        "Armored sentinels: exceptional armor, low attack",
        ("sundered_oath",),
    ),
    Faction(
        "sundered_oath", "Sundered Oath",
        "Oathbreakers who fight for nothing but themselves. They hit hard and fade into the dark.",
        ("Self-Interest", "Pragmatism", "Survival"),
        "Glass cannons: devastating attack, minimal defense",
        ("void_wardens", "meridian"),
    ),
)


# =============================================================================
# CARDS
# =============================================================================

CARDS: Tuple[Card, ...] = (
    Card("ironveil_hammerhead", "Hammerhead", "ironveil", 5, 3, 2),
    Card("ironveil_creditor", "The Creditor", "ironveil", 6, 3, 2),
    Card("ironveil_ironclad", "Ironclad", "ironveil", 4, 5, 2),
    Card("ironveil_profit_margin", "Profit Margin", "ironveil", 5, 2, 1),
    Card("ashfall_phoenix", "Phoenix Rising", "ashfall", 4, 2, 5),
    Card("ashfall_redhawk", "Redhawk", "ashfall", 4, 2, 4),
    Card("ashfall_desperado", "Desperado", "ashfall", 5, 1, 5),
    Card("ashfall_ember", "Ember", "ashfall", 3, 2, 4),
    Card("meridian_negotiator", "Negotiator", "meridian", 4, 3, 3),
    Card("meridian_broker", "Deal Broker", "meridian", 3, 3, 4),
    Card("meridian_arbiter", "Arbiter", "meridian", 4, 3, 4),
    Card("meridian_courier", "Swift Courier", "meridian", 3, 2, 5),
    Card("void_bulwark", "Bulwark", "void_wardens", 2, 6, 3),
    Card("void_sentinel", "Sentinel", "void_wardens", 3, 5, 3),
    Card("void_warden_prime", "Warden Prime", "void_wardens", 3, 5, 2),
    Card("void_beacon_keeper", "Beacon Keeper", "void_wardens", 2, 4, 4),
    Card("sundered_oathbreaker", "Oathbreaker", "sundered_oath", 6, 1, 3),
    Card("sundered_betrayer", "Betrayer", "sundered_oath", 6, 1, 4),
    Card("sundered_exile", "Exile", "sundered_oath", 5, 2, 4),
    Card("sundered_ghost_ship", "Ghost Ship", "sundered_oath", 5, 1, 3),
    Card("starter_scout", "Scout", "meridian", 3, 2, 4, "Eyes before guns."),
    Card("starter_freighter", "Armed Freighter", "meridian", 2, 4, 3, "Cargo first, cannons second."),
    Card("starter_corvette", "Corvette", "meridian", 3, 3, 3, "Reliable, unremarkable, yours."),
)

STARTER_CARD_IDS: Tuple[str, ...] = ("starter_scout", "starter_freighter", "starter_corvette")

ALLIANCE_CARD_IDS: Dict[str, Tuple[str, ...]] = {
    "ironveil": ("ironveil_hammerhead", "ironveil_profit_margin"),
    "ashfall": ("ashfall_redhawk", "ashfall_ember"),
    "meridian": ("meridian_negotiator", "meridian_courier"),
    "void_wardens": ("void_bulwark", "void_sentinel"),
    "sundered_oath": ("sundered_betrayer", "sundered_exile"),
}


# =============================================================================
# QUESTS AND DILEMMAS
# =============================================================================

def _rep(*changes: Tuple[str, int]) -> Tuple[ReputationChange, ...]:
    return tuple(ReputationChange(faction_id, delta) for faction_id, delta in changes)


def _flags(*names: str) -> Tuple[Tuple[str, bool], ...]:
    return tuple((name, True) for name in names)


QUESTS: Tuple[Quest, ...] = (
    Quest(
        quest_id="quest_salvage_claim",
        faction_id="ironveil",
        title="The Salvage Claim",
        brief_description="Escort a Syndicate salvage team to a contested wreck.",
        quest_giver_name="Director Chen",
        initial_bounty=500,
        dilemma_ids=(
            "dilemma_salvage_1_approach",
            "dilemma_salvage_2_discovery",
            "dilemma_salvage_3_confrontation",
        ),
        initial_card_ids=("ironveil_ironclad",),
        reputation_required=-25,
        warning_text="This mission may damage your relationship with the Ashfall Remnants.",
    ),
    Quest(
        quest_id="quest_sanctuary_run",
        faction_id="ashfall",
        title="The Sanctuary Run",
        brief_description="Smuggle refugees through a Void Warden blockade.",
        quest_giver_name="Elder Nomi",
        initial_bounty=400,
        dilemma_ids=(
            "dilemma_sanctuary_1_approach",
            "dilemma_sanctuary_2_blockade",
            "dilemma_sanctuary_3_destination",
        ),
        initial_card_ids=("ashfall_redhawk",),
        reputation_required=-25,
        warning_text="The Wardens do not forgive blockade runners.",
    ),
    Quest(
        quest_id="quest_brokers_gambit",
        faction_id="meridian",
        title="The Broker's Gambit",
        brief_description="Mediate a salvage dispute where everyone has secrets.",
        quest_giver_name="Soren Vale",
        initial_bounty=600,
        dilemma_ids=(
            "dilemma_broker_1_opening",
            "dilemma_broker_2_revelation",
            "dilemma_broker_3_choice",
        ),
        initial_card_ids=("meridian_arbiter",),
        reputation_required=0,
        warning_text="Meridian contracts require true neutrality.",
    ),
)


DILEMMAS: Tuple[Dilemma, ...] = (
    # The Salvage Claim
    Dilemma(
        "dilemma_salvage_1_approach", "quest_salvage_claim",
        "Your convoy reaches the wreck of the Stellaris Dawn. Three small vessels run silent in the debris field.",
        (
            Voice("Director Chen", "ironveil", "Scavengers. Drive them off.", "Aggressive approach"),
            Voice("First Mate Torres", "crew", "We could hail them first.", "Cautious approach"),
        ),
        (
            Choice("choice_attack_immediately", "Attack immediately", ChoiceConsequences(
                reputation_changes=_rep(("ironveil", 10), ("ashfall", -15)),
                triggers_battle=BattleTrigger("scavengers", "Defending the salvage claim", "easy"),
                next_dilemma_id="dilemma_salvage_2_discovery",
                flags=_flags("salvage_attacked_first"),
            ), "Assert Syndicate authority with force."),
            Choice("choice_hail_first", "Hail the vessels", ChoiceConsequences(
                reputation_changes=_rep(("meridian", 5)),
                next_dilemma_id="dilemma_salvage_2_discovery",
                flags=_flags("salvage_hailed_first"),
            ), "Try to communicate before shooting."),
            Choice("choice_wait_observe", "Wait and observe", ChoiceConsequences(
                reputation_changes=_rep(("ironveil", -5)),
                next_dilemma_id="dilemma_salvage_2_discovery",
                flags=_flags("salvage_waited"),
            ), "Hold position and gather intelligence."),
        ),
    ),
    Dilemma(
        "dilemma_salvage_2_discovery", "quest_salvage_claim",
        "The cargo hold holds forty-seven occupied cryopods, and they are failing.",
        (
            Voice("Director Chen", "ironveil", "Our claim covers the vessel and its contents.", "Corporate pragmatism"),
            Voice("Jax \"Redhawk\" Mora", "ashfall", "Those are OUR people!", "Furious accusation"),
        ),
        (
            Choice("choice_syndicate_claim", "Honor the Syndicate claim", ChoiceConsequences(
                reputation_changes=_rep(("ironveil", 15), ("ashfall", -20), ("void_wardens", -5)),
                bounty_modifier=200,
                next_dilemma_id="dilemma_salvage_3_confrontation",
                flags=_flags("salvage_sided_ironveil"),
            ), "The survivors belong to Ironveil by salvage law.",
                "The law is clear, even if your conscience isn't. The credits feel heavier than they should."),
            Choice("choice_release_survivors", "Release the survivors", ChoiceConsequences(
                reputation_changes=_rep(("ironveil", -20), ("ashfall", 20), ("void_wardens", 5)),
                cards_gained=("ashfall_ember",),
                bounty_modifier=-200,
                next_dilemma_id="dilemma_salvage_3_confrontation",
                flags=_flags("salvage_sided_ashfall"),
            ), "Let the Ashfall take their people."),
            Choice("choice_negotiate_split", "Propose a split", ChoiceConsequences(
                reputation_changes=_rep(("ironveil", -5), ("ashfall", 5), ("meridian", 10)),
                triggers_alliance=True,
                flags=_flags("salvage_negotiated"),
            ), "Survivors to Ashfall, cargo to Syndicate."),
        ),
    ),
    Dilemma(
        "dilemma_salvage_3_confrontation", "quest_salvage_claim",
        "More ships are arriving. Someone is going to shoot first, and you are in the middle.",
        (
            Voice("Kira Voss", "ironveil", "Stand with us now and there will be better contracts.", "Offer of alliance"),
            Voice("Captain Thresh", "void_wardens", "I can offer escort out, to those who stand down first.", "Third option"),
        ),
        (
            Choice("choice_fight_for_ironveil", "Fight alongside Ironveil", ChoiceConsequences(
                reputation_changes=_rep(("ironveil", 15), ("ashfall", -25), ("void_wardens", -10)),
                cards_gained=("ironveil_creditor",),
                bounty_modifier=300,
                triggers_battle=BattleTrigger("ashfall_raiders", "Defending the Syndicate claim", "medium", "ashfall"),
                flags=_flags("salvage_final_ironveil"),
            ), "Honor your contract to the end."),
            Choice("choice_switch_to_ashfall", "Switch sides to Ashfall", ChoiceConsequences(
                reputation_changes=_rep(("ironveil", -30), ("ashfall", 25), ("sundered_oath", 5)),
                cards_gained=("ashfall_phoenix",),
                cards_lost=("ironveil_ironclad",),
                bounty_modifier=-100,
                triggers_battle=BattleTrigger("ironveil_enforcers", "Defending the refugees", "medium", "ironveil"),
                flags=_flags("salvage_final_ashfall", "broke_ironveil_contract"),
            ), "Break your contract for the refugees."),
            Choice("choice_accept_warden_escort", "Accept Warden escort", ChoiceConsequences(
                reputation_changes=_rep(("ironveil", -10), ("ashfall", -5), ("void_wardens", 15)),
                cards_gained=("void_beacon_keeper",),
                bounty_modifier=-150,
                flags=_flags("salvage_final_neutral"),
            ), "Leave the conflict to the other factions."),
        ),
    ),

    # The Sanctuary Run
    Dilemma(
        "dilemma_sanctuary_1_approach", "quest_sanctuary_run",
        "Three hundred refugees wait in converted freighters. The Warden blockade sits between them and sanctuary.",
        (
            Voice("Jax \"Redhawk\" Mora", "ashfall", "I know a route through the ice field.", "Stealth"),
            Voice("Soren Vale", "meridian", "For a fee, the Accord can arrange paperwork.", "Diplomacy"),
        ),
        (
            Choice("choice_use_redhawk_route", "Use Redhawk's route", ChoiceConsequences(
                reputation_changes=_rep(("ashfall", 10)),
                next_dilemma_id="dilemma_sanctuary_2_blockade",
                flags=_flags("sanctuary_stealth_route"),
            ), "Slip through the ice field."),
            Choice("choice_negotiate_meridian", "Negotiate with Meridian", ChoiceConsequences(
                reputation_changes=_rep(("meridian", 10), ("ashfall", -5)),
                bounty_modifier=-100,
                next_dilemma_id="dilemma_sanctuary_2_blockade",
                flags=_flags("sanctuary_diplomatic_route"),
            ), "Pay the broker's fee for safe papers."),
            Choice("choice_direct_approach", "Approach directly", ChoiceConsequences(
                reputation_changes=_rep(("void_wardens", 5), ("ashfall", -10)),
                triggers_mediation=True,
                mediation_parties=("void_wardens", "ashfall"),
                flags=_flags("sanctuary_direct_route"),
            ), "Ask the Wardens to hear the refugees out."),
        ),
    ),
    Dilemma(
        "dilemma_sanctuary_2_blockade", "quest_sanctuary_run",
        "A Warden patrol demands you heave to and submit to inspection.",
        (
            Voice("Captain Thresh", "void_wardens", "Heave to. Nobody passes uninspected.", "Lawful demand"),
            Voice("Elder Nomi", "ashfall", "Let me speak to them.", "Plea"),
        ),
        (
            Choice("choice_run_blockade", "Run the blockade", ChoiceConsequences(
                reputation_changes=_rep(("void_wardens", -20), ("ashfall", 15)),
                triggers_battle=BattleTrigger("void_warden_patrol", "Running the Warden blockade", "medium", "void_wardens"),
                next_dilemma_id="dilemma_sanctuary_3_destination",
                flags=_flags("sanctuary_ran_blockade"),
            ), "Burn hard for the gap."),
            Choice("choice_let_nomi_speak", "Let Elder Nomi speak", ChoiceConsequences(
                reputation_changes=_rep(("void_wardens", 10), ("ashfall", 5)),
                next_dilemma_id="dilemma_sanctuary_3_destination",
                flags=_flags("sanctuary_nomi_negotiated"),
            ), "Trust the elder's words."),
            Choice("choice_offer_cargo", "Offer cargo as passage fee", ChoiceConsequences(
                reputation_changes=_rep(("void_wardens", 5), ("ashfall", -15), ("sundered_oath", 5)),
                bounty_modifier=-150,
                next_dilemma_id="dilemma_sanctuary_3_destination",
                flags=_flags("sanctuary_bribed_wardens"),
            ), "Everyone has a price."),
        ),
    ),
    Dilemma(
        "dilemma_sanctuary_3_destination", "quest_sanctuary_run",
        "The sanctuary station demands docking fees the refugees cannot pay.",
        (
            Voice("Station Administrator", "meridian", "Fees are fees.", "Bureaucracy"),
            Voice("Ghost", "sundered_oath", "I know things about the administrator.", "Blackmail option"),
        ),
        (
            Choice("choice_pay_from_bounty", "Pay from your bounty", ChoiceConsequences(
                reputation_changes=_rep(("ashfall", 20), ("meridian", 5)),
                cards_gained=("ashfall_desperado",),
                bounty_modifier=-300,
                flags=_flags("sanctuary_paid_fees"),
            ), "Cover the docking fees yourself."),
            Choice("choice_threaten_administrator", "Threaten the administrator", ChoiceConsequences(
                reputation_changes=_rep(("ashfall", 10), ("meridian", -15), ("sundered_oath", 10)),
                triggers_battle=BattleTrigger("station_security", "Forcing the docking clamps", "hard", "meridian"),
                flags=_flags("sanctuary_threatened"),
            ), "Guns are cheaper than fees."),
            Choice("choice_use_blackmail", "Use Ghost's information", ChoiceConsequences(
                reputation_changes=_rep(("ashfall", 5), ("meridian", -10), ("sundered_oath", 15)),
                cards_gained=("sundered_ghost_ship",),
                bounty_modifier=-50,
                flags=_flags("sanctuary_blackmailed", "owes_ghost_favor"),
            ), "Leverage the administrator's secrets."),
            Choice("choice_leave_refugees", "Leave the refugees here", ChoiceConsequences(
                reputation_changes=_rep(("ashfall", -25), ("ironveil", 10), ("sundered_oath", 5)),
                cards_lost=("ashfall_redhawk",),
                flags=_flags("sanctuary_abandoned_refugees"),
            ), "They are not your problem anymore."),
        ),
    ),

    # The Broker's Gambit
    Dilemma(
        "dilemma_broker_1_opening", "quest_brokers_gambit",
        "Wardens and Sundered both approach you privately before the mediation opens.",
        (
            Voice("Captain Thresh", "void_wardens", "Help me keep something buried.", "Secret offer"),
            Voice("Razor", "sundered_oath", "A cut of the salvage. No questions.", "Secret offer"),
        ),
        (
            Choice("choice_accept_warden_offer", "Accept Thresh's offer", ChoiceConsequences(
                reputation_changes=_rep(("void_wardens", 10)),
                next_dilemma_id="dilemma_broker_2_revelation",
                flags=_flags("broker_allied_wardens", "secret_alliance_active"),
            ), "Form a secret alliance with the Wardens."),
            Choice("choice_accept_razor_offer", "Accept Razor's offer", ChoiceConsequences(
                reputation_changes=_rep(("sundered_oath", 10)),
                bounty_modifier=200,
                next_dilemma_id="dilemma_broker_2_revelation",
                flags=_flags("broker_allied_sundered", "secret_alliance_active"),
            ), "Form a secret alliance with the Sundered."),
            Choice("choice_remain_neutral", "Remain strictly neutral", ChoiceConsequences(
                reputation_changes=_rep(("meridian", 15), ("void_wardens", -5), ("sundered_oath", -5)),
                next_dilemma_id="dilemma_broker_2_revelation",
                flags=_flags("broker_stayed_neutral"),
            ), "Refuse both offers."),
        ),
    ),
    Dilemma(
        "dilemma_broker_2_revelation", "quest_brokers_gambit",
        "The wreck is the Oathkeeper, and its cargo is dangerous to everyone.",
        (
            Voice("ARIA", "other", "Cargo manifest decrypted.", "Revelation"),
        ),
        (
            Choice("choice_support_wardens", "Support Warden containment", ChoiceConsequences(
                reputation_changes=_rep(("void_wardens", 20), ("sundered_oath", -20), ("meridian", -10)),
                cards_gained=("void_warden_prime",),
                next_dilemma_id="dilemma_broker_3_choice",
                flags=_flags("broker_chose_containment"),
            ), "Keep the cargo sealed."),
            Choice("choice_support_sundered", "Help the Sundered retrieve it", ChoiceConsequences(
                reputation_changes=_rep(("void_wardens", -25), ("sundered_oath", 20), ("ironveil", 5)),
                cards_gained=("sundered_oathbreaker",),
                bounty_modifier=400,
                next_dilemma_id="dilemma_broker_3_choice",
                flags=_flags("broker_chose_profit"),
            ), "Profit over caution."),
            Choice("choice_reveal_truth", "Reveal everything publicly", ChoiceConsequences(
                reputation_changes=_rep(("meridian", 20), ("void_wardens", -10), ("sundered_oath", -10)),
                cards_gained=("meridian_broker",),
                next_dilemma_id="dilemma_broker_3_choice",
                flags=_flags("broker_revealed_truth"),
            ), "Let both factions know the full truth."),
            Choice("choice_sell_information", "Sell the information", ChoiceConsequences(
                reputation_changes=_rep(("meridian", 5), ("sundered_oath", 10)),
                bounty_modifier=300,
                next_dilemma_id="dilemma_broker_3_choice",
                flags=_flags("broker_sold_secrets"),
            ), "Information is currency."),
        ),
    ),
    Dilemma(
        "dilemma_broker_3_choice", "quest_brokers_gambit",
        "Both factions now know about the Oathkeeper. Weapons are warming on every ship.",
        (
            Voice("First Mate Torres", "crew", "Let's collect our pay and get out.", "Pragmatic advice"),
        ),
        (
            Choice("choice_take_payment_leave", "Take your payment and leave", ChoiceConsequences(
                reputation_changes=_rep(("meridian", 5)),
                bounty_modifier=200,
                flags=_flags("broker_clean_exit"),
            ), "Your job is done."),
            Choice("choice_pledge_to_winner", "Pledge allegiance to the victor", ChoiceConsequences(
                reputation_changes=_rep(("void_wardens", 15), ("sundered_oath", 15)),
                triggers_battle=BattleTrigger("oathkeeper_salvagers", "Deciding the Oathkeeper's fate", "hard"),
                flags=_flags("broker_joined_victor"),
            ), "Back whoever wins."),
            Choice("choice_disappear", "Disappear into the black", ChoiceConsequences(
                reputation_changes=_rep(("meridian", -10), ("sundered_oath", 5)),
                cards_gained=("sundered_exile",),
                bounty_modifier=-100,
                flags=_flags("broker_disappeared"),
            ), "Vanish before anyone can blame you."),
        ),
    ),
)


# =============================================================================
# AUTHORED NARRATIVE GRAPH
# =============================================================================

def _choice(transition_id: str, target: str, text: str, effects: List[Dict[str, Any]], **presentation) -> Dict[str, Any]:
    return {
        "transitionId": transition_id,
        "targetNodeId": target,
        "transitionType": "choice",
        "presentation": dict(choiceText=text, **presentation),
        "effects": effects,
    }


def _inc(target: str, value: int) -> Dict[str, Any]:
    return {"effectType": "increment", "target": target, "value": value}


def _dec(target: str, value: int) -> Dict[str, Any]:
    return {"effectType": "decrement", "target": target, "value": value}


def _flag(name: str) -> Dict[str, Any]:
    return {"effectType": "set_flag", "target": name, "value": True}


def _trigger(event_type: str, **payload) -> Dict[str, Any]:
    return {"effectType": "trigger_event", "target": event_type, "value": payload}


SALVAGE_CLAIM_GRAPH: Dict[str, Any] = {
    "graphId": "quest_salvage_claim",
    "version": "1.0.0",
    "metadata": {"title": "The Salvage Claim", "tags": ["ironveil", "quest"]},
    "entryPoints": [
        {"entryPointId": "quest_salvage_claim_start", "startingNodeId": "dilemma_salvage_1_approach"},
    ],
    "nodes": [
        {
            "nodeId": "dilemma_salvage_1_approach",
            "nodeType": "choice",
            "content": {"text": "Three small vessels run silent near the wreck of the Stellaris Dawn."},
            "metadata": {"isRevisitable": False},
            "transitions": [
                _choice("choice_attack_immediately", "dilemma_salvage_2_discovery", "Attack immediately", [
                    _inc("reputation_ironveil", 10),
                    _dec("reputation_ashfall", 15),
                    _flag("salvage_attacked_first"),
                    _trigger("BATTLE_TRIGGERED", opponentType="scavengers",
                             context="Defending the salvage claim", difficulty="easy"),
                ], consequenceLevel="major"),
                _choice("choice_hail_first", "dilemma_salvage_2_discovery", "Hail the vessels", [
                    _inc("reputation_meridian", 5),
                    _flag("salvage_hailed_first"),
                ]),
                _choice("choice_wait_observe", "dilemma_salvage_2_discovery", "Wait and observe", [
                    _dec("reputation_ironveil", 5),
                    _flag("salvage_waited"),
                ]),
            ],
        },
        {
            "nodeId": "dilemma_salvage_2_discovery",
            "nodeType": "choice",
            "content": {"text": "The cargo hold holds forty-seven occupied cryopods, and they are failing."},
            "metadata": {"isRevisitable": False},
            "transitions": [
                _choice("choice_syndicate_claim", "dilemma_salvage_3_confrontation", "Honor the Syndicate claim", [
                    _inc("reputation_ironveil", 15),
                    _dec("reputation_ashfall", 20),
                    _dec("reputation_void_wardens", 5),
                    _inc("bounty", 200),
                    _flag("salvage_sided_ironveil"),
                ], consequenceLevel="major"),
                _choice("choice_release_survivors", "dilemma_salvage_3_confrontation", "Release the survivors", [
                    _dec("reputation_ironveil", 20),
                    _inc("reputation_ashfall", 20),
                    _inc("reputation_void_wardens", 5),
                    _dec("bounty", 200),
                    _trigger("CARD_GAINED", cardId="ashfall_ember", source="choice"),
                    _flag("salvage_sided_ashfall"),
                ], consequenceLevel="major"),
                _choice("choice_negotiate_split", "dilemma_salvage_3_confrontation", "Propose a split", [
                    _dec("reputation_ironveil", 5),
                    _inc("reputation_ashfall", 5),
                    _inc("reputation_meridian", 10),
                    _flag("salvage_negotiated"),
                    _flag("triggers_alliance"),
                ]),
            ],
        },
        {
            "nodeId": "dilemma_salvage_3_confrontation",
            "nodeType": "choice",
            "content": {"text": "More ships are arriving. Someone is going to shoot first."},
            "metadata": {"isRevisitable": False},
            "transitions": [
                _choice("choice_fight_for_ironveil", "quest_salvage_claim_ending", "Fight alongside Ironveil", [
                    _inc("reputation_ironveil", 15),
                    _dec("reputation_ashfall", 25),
                    _dec("reputation_void_wardens", 10),
                    _inc("bounty", 300),
                    _trigger("CARD_GAINED", cardId="ironveil_creditor", source="choice"),
                    _trigger("BATTLE_TRIGGERED", opponentType="ashfall_raiders",
                             context="Defending the Syndicate claim", difficulty="medium"),
                    _flag("salvage_final_ironveil"),
                ], consequenceLevel="major"),
                _choice("choice_switch_to_ashfall", "quest_salvage_claim_ending", "Switch sides to Ashfall", [
                    _dec("reputation_ironveil", 30),
                    _inc("reputation_ashfall", 25),
                    _inc("reputation_sundered_oath", 5),
                    _dec("bounty", 100),
                    _trigger("CARD_GAINED", cardId="ashfall_phoenix", source="choice"),
                    _trigger("CARD_LOST", cardId="ironveil_ironclad", source="choice"),
                    _trigger("BATTLE_TRIGGERED", opponentType="ironveil_enforcers",
                             context="Defending the refugees", difficulty="medium"),
                    _flag("salvage_final_ashfall"),
                    _flag("broke_ironveil_contract"),
                ], consequenceLevel="irreversible"),
                _choice("choice_accept_warden_escort", "quest_salvage_claim_ending", "Accept Warden escort", [
                    _dec("reputation_ironveil", 10),
                    _dec("reputation_ashfall", 5),
                    _inc("reputation_void_wardens", 15),
                    _dec("bounty", 150),
                    _trigger("CARD_GAINED", cardId="void_beacon_keeper", source="choice"),
                    _flag("salvage_final_neutral"),
                ]),
            ],
        },
        {
            "nodeId": "quest_salvage_claim_ending",
            "nodeType": "ending",
            "endingType": "neutral",
            "content": {"text": "You have completed \"The Salvage Claim\". The sector will remember."},
            "metadata": {"isRevisitable": False, "setsFlags": ["quest_salvage_claim_completed"]},
            "transitions": [],
        },
    ],
}


def default_repository() -> InMemoryContentRepository:
    """Repository over the bundled content."""
    dilemmas_by_quest: Dict[str, List[Dilemma]] = {}
    for dilemma in DILEMMAS:
        dilemmas_by_quest.setdefault(dilemma.quest_id, []).append(dilemma)

    graphs = [graph_from_dict(SALVAGE_CLAIM_GRAPH)]
    authored = {g.graph_id for g in graphs}
    for quest in QUESTS:
        if quest.quest_id not in authored:
            graphs.append(quest_to_graph(quest, dilemmas_by_quest.get(quest.quest_id, [])))

    return InMemoryContentRepository(
        factions=FACTIONS,
        cards=CARDS,
        quests=QUESTS,
        dilemmas=DILEMMAS,
        graphs=graphs,
        starter_cards=STARTER_CARD_IDS,
        alliance_cards=ALLIANCE_CARD_IDS,
    )
