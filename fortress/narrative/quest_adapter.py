"""
Quest to Graph Adapter

Turns a quest's dilemma chain into a NarrativeGraph so quest content and
authored graphs share one traversal engine. Each dilemma becomes a
non-revisitable choice node, each choice a transition carrying the
choice's consequences as effects; the chain closes on `<quest>_ending`.
"""

from __future__ import annotations
from typing import List, Sequence

from ..contracts.events import EventType
from ..contracts.game import Choice, Dilemma, Quest
from .graph import (
    ConsequenceLevel, Decrement, Effect, EntryPoint, Increment, NarrativeGraph,
    NarrativeNode, NodeContent, NodeMetadata, NodeType, Presentation, SetFlag,
    Transition, TriggerEvent, EndingType,
)

MAJOR_REPUTATION_DELTA = 20


def ending_node_id(quest_id: str) -> str:
    return f"{quest_id}_ending"


def entry_point_id(quest_id: str) -> str:
    return f"{quest_id}_start"


def transition_id_for_choice(dilemma_id: str, index: int) -> str:
    return f"{dilemma_id}_choice_{index}"


def consequence_level(choice: Choice) -> ConsequenceLevel:
    cons = choice.consequences
    if any(abs(change.delta) >= MAJOR_REPUTATION_DELTA for change in cons.reputation_changes):
        return ConsequenceLevel.MAJOR
    if cons.cards_lost or cons.triggers_battle or cons.triggers_alliance:
        return ConsequenceLevel.MAJOR
    return ConsequenceLevel.MINOR


def choice_effects(choice: Choice) -> List[Effect]:
    cons = choice.consequences
    effects: List[Effect] = []
    for change in cons.reputation_changes:
        target = f"reputation_{change.faction_id}"
        if change.delta >= 0:
            effects.append(Increment(target=target, amount=change.delta))
        else:
            effects.append(Decrement(target=target, amount=-change.delta))
    for card_id in cons.cards_gained:
        effects.append(TriggerEvent(EventType.CARD_GAINED, (("cardId", card_id), ("source", "choice"))))
    for card_id in cons.cards_lost:
        effects.append(TriggerEvent(EventType.CARD_LOST, (("cardId", card_id), ("source", "choice"))))
    if cons.bounty_modifier:
        if cons.bounty_modifier > 0:
            effects.append(Increment(target="bounty", amount=cons.bounty_modifier))
        else:
            effects.append(Decrement(target="bounty", amount=-cons.bounty_modifier))
    for flag, value in cons.flags:
        effects.append(SetFlag(flag=flag, value=value))
    if cons.triggers_battle is not None:
        battle = cons.triggers_battle
        payload = [
            ("context", battle.context),
            ("difficulty", battle.difficulty),
            ("opponentType", battle.opponent_type),
        ]
        if battle.opponent_faction_id:
            payload.append(("opponentFactionId", battle.opponent_faction_id))
        effects.append(TriggerEvent(EventType.BATTLE_TRIGGERED, tuple(sorted(payload))))
    if cons.triggers_alliance:
        effects.append(SetFlag(flag="triggers_alliance"))
    if cons.triggers_mediation:
        effects.append(SetFlag(flag="triggers_mediation"))
    return effects


def _target_for(choice: Choice, dilemma: Dilemma, quest: Quest) -> str:
    if choice.consequences.next_dilemma_id:
        return choice.consequences.next_dilemma_id
    try:
        index = quest.dilemma_ids.index(dilemma.dilemma_id)
    except ValueError:
        return ending_node_id(quest.quest_id)
    if index < len(quest.dilemma_ids) - 1:
        return quest.dilemma_ids[index + 1]
    return ending_node_id(quest.quest_id)


def _dilemma_node(dilemma: Dilemma, quest: Quest) -> NarrativeNode:
    transitions = tuple(
        Transition(
            transition_id=transition_id_for_choice(dilemma.dilemma_id, index),
            target_node_id=_target_for(choice, dilemma, quest),
            presentation=Presentation(
                choice_text=choice.label,
                short_label=choice.label[:20],
                preview_hint=choice.description,
                consequence_level=consequence_level(choice),
            ),
            effects=tuple(choice_effects(choice)),
        )
        for index, choice in enumerate(dilemma.choices)
    )
    return NarrativeNode(
        node_id=dilemma.dilemma_id,
        node_type=NodeType.CHOICE,
        content=NodeContent(text=dilemma.situation, voices=dilemma.voices),
        transitions=transitions,
        metadata=NodeMetadata(is_revisitable=False),
    )


def quest_to_graph(quest: Quest, dilemmas: Sequence[Dilemma]) -> NarrativeGraph:
    nodes = [_dilemma_node(d, quest) for d in dilemmas]
    nodes.append(NarrativeNode(
        node_id=ending_node_id(quest.quest_id),
        node_type=NodeType.ENDING,
        content=NodeContent(
            text=f'You have completed "{quest.title}". Your choices will echo across the sector.'
        ),
        metadata=NodeMetadata(is_revisitable=False, sets_flags=(f"{quest.quest_id}_completed",)),
        ending_type=EndingType.NEUTRAL,
    ))
    return NarrativeGraph.build(
        graph_id=quest.quest_id,
        version="1.0.0",
        nodes=tuple(nodes),
        entry_points=(EntryPoint(entry_point_id(quest.quest_id), quest.dilemma_ids[0]),),
        title=quest.title,
        tags=(quest.faction_id, "quest"),
    )
