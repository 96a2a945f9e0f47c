"""
Contract Tests

Wire format, closed vocabularies and the reputation bands.

INVARIANTS TESTED:
==================
1. An event line parses and serializes back to the same bytes
2. Unknown event and command tags are rejected at the boundary
3. Payload accessors reject malformed fields with INVALID_PAYLOAD
4. Reputation banding is monotonic
"""

import pytest
from hypothesis import given, strategies as st

from fortress.contracts.base import (
    ErrorCode, GameError, SessionId, UnknownCommand, UnknownEventType,
    ValidationError, derive_id, elapsed_ms,
)
from fortress.contracts.commands import Command, CommandType
from fortress.contracts.events import Event, EventType, create_batch
from fortress.contracts.game import ReputationStatus, clamp_reputation, reputation_status

from .fixtures import T0, T1, T2


# =============================================================================
# EVENTS
# =============================================================================

class TestEventWireFormat:
    """One event per line: compact JSON, keys in producer order."""

    def test_line_is_compact_json(self):
        event = Event(EventType.CARD_SELECTED, {"cardId": "starter_scout", "battleId": "battle_1"}, T0)
        assert event.to_json() == (
            '{"type":"CARD_SELECTED","data":{"cardId":"starter_scout","battleId":"battle_1"},'
            '"timestamp":"2025-01-01T00:00:00+00:00"}'
        )

    def test_parsed_line_serializes_to_same_bytes(self):
        line = (
            '{"type":"REPUTATION_CHANGED","data":{"factionId":"ashfall","delta":-15,'
            '"newValue":-15,"source":"choice"},"timestamp":"2025-01-01T00:00:01+00:00"}'
        )
        assert Event.from_json(line).to_json() == line

    def test_non_ascii_text_is_kept_verbatim(self):
        event = Event(EventType.QUEST_SUMMARY_PRESENTED, {"questTitle": "Jax “Redhawk” Mora"}, T0)
        assert "“Redhawk”" in event.to_json()
        assert Event.from_json(event.to_json()) == event

    @given(st.dictionaries(
        st.text(min_size=1, max_size=10),
        st.one_of(st.integers(), st.text(max_size=20), st.booleans(), st.none()),
        max_size=6,
    ))
    def test_any_flat_payload_keeps_its_bytes(self, data):
        line = Event(EventType.FLAG_SET, data, T0).to_json()
        assert Event.from_json(line).to_json() == line

    def test_unknown_event_type_rejected(self):
        with pytest.raises(UnknownEventType) as exc:
            Event.from_wire({"type": "CARD_SHUFFLED", "data": {}})
        assert exc.value.code == ErrorCode.UNKNOWN_EVENT_TYPE

    def test_missing_type_rejected(self):
        with pytest.raises(ValidationError) as exc:
            Event.from_wire({"data": {}})
        assert exc.value.code == ErrorCode.INVALID_PAYLOAD

    def test_non_object_data_rejected(self):
        with pytest.raises(ValidationError) as exc:
            Event.from_wire({"type": "FLAG_SET", "data": [1, 2]})
        assert exc.value.code == ErrorCode.INVALID_PAYLOAD

    def test_non_string_timestamp_rejected(self):
        with pytest.raises(ValidationError):
            Event.from_wire({"type": "FLAG_SET", "data": {}, "timestamp": 12})

    def test_batch_shares_one_timestamp(self):
        events = create_batch(T1, [
            (EventType.GAME_STARTED, {"playerId": "p"}),
            (EventType.PHASE_CHANGED, {"fromPhase": "not_started", "toPhase": "quest_hub"}),
        ])
        assert [e.timestamp for e in events] == [T1, T1]


# =============================================================================
# COMMANDS
# =============================================================================

class TestCommands:

    def test_wire_payload_parses(self):
        command = Command.from_wire({"type": "ACCEPT_QUEST", "data": {"questId": "quest_salvage_claim"}})
        assert command.type == CommandType.ACCEPT_QUEST
        assert command.require_str("questId") == "quest_salvage_claim"

    def test_unknown_command_rejected(self):
        with pytest.raises(UnknownCommand) as exc:
            Command.of("SURRENDER")
        assert exc.value.code == ErrorCode.UNKNOWN_COMMAND
        assert isinstance(exc.value, GameError)

    def test_missing_field_rejected(self):
        with pytest.raises(ValidationError) as exc:
            Command.of("ACCEPT_QUEST").require_str("questId")
        assert exc.value.code == ErrorCode.INVALID_PAYLOAD
        assert exc.value.error.context_value("command_type") == "ACCEPT_QUEST"

    def test_empty_string_rejected(self):
        with pytest.raises(ValidationError):
            Command.of("ACCEPT_QUEST", questId="").require_str("questId")

    def test_bool_is_not_an_integer(self):
        with pytest.raises(ValidationError):
            Command.of("SET_CARD_POSITION", cardId="starter_scout", position=True).require_int("position")

    def test_non_object_data_rejected(self):
        with pytest.raises(ValidationError):
            Command.from_wire({"type": "START_GAME", "data": ["captain"]})


# =============================================================================
# IDENTITY AND TIME
# =============================================================================

class TestIdentity:

    def test_derived_ids_are_stable(self):
        assert derive_id("battle", "quest_salvage_claim", T0) == derive_id("battle", "quest_salvage_claim", T0)
        assert derive_id("battle", "quest_salvage_claim", T0).startswith("battle_")

    def test_derived_ids_depend_on_every_part(self):
        assert derive_id("battle", "quest_salvage_claim", T0) != derive_id("battle", "quest_salvage_claim", T1)

    def test_session_id_from_seed(self):
        session_id = SessionId.generate("seed")
        assert session_id == SessionId.generate("seed")
        assert session_id.value.startswith("session_")

    def test_elapsed_ms_never_negative(self):
        assert elapsed_ms(T0, T2) == 2000
        assert elapsed_ms(T2, T0) == 0


# =============================================================================
# REPUTATION BANDS
# =============================================================================

class TestReputationBands:

    @pytest.mark.parametrize("value,status", [
        (100, ReputationStatus.DEVOTED),
        (75, ReputationStatus.DEVOTED),
        (74, ReputationStatus.FRIENDLY),
        (25, ReputationStatus.FRIENDLY),
        (24, ReputationStatus.NEUTRAL),
        (0, ReputationStatus.NEUTRAL),
        (-24, ReputationStatus.NEUTRAL),
        (-25, ReputationStatus.UNFRIENDLY),
        (-74, ReputationStatus.UNFRIENDLY),
        (-75, ReputationStatus.HOSTILE),
        (-100, ReputationStatus.HOSTILE),
    ])
    def test_band_edges(self, value, status):
        assert reputation_status(value) == status

    @given(st.integers(-100, 100), st.integers(-100, 100))
    def test_higher_value_never_bands_lower(self, a, b):
        low, high = sorted((a, b))
        order = list(ReputationStatus)
        assert order.index(reputation_status(low)) <= order.index(reputation_status(high))

    @given(st.integers(-1000, 1000))
    def test_clamp_stays_in_bounds(self, value):
        assert -100 <= clamp_reputation(value) <= 100
