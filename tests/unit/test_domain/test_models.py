"""Tests for wire message validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from rtserver.domain.models import (
    EmergencyStopMessage,
    PeerRole,
    RegisterMessage,
    RelayControlMessage,
    RelayStateSyncMessage,
    RelayStateUpdateMessage,
    parse_inbound,
    parse_role,
)


class TestParseRole:
    @pytest.mark.parametrize(
        "declared, expected",
        [
            ("control", PeerRole.CONTROL),
            ("web", PeerRole.CONTROL),
            ("device", PeerRole.DEVICE),
            ("Odroid", PeerRole.DEVICE),
            ("toaster", None),
            ("", None),
            (None, None),
        ],
    )
    def test_aliases(self, declared: str | None, expected: PeerRole | None) -> None:
        assert parse_role(declared) is expected


class TestParseInbound:
    def test_register(self) -> None:
        msg = parse_inbound({"event": "register", "data": {"type": "web", "name": "UI-1"}})
        assert isinstance(msg, RegisterMessage)
        assert msg.type == "web"
        assert msg.name == "UI-1"

    def test_register_unknown_type_still_parses(self) -> None:
        msg = parse_inbound({"event": "register", "data": {"type": "toaster"}})
        assert isinstance(msg, RegisterMessage)

    def test_relay_control_slot_index_alias(self) -> None:
        msg = parse_inbound(
            {"event": "relay_control", "data": {"slotIndex": 1, "channel": 2, "state": True}}
        )
        assert isinstance(msg, RelayControlMessage)
        assert msg.slot == 1

    def test_relay_control_without_slot(self) -> None:
        msg = parse_inbound({"event": "relay_control", "data": {"channel": 3, "state": False}})
        assert isinstance(msg, RelayControlMessage)
        assert msg.slot == 0

    def test_relay_control_missing_channel(self) -> None:
        with pytest.raises(ValidationError):
            parse_inbound({"event": "relay_control", "data": {"state": True}})

    def test_state_update(self) -> None:
        msg = parse_inbound({"event": "relay_state_update", "data": {"channel": 1, "state": True}})
        assert isinstance(msg, RelayStateUpdateMessage)

    def test_emergency_stop_without_data(self) -> None:
        assert isinstance(parse_inbound({"event": "emergency_stop"}), EmergencyStopMessage)

    def test_unknown_event(self) -> None:
        with pytest.raises(ValidationError):
            parse_inbound({"event": "self_destruct", "data": {}})

    @pytest.mark.parametrize("frame", [[], "register", {"data": {}}, {"event": 3}])
    def test_not_an_envelope(self, frame: object) -> None:
        with pytest.raises(ValueError):
            parse_inbound(frame)

    def test_data_must_be_object(self) -> None:
        with pytest.raises(ValueError, match="data"):
            parse_inbound({"event": "register", "data": [1, 2]})


class TestStateSync:
    def test_list_vector(self) -> None:
        msg = RelayStateSyncMessage(state=[True, False, True])
        assert msg.state == {1: True, 2: False, 3: True}

    def test_original_channel_keys(self) -> None:
        msg = parse_inbound(
            {"event": "relay_state_sync", "data": {"state": {"ch1": True, "ch4": False}}}
        )
        assert msg.state == {1: True, 4: False}

    def test_numeric_keys(self) -> None:
        msg = RelayStateSyncMessage(state={"2": True})
        assert msg.state == {2: True}

    def test_garbage_key(self) -> None:
        with pytest.raises(ValidationError):
            RelayStateSyncMessage(state={"chX": True})
