"""Tests for the in-memory channel state store."""

from __future__ import annotations

import pytest

from rtserver.relay.errors import InvalidChannel, InvalidSlot
from rtserver.relay.store import ChannelStateStore


@pytest.fixture
def store() -> ChannelStateStore:
    return ChannelStateStore(slots=2, channels=4)


class TestStoreInit:
    def test_all_slots_start_off(self, store: ChannelStateStore) -> None:
        assert store.snapshot() == [[False] * 4, [False] * 4]

    def test_single_slot_deployment(self) -> None:
        s = ChannelStateStore(slots=1, channels=2)
        assert s.snapshot() == [[False, False]]

    def test_rejects_zero_slots(self) -> None:
        with pytest.raises(ValueError):
            ChannelStateStore(slots=0)


class TestStoreSet:
    def test_set_single_channel(self, store: ChannelStateStore) -> None:
        assert store.set(0, 1, True) is True
        assert store.get(0) == (True, False, False, False)
        assert store.get(1) == (False, False, False, False)

    def test_set_same_value_reports_unchanged(self, store: ChannelStateStore) -> None:
        store.set(1, 4, True)
        assert store.set(1, 4, True) is False
        assert store.get(1) == (False, False, False, True)

    @pytest.mark.parametrize("channel", [0, 5, -1])
    def test_set_invalid_channel(self, store: ChannelStateStore, channel: int) -> None:
        with pytest.raises(InvalidChannel):
            store.set(0, channel, True)
        assert store.snapshot() == [[False] * 4, [False] * 4]

    def test_set_invalid_slot(self, store: ChannelStateStore) -> None:
        with pytest.raises(InvalidSlot):
            store.set(2, 1, True)

    def test_bool_is_not_a_channel(self, store: ChannelStateStore) -> None:
        with pytest.raises(InvalidChannel):
            store.check_channel(True)  # type: ignore[arg-type]


class TestStoreMerge:
    def test_partial_merge_keeps_other_channels(self, store: ChannelStateStore) -> None:
        store.set(0, 2, True)
        result = store.merge(0, {1: True, 4: True})
        assert result == (True, True, False, True)

    def test_full_merge(self, store: ChannelStateStore) -> None:
        store.merge(1, {1: True, 2: False, 3: True, 4: False})
        assert store.get(1) == (True, False, True, False)

    def test_invalid_channel_rejects_whole_merge(self, store: ChannelStateStore) -> None:
        with pytest.raises(InvalidChannel):
            store.merge(0, {1: True, 9: True})
        assert store.get(0) == (False, False, False, False)


class TestStoreClear:
    def test_clear_all(self, store: ChannelStateStore) -> None:
        store.merge(0, {1: True, 2: True})
        store.merge(1, {3: True})
        store.clear_all()
        assert store.snapshot() == [[False] * 4, [False] * 4]

    def test_snapshot_is_a_copy(self, store: ChannelStateStore) -> None:
        snap = store.snapshot()
        snap[0][0] = True
        assert store.get(0)[0] is False
