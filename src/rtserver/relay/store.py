"""In-memory channel state store.

Holds one ChannelStateVector per slot, independent of whether a device is
currently bound to that slot. This is the single source of truth for the
last known relay state.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from rtserver.relay.errors import InvalidChannel, InvalidSlot

logger = logging.getLogger(__name__)

ChannelStateVector = tuple[bool, ...]


class ChannelStateStore:
    """Per-slot boolean channel state.

    Channels are numbered from 1 to ``channels``; slots from 0 to
    ``slots - 1``. Every slot starts with an all-false vector.
    """

    def __init__(self, slots: int = 2, channels: int = 4) -> None:
        if slots < 1:
            raise ValueError(f"slots must be >= 1, got {slots}")
        if channels < 1:
            raise ValueError(f"channels must be >= 1, got {channels}")
        self._slots = slots
        self._channels = channels
        self._states: list[list[bool]] = [[False] * channels for _ in range(slots)]

    @property
    def slots(self) -> int:
        return self._slots

    @property
    def channels(self) -> int:
        return self._channels

    def check_slot(self, slot: int) -> None:
        if isinstance(slot, bool) or not isinstance(slot, int) or not 0 <= slot < self._slots:
            raise InvalidSlot(slot, self._slots)

    def check_channel(self, channel: int) -> None:
        if isinstance(channel, bool) or not isinstance(channel, int) or not 1 <= channel <= self._channels:
            raise InvalidChannel(channel, self._channels)

    def get(self, slot: int) -> ChannelStateVector:
        self.check_slot(slot)
        return tuple(self._states[slot])

    def set(self, slot: int, channel: int, value: bool) -> bool:
        """Set a single channel. Returns True if the stored value changed."""
        self.check_slot(slot)
        self.check_channel(channel)
        previous = self._states[slot][channel - 1]
        self._states[slot][channel - 1] = bool(value)
        logger.debug("Slot %d CH%d -> %s", slot, channel, "ON" if value else "OFF")
        return previous != bool(value)

    def merge(self, slot: int, partial: Mapping[int, bool]) -> ChannelStateVector:
        """Apply a full or partial snapshot to one slot.

        All channels are validated before anything is written, so an
        invalid channel leaves the slot untouched.
        """
        self.check_slot(slot)
        for channel in partial:
            self.check_channel(channel)
        for channel, value in partial.items():
            self._states[slot][channel - 1] = bool(value)
        return tuple(self._states[slot])

    def clear_all(self) -> None:
        """Force every channel of every slot off."""
        for vector in self._states:
            for i in range(len(vector)):
                vector[i] = False

    def snapshot(self) -> list[list[bool]]:
        """Copy of the whole table, ordered by slot index."""
        return [list(vector) for vector in self._states]
