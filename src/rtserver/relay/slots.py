"""Fixed-capacity pool of device slots.

Devices are assigned the lowest free slot index in arrival order. Indices
are sticky: a device keeps its index for as long as it stays connected,
and releasing a slot never renumbers the remaining devices. A released
index becomes the lowest available one and is claimed by the next device
that registers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from rtserver.relay.errors import CapacityExceeded

logger = logging.getLogger(__name__)


@dataclass
class Slot:
    """One addressable device position."""

    index: int
    connection_id: str | None = None
    name: str | None = None

    @property
    def bound(self) -> bool:
        return self.connection_id is not None


class SlotAllocator:
    """Assigns device connections to a fixed number of ordered slots."""

    def __init__(self, capacity: int = 2) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._slots = [Slot(index=i) for i in range(capacity)]
        self._by_connection: dict[str, int] = {}

    @property
    def capacity(self) -> int:
        return len(self._slots)

    @property
    def free_count(self) -> int:
        return sum(1 for slot in self._slots if not slot.bound)

    @property
    def slots(self) -> tuple[Slot, ...]:
        return tuple(replace(slot) for slot in self._slots)

    def allocate(self, connection_id: str, name: str | None = None) -> int:
        """Bind a device to the lowest free slot.

        Raises:
            CapacityExceeded: Every slot is bound. No state is changed.
        """
        if connection_id in self._by_connection:
            return self._by_connection[connection_id]
        for slot in self._slots:
            if not slot.bound:
                slot.connection_id = connection_id
                slot.name = name
                self._by_connection[connection_id] = slot.index
                logger.info("Slot %d bound to %s (%s)", slot.index, connection_id, name or "Unknown")
                return slot.index
        raise CapacityExceeded(self.capacity)

    def release(self, connection_id: str) -> Slot | None:
        """Unbind a device. Returns the binding as it was before release."""
        index = self._by_connection.pop(connection_id, None)
        if index is None:
            return None
        slot = self._slots[index]
        released = replace(slot)
        slot.connection_id = None
        slot.name = None
        logger.info("Slot %d released by %s", index, connection_id)
        return released

    def slot_of(self, connection_id: str) -> int | None:
        return self._by_connection.get(connection_id)

    def bound_connection(self, index: int) -> str | None:
        if not 0 <= index < len(self._slots):
            return None
        return self._slots[index].connection_id
