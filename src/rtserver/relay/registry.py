"""Peer registry: classification and membership of connections.

Each connection is exactly one of unclassified, control or device. The
registry owns the peer table, the slot allocator and the per-role
membership sets; it is passed by reference into the lifecycle manager
and the router.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from rtserver.domain.models import ClientCount, PeerRole, RosterEntry, parse_role
from rtserver.relay.errors import CapacityExceeded, RelayError
from rtserver.relay.slots import SlotAllocator

logger = logging.getLogger(__name__)


@dataclass
class Peer:
    """A live connection and its classification."""

    connection_id: str
    role: PeerRole = PeerRole.UNCLASSIFIED
    name: str | None = None
    slot: int | None = None
    identity: str | None = None
    connected_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class RegistrationOutcome:
    """Result of a register request.

    ``accepted`` is False both for silent no-ops (``error`` is None) and
    for explicit rejections such as a full slot pool.
    """

    accepted: bool
    peer: Peer | None = None
    error: RelayError | None = None


class PeerRegistry:
    """Tracks every connection and the control/device membership sets."""

    def __init__(self, allocator: SlotAllocator) -> None:
        self._allocator = allocator
        self._peers: dict[str, Peer] = {}
        self._control: set[str] = set()
        self._device: set[str] = set()

    @property
    def allocator(self) -> SlotAllocator:
        return self._allocator

    def attach(self, connection_id: str, identity: str | None = None) -> Peer:
        """Track a freshly connected, unclassified peer."""
        peer = self._peers.get(connection_id)
        if peer is None:
            peer = Peer(connection_id=connection_id, identity=identity)
            self._peers[connection_id] = peer
        return peer

    def get(self, connection_id: str) -> Peer | None:
        return self._peers.get(connection_id)

    def register(
        self, connection_id: str, declared_type: str | None, name: str | None = None
    ) -> RegistrationOutcome:
        peer = self._peers.get(connection_id)
        if peer is None:
            logger.warning("register from unknown connection %s ignored", connection_id)
            return RegistrationOutcome(accepted=False)

        role = parse_role(declared_type)
        if role is None:
            logger.warning(
                "Connection %s declared unknown type %r; staying unclassified",
                connection_id, declared_type,
            )
            return RegistrationOutcome(accepted=False, peer=peer)

        if peer.role is not PeerRole.UNCLASSIFIED:
            logger.warning(
                "Connection %s already registered as %s; re-registration as %s ignored",
                connection_id, peer.role.value, role.value,
            )
            return RegistrationOutcome(accepted=False, peer=peer)

        if role is PeerRole.DEVICE:
            try:
                slot = self._allocator.allocate(connection_id, name)
            except CapacityExceeded as exc:
                logger.warning("Device %s (%s) rejected: %s", connection_id, name or "Unknown", exc)
                return RegistrationOutcome(accepted=False, peer=peer, error=exc)
            peer.slot = slot
            self._device.add(connection_id)
        else:
            self._control.add(connection_id)

        peer.role = role
        peer.name = name
        logger.info(
            "%s peer registered: %s (%s)", role.value.capitalize(), connection_id, name or "Unknown"
        )
        return RegistrationOutcome(accepted=True, peer=peer)

    def detach(self, connection_id: str) -> Peer | None:
        """Forget a connection, releasing its slot if it was a device."""
        peer = self._peers.pop(connection_id, None)
        if peer is None:
            return None
        self._control.discard(connection_id)
        if connection_id in self._device:
            self._device.discard(connection_id)
            self._allocator.release(connection_id)
        return peer

    def control_ids(self) -> tuple[str, ...]:
        return tuple(self._control)

    def device_ids(self) -> tuple[str, ...]:
        return tuple(self._device)

    def connection_ids(self) -> tuple[str, ...]:
        """Every attached connection, classified or not."""
        return tuple(self._peers)

    def counts(self) -> ClientCount:
        return ClientCount(control=len(self._control), device=len(self._device))

    def roster(self) -> list[RosterEntry]:
        return [
            RosterEntry(
                slot=slot.index,
                bound=slot.bound,
                name=slot.name,
                connection_id=slot.connection_id,
            )
            for slot in self._allocator.slots
        ]

    def __len__(self) -> int:
        return len(self._peers)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._peers
