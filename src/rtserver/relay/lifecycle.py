"""Connection lifecycle: attach, register, detach and announcements.

Keeps control peers informed of membership: every accepted registration
and every disconnect of a classified peer is followed by a fresh
``client_count`` and ``odroid_list`` broadcast to all control peers.
"""

from __future__ import annotations

import logging
from typing import Any

from rtserver.actuator.base import Actuator
from rtserver.domain.models import (
    DeviceEvent,
    PeerRole,
    RegisterMessage,
    RegisterResult,
)
from rtserver.relay.fanout import Outbox, fan_out, to_wire
from rtserver.relay.registry import Peer, PeerRegistry, RegistrationOutcome
from rtserver.relay.store import ChannelStateStore

logger = logging.getLogger(__name__)


class ConnectionLifecycle:
    """Handles connect/register/disconnect and the resulting notifications."""

    def __init__(
        self,
        registry: PeerRegistry,
        store: ChannelStateStore,
        outbox: Outbox,
        actuator: Actuator,
    ) -> None:
        self._registry = registry
        self._store = store
        self._outbox = outbox
        self._actuator = actuator

    def connect(self, connection_id: str, identity: str | None = None) -> Peer:
        logger.info("New connection: %s", connection_id)
        return self._registry.attach(connection_id, identity)

    def register(self, connection_id: str, message: RegisterMessage) -> RegistrationOutcome:
        outcome = self._registry.register(connection_id, message.type, message.name)
        if outcome.error is not None:
            self._send(
                connection_id,
                "register_result",
                RegisterResult(
                    success=False,
                    name=message.name,
                    code=outcome.error.code,
                    error=outcome.error.message,
                ),
            )
            return outcome
        if not outcome.accepted or outcome.peer is None:
            return outcome

        peer = outcome.peer
        if peer.role is PeerRole.CONTROL:
            self._send(
                connection_id,
                "register_result",
                RegisterResult(success=True, type=peer.role, name=peer.name),
            )
            self._send(connection_id, "relay_state", self._store.snapshot())
            self._send(connection_id, "available_channels", self.available_channels())
        elif peer.slot is not None:
            self._send(
                connection_id,
                "register_result",
                RegisterResult(
                    success=True,
                    type=peer.role,
                    name=peer.name,
                    slot=peer.slot,
                    state=list(self._store.get(peer.slot)),
                ),
            )
            fan_out(
                self._outbox,
                self._registry.control_ids(),
                "device_connected",
                DeviceEvent(slot=peer.slot, name=peer.name, connection_id=connection_id),
            )
        self.announce_membership()
        return outcome

    def disconnect(self, connection_id: str) -> Peer | None:
        peer = self._registry.detach(connection_id)
        if peer is None:
            return None
        logger.info("Disconnected: %s (%s)", connection_id, peer.role.value)
        if peer.role is PeerRole.UNCLASSIFIED:
            return peer
        if peer.role is PeerRole.DEVICE and peer.slot is not None:
            fan_out(
                self._outbox,
                self._registry.control_ids(),
                "device_disconnected",
                DeviceEvent(slot=peer.slot, name=peer.name, connection_id=connection_id),
            )
        self.announce_membership()
        return peer

    def announce_membership(self) -> None:
        controls = self._registry.control_ids()
        fan_out(self._outbox, controls, "client_count", self._registry.counts())
        fan_out(self._outbox, controls, "odroid_list", self._registry.roster())

    def available_channels(self) -> list[list[int]]:
        return [
            sorted(self._actuator.available_channels(slot))
            for slot in range(self._store.slots)
        ]

    def _send(self, connection_id: str, event: str, data: Any) -> None:
        self._outbox.send(connection_id, event, to_wire(data))
