"""Relay router: the protocol state machine.

Validates and forwards control commands to the device that owns a slot,
fans device state reports out to every control peer, and performs the
emergency stop. All entry points are serialized through one asyncio lock,
so registry, slot and store mutations never interleave; outbound delivery
goes through the non-blocking :class:`~rtserver.relay.fanout.Outbox`.

Per-connection states::

    Unclassified --register--> Control | Device --disconnect--> Gone
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from rtserver.actuator.base import Actuator, NullActuator
from rtserver.domain.models import (
    EmergencyStopMessage,
    EmergencyStopNotice,
    EmergencyStopResult,
    ErrorNotice,
    InboundMessage,
    PeerRole,
    RegisterMessage,
    RelayCommand,
    RelayControlMessage,
    RelayControlResult,
    RelayStateSyncMessage,
    RelayStateUpdate,
    RelayStateUpdateMessage,
)
from rtserver.relay.errors import (
    ActuationFailure,
    ChannelUnavailable,
    RelayError,
    UnboundSlot,
)
from rtserver.relay.fanout import Outbox, fan_out, to_wire
from rtserver.relay.lifecycle import ConnectionLifecycle
from rtserver.relay.registry import Peer, PeerRegistry, RegistrationOutcome
from rtserver.relay.slots import SlotAllocator
from rtserver.relay.store import ChannelStateStore

logger = logging.getLogger(__name__)

# Requester name for commands arriving over plain HTTP.
HTTP_REQUESTER = "http"


class RelayRouter:
    """Routes relay protocol messages between control and device peers."""

    def __init__(
        self,
        registry: PeerRegistry,
        store: ChannelStateStore,
        outbox: Outbox,
        actuator: Actuator | None = None,
    ) -> None:
        if registry.allocator.capacity != store.slots:
            raise ValueError(
                f"Slot pool ({registry.allocator.capacity}) and state store "
                f"({store.slots}) disagree on slot count"
            )
        self._registry = registry
        self._store = store
        self._outbox = outbox
        self._actuator = actuator or NullActuator(channels=store.channels)
        self._lifecycle = ConnectionLifecycle(registry, store, outbox, self._actuator)
        self._lock = asyncio.Lock()

    @classmethod
    def create(
        cls,
        outbox: Outbox,
        slots: int = 2,
        channels: int = 4,
        actuator: Actuator | None = None,
    ) -> RelayRouter:
        """Build a router with a fresh registry and store."""
        registry = PeerRegistry(SlotAllocator(capacity=slots))
        store = ChannelStateStore(slots=slots, channels=channels)
        return cls(registry, store, outbox, actuator)

    @property
    def registry(self) -> PeerRegistry:
        return self._registry

    @property
    def store(self) -> ChannelStateStore:
        return self._store

    @property
    def actuator(self) -> Actuator:
        return self._actuator

    @property
    def lifecycle(self) -> ConnectionLifecycle:
        return self._lifecycle

    # -------------------------------------------------------------------
    # Transport entry points
    # -------------------------------------------------------------------

    async def connect(self, connection_id: str, identity: str | None = None) -> Peer:
        async with self._lock:
            return self._lifecycle.connect(connection_id, identity)

    async def disconnect(self, connection_id: str) -> Peer | None:
        async with self._lock:
            return self._lifecycle.disconnect(connection_id)

    async def dispatch(self, connection_id: str, message: InboundMessage) -> Any:
        """Process one validated inbound message from a connection."""
        async with self._lock:
            if isinstance(message, RegisterMessage):
                return self._on_register(connection_id, message)
            if isinstance(message, RelayControlMessage):
                return await self._on_relay_control(connection_id, message)
            if isinstance(message, EmergencyStopMessage):
                return await self._on_emergency_stop(connection_id)
            if isinstance(message, RelayStateUpdateMessage):
                return self._on_relay_state_update(connection_id, message)
            if isinstance(message, RelayStateSyncMessage):
                return self._on_relay_state_sync(connection_id, message)
        raise TypeError(f"Unsupported message type: {type(message).__name__}")

    # -------------------------------------------------------------------
    # Out-of-band control (HTTP)
    # -------------------------------------------------------------------

    async def control(self, slot: int, channel: int, state: bool) -> RelayControlResult:
        """Issue a relay command on behalf of the HTTP API."""
        async with self._lock:
            return await self._relay_control(None, slot, channel, state)

    async def emergency_stop(self) -> EmergencyStopResult:
        """Emergency stop on behalf of the HTTP API."""
        async with self._lock:
            return await self._emergency_stop(None)

    # -------------------------------------------------------------------
    # Handlers (called with the lock held)
    # -------------------------------------------------------------------

    def _on_register(self, connection_id: str, message: RegisterMessage) -> RegistrationOutcome:
        return self._lifecycle.register(connection_id, message)

    async def _on_relay_control(
        self, connection_id: str, message: RelayControlMessage
    ) -> RelayControlResult | None:
        if not self._is(connection_id, PeerRole.CONTROL, "relay_control"):
            return None
        logger.info(
            "Relay control from %s: slot %d CH%d -> %s",
            connection_id, message.slot, message.channel, "ON" if message.state else "OFF",
        )
        return await self._relay_control(connection_id, message.slot, message.channel, message.state)

    async def _on_emergency_stop(self, connection_id: str) -> EmergencyStopResult | None:
        if not self._is(connection_id, PeerRole.CONTROL, "emergency_stop"):
            return None
        return await self._emergency_stop(connection_id)

    def _on_relay_state_update(
        self, connection_id: str, message: RelayStateUpdateMessage
    ) -> RelayStateUpdate | None:
        peer = self._peer_as(connection_id, PeerRole.DEVICE, "relay_state_update")
        if peer is None or peer.slot is None:
            return None
        try:
            self._store.set(peer.slot, message.channel, message.state)
        except RelayError as exc:
            self._send_error(connection_id, exc, "relay_state_update")
            return None
        update = RelayStateUpdate(slot=peer.slot, channel=message.channel, state=message.state)
        logger.info(
            "State update from device %s: slot %d CH%d -> %s",
            connection_id, peer.slot, message.channel, "ON" if message.state else "OFF",
        )
        fan_out(self._outbox, self._registry.control_ids(), "relay_state_update", update)
        return update

    def _on_relay_state_sync(
        self, connection_id: str, message: RelayStateSyncMessage
    ) -> list[list[bool]] | None:
        peer = self._peer_as(connection_id, PeerRole.DEVICE, "relay_state_sync")
        if peer is None or peer.slot is None:
            return None
        try:
            self._store.merge(peer.slot, message.state)
        except RelayError as exc:
            self._send_error(connection_id, exc, "relay_state_sync")
            return None
        snapshot = self._store.snapshot()
        logger.info("State sync from device %s (slot %d)", connection_id, peer.slot)
        fan_out(self._outbox, self._registry.control_ids(), "relay_state", snapshot)
        return snapshot

    # -------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------

    async def _relay_control(
        self, requester: str | None, slot: int, channel: int, state: bool
    ) -> RelayControlResult:
        try:
            self._store.check_slot(slot)
            self._store.check_channel(channel)
            if channel not in self._actuator.available_channels(slot):
                raise ChannelUnavailable(slot, channel)
            outcome = await self._actuator.actuate(slot, channel, state)
            if not outcome.ok:
                raise ActuationFailure(outcome.error or f"Actuation of CH{channel} failed")
        except RelayError as exc:
            logger.warning("Relay control slot %s CH%s rejected: %s", slot, channel, exc.message)
            result = RelayControlResult(
                success=False, slot=slot, channel=channel, state=state,
                code=exc.code, error=exc.message,
            )
            self._ack(requester, "relay_control_result", result)
            return result

        if outcome.confirmed:
            self._store.set(slot, channel, state)
            fan_out(
                self._outbox,
                self._registry.control_ids(),
                "relay_state_update",
                RelayStateUpdate(slot=slot, channel=channel, state=state),
            )

        device_id = self._registry.allocator.bound_connection(slot)
        if device_id is not None:
            delivered = self._outbox.send(
                device_id,
                "relay_control",
                to_wire(RelayCommand(slot=slot, channel=channel, state=state)),
            )
            result = RelayControlResult(
                success=True, slot=slot, channel=channel, state=state, delivered=delivered,
            )
        else:
            unbound = UnboundSlot(slot)
            logger.info("%s; command accepted but not delivered", unbound.message)
            result = RelayControlResult(
                success=True, slot=slot, channel=channel, state=state, delivered=False,
                code=unbound.code, error=unbound.message,
            )
        self._ack(requester, "relay_control_result", result)
        return result

    async def _emergency_stop(self, requester: str | None) -> EmergencyStopResult:
        by = requester or HTTP_REQUESTER
        notice = EmergencyStopNotice(timestamp=datetime.now(timezone.utc), by=by)
        logger.warning("Emergency stop requested by %s", by)

        fan_out(self._outbox, self._registry.device_ids(), "emergency_stop", notice)
        outcome = await self._actuator.stop_all()
        self._store.clear_all()
        fan_out(self._outbox, self._registry.control_ids(), "relay_state", self._store.snapshot())
        fan_out(self._outbox, self._registry.connection_ids(), "emergency_stop_executed", notice)

        result = EmergencyStopResult(
            success=outcome.ok, timestamp=notice.timestamp, by=by, error=outcome.error,
        )
        self._ack(requester, "emergency_stop_result", result)
        return result

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------

    def _peer_as(self, connection_id: str, role: PeerRole, event: str) -> Peer | None:
        peer = self._registry.get(connection_id)
        if peer is None or peer.role is not role:
            logger.debug(
                "Ignoring %s from %s (not a %s peer)", event, connection_id, role.value
            )
            return None
        return peer

    def _is(self, connection_id: str, role: PeerRole, event: str) -> bool:
        return self._peer_as(connection_id, role, event) is not None

    def _ack(self, requester: str | None, event: str, data: Any) -> None:
        if requester is not None:
            self._outbox.send(requester, event, to_wire(data))

    def _send_error(self, connection_id: str, exc: RelayError, event: str) -> None:
        logger.warning("Rejected %s from %s: %s", event, connection_id, exc.message)
        self._outbox.send(
            connection_id,
            "error",
            to_wire(ErrorNotice(code=exc.code, message=exc.message, event=event)),
        )
