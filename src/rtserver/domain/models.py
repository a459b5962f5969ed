"""Wire models for the rtserver relay protocol.

Every WebSocket frame is a JSON envelope ``{"event": ..., "data": ...}``.
Inbound frames are validated at the boundary into a closed, tagged union
of message types before they reach the router; outbound payloads are
plain Pydantic models dumped to JSON.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from rtserver.relay.errors import ErrorCode


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class PeerRole(str, enum.Enum):
    """Classification of a connection."""

    UNCLASSIFIED = "unclassified"
    CONTROL = "control"
    DEVICE = "device"


# Client vocabulary of the first relay server (browser UI / Odroid boards).
ROLE_ALIASES: dict[str, PeerRole] = {
    "control": PeerRole.CONTROL,
    "web": PeerRole.CONTROL,
    "device": PeerRole.DEVICE,
    "odroid": PeerRole.DEVICE,
}


def parse_role(declared: str | None) -> PeerRole | None:
    """Map a declared registration type to a role, or None if unknown."""
    if not declared:
        return None
    return ROLE_ALIASES.get(declared.strip().lower())


# ---------------------------------------------------------------------------
# Inbound messages (discriminated union)
# ---------------------------------------------------------------------------


class RegisterMessage(BaseModel):
    """Classify the sending connection as control or device."""

    model_config = ConfigDict(frozen=True)

    event: Literal["register"] = "register"
    type: str = Field(default="", description="control | device (aliases: web | odroid)")
    name: str | None = Field(default=None, description="Display name of the peer")


class RelayControlMessage(BaseModel):
    """Control peer asks for a channel of a slot to be switched."""

    model_config = ConfigDict(frozen=True)

    event: Literal["relay_control"] = "relay_control"
    slot: int = Field(default=0, validation_alias=AliasChoices("slot", "slotIndex"))
    channel: int
    state: bool


class RelayStateUpdateMessage(BaseModel):
    """Device reports the actual state of one of its channels."""

    model_config = ConfigDict(frozen=True)

    event: Literal["relay_state_update"] = "relay_state_update"
    channel: int
    state: bool


class RelayStateSyncMessage(BaseModel):
    """Device reports a full or partial vector for its slot.

    ``state`` may be a list (channel 1 first) or a mapping keyed by
    channel number, either ``"1"`` or ``"ch1"``.
    """

    model_config = ConfigDict(frozen=True)

    event: Literal["relay_state_sync"] = "relay_state_sync"
    state: dict[int, bool]

    @field_validator("state", mode="before")
    @classmethod
    def _normalize_state(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return {i + 1: v for i, v in enumerate(value)}
        if isinstance(value, dict):
            normalized: dict[Any, Any] = {}
            for key, v in value.items():
                if isinstance(key, str) and key.lower().startswith("ch"):
                    key = key[2:]
                normalized[key] = v
            return normalized
        return value


class EmergencyStopMessage(BaseModel):
    """Control peer asks for every channel to be switched off."""

    model_config = ConfigDict(frozen=True)

    event: Literal["emergency_stop"] = "emergency_stop"


InboundMessage = Annotated[
    Union[
        RegisterMessage,
        RelayControlMessage,
        RelayStateUpdateMessage,
        RelayStateSyncMessage,
        EmergencyStopMessage,
    ],
    Field(discriminator="event"),
]

_inbound_adapter: TypeAdapter[Any] = TypeAdapter(InboundMessage)


def parse_inbound(frame: Any) -> InboundMessage:
    """Validate a raw ``{"event", "data"}`` frame into an inbound message.

    Raises:
        pydantic.ValidationError: The frame does not match any message type.
        ValueError: The frame is not an envelope at all.
    """
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        raise ValueError("Frame must be an object with a string 'event' field")
    data = frame.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Frame 'data' must be an object")
    return _inbound_adapter.validate_python({**data, "event": frame["event"]})


# ---------------------------------------------------------------------------
# Outbound payloads
# ---------------------------------------------------------------------------


class ClientCount(BaseModel):
    control: int = 0
    device: int = 0


class RosterEntry(BaseModel):
    """Occupancy of one slot."""

    slot: int
    bound: bool
    name: str | None = None
    connection_id: str | None = None


class DeviceEvent(BaseModel):
    """Payload of device_connected / device_disconnected."""

    slot: int
    name: str | None = None
    connection_id: str


class RegisterResult(BaseModel):
    success: bool
    type: PeerRole | None = None
    name: str | None = None
    slot: int | None = None
    state: list[bool] | None = None
    code: ErrorCode | None = None
    error: str | None = None


class RelayStateUpdate(BaseModel):
    slot: int
    channel: int
    state: bool


class RelayCommand(BaseModel):
    """A relay_control forwarded to the device that owns the slot."""

    slot: int
    channel: int
    state: bool


class RelayControlResult(BaseModel):
    success: bool
    slot: int
    channel: int
    state: bool
    delivered: bool = False
    code: ErrorCode | None = None
    error: str | None = None


class EmergencyStopNotice(BaseModel):
    timestamp: datetime
    by: str


class EmergencyStopResult(BaseModel):
    success: bool
    timestamp: datetime
    by: str
    error: str | None = None


class ErrorNotice(BaseModel):
    code: ErrorCode
    message: str
    event: str | None = None


# ---------------------------------------------------------------------------
# HTTP responses
# ---------------------------------------------------------------------------


class ServerInfo(BaseModel):
    server: str = "RT-Server"
    status: str = "running"
    message: str = "Relay Control Server"
    available_channels: list[list[int]] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str = "ok"
    actuator: str = "none"
    slots: int = 0
    channels: int = 0


class StatusResponse(BaseModel):
    server: str = "RT-Server"
    status: str = "running"
    clients: ClientCount
    relay_state: list[list[bool]]
    roster: list[RosterEntry]
    available_channels: list[list[int]]
    gpio_status: Literal["active", "inactive"]
    uptime: float
