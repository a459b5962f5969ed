"""Domain models for rtserver.

Wire messages, peer roles and HTTP response models. All models use
Pydantic v2 for validation and serialization.
"""

from rtserver.domain.models import (
    ClientCount,
    EmergencyStopMessage,
    InboundMessage,
    PeerRole,
    RegisterMessage,
    RelayControlMessage,
    RelayStateSyncMessage,
    RelayStateUpdateMessage,
    RosterEntry,
    parse_inbound,
    parse_role,
)

__all__ = [
    "ClientCount",
    "EmergencyStopMessage",
    "InboundMessage",
    "PeerRole",
    "RegisterMessage",
    "RelayControlMessage",
    "RelayStateSyncMessage",
    "RelayStateUpdateMessage",
    "RosterEntry",
    "parse_inbound",
    "parse_role",
]
