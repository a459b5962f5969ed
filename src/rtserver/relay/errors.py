"""Error taxonomy for the relay core.

Every failure in the core is local to the request that caused it. The
store, allocator and registry raise these exceptions; the router catches
them and turns them into acknowledgements or ``error`` events for the
offending peer only.
"""

from __future__ import annotations

import enum


class ErrorCode(str, enum.Enum):
    """Machine-readable error codes sent over the wire."""

    INVALID_CLASSIFICATION = "invalid_classification"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    INVALID_CHANNEL = "invalid_channel"
    INVALID_SLOT = "invalid_slot"
    CHANNEL_UNAVAILABLE = "channel_unavailable"
    UNBOUND_SLOT = "unbound_slot"
    ACTUATION_FAILURE = "actuation_failure"
    INVALID_MESSAGE = "invalid_message"


class RelayError(Exception):
    """Base class for all relay core errors."""

    code: ErrorCode = ErrorCode.INVALID_MESSAGE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidClassification(RelayError):
    """A peer attempted an action its classification does not permit."""

    code = ErrorCode.INVALID_CLASSIFICATION


class CapacityExceeded(RelayError):
    """Every device slot is already bound."""

    code = ErrorCode.CAPACITY_EXCEEDED

    def __init__(self, capacity: int) -> None:
        super().__init__(f"All {capacity} device slots are in use")
        self.capacity = capacity


class InvalidChannel(RelayError):
    """Channel index outside ``[1, channels]``."""

    code = ErrorCode.INVALID_CHANNEL

    def __init__(self, channel: object, channels: int) -> None:
        super().__init__(f"Invalid channel {channel!r} (expected 1-{channels})")
        self.channel = channel


class InvalidSlot(RelayError):
    """Slot index outside ``[0, slots)``."""

    code = ErrorCode.INVALID_SLOT

    def __init__(self, slot: object, slots: int) -> None:
        super().__init__(f"Invalid slot {slot!r} (expected 0-{slots - 1})")
        self.slot = slot


class ChannelUnavailable(RelayError):
    """The channel is in range but has no actuation capability."""

    code = ErrorCode.CHANNEL_UNAVAILABLE

    def __init__(self, slot: int, channel: int) -> None:
        super().__init__(f"Channel {channel} is not available on slot {slot}")
        self.slot = slot
        self.channel = channel


class UnboundSlot(RelayError):
    """A command targets a slot with no live device."""

    code = ErrorCode.UNBOUND_SLOT

    def __init__(self, slot: int) -> None:
        super().__init__(f"No device bound to slot {slot}")
        self.slot = slot


class ActuationFailure(RelayError):
    """The actuation collaborator reported failure."""

    code = ErrorCode.ACTUATION_FAILURE
