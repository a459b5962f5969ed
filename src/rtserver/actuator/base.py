"""Abstract base class for relay actuation.

The router consults an Actuator before forwarding a control command. An
actuator knows which channels it can physically drive (the capability
probe run by ``open()``) and performs the side-effecting switch. The
default :class:`NullActuator` drives nothing locally: every channel is
considered available and the device peer's own state report is the
authoritative confirmation.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActuationResult:
    """Outcome of one actuation.

    Attributes:
        ok: The actuation did not fail.
        confirmed: Real hardware was written, so the new state is
            authoritative without waiting for a device report.
        error: Failure description when ``ok`` is False.
    """

    ok: bool = True
    confirmed: bool = False
    error: str | None = None


class Actuator(ABC):
    """Interface to whatever physically switches relay channels.

    Example usage::

        async with GpioActuator(pins={1: 456, 2: 488}) as actuator:
            result = await actuator.actuate(0, 1, True)
    """

    name: str = "actuator"

    @abstractmethod
    async def open(self) -> None:
        """Probe and claim hardware. Must not raise for missing channels."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release hardware. Safe to call multiple times."""
        ...

    @abstractmethod
    def available_channels(self, slot: int) -> frozenset[int]:
        """Channels of ``slot`` that can currently be actuated."""
        ...

    @abstractmethod
    async def actuate(self, slot: int, channel: int, state: bool) -> ActuationResult:
        """Switch one channel. Failures are reported, never raised."""
        ...

    @abstractmethod
    async def stop_all(self) -> ActuationResult:
        """Switch every locally driven channel off."""
        ...

    @property
    def is_active(self) -> bool:
        """Whether any local hardware line is under control."""
        return False

    async def __aenter__(self) -> Actuator:
        await self.open()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.close()


class NullActuator(Actuator):
    """Actuator for servers without local relay hardware."""

    name = "none"

    def __init__(self, channels: int = 4) -> None:
        self._channels = frozenset(range(1, channels + 1))

    async def open(self) -> None:
        logger.info("No local relay hardware; device peers confirm all state")

    async def close(self) -> None:
        pass

    def available_channels(self, slot: int) -> frozenset[int]:
        return self._channels

    async def actuate(self, slot: int, channel: int, state: bool) -> ActuationResult:
        return ActuationResult(ok=True, confirmed=False)

    async def stop_all(self) -> ActuationResult:
        return ActuationResult(ok=True, confirmed=False)
