"""Linux sysfs GPIO relay actuator.

Drives relay channels wired to GPIO lines of the board the server runs on
(Odroid / Raspberry Pi) through ``/sys/class/gpio``:

    echo 456 > /sys/class/gpio/export
    echo out > /sys/class/gpio/gpio456/direction
    echo 1   > /sys/class/gpio/gpio456/value

Lines are probed at startup; channels whose pin cannot be exported or
configured are simply reported as unavailable.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Mapping
from pathlib import Path

from rtserver.actuator.base import ActuationResult, Actuator

logger = logging.getLogger(__name__)

DEFAULT_SYSFS_ROOT = "/sys/class/gpio"
# Pins verified on the reference Odroid relay board (PIN_7, PIN_8).
DEFAULT_PINS: dict[int, int] = {1: 456, 2: 488}


class GpioError(Exception):
    """Raised when a sysfs GPIO operation fails."""


async def _sysfs_write(path: Path, value: str) -> None:
    """Write ``value`` to a sysfs attribute without blocking the loop."""

    def _write() -> None:
        fd = os.open(str(path), os.O_WRONLY)
        try:
            os.write(fd, value.encode())
        finally:
            os.close(fd)

    try:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _write)
    except OSError as e:
        raise GpioError(f"Cannot write {value!r} to {path}: {e}") from e


class GpioLine:
    """One output line exported through sysfs."""

    def __init__(self, pin: int, sysfs_root: str = DEFAULT_SYSFS_ROOT) -> None:
        self._pin = pin
        self._root = Path(sysfs_root)
        self._open = False

    @property
    def pin(self) -> int:
        return self._pin

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def _line_dir(self) -> Path:
        return self._root / f"gpio{self._pin}"

    async def open(self) -> None:
        """Export the pin, make it an output and drive it low."""
        if not self._line_dir.exists():
            await _sysfs_write(self._root / "export", str(self._pin))
        await _sysfs_write(self._line_dir / "direction", "out")
        await _sysfs_write(self._line_dir / "value", "0")
        self._open = True
        logger.debug("Opened GPIO %d", self._pin)

    async def write(self, value: bool) -> None:
        if not self._open:
            raise GpioError(f"GPIO {self._pin} not open")
        await _sysfs_write(self._line_dir / "value", "1" if value else "0")

    async def close(self) -> None:
        """Drive the line low and unexport it."""
        if not self._open:
            return
        try:
            await self.write(False)
        except GpioError as e:
            logger.warning("Could not switch GPIO %d off: %s", self._pin, e)
        try:
            await _sysfs_write(self._root / "unexport", str(self._pin))
        except GpioError as e:
            logger.debug("Could not unexport GPIO %d: %s", self._pin, e)
        self._open = False


class GpioActuator(Actuator):
    """Drives the channels of one local slot through sysfs GPIO.

    Other slots belong to remote device peers; for those the actuator
    reports every channel available and leaves confirmation to the device.
    """

    name = "gpio"

    def __init__(
        self,
        pins: Mapping[int, int] | None = None,
        slot: int = 0,
        channels: int = 4,
        sysfs_root: str = DEFAULT_SYSFS_ROOT,
    ) -> None:
        self._pins = dict(DEFAULT_PINS if pins is None else pins)
        self._slot = slot
        self._all_channels = frozenset(range(1, channels + 1))
        self._sysfs_root = sysfs_root
        self._lines: dict[int, GpioLine] = {}

    @property
    def slot(self) -> int:
        return self._slot

    @property
    def is_active(self) -> bool:
        return bool(self._lines)

    async def open(self) -> None:
        """Probe every configured pin; keep the ones that respond."""
        for channel, pin in sorted(self._pins.items()):
            if channel not in self._all_channels:
                logger.warning("Ignoring GPIO %d mapped to out-of-range CH%d", pin, channel)
                continue
            line = GpioLine(pin, sysfs_root=self._sysfs_root)
            try:
                await line.open()
            except GpioError as e:
                logger.warning("CH%d (GPIO %d) unavailable: %s", channel, pin, e)
                continue
            self._lines[channel] = line
        if self._lines:
            logger.info(
                "GPIO ready on slot %d: %s",
                self._slot,
                ", ".join(f"CH{ch}=GPIO {line.pin}" for ch, line in sorted(self._lines.items())),
            )
        else:
            logger.warning("No GPIO lines available; running without local relays")

    async def close(self) -> None:
        for line in self._lines.values():
            await line.close()
        self._lines.clear()

    def available_channels(self, slot: int) -> frozenset[int]:
        if slot != self._slot:
            return self._all_channels
        return frozenset(self._lines)

    async def actuate(self, slot: int, channel: int, state: bool) -> ActuationResult:
        if slot != self._slot:
            return ActuationResult(ok=True, confirmed=False)
        line = self._lines.get(channel)
        if line is None:
            return ActuationResult(ok=False, error=f"CH{channel} has no GPIO line")
        try:
            await line.write(state)
        except GpioError as e:
            logger.error("Relay CH%d switch failed: %s", channel, e)
            return ActuationResult(ok=False, error=str(e))
        logger.info("Relay CH%d %s (GPIO %d)", channel, "ON" if state else "OFF", line.pin)
        return ActuationResult(ok=True, confirmed=True)

    async def stop_all(self) -> ActuationResult:
        errors = []
        for channel, line in sorted(self._lines.items()):
            try:
                await line.write(False)
            except GpioError as e:
                errors.append(f"CH{channel}: {e}")
        if errors:
            logger.error("Emergency stop incomplete: %s", "; ".join(errors))
            return ActuationResult(ok=False, confirmed=True, error="; ".join(errors))
        return ActuationResult(ok=True, confirmed=bool(self._lines))
