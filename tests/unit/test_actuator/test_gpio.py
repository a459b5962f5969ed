"""Tests for the sysfs GPIO actuator (fake sysfs tree under tmp_path)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from rtserver.actuator.base import NullActuator
from rtserver.actuator.gpio import GpioActuator, GpioError, GpioLine


def make_sysfs(root: Path, *pins: int) -> Path:
    """Build a minimal /sys/class/gpio look-alike with the given lines exported."""
    (root / "export").write_text("")
    (root / "unexport").write_text("")
    for pin in pins:
        line = root / f"gpio{pin}"
        line.mkdir()
        (line / "direction").write_text("in")
        (line / "value").write_text("0")
    return root


def value_of(root: Path, pin: int) -> str:
    return (root / f"gpio{pin}" / "value").read_text()


class TestGpioLine:
    @pytest.mark.asyncio
    async def test_open_configures_output_low(self, tmp_path: Path) -> None:
        make_sysfs(tmp_path, 456)
        line = GpioLine(456, sysfs_root=str(tmp_path))
        await line.open()
        assert line.is_open
        assert (tmp_path / "gpio456" / "direction").read_text().startswith("out")
        assert value_of(tmp_path, 456) == "0"

    @pytest.mark.asyncio
    async def test_open_exports_missing_line(self, tmp_path: Path) -> None:
        make_sysfs(tmp_path)
        line = GpioLine(488, sysfs_root=str(tmp_path))
        with pytest.raises(GpioError, match="Cannot write"):
            await line.open()
        # export was attempted even though the kernel never created the line
        assert (tmp_path / "export").read_text() == "488"
        assert not line.is_open

    @pytest.mark.asyncio
    async def test_write(self, tmp_path: Path) -> None:
        make_sysfs(tmp_path, 456)
        line = GpioLine(456, sysfs_root=str(tmp_path))
        await line.open()
        await line.write(True)
        assert value_of(tmp_path, 456) == "1"
        await line.write(False)
        assert value_of(tmp_path, 456) == "0"

    @pytest.mark.asyncio
    async def test_write_not_open(self, tmp_path: Path) -> None:
        line = GpioLine(456, sysfs_root=str(tmp_path))
        with pytest.raises(GpioError, match="not open"):
            await line.write(True)

    @pytest.mark.asyncio
    async def test_close_drives_low_and_unexports(self, tmp_path: Path) -> None:
        make_sysfs(tmp_path, 456)
        line = GpioLine(456, sysfs_root=str(tmp_path))
        await line.open()
        await line.write(True)
        await line.close()
        assert value_of(tmp_path, 456) == "0"
        assert (tmp_path / "unexport").read_text() == "456"
        assert not line.is_open

    @pytest.mark.asyncio
    async def test_os_error_wrapped(self, tmp_path: Path) -> None:
        make_sysfs(tmp_path, 456)
        line = GpioLine(456, sysfs_root=str(tmp_path))
        await line.open()
        with patch("os.write", side_effect=OSError("EBUSY")):
            with pytest.raises(GpioError, match="EBUSY"):
                await line.write(True)


class TestGpioActuator:
    @pytest.mark.asyncio
    async def test_probe_keeps_working_lines(self, tmp_path: Path) -> None:
        make_sysfs(tmp_path, 456)
        actuator = GpioActuator(pins={1: 456, 2: 488}, sysfs_root=str(tmp_path))
        await actuator.open()
        assert actuator.available_channels(0) == frozenset({1})
        assert actuator.is_active
        await actuator.close()
        assert not actuator.is_active

    @pytest.mark.asyncio
    async def test_no_lines_is_inactive(self, tmp_path: Path) -> None:
        make_sysfs(tmp_path)
        async with GpioActuator(pins={1: 456}, sysfs_root=str(tmp_path)) as actuator:
            assert actuator.available_channels(0) == frozenset()
            assert not actuator.is_active

    @pytest.mark.asyncio
    async def test_out_of_range_channel_ignored(self, tmp_path: Path) -> None:
        make_sysfs(tmp_path, 456, 488)
        async with GpioActuator(pins={1: 456, 9: 488}, channels=4, sysfs_root=str(tmp_path)) as a:
            assert a.available_channels(0) == frozenset({1})

    @pytest.mark.asyncio
    async def test_actuate_local_slot(self, tmp_path: Path) -> None:
        make_sysfs(tmp_path, 456, 488)
        async with GpioActuator(pins={1: 456, 2: 488}, sysfs_root=str(tmp_path)) as actuator:
            result = await actuator.actuate(0, 2, True)
            assert result.ok and result.confirmed
            assert value_of(tmp_path, 488) == "1"
            assert value_of(tmp_path, 456) == "0"

    @pytest.mark.asyncio
    async def test_actuate_missing_channel(self, tmp_path: Path) -> None:
        make_sysfs(tmp_path, 456)
        async with GpioActuator(pins={1: 456}, sysfs_root=str(tmp_path)) as actuator:
            result = await actuator.actuate(0, 3, True)
            assert not result.ok
            assert "CH3" in (result.error or "")

    @pytest.mark.asyncio
    async def test_remote_slot_passes_through(self, tmp_path: Path) -> None:
        make_sysfs(tmp_path, 456)
        async with GpioActuator(pins={1: 456}, slot=0, sysfs_root=str(tmp_path)) as actuator:
            assert actuator.available_channels(1) == frozenset({1, 2, 3, 4})
            result = await actuator.actuate(1, 3, True)
            assert result.ok and not result.confirmed

    @pytest.mark.asyncio
    async def test_actuate_write_failure(self, tmp_path: Path) -> None:
        make_sysfs(tmp_path, 456)
        async with GpioActuator(pins={1: 456}, sysfs_root=str(tmp_path)) as actuator:
            with patch("os.write", side_effect=OSError("I/O error")):
                result = await actuator.actuate(0, 1, True)
            assert not result.ok
            assert "I/O error" in (result.error or "")

    @pytest.mark.asyncio
    async def test_stop_all(self, tmp_path: Path) -> None:
        make_sysfs(tmp_path, 456, 488)
        async with GpioActuator(pins={1: 456, 2: 488}, sysfs_root=str(tmp_path)) as actuator:
            await actuator.actuate(0, 1, True)
            await actuator.actuate(0, 2, True)
            result = await actuator.stop_all()
            assert result.ok
            assert value_of(tmp_path, 456) == "0"
            assert value_of(tmp_path, 488) == "0"


class TestNullActuator:
    @pytest.mark.asyncio
    async def test_everything_available_nothing_confirmed(self) -> None:
        async with NullActuator(channels=4) as actuator:
            assert actuator.available_channels(1) == frozenset({1, 2, 3, 4})
            result = await actuator.actuate(1, 2, True)
            assert result.ok and not result.confirmed
            assert (await actuator.stop_all()).ok
            assert not actuator.is_active
