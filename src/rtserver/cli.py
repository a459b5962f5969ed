"""Command-line interface for rtserver.

Provides the main entry point for running the relay server and for
checking which local GPIO relay channels are usable.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="rtserver",
        description="Real-time relay server for control clients and relay devices",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/rtserver.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the relay server")
    serve_parser.add_argument("--host", type=str, default=None, help="Override server.host")
    serve_parser.add_argument("--port", type=int, default=None, help="Override server.port")

    subparsers.add_parser("probe-gpio", help="Probe the configured GPIO relay lines")

    return parser.parse_args(argv)


async def _probe_gpio(settings) -> list[int]:
    """Open the configured GPIO lines, report the usable channels, release them."""
    from rtserver.actuator.gpio import GpioActuator

    actuator = GpioActuator(
        pins=settings.gpio.pins,
        slot=settings.gpio.slot,
        channels=settings.relay.channels,
        sysfs_root=settings.gpio.sysfs_root,
    )
    async with actuator:
        available = sorted(actuator.available_channels(settings.gpio.slot))

    for channel, pin in sorted(settings.gpio.pins.items()):
        mark = "ok" if channel in available else "unavailable"
        print(f"  CH{channel}: GPIO {pin} -> {mark}")
    if not available:
        print("No GPIO relay channels available (permissions or hardware missing)")
    return available


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the rtserver CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from rtserver.config.settings import load_settings
    from rtserver.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "serve":
        if args.host:
            settings.server.host = args.host
        if args.port:
            settings.server.port = args.port
        logger.info(
            "Starting relay server on http://%s:%d", settings.server.host, settings.server.port
        )
        from rtserver.server.app import main as serve

        serve(settings)

    elif args.command == "probe-gpio":
        logger.info("Probing GPIO lines under %s", settings.gpio.sysfs_root)
        asyncio.run(_probe_gpio(settings))


if __name__ == "__main__":
    main()
