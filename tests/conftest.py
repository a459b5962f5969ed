"""Shared test fixtures for the rtserver test suite.

Provides a recording outbox that captures every outbound event, a
two-slot / four-channel router wired to it, and helpers to connect and
register peers.
"""

from __future__ import annotations

from typing import Any

import pytest

from rtserver.domain.models import RegisterMessage
from rtserver.relay.fanout import Outbox
from rtserver.relay.router import RelayRouter


class RecordingOutbox(Outbox):
    """Outbox that records sends instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, Any]] = []
        self.gone: set[str] = set()

    def send(self, connection_id: str, event: str, data: Any = None) -> bool:
        if connection_id in self.gone:
            return False
        self.sent.append((connection_id, event, data))
        return True

    def events_for(self, connection_id: str, event: str | None = None) -> list[Any]:
        """Payloads sent to one connection, optionally filtered by event."""
        return [
            data
            for cid, ev, data in self.sent
            if cid == connection_id and (event is None or ev == event)
        ]

    def names_for(self, connection_id: str) -> list[str]:
        return [ev for cid, ev, _ in self.sent if cid == connection_id]

    def clear(self) -> None:
        self.sent.clear()


async def _join(router: RelayRouter, connection_id: str, peer_type: str, name: str | None = None):
    """Connect and register a peer in one step."""
    await router.connect(connection_id)
    return await router.dispatch(connection_id, RegisterMessage(type=peer_type, name=name))


# ---------------------------------------------------------------------------
# Router Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def outbox() -> RecordingOutbox:
    return RecordingOutbox()


@pytest.fixture
def router(outbox: RecordingOutbox) -> RelayRouter:
    """A two-slot, four-channel router with no local hardware."""
    return RelayRouter.create(outbox, slots=2, channels=4)


@pytest.fixture
def join():
    """``await join(router, connection_id, "control" | "device", name)``."""
    return _join
