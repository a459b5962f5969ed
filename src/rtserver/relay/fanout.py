"""Outbound delivery abstraction.

The relay core never talks to sockets directly. It hands ``(event, data)``
pairs to an :class:`Outbox`, whose ``send`` must return immediately:
delivery is best-effort and fire-and-forget.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)


def to_wire(data: Any) -> Any:
    """Convert payload models (or lists of them) to JSON-compatible values."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, (list, tuple)):
        return [to_wire(item) for item in data]
    return data


class Outbox(ABC):
    """Non-blocking per-connection sender."""

    @abstractmethod
    def send(self, connection_id: str, event: str, data: Any = None) -> bool:
        """Queue one event for one connection.

        Must not block. Returns False when the connection is unknown or
        already gone; the message is then dropped.
        """
        ...


def fan_out(outbox: Outbox, recipients: Iterable[str], event: str, data: Any = None) -> int:
    """Send one event to each recipient independently.

    ``recipients`` is copied before the first send, so membership changes
    during delivery never affect who receives this event. Returns the
    number of recipients the outbox accepted.
    """
    targets = tuple(recipients)
    payload = to_wire(data)
    delivered = 0
    for connection_id in targets:
        if outbox.send(connection_id, event, payload):
            delivered += 1
    logger.debug("Fan-out %s to %d/%d peers", event, delivered, len(targets))
    return delivered
