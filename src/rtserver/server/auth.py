"""Authentication gate for the WebSocket upgrade.

The gate runs before the upgrade is accepted, so a rejected client never
reaches peer registration. Only the pass/reject outcome and the resulting
identity matter to the relay core.
"""

from __future__ import annotations

import hmac
import logging
from abc import ABC, abstractmethod

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class AuthGate(ABC):
    """Decides whether a WebSocket client may connect."""

    @abstractmethod
    async def authenticate(self, websocket: WebSocket) -> str | None:
        """Return the client identity, or None to reject the upgrade."""
        ...


class OpenGate(AuthGate):
    """Admits everyone."""

    async def authenticate(self, websocket: WebSocket) -> str | None:
        return "anonymous"


class TokenGate(AuthGate):
    """Requires a shared token.

    The token is read from the ``token`` query parameter or an
    ``Authorization: Bearer <token>`` header.
    """

    def __init__(self, token: str) -> None:
        if not token:
            raise ValueError("TokenGate requires a non-empty token")
        self._token = token

    async def authenticate(self, websocket: WebSocket) -> str | None:
        presented = websocket.query_params.get("token", "")
        if not presented:
            header = websocket.headers.get("authorization", "")
            scheme, _, value = header.partition(" ")
            if scheme.lower() == "bearer":
                presented = value.strip()
        if presented and hmac.compare_digest(presented.encode(), self._token.encode()):
            return "token"
        client = websocket.client.host if websocket.client else "unknown"
        logger.warning("Rejected WebSocket from %s: bad or missing token", client)
        return None
