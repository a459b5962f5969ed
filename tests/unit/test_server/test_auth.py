"""Tests for the WebSocket authentication gates."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from rtserver.server.auth import OpenGate, TokenGate


def fake_ws(query: dict[str, str] | None = None, headers: dict[str, str] | None = None):
    return SimpleNamespace(
        query_params=query or {},
        headers=headers or {},
        client=SimpleNamespace(host="10.0.0.7"),
    )


class TestOpenGate:
    @pytest.mark.asyncio
    async def test_admits_everyone(self) -> None:
        assert await OpenGate().authenticate(fake_ws()) == "anonymous"  # type: ignore[arg-type]


class TestTokenGate:
    def test_empty_token_rejected(self) -> None:
        with pytest.raises(ValueError):
            TokenGate("")

    @pytest.mark.asyncio
    async def test_query_token(self) -> None:
        gate = TokenGate("s3cret")
        assert await gate.authenticate(fake_ws(query={"token": "s3cret"})) == "token"  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_bearer_header(self) -> None:
        gate = TokenGate("s3cret")
        ws = fake_ws(headers={"authorization": "Bearer s3cret"})
        assert await gate.authenticate(ws) == "token"  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_wrong_token(self) -> None:
        gate = TokenGate("s3cret")
        assert await gate.authenticate(fake_ws(query={"token": "nope"})) is None  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_missing_token(self) -> None:
        gate = TokenGate("s3cret")
        assert await gate.authenticate(fake_ws(headers={"authorization": "Basic abc"})) is None  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_non_ascii_token_rejected(self) -> None:
        gate = TokenGate("s3cret")
        assert await gate.authenticate(fake_ws(query={"token": "ü"})) is None  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_non_ascii_configured_token(self) -> None:
        gate = TokenGate("grüße")
        assert await gate.authenticate(fake_ws(query={"token": "grüße"})) == "token"  # type: ignore[arg-type]
        assert await gate.authenticate(fake_ws(query={"token": "grusse"})) is None  # type: ignore[arg-type]
