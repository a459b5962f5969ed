"""HTTP + WebSocket server for the relay.

Control and device peers connect to a single WebSocket endpoint and
exchange ``{"event": ..., "data": ...}`` JSON frames. A small HTTP
surface exposes read-only status plus a direct relay hook:

    GET  /                                  -> server identity
    GET  /health                            -> {"status": "ok", ...}
    GET  /api/status                        -> counts, state, roster, uptime
    POST /api/relay/{slot}/{channel}/{on|off}
    POST /api/emergency-stop
    WS   /ws                                <- register, relay_control, ...
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from rtserver.actuator.base import Actuator, NullActuator
from rtserver.config.settings import Settings
from rtserver.domain.models import (
    EmergencyStopResult,
    ErrorNotice,
    HealthResponse,
    RelayControlResult,
    ServerInfo,
    StatusResponse,
    parse_inbound,
)
from rtserver.relay.errors import ErrorCode
from rtserver.relay.router import RelayRouter
from rtserver.server.auth import AuthGate, OpenGate, TokenGate
from rtserver.server.hub import WebSocketHub

logger = logging.getLogger(__name__)

SERVER_NAME = "RT-Server"


def build_actuator(settings: Settings) -> Actuator:
    """Choose the actuator described by the configuration."""
    if not settings.gpio.enabled:
        return NullActuator(channels=settings.relay.channels)
    if settings.gpio.slot >= settings.relay.slots:
        raise ValueError(
            f"gpio.slot {settings.gpio.slot} outside 0-{settings.relay.slots - 1}"
        )
    from rtserver.actuator.gpio import GpioActuator

    return GpioActuator(
        pins=settings.gpio.pins,
        slot=settings.gpio.slot,
        channels=settings.relay.channels,
        sysfs_root=settings.gpio.sysfs_root,
    )


def build_auth_gate(settings: Settings) -> AuthGate:
    token = settings.auth.token.get_secret_value()
    return TokenGate(token) if token else OpenGate()


def _path_int(name: str, raw: str) -> int:
    """Parse a numeric path segment or answer 400."""
    try:
        return int(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name} {raw!r}") from None


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    settings: Settings | None = None,
    actuator: Actuator | None = None,
    auth_gate: AuthGate | None = None,
    hub: WebSocketHub | None = None,
) -> FastAPI:
    """Create the relay server application.

    Args:
        settings: Configuration. Defaults to ``Settings()``.
        actuator: Optional pre-configured actuator (for testing).
        auth_gate: Optional pre-configured auth gate (for testing).
        hub: Optional pre-configured WebSocket hub (for testing).
    """
    settings = settings or Settings()
    hub = hub or WebSocketHub(max_backlog=settings.socket.max_backlog)
    router = RelayRouter.create(
        hub,
        slots=settings.relay.slots,
        channels=settings.relay.channels,
        actuator=actuator or build_actuator(settings),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        r: RelayRouter = app.state.router
        await r.actuator.open()
        logger.info(
            "%s started: %d slots x %d channels, actuator=%s",
            SERVER_NAME, r.store.slots, r.store.channels, r.actuator.name,
        )
        yield
        # Leave every local relay off on the way out
        result = await r.actuator.stop_all()
        if not result.ok:
            logger.error("Could not switch relays off on shutdown: %s", result.error)
        await r.actuator.close()
        await app.state.hub.close()
        logger.info("%s stopped", SERVER_NAME)

    app = FastAPI(
        title="RT-Server",
        description="Real-time relay between control clients and relay devices",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.router = router
    app.state.hub = hub
    app.state.auth_gate = auth_gate or build_auth_gate(settings)
    app.state.started_at = time.monotonic()

    # -------------------------------------------------------------------
    # HTTP endpoints
    # -------------------------------------------------------------------

    @app.get("/")
    async def index() -> ServerInfo:
        r: RelayRouter = app.state.router
        return ServerInfo(
            server=SERVER_NAME,
            message="Relay Control Server",
            available_channels=r.lifecycle.available_channels(),
        )

    @app.get("/health")
    async def health_check() -> HealthResponse:
        r: RelayRouter = app.state.router
        return HealthResponse(
            status="ok",
            actuator=r.actuator.name,
            slots=r.store.slots,
            channels=r.store.channels,
        )

    @app.get("/api/status")
    async def server_status() -> StatusResponse:
        r: RelayRouter = app.state.router
        return StatusResponse(
            server=SERVER_NAME,
            status="running",
            clients=r.registry.counts(),
            relay_state=r.store.snapshot(),
            roster=r.registry.roster(),
            available_channels=r.lifecycle.available_channels(),
            gpio_status="active" if r.actuator.is_active else "inactive",
            uptime=time.monotonic() - app.state.started_at,
        )

    @app.post("/api/relay/{slot}/{channel}/{action}")
    async def relay_control(slot: str, channel: str, action: str) -> RelayControlResult:
        if action not in ("on", "off"):
            raise HTTPException(status_code=400, detail=f"Invalid action {action!r} (on/off)")
        r: RelayRouter = app.state.router
        result = await r.control(
            _path_int("slot", slot), _path_int("channel", channel), action == "on"
        )
        if not result.success:
            code = 500 if result.code is ErrorCode.ACTUATION_FAILURE else 400
            raise HTTPException(status_code=code, detail=result.error)
        return result

    @app.post("/api/emergency-stop")
    async def emergency_stop() -> EmergencyStopResult:
        r: RelayRouter = app.state.router
        result = await r.emergency_stop()
        if not result.success:
            raise HTTPException(status_code=500, detail=result.error)
        return result

    # -------------------------------------------------------------------
    # WebSocket endpoint
    # -------------------------------------------------------------------

    @app.websocket("/ws")
    async def relay_socket(websocket: WebSocket) -> None:
        gate: AuthGate = app.state.auth_gate
        identity = await gate.authenticate(websocket)
        if identity is None:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()
        r: RelayRouter = app.state.router
        h: WebSocketHub = app.state.hub
        connection_id = uuid.uuid4().hex
        h.add(connection_id, websocket)
        await r.connect(connection_id, identity)

        try:
            async for text in websocket.iter_text():
                try:
                    message = parse_inbound(json.loads(text))
                except (ValidationError, ValueError) as e:
                    logger.debug("Malformed frame from %s: %s", connection_id, e)
                    notice = ErrorNotice(code=ErrorCode.INVALID_MESSAGE, message=str(e))
                    h.send(connection_id, "error", notice.model_dump(mode="json"))
                    continue
                await r.dispatch(connection_id, message)
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("Error in WebSocket connection %s", connection_id)
        finally:
            await r.disconnect(connection_id)
            await h.remove(connection_id)

    return app


# ---------------------------------------------------------------------------
# Standalone entry point
# ---------------------------------------------------------------------------

def main(settings: Settings | None = None) -> None:
    """Run the relay server."""
    settings = settings or Settings()
    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        ws_ping_interval=settings.socket.ping_interval,
        ws_ping_timeout=settings.socket.ping_timeout,
        # Keep the handlers installed by setup_logging
        log_config=None,
    )


if __name__ == "__main__":
    main()
