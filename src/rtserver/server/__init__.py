"""FastAPI transport for the relay.

Hosts the WebSocket endpoint control and device peers connect to, the
per-connection outbound hub, the authentication gate and the HTTP status
surface.
"""
