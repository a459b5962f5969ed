"""rtserver -- real-time relay between control clients and relay devices.

Control clients (browser UIs) and device clients (boards driving relay
channels) connect over WebSocket. The server classifies each peer, binds
devices to a fixed pool of slots, routes switch commands to the device
that owns a slot and fans reported relay state out to every control
client.
"""

__version__ = "0.1.0"
