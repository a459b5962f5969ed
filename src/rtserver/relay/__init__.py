"""Session registry and state-relay protocol.

This package is the transport-independent core: the channel state store,
the device slot pool, the peer registry, connection lifecycle handling
and the relay router that ties them together.
"""
