"""Numeric limits and protocol constants - no circular dependencies."""

from __future__ import annotations

# Frame codec
LENGTH_PREFIX_SIZE = 4

# Pageant shared-memory transport
AGENT_MAX_MSGLEN = 8192
AGENT_COPYDATA_ID = 0x804E50BA

# Assuan loopback transport
NONCE_SIZE = 16
MAX_PORT = 0xFFFF

# Duplex relay
RELAY_CHUNK_SIZE = 128

MAX_LOG_MESSAGE_LENGTH = 4096
