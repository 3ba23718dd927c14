"""Backend transports: Pageant shared memory and Assuan loopback sockets."""

from __future__ import annotations

from keybridge.transports.assuan import AssuanConnection, Rendezvous, read_rendezvous
from keybridge.transports.base import Backend, ReadHalf, SocketStream, WriteHalf
from keybridge.transports.pageant import PageantChannel, SharedMemoryBackend, serve_requests

__all__ = [
    "AssuanConnection",
    "Backend",
    "PageantChannel",
    "ReadHalf",
    "Rendezvous",
    "SharedMemoryBackend",
    "SocketStream",
    "WriteHalf",
    "read_rendezvous",
    "serve_requests",
]
