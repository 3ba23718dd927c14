"""Backend abstraction shared by the Pageant and Assuan transports.

A backend is split into a read half and a write half so the relay can pump each
direction from its own thread. For a socket backend both halves are the same
object; reads and writes on one socket never need mutual exclusion.
"""

from __future__ import annotations

import contextlib
import logging
import socket
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class ReadHalf(Protocol):
    def read(self, size: int) -> bytes:
        """Return up to *size* bytes, or ``b""`` at end of stream."""
        ...


@runtime_checkable
class WriteHalf(Protocol):
    def write_all(self, data: bytes) -> None:
        """Write every byte of *data* or raise."""
        ...

    def write_eof(self) -> None:
        """Signal that the client will send nothing more."""
        ...


@runtime_checkable
class Backend(Protocol):
    def split(self) -> tuple[ReadHalf, WriteHalf]:
        """Return the read half and the write half of this backend."""
        ...

    def close(self) -> None:
        """Release the backend. Pending reads on the read half return ``b""``."""
        ...


class SocketStream:
    """Blocking duplex stream over a connected socket."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        self._closed = False

    @property
    def socket(self) -> socket.socket:
        return self._sock

    def read(self, size: int) -> bytes:
        if self._closed:
            return b""
        return self._sock.recv(size)

    def write_all(self, data: bytes) -> None:
        self._sock.sendall(data)

    def write_eof(self) -> None:
        # The relay closes the whole socket once the client is done.
        pass

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # shutdown() wakes a recv() blocked in another thread; close() alone may not.
        with contextlib.suppress(OSError):
            self._sock.shutdown(socket.SHUT_RDWR)
        self._sock.close()
        logger.debug("Socket stream closed")


__all__ = ["Backend", "ReadHalf", "SocketStream", "WriteHalf"]
