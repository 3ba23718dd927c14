"""Assuan loopback socket transport (gpg-agent on Windows).

On Windows gpg-agent does not listen on a Unix socket. Instead it writes a small
rendezvous file where the socket would be::

    <decimal port>\\n
    <16 raw nonce bytes>

Clients connect to ``127.0.0.1:<port>`` and prove they could read the file by
sending the nonce as the first 16 bytes. No acknowledgement follows; the
connection is immediately a plain Assuan stream.
"""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from pathlib import Path

from keybridge.errors import NonceParseError, PortParseError, RendezvousFileError
from keybridge.limits import MAX_PORT, NONCE_SIZE
from keybridge.transports.base import SocketStream

logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"


@dataclass(frozen=True, slots=True)
class Rendezvous:
    """Port and nonce published by a socket-based agent.

    Attributes:
        port: Loopback TCP port the agent listens on.
        nonce: Connection-authentication nonce, exactly 16 bytes.
        path: File the descriptor was read from, when known.
    """

    port: int
    nonce: bytes
    path: Path | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.port <= MAX_PORT:
            msg = f"Port out of range: {self.port}"
            raise ValueError(msg)
        if len(self.nonce) != NONCE_SIZE:
            msg = f"Nonce must be {NONCE_SIZE} bytes, got {len(self.nonce)}"
            raise ValueError(msg)

    def __repr__(self) -> str:
        return f"Rendezvous(port={self.port}, path={self.path})"


def _parse_port(path: Path, raw: bytes) -> int:
    text = raw.strip()
    if not text or not text.isdigit():
        raise PortParseError(path, raw)
    port = int(text)
    if port > MAX_PORT:
        raise PortParseError(path, raw)
    return port


def read_rendezvous(path: Path | str) -> Rendezvous:
    """Parse the rendezvous file at *path*.

    The nonce is checked before the port, so a file with neither yields
    :class:`NonceParseError`. Bytes after the nonce are ignored. Never opens a
    network connection.

    Raises:
        RendezvousFileError: The file cannot be opened or read.
        NonceParseError: Fewer than 16 bytes follow the port line.
        PortParseError: The port line is not a decimal number in 0..65535.
    """
    path = Path(path)
    logger.debug("Opening rendezvous file %s", path)
    try:
        with path.open("rb") as handle:
            port_line = handle.readline()
            nonce = handle.read(NONCE_SIZE)
    except OSError as exc:
        raise RendezvousFileError(path, exc.strerror or str(exc)) from exc

    if len(nonce) != NONCE_SIZE:
        raise NonceParseError(path, len(nonce))
    port = _parse_port(path, port_line)
    return Rendezvous(port=port, nonce=nonce, path=path)


class AssuanConnection:
    """Authenticated connection to a loopback Assuan agent.

    Usage::

        connection = AssuanConnection.connect(path)
        reader, writer = connection.split()
        ...
        connection.close()
    """

    def __init__(self, rendezvous: Rendezvous, stream: SocketStream) -> None:
        self._rendezvous = rendezvous
        self._stream = stream

    @classmethod
    def connect(cls, source: Path | str | Rendezvous) -> AssuanConnection:
        """Connect to the agent described by *source* and send the nonce.

        Raises:
            RendezvousError: When *source* is a path that cannot be parsed.
            OSError: When the TCP connection or the nonce write fails.
        """
        rendezvous = source if isinstance(source, Rendezvous) else read_rendezvous(source)
        logger.info("Discovered Assuan socket at %s:%d", LOOPBACK_HOST, rendezvous.port)

        sock = socket.create_connection((LOOPBACK_HOST, rendezvous.port))
        try:
            sock.sendall(rendezvous.nonce)
        except OSError:
            sock.close()
            raise
        logger.debug("Sent %d-byte nonce to %s:%d", NONCE_SIZE, LOOPBACK_HOST, rendezvous.port)
        return cls(rendezvous, SocketStream(sock))

    @property
    def rendezvous(self) -> Rendezvous:
        return self._rendezvous

    def split(self) -> tuple[SocketStream, SocketStream]:
        return self._stream, self._stream

    def close(self) -> None:
        self._stream.close()

    def __enter__(self) -> AssuanConnection:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def connect(source: Path | str | Rendezvous) -> AssuanConnection:
    """Shorthand for :meth:`AssuanConnection.connect`."""
    return AssuanConnection.connect(source)


__all__ = [
    "LOOPBACK_HOST",
    "AssuanConnection",
    "Rendezvous",
    "connect",
    "read_rendezvous",
]
