"""Loopback stand-in for a socket-based Assuan agent."""

from __future__ import annotations

import contextlib
import socket
import threading
from typing import TYPE_CHECKING

from keybridge.limits import NONCE_SIZE

if TYPE_CHECKING:
    from pathlib import Path


class LoopbackAgent:
    """Accepts one connection, reads the nonce, then echoes until EOF.

    Usage::

        with LoopbackAgent(nonce) as agent:
            agent.write_rendezvous(tmp_path / "S.gpg-agent")
            ...
        assert agent.received == b"..."
    """

    def __init__(self, nonce: bytes = bytes(range(NONCE_SIZE)), *, echo: bool = True) -> None:
        self.nonce = nonce
        self.echo = echo
        self.handshake = b""
        self.received = bytearray()
        self._server = socket.create_server(("127.0.0.1", 0))
        self._thread = threading.Thread(target=self._serve, name="loopback-agent", daemon=True)
        self._conn: socket.socket | None = None
        self.ready = threading.Event()
        self.closed = threading.Event()

    @property
    def port(self) -> int:
        return self._server.getsockname()[1]

    def write_rendezvous(self, path: Path) -> Path:
        path.write_bytes(f"{self.port}\n".encode("ascii") + self.nonce)
        return path

    def _serve(self) -> None:
        try:
            with contextlib.suppress(OSError):
                self._handle(*self._server.accept())
        finally:
            self.closed.set()

    def _handle(self, conn: socket.socket, _addr: object) -> None:
        self._conn = conn
        with conn:
            while len(self.handshake) < NONCE_SIZE:
                chunk = conn.recv(NONCE_SIZE - len(self.handshake))
                if not chunk:
                    break
                self.handshake += chunk
            if self.handshake != self.nonce:
                return
            self.ready.set()
            while chunk := conn.recv(4096):
                self.received.extend(chunk)
                if self.echo:
                    conn.sendall(chunk)

    def hang_up(self) -> None:
        """Close the agent's side of the connection once the handshake is done."""
        self.ready.wait(timeout=5)
        if self._conn is not None:
            self._conn.shutdown(socket.SHUT_RDWR)

    def __enter__(self) -> LoopbackAgent:
        self._thread.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self._server.close()
        self._thread.join(timeout=5)
