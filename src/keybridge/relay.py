"""Full-duplex byte relay between the client's stdio and an agent backend.

Two threads copy bytes, one per direction, in chunks of at most
``RELAY_CHUNK_SIZE``. Both watch a shared :class:`threading.Event`: the first
side to reach end of stream sets it, :meth:`DuplexRelay.run` then closes the
backend to wake the agent-side reader and returns. Nothing here exits the
process, so callers and tests observe an ordinary return.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, BinaryIO

from keybridge.limits import RELAY_CHUNK_SIZE

if TYPE_CHECKING:
    from collections.abc import Callable

    from keybridge.transports.base import Backend, ReadHalf, WriteHalf

logger = logging.getLogger(__name__)


class ClosedBy(StrEnum):
    """Which endpoint ended the relay."""

    BACKEND = "backend"
    CLIENT = "client"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class RelayOutcome:
    closed_by: ClosedBy
    bytes_to_client: int
    bytes_to_backend: int


class DuplexRelay:
    """Pump bytes between ``client_in``/``client_out`` and a split backend.

    Usage::

        relay = DuplexRelay(sys.stdin.buffer, sys.stdout.buffer, connection)
        outcome = relay.run()

    The reverse thread may be parked in a read on ``client_in`` that nothing can
    interrupt (a console or pipe). It is a daemon thread, and :meth:`run` does
    not wait for it once the backend side has closed.
    """

    def __init__(
        self,
        client_in: BinaryIO,
        client_out: BinaryIO,
        backend: Backend,
        *,
        chunk_size: int = RELAY_CHUNK_SIZE,
    ) -> None:
        if chunk_size < 1:
            msg = f"chunk_size must be positive, got {chunk_size}"
            raise ValueError(msg)
        self._client_read: Callable[[int], bytes] = getattr(client_in, "read1", client_in.read)
        self._client_out = client_out
        self._backend = backend
        self._chunk_size = chunk_size
        self._stopped = threading.Event()
        self._client_done = threading.Event()
        self._lock = threading.Lock()
        self._closed_by: ClosedBy | None = None
        self._error: Exception | None = None
        self._bytes_to_client = 0
        self._bytes_to_backend = 0

    @property
    def stopped(self) -> threading.Event:
        """Cancellation flag shared by both directions."""
        return self._stopped

    def stop(self) -> None:
        """Ask both directions to finish, as if the client had closed."""
        self._finish(ClosedBy.CLIENT)

    def _finish(self, side: ClosedBy) -> None:
        with self._lock:
            if self._closed_by is None:
                self._closed_by = side
            self._stopped.set()

    def _fail(self, direction: str, exc: Exception) -> None:
        with self._lock:
            if self._stopped.is_set():
                # The backend was closed under a blocked read or write.
                logger.debug("%s relay ended during shutdown: %s", direction, exc)
                return
            logger.error("%s relay failed: %s", direction, exc)
            self._error = exc
            self._closed_by = ClosedBy.ERROR
            self._stopped.set()

    def _pump_to_client(self, reader: ReadHalf) -> None:
        try:
            while not self._stopped.is_set():
                chunk = reader.read(self._chunk_size)
                if not chunk:
                    logger.info("Agent connection closed")
                    self._finish(ClosedBy.BACKEND)
                    return
                self._client_out.write(chunk)
                self._client_out.flush()
                self._bytes_to_client += len(chunk)
        except Exception as exc:
            self._fail("agent -> client", exc)

    def _pump_to_backend(self, writer: WriteHalf) -> None:
        try:
            while not self._stopped.is_set():
                chunk = self._client_read(self._chunk_size)
                if not chunk:
                    logger.info("Client input closed")
                    writer.write_eof()
                    self._finish(ClosedBy.CLIENT)
                    return
                writer.write_all(chunk)
                self._bytes_to_backend += len(chunk)
        except Exception as exc:
            self._fail("client -> agent", exc)
        finally:
            self._client_done.set()

    def run(self) -> RelayOutcome:
        """Relay until either side closes.

        Raises:
            Exception: The first I/O error seen by either direction.
        """
        reader, writer = self._backend.split()
        to_client = threading.Thread(
            target=self._pump_to_client, args=(reader,), name="keybridge-to-client", daemon=True
        )
        to_backend = threading.Thread(
            target=self._pump_to_backend, args=(writer,), name="keybridge-to-agent", daemon=True
        )
        to_client.start()
        to_backend.start()

        try:
            self._stopped.wait()
        finally:
            self._stopped.set()
            self._backend.close()

        to_client.join()
        if self._client_done.is_set():
            to_backend.join()
        else:
            logger.debug("Leaving client reader blocked on input")

        if self._error is not None:
            raise self._error

        outcome = RelayOutcome(
            closed_by=self._closed_by or ClosedBy.CLIENT,
            bytes_to_client=self._bytes_to_client,
            bytes_to_backend=self._bytes_to_backend,
        )
        logger.debug(
            "Relay finished: closed_by=%s to_client=%d to_agent=%d",
            outcome.closed_by,
            outcome.bytes_to_client,
            outcome.bytes_to_backend,
        )
        return outcome


def run_relay(
    client_in: BinaryIO,
    client_out: BinaryIO,
    backend: Backend,
    *,
    chunk_size: int = RELAY_CHUNK_SIZE,
) -> RelayOutcome:
    """Relay between the client streams and *backend* until either side closes."""
    return DuplexRelay(client_in, client_out, backend, chunk_size=chunk_size).run()


__all__ = ["ClosedBy", "DuplexRelay", "RelayOutcome", "run_relay"]
