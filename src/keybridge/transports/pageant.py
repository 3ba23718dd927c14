"""Pageant shared-memory transport.

Pageant has no socket. A client creates a named 8 KiB file mapping, writes a
length-prefixed agent request at offset 0, and sends the mapping's name to the
Pageant window with ``WM_COPYDATA``. ``SendMessage`` blocks until Pageant has
written the response frame back into the same mapping.

Window messaging lives behind :class:`WindowMessenger` and the mapping behind a
region factory so the exchange can be driven by fakes off Windows.
"""

from __future__ import annotations

import ctypes
import logging
import mmap
import queue
import threading
from typing import TYPE_CHECKING, BinaryIO, Protocol

from keybridge.errors import (
    NoAgentWindowError,
    RequestTooLongError,
    ResponseTooLongError,
    SendMessageFailedError,
)
from keybridge.framing import Frame, FrameAssembler, decode_length, read_frame
from keybridge.limits import AGENT_COPYDATA_ID, AGENT_MAX_MSGLEN, LENGTH_PREFIX_SIZE

if TYPE_CHECKING:
    from collections.abc import Callable

    RegionFactory = Callable[[str, int], mmap.mmap]

logger = logging.getLogger(__name__)

PAGEANT_WINDOW_CLASS = b"Pageant"
PAGEANT_WINDOW_TITLE = b"Pageant"
REGION_NAME_PREFIX = "PageantRequest"
WM_COPYDATA = 0x004A


def region_name(thread_id: int) -> str:
    """Name of the shared region used by the thread with *thread_id*."""
    return f"{REGION_NAME_PREFIX}{thread_id:x}"


# ---------------------------------------------------------------------------
# Window messaging
# ---------------------------------------------------------------------------


class WindowMessenger(Protocol):
    def find_window(self) -> int | None:
        """Return the Pageant window handle, or ``None`` when absent."""
        ...

    def send_copy_data(self, hwnd: int, tag: int, data: bytes) -> int:
        """Deliver ``WM_COPYDATA`` synchronously and return the window's reply."""
        ...


class COPYDATASTRUCT(ctypes.Structure):
    _fields_ = [
        ("dwData", ctypes.c_size_t),
        ("cbData", ctypes.c_uint32),
        ("lpData", ctypes.c_void_p),
    ]


class Win32Messenger:
    """:class:`WindowMessenger` backed by ``user32.dll``."""

    def __init__(self) -> None:
        user32 = ctypes.WinDLL("user32", use_last_error=True)  # type: ignore[attr-defined]
        user32.FindWindowA.argtypes = [ctypes.c_char_p, ctypes.c_char_p]
        user32.FindWindowA.restype = ctypes.c_void_p
        user32.SendMessageA.argtypes = [
            ctypes.c_void_p,
            ctypes.c_uint,
            ctypes.c_size_t,
            ctypes.c_void_p,
        ]
        user32.SendMessageA.restype = ctypes.c_ssize_t
        self._user32 = user32

    def find_window(self) -> int | None:
        return self._user32.FindWindowA(PAGEANT_WINDOW_CLASS, PAGEANT_WINDOW_TITLE) or None

    def send_copy_data(self, hwnd: int, tag: int, data: bytes) -> int:
        buffer = ctypes.create_string_buffer(data, len(data))
        copy_data = COPYDATASTRUCT(tag, len(data), ctypes.cast(buffer, ctypes.c_void_p))
        logger.debug("COPYDATASTRUCT: dwData=%#x cbData=%d", tag, len(data))
        return self._user32.SendMessageA(hwnd, WM_COPYDATA, 0, ctypes.addressof(copy_data))


def _open_named_region(name: str, size: int) -> mmap.mmap:
    # On Windows a tagged anonymous mmap is CreateFileMapping + MapViewOfFile;
    # close() unmaps the view and then closes the mapping handle.
    return mmap.mmap(-1, size, tagname=name, access=mmap.ACCESS_WRITE)  # type: ignore[call-arg]


# ---------------------------------------------------------------------------
# Request/response channel
# ---------------------------------------------------------------------------


class PageantChannel:
    """Performs request/response exchanges with Pageant, one region per call."""

    def __init__(
        self,
        messenger: WindowMessenger | None = None,
        *,
        region_factory: RegionFactory | None = None,
        thread_id: Callable[[], int] | None = None,
    ) -> None:
        self._messenger = messenger
        self._region_factory = region_factory or _open_named_region
        self._thread_id = thread_id or threading.get_native_id

    def _get_messenger(self) -> WindowMessenger:
        if self._messenger is None:
            self._messenger = Win32Messenger()
        return self._messenger

    def exchange(self, request: Frame | bytes) -> Frame:
        """Send one request frame to Pageant and return its response frame.

        Raises:
            RequestTooLongError: The request does not fit the shared region.
                Raised before any window or mapping is touched.
            NoAgentWindowError: Pageant is not running.
            SendMessageFailedError: Pageant refused the request.
            ResponseTooLongError: The response length field overruns the region.
        """
        data = bytes(request)
        if len(data) >= AGENT_MAX_MSGLEN:
            raise RequestTooLongError(len(data), AGENT_MAX_MSGLEN)

        messenger = self._get_messenger()
        hwnd = messenger.find_window()
        if not hwnd:
            raise NoAgentWindowError()
        logger.debug("Found Pageant window: %#x", hwnd)

        name = region_name(self._thread_id())
        logger.debug("Map name is: %s", name)

        with self._region_factory(name, AGENT_MAX_MSGLEN) as region:
            region[: len(data)] = data
            result = messenger.send_copy_data(hwnd, AGENT_COPYDATA_ID, name.encode("ascii") + b"\0")
            logger.debug("SendMessage(WM_COPYDATA) returned: %d", result)
            if result == 0:
                raise SendMessageFailedError()

            length = decode_length(region[:LENGTH_PREFIX_SIZE])
            logger.debug("Response length is: %d", length)
            if LENGTH_PREFIX_SIZE + length > AGENT_MAX_MSGLEN:
                raise ResponseTooLongError(length, AGENT_MAX_MSGLEN)
            return Frame(region[: LENGTH_PREFIX_SIZE + length])


def serve_requests(client_in: BinaryIO, client_out: BinaryIO, channel: PageantChannel) -> int:
    """Answer framed requests from *client_in* until it closes.

    Returns the number of completed exchanges. Any error ends the loop.
    """
    count = 0
    while True:
        request = read_frame(client_in, limit=AGENT_MAX_MSGLEN)
        if request is None:
            logger.info("Client closed input after %d request(s)", count)
            return count
        logger.debug("Request length: %d", request.length)
        response = channel.exchange(request)
        client_out.write(bytes(response))
        client_out.flush()
        count += 1


# ---------------------------------------------------------------------------
# Backend adapter
# ---------------------------------------------------------------------------


class _ResponseReader:
    """Read half: hands out response bytes queued by the write half."""

    def __init__(self) -> None:
        self._queue: queue.Queue[bytes | None] = queue.Queue()
        self._pending = b""
        self._finished = False

    def push(self, data: bytes) -> None:
        self._queue.put(data)

    def finish(self) -> None:
        self._queue.put(None)

    def read(self, size: int) -> bytes:
        while not self._pending:
            if self._finished:
                return b""
            item = self._queue.get()
            if item is None:
                self._finished = True
                return b""
            self._pending = item
        chunk, self._pending = self._pending[:size], self._pending[size:]
        return chunk


class _RequestWriter:
    """Write half: performs one exchange for every complete request frame."""

    def __init__(self, channel: PageantChannel, reader: _ResponseReader) -> None:
        self._channel = channel
        self._reader = reader
        self._assembler = FrameAssembler(limit=AGENT_MAX_MSGLEN)

    def write_all(self, data: bytes) -> None:
        for request in self._assembler.feed(data):
            self._reader.push(bytes(self._channel.exchange(request)))

    def write_eof(self) -> None:
        self._assembler.finish()


class SharedMemoryBackend:
    """Adapts :class:`PageantChannel` to the split read/write backend interface.

    Only the write half's thread ever calls :meth:`PageantChannel.exchange`, so
    exchanges stay strictly sequential.
    """

    def __init__(self, channel: PageantChannel | None = None) -> None:
        self._channel = channel or PageantChannel()
        self._reader = _ResponseReader()
        self._writer = _RequestWriter(self._channel, self._reader)

    def split(self) -> tuple[_ResponseReader, _RequestWriter]:
        return self._reader, self._writer

    def close(self) -> None:
        self._reader.finish()


__all__ = [
    "PAGEANT_WINDOW_CLASS",
    "PAGEANT_WINDOW_TITLE",
    "REGION_NAME_PREFIX",
    "WM_COPYDATA",
    "PageantChannel",
    "SharedMemoryBackend",
    "Win32Messenger",
    "WindowMessenger",
    "region_name",
    "serve_requests",
]
