"""Length-prefixed frame codec shared by the stdio loop and the Pageant transport.

A frame is a 4-byte big-endian unsigned length ``L`` followed by exactly ``L``
payload bytes. The prefix is kept as part of the frame because both the client
and the Pageant shared region expect it verbatim.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO

from keybridge.errors import RequestTooLongError, TruncatedFrameError
from keybridge.limits import LENGTH_PREFIX_SIZE

_LENGTH = struct.Struct(">I")


@dataclass(frozen=True, slots=True)
class Frame:
    """Wire representation of one frame: length prefix plus payload."""

    data: bytes

    def __post_init__(self) -> None:
        if len(self.data) < LENGTH_PREFIX_SIZE:
            msg = f"Frame needs a {LENGTH_PREFIX_SIZE}-byte prefix, got {len(self.data)} bytes"
            raise ValueError(msg)
        declared = decode_length(self.data)
        if declared != len(self.data) - LENGTH_PREFIX_SIZE:
            msg = (
                f"Frame length prefix says {declared} bytes but "
                f"{len(self.data) - LENGTH_PREFIX_SIZE} follow"
            )
            raise ValueError(msg)

    @classmethod
    def encode(cls, payload: bytes) -> Frame:
        return cls(encode_length(len(payload)) + bytes(payload))

    @property
    def length(self) -> int:
        """Payload length as declared by the prefix."""
        return len(self.data) - LENGTH_PREFIX_SIZE

    @property
    def payload(self) -> bytes:
        return self.data[LENGTH_PREFIX_SIZE:]

    def __bytes__(self) -> bytes:
        return self.data

    def __len__(self) -> int:
        return len(self.data)


def encode_length(length: int) -> bytes:
    """Encode *length* as a 4-byte big-endian prefix."""
    return _LENGTH.pack(length)


def decode_length(prefix: bytes) -> int:
    """Decode the big-endian length from the first 4 bytes of *prefix*."""
    return _LENGTH.unpack_from(prefix)[0]


def _read_exactly(stream: BinaryIO, size: int) -> bytes:
    """Read up to *size* bytes, stopping early only at end of stream."""
    chunks: list[bytes] = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_frame(stream: BinaryIO, *, limit: int | None = None) -> Frame | None:
    """Read one frame from a blocking binary stream.

    Returns ``None`` when the stream ends cleanly before the first prefix byte.
    Any other short read raises :class:`TruncatedFrameError`. With *limit*, a
    frame of *limit* bytes or more raises :class:`RequestTooLongError` as soon
    as its prefix is read, before any payload byte.
    """
    prefix = _read_exactly(stream, LENGTH_PREFIX_SIZE)
    if not prefix:
        return None
    if len(prefix) < LENGTH_PREFIX_SIZE:
        raise TruncatedFrameError(LENGTH_PREFIX_SIZE, len(prefix))

    length = decode_length(prefix)
    if limit is not None and LENGTH_PREFIX_SIZE + length >= limit:
        raise RequestTooLongError(LENGTH_PREFIX_SIZE + length, limit)
    payload = _read_exactly(stream, length)
    if len(payload) < length:
        raise TruncatedFrameError(LENGTH_PREFIX_SIZE + length, LENGTH_PREFIX_SIZE + len(payload))
    return Frame(prefix + payload)


class FrameAssembler:
    """Incremental frame decoder for arbitrarily chunked input.

    Usage::

        assembler = FrameAssembler(limit=AGENT_MAX_MSGLEN)
        for chunk in chunks:
            for frame in assembler.feed(chunk):
                handle(frame)
        assembler.finish()
    """

    def __init__(self, *, limit: int | None = None) -> None:
        self._buffer = bytearray()
        self._limit = limit

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet forming a complete frame."""
        return len(self._buffer)

    def feed(self, data: bytes) -> list[Frame]:
        """Buffer *data* and return every frame it completes, in order.

        Raises:
            RequestTooLongError: A buffered prefix declares a frame of *limit*
                bytes or more. Nothing past that prefix is kept.
        """
        self._buffer.extend(data)
        frames: list[Frame] = []
        while len(self._buffer) >= LENGTH_PREFIX_SIZE:
            total = LENGTH_PREFIX_SIZE + decode_length(self._buffer)
            if self._limit is not None and total >= self._limit:
                del self._buffer[LENGTH_PREFIX_SIZE:]
                raise RequestTooLongError(total, self._limit)
            if len(self._buffer) < total:
                break
            frames.append(Frame(bytes(self._buffer[:total])))
            del self._buffer[:total]
        return frames

    def finish(self) -> None:
        """Mark end of input.

        Raises:
            TruncatedFrameError: Part of a frame is still buffered.
        """
        if not self._buffer:
            return
        expected = LENGTH_PREFIX_SIZE
        if len(self._buffer) >= LENGTH_PREFIX_SIZE:
            expected += decode_length(self._buffer)
        raise TruncatedFrameError(expected, len(self._buffer))


__all__ = [
    "Frame",
    "FrameAssembler",
    "decode_length",
    "encode_length",
    "read_frame",
]
