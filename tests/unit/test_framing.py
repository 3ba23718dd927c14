"""Unit tests for the length-prefixed frame codec."""

from __future__ import annotations

import io

import pytest

from keybridge.errors import RequestTooLongError, TruncatedFrameError
from keybridge.framing import Frame, FrameAssembler, decode_length, encode_length, read_frame

pytestmark = pytest.mark.unit


class TestFrame:
    def test_encode_keeps_big_endian_prefix(self):
        frame = Frame.encode(b"AB")

        assert bytes(frame) == b"\x00\x00\x00\x02AB"
        assert frame.length == 2
        assert frame.payload == b"AB"
        assert len(frame) == 6

    def test_empty_payload(self):
        frame = Frame.encode(b"")

        assert bytes(frame) == b"\x00\x00\x00\x00"
        assert frame.payload == b""

    def test_rejects_missing_prefix(self):
        with pytest.raises(ValueError, match="prefix"):
            Frame(b"\x00\x00")

    def test_rejects_prefix_payload_mismatch(self):
        with pytest.raises(ValueError, match="says 3 bytes"):
            Frame(b"\x00\x00\x00\x03AB")

    def test_length_helpers(self):
        assert encode_length(0x01020304) == b"\x01\x02\x03\x04"
        assert decode_length(b"\x00\x00\x01\x00trailing") == 256


class TestReadFrame:
    def test_reads_one_frame_at_a_time(self):
        stream = io.BytesIO(b"\x00\x00\x00\x01X\x00\x00\x00\x02YZ")

        first = read_frame(stream)
        second = read_frame(stream)

        assert first == Frame(b"\x00\x00\x00\x01X")
        assert second == Frame(b"\x00\x00\x00\x02YZ")
        assert read_frame(stream) is None

    def test_clean_end_of_stream_returns_none(self):
        assert read_frame(io.BytesIO(b"")) is None

    def test_partial_prefix_is_an_error(self):
        with pytest.raises(TruncatedFrameError) as excinfo:
            read_frame(io.BytesIO(b"\x00\x00"))

        assert excinfo.value.expected == 4
        assert excinfo.value.received == 2

    def test_short_payload_is_an_error(self):
        with pytest.raises(TruncatedFrameError) as excinfo:
            read_frame(io.BytesIO(b"\x00\x00\x00\x05abc"))

        assert excinfo.value.expected == 9
        assert excinfo.value.received == 7

    def test_reassembles_short_reads(self):
        class Trickle(io.RawIOBase):
            def __init__(self, data: bytes) -> None:
                self._data = data

            def readable(self) -> bool:
                return True

            def readinto(self, buffer) -> int:
                if not self._data:
                    return 0
                buffer[0] = self._data[0]
                self._data = self._data[1:]
                return 1

        frame = read_frame(Trickle(b"\x00\x00\x00\x03abc"))

        assert frame is not None
        assert frame.payload == b"abc"

    def test_limit_rejects_before_reading_payload(self):
        stream = io.BytesIO(b"\xff\xff\xff\xff" + b"x" * 64)

        with pytest.raises(RequestTooLongError) as excinfo:
            read_frame(stream, limit=8192)

        assert excinfo.value.size == 4 + 0xFFFFFFFF
        assert stream.tell() == 4

    def test_limit_is_exclusive(self):
        below = Frame.encode(b"a" * 11)

        assert read_frame(io.BytesIO(bytes(below)), limit=16) == below
        with pytest.raises(RequestTooLongError):
            read_frame(io.BytesIO(bytes(Frame.encode(b"a" * 12))), limit=16)


class TestFrameAssembler:
    def test_waits_for_complete_frame(self):
        assembler = FrameAssembler()

        assert assembler.feed(b"\x00\x00") == []
        assert assembler.feed(b"\x00\x02A") == []
        assert assembler.pending == 5
        assert assembler.feed(b"B") == [Frame(b"\x00\x00\x00\x02AB")]
        assert assembler.pending == 0

    def test_yields_several_frames_from_one_chunk(self):
        assembler = FrameAssembler()

        frames = assembler.feed(b"\x00\x00\x00\x01a\x00\x00\x00\x00\x00\x00\x00\x02b")

        assert [frame.payload for frame in frames] == [b"a", b""]
        assert assembler.pending == 5

    def test_finish_accepts_frame_boundary(self):
        assembler = FrameAssembler()
        assembler.feed(b"\x00\x00\x00\x01a")

        assembler.finish()

    def test_finish_reports_partial_frame(self):
        assembler = FrameAssembler()
        assembler.feed(b"\x00\x00\x00\x09abc")

        with pytest.raises(TruncatedFrameError) as excinfo:
            assembler.finish()

        assert excinfo.value.expected == 13
        assert excinfo.value.received == 7

    def test_finish_reports_partial_prefix(self):
        assembler = FrameAssembler()
        assembler.feed(b"\x00\x00")

        with pytest.raises(TruncatedFrameError) as excinfo:
            assembler.finish()

        assert excinfo.value.expected == 4
        assert excinfo.value.received == 2

    def test_limit_rejects_oversized_prefix_without_buffering_payload(self):
        assembler = FrameAssembler(limit=8192)

        with pytest.raises(RequestTooLongError) as excinfo:
            assembler.feed(b"\x00\x00\x20\x00" + b"q" * 100)

        assert excinfo.value.size == 8196
        assert assembler.pending == 4
