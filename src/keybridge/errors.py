"""Error taxonomy for agent discovery, transport capacity, and agent rejection.

Every error here is fatal at the point of first detection. Nothing in the
library retries; the command line turns them into a stderr message and a
non-zero exit status.
"""

from __future__ import annotations

from pathlib import Path


class BridgeError(Exception):
    """Base class for all keybridge failures."""


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class RendezvousError(BridgeError):
    """The Assuan rendezvous file could not be used."""

    def __init__(self, path: Path | str, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"{message}: {self.path}")


class RendezvousFileError(RendezvousError):
    """The rendezvous file is missing or unreadable."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.reason = reason
        super().__init__(path, f"Cannot read rendezvous file ({reason})")


class PortParseError(RendezvousError):
    """The first line of the rendezvous file is not a valid TCP port."""

    def __init__(self, path: Path | str, raw: bytes) -> None:
        self.raw = raw
        super().__init__(path, f"Failed to parse port {raw!r} from rendezvous file")


class NonceParseError(RendezvousError):
    """Fewer than the required nonce bytes follow the port line."""

    def __init__(self, path: Path | str, found: int) -> None:
        self.found = found
        super().__init__(path, f"Failed to parse nonce ({found} bytes) from rendezvous file")


class NoAgentWindowError(BridgeError):
    """No Pageant window is present on the desktop."""

    def __init__(self) -> None:
        super().__init__("No Pageant window found")


# ---------------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------------


class RequestTooLongError(BridgeError):
    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"Request too long: {size} bytes (limit {limit - 1})")


class ResponseTooLongError(BridgeError):
    def __init__(self, length: int, limit: int) -> None:
        self.length = length
        self.limit = limit
        super().__init__(f"Agent response length {length} exceeds shared region of {limit} bytes")


# ---------------------------------------------------------------------------
# Rejection / I/O
# ---------------------------------------------------------------------------


class SendMessageFailedError(BridgeError):
    """Pageant returned zero from the synchronous WM_COPYDATA delivery."""

    def __init__(self) -> None:
        super().__init__("Pageant rejected our request")


class TruncatedFrameError(BridgeError):
    """A stream ended partway through a length-prefixed frame."""

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(f"Stream closed mid-frame: expected {expected} bytes, got {received}")


__all__ = [
    "BridgeError",
    "NoAgentWindowError",
    "NonceParseError",
    "PortParseError",
    "RendezvousError",
    "RendezvousFileError",
    "RequestTooLongError",
    "ResponseTooLongError",
    "SendMessageFailedError",
    "TruncatedFrameError",
]
