"""Test helpers package."""

from tests.helpers.agent_server import LoopbackAgent
from tests.helpers.fakes import (
    BlockingInput,
    ChunkedInput,
    CollectingOutput,
    EchoBackend,
    FailingWriteBackend,
    FakePageant,
    split_into,
)

__all__ = [
    "BlockingInput",
    "ChunkedInput",
    "CollectingOutput",
    "EchoBackend",
    "FailingWriteBackend",
    "FakePageant",
    "LoopbackAgent",
    "split_into",
]
