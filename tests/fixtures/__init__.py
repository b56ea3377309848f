"""
Test Fixtures

Scripted provider responses and test doubles.
"""

from .helpers import (
    BlockingSleep,
    FailingStore,
    FakeClock,
    FakeProvider,
    RecordingSleep,
    wait_until,
)

__all__ = [
    "BlockingSleep",
    "FailingStore",
    "FakeClock",
    "FakeProvider",
    "RecordingSleep",
    "wait_until",
]
