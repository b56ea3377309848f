"""
Test doubles for time, sleeping and the provider HTTP endpoint.
"""

import asyncio
from collections.abc import Callable
from typing import Any

import httpx

from xtreamtv.database import MemoryKeyValueStore
from xtreamtv.errors import StorageError


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Backoff sleep that records delays and returns immediately."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        await asyncio.sleep(0)


class BlockingSleep:
    """Backoff sleep that never finishes on its own."""

    def __init__(self):
        self.calls: list[float] = []
        self.started = asyncio.Event()

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        self.started.set()
        await asyncio.Event().wait()


class FakeProvider:
    """
    Scripted ``player_api.php`` endpoint for ``httpx.MockTransport``.

    Responses are queued per ``action`` query parameter (``""`` for the
    login call). Each item is a JSON body, an ``httpx.Response`` or an
    exception to raise. The last queued item repeats.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: dict[str, list[Any]] = {}
        self.gate: asyncio.Event | None = None

    def add(self, action: str, *responses: Any) -> "FakeProvider":
        self.responses.setdefault(action, []).extend(responses)
        return self

    def calls(self, action: str | None = None) -> int:
        if action is None:
            return len(self.requests)
        return sum(1 for r in self.requests if r.url.params.get("action", "") == action)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()

        queue = self.responses.get(request.url.params.get("action", ""))
        if not queue:
            return httpx.Response(404, json={"error": "unknown action"})
        item = queue.pop(0) if len(queue) > 1 else queue[0]

        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(200, json=item)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until ``predicate()`` holds."""
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0)

    await asyncio.wait_for(poll(), timeout)


class FailingStore(MemoryKeyValueStore):
    """Key-value medium that fails reads and/or writes on demand."""

    def __init__(self, fail_reads: bool = False, fail_writes: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    async def get(self, key: str) -> str | None:
        if self.fail_reads:
            raise StorageError("disk unavailable")
        return await super().get(key)

    async def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageError("disk full")
        await super().set(key, value)
