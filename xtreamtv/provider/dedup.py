"""
In-flight request deduplication.

Collapses concurrent identical requests into one upstream call.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from xtreamtv.errors import Cancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")

Factory = Callable[[asyncio.Event], Awaitable[T]]


@dataclass
class _PendingRequest(Generic[T]):
    """A shared upstream call and the callers waiting on it."""

    task: "asyncio.Task[T]"
    group_cancel: asyncio.Event = field(default_factory=asyncio.Event)
    waiters: int = 0

    @property
    def abandoned(self) -> bool:
        return self.group_cancel.is_set()


class InFlightDeduplicator:
    """
    Registry of outstanding upstream calls keyed by logical request identity.

    Keys are the same strings the response cache uses, but the registry is
    separate: an in-flight entry is not yet data.

    A caller's own ``cancel`` event only affects that caller, which gets
    ``Cancelled`` while the shared call keeps running for the others. Once
    no waiter is left, the group cancel event handed to the factory is set
    so the shared call stops at its next cancellation point. A caller that
    arrives after that starts a fresh call.
    """

    def __init__(self):
        self._pending: dict[str, _PendingRequest[Any]] = {}

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    async def run(
        self,
        key: str,
        factory: Factory[T],
        cancel: asyncio.Event | None = None,
    ) -> T:
        """
        Join the outstanding call for ``key`` or start one with ``factory``.

        Args:
            key: Logical request identity.
            factory: Called with the group cancel event to start the upstream call.
            cancel: Per-caller cancel signal.

        Returns:
            The shared call's result. Its exception is raised to every waiter.
        """
        pending = self._pending.get(key)
        if pending is None or pending.abandoned:
            pending = self._register(key, factory)
        else:
            logger.debug(f"Joining in-flight request {key}")

        pending.waiters += 1
        try:
            return await self._wait(pending, cancel, key)
        finally:
            pending.waiters -= 1
            if pending.waiters == 0 and not pending.task.done():
                logger.debug(f"All waiters left {key}, stopping shared request")
                pending.group_cancel.set()

    def _register(self, key: str, factory: Factory[T]) -> _PendingRequest[T]:
        group_cancel = asyncio.Event()
        # Registered before the factory body runs; the task only starts on
        # the next loop iteration.
        task = asyncio.ensure_future(self._execute(key, factory, group_cancel))
        task.add_done_callback(_consume_exception)
        pending = _PendingRequest(task=task, group_cancel=group_cancel)
        self._pending[key] = pending
        return pending

    async def _execute(self, key: str, factory: Factory[T], group_cancel: asyncio.Event) -> T:
        try:
            return await factory(group_cancel)
        finally:
            current = self._pending.get(key)
            if current is not None and current.group_cancel is group_cancel:
                del self._pending[key]

    async def _wait(
        self,
        pending: _PendingRequest[T],
        cancel: asyncio.Event | None,
        key: str,
    ) -> T:
        shared = asyncio.shield(pending.task)
        if cancel is None:
            return await shared

        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({shared, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not waiter.done():
                waiter.cancel()

        if cancel.is_set():
            if not shared.done():
                shared.cancel()  # Detaches this caller only; the task is shielded
            elif not shared.cancelled():
                shared.exception()
            raise Cancelled(key)

        return shared.result()


def _consume_exception(task: "asyncio.Task[Any]") -> None:
    # Every waiter may have left; retrieve the outcome so it is not reported
    # as never retrieved.
    if not task.cancelled():
        task.exception()


__all__ = ["InFlightDeduplicator"]
