"""
Retrying JSON fetcher for the provider API.

One logical HTTP call with a fixed backoff schedule, a per-attempt
timeout, and cooperative cancellation through an ``asyncio.Event``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

from xtreamtv.errors import Cancelled, DecodeError, NetworkError, RetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry attempts."""

    # One delay per retry: 1 initial attempt + len(delays) retries
    delays: tuple[float, ...] = (1.0, 2.0, 5.0)
    request_timeout: float = 15.0

    @property
    def max_attempts(self) -> int:
        return len(self.delays) + 1


class RetryingFetcher:
    """Performs GET requests that decode to JSON, retrying transient failures."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: RetryConfig | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the fetcher.

        Args:
            client: Shared HTTP client.
            config: Retry configuration.
            sleep: Coroutine used for backoff delays.
        """
        self.client = client
        self.config = config or RetryConfig()
        self._sleep = sleep

    async def fetch_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        *,
        cancel: asyncio.Event | None = None,
        operation_name: str = "request",
    ) -> Any:
        """
        Fetch ``url`` and decode the JSON body.

        Args:
            url: Request URL.
            params: Query parameters.
            cancel: Set to abort; checked before each attempt and raced
                against the request and every backoff delay.
            operation_name: Name used in logs and errors.

        Returns:
            Decoded JSON value.

        Raises:
            Cancelled: ``cancel`` was set. Takes priority over any other outcome.
            DecodeError: The body was not JSON. Not retried.
            RetryExhausted: Every attempt failed with a ``NetworkError``.
        """
        for attempt in range(self.config.max_attempts):
            if cancel is not None and cancel.is_set():
                logger.debug(f"{operation_name} cancelled before attempt {attempt + 1}")
                raise Cancelled(operation_name)

            try:
                result = await self._race(self._attempt(url, params), cancel, operation_name)

                if attempt > 0:
                    logger.info(f"{operation_name} succeeded after {attempt} retry attempt(s)")

                return result

            except NetworkError as e:
                if attempt >= len(self.config.delays):
                    logger.error(
                        f"{operation_name} failed after {self.config.max_attempts} attempts. "
                        f"Last error: {e}"
                    )
                    raise RetryExhausted(operation_name, self.config.max_attempts, e) from e

                delay = self.config.delays[attempt]
                logger.info(
                    f"{operation_name} failed "
                    f"(attempt {attempt + 1}/{self.config.max_attempts}): {e}; "
                    f"retrying in {delay:.1f}s"
                )
                await self._race(self._sleep(delay), cancel, operation_name)

        raise RuntimeError(f"{operation_name} made no attempts")

    async def _attempt(self, url: str, params: dict[str, Any] | None) -> Any:
        timeout = self.config.request_timeout
        try:
            # Bounds the whole attempt; httpx's timeout applies per phase
            response = await asyncio.wait_for(
                self.client.get(
                    url,
                    params=params,
                    headers={"Accept": "application/json"},
                    timeout=timeout,
                ),
                timeout,
            )
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Attempt exceeded {timeout:.1f}s", url=url) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"{type(e).__name__}: {e}", url=url) from e

        if not response.is_success:
            raise NetworkError(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                url=url,
            )

        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"Invalid JSON from provider: {e}") from e

    async def _race(
        self,
        awaitable: Awaitable[T],
        cancel: asyncio.Event | None,
        operation_name: str,
    ) -> T:
        """Await ``awaitable`` unless ``cancel`` fires first."""
        if cancel is None:
            return await awaitable

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (work, waiter):
                if not task.done():
                    task.cancel()

        if cancel.is_set():
            if work.done() and not work.cancelled():
                work.exception()  # Mark retrieved; the outcome is discarded
            logger.debug(f"{operation_name} cancelled")
            raise Cancelled(operation_name)

        return work.result()


__all__ = ["RetryConfig", "RetryingFetcher"]
