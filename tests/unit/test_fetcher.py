"""
Unit tests for the retrying fetcher.
"""

import asyncio
import logging

import httpx
import pytest

from tests.conftest import BASE_URL
from tests.fixtures import BlockingSleep, FakeProvider, RecordingSleep, wait_until
from xtreamtv.errors import Cancelled, DecodeError, NetworkError, RetryExhausted
from xtreamtv.provider.fetcher import RetryConfig, RetryingFetcher

API_URL = f"{BASE_URL}/player_api.php"


@pytest.fixture
def fetcher(http_client: httpx.AsyncClient, recording_sleep: RecordingSleep) -> RetryingFetcher:
    return RetryingFetcher(http_client, RetryConfig(), sleep=recording_sleep)


@pytest.mark.unit
class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_default_schedule(self):
        """Test one initial attempt plus one retry per delay."""
        config = RetryConfig()

        assert config.delays == (1.0, 2.0, 5.0)
        assert config.max_attempts == 4

    def test_empty_schedule_means_single_attempt(self):
        """Test no delays means no retries."""
        assert RetryConfig(delays=()).max_attempts == 1


@pytest.mark.unit
class TestFetchJson:
    """Tests for RetryingFetcher.fetch_json."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(
        self, fetcher: RetryingFetcher, fake_provider: FakeProvider, recording_sleep: RecordingSleep
    ):
        """Test a healthy provider is called once."""
        fake_provider.add("get_live_streams", [{"stream_id": 1}])

        result = await fetcher.fetch_json(API_URL, {"action": "get_live_streams"})

        assert result == [{"stream_id": 1}]
        assert fake_provider.calls() == 1
        assert recording_sleep.calls == []

    @pytest.mark.asyncio
    async def test_sends_query_and_accept_header(
        self, fetcher: RetryingFetcher, fake_provider: FakeProvider
    ):
        """Test parameters are sent as the query string."""
        fake_provider.add("get_epg", [])

        await fetcher.fetch_json(API_URL, {"action": "get_epg", "stream_id": 7})

        request = fake_provider.requests[0]
        assert request.url.params["stream_id"] == "7"
        assert request.headers["accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(
        self, fetcher: RetryingFetcher, fake_provider: FakeProvider, recording_sleep: RecordingSleep
    ):
        """Test transport errors and 5xx are retried with the backoff schedule."""
        fake_provider.add(
            "get_epg",
            httpx.Response(500),
            httpx.ConnectError("connection refused"),
            {"epg_listings": []},
        )

        result = await fetcher.fetch_json(API_URL, {"action": "get_epg"})

        assert result == {"epg_listings": []}
        assert fake_provider.calls() == 3
        assert recording_sleep.calls == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_retry_budget_exhausted(
        self,
        fetcher: RetryingFetcher,
        fake_provider: FakeProvider,
        recording_sleep: RecordingSleep,
        caplog,
    ):
        """Test four attempts with delays 1, 2, 5 then RetryExhausted."""
        fake_provider.add("get_epg", httpx.Response(503))

        with caplog.at_level(logging.INFO, logger="xtreamtv.provider.fetcher"):
            with pytest.raises(RetryExhausted) as exc_info:
                await fetcher.fetch_json(API_URL, {"action": "get_epg"}, operation_name="epg:1:24")

        error = exc_info.value
        assert error.attempts == 4
        assert error.operation == "epg:1:24"
        assert isinstance(error.last_error, NetworkError)
        assert error.last_error.status_code == 503
        assert error.__cause__ is error.last_error
        assert fake_provider.calls() == 4
        assert recording_sleep.calls == [1.0, 2.0, 5.0]
        assert [r.levelno for r in caplog.records].count(logging.ERROR) == 1

    @pytest.mark.asyncio
    async def test_client_error_status_is_retried(
        self, fetcher: RetryingFetcher, fake_provider: FakeProvider
    ):
        """Test any non-2xx status counts as a failed attempt."""
        fake_provider.add("get_movie_info", httpx.Response(404), {"movie_data": {}})

        result = await fetcher.fetch_json(API_URL, {"action": "get_movie_info"})

        assert result == {"movie_data": {}}
        assert fake_provider.calls() == 2

    @pytest.mark.asyncio
    async def test_timeout_is_retried(
        self, fetcher: RetryingFetcher, fake_provider: FakeProvider
    ):
        """Test a per-attempt timeout is a retryable network error."""
        fake_provider.add("get_epg", httpx.ReadTimeout("too slow"), [])

        assert await fetcher.fetch_json(API_URL, {"action": "get_epg"}) == []
        assert fake_provider.calls() == 2

    @pytest.mark.asyncio
    async def test_slow_body_hits_attempt_timeout(self):
        """Test a trickling body cannot stretch an attempt past request_timeout."""
        attempts = 0

        async def trickle():
            yield b"["
            for _ in range(20):
                await asyncio.sleep(0.05)
                yield b" "
            yield b"]"

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return httpx.Response(200, content=trickle())

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetcher = RetryingFetcher(client, RetryConfig(delays=(), request_timeout=0.2))

            with pytest.raises(RetryExhausted) as exc_info:
                await fetcher.fetch_json(API_URL, {"action": "get_epg"})

        assert attempts == 1
        assert isinstance(exc_info.value.last_error, NetworkError)
        assert "exceeded" in str(exc_info.value.last_error)

    @pytest.mark.asyncio
    async def test_invalid_json_not_retried(
        self, fetcher: RetryingFetcher, fake_provider: FakeProvider, recording_sleep: RecordingSleep
    ):
        """Test a malformed body fails immediately."""
        fake_provider.add("get_epg", httpx.Response(200, content=b"<html>oops</html>"))

        with pytest.raises(DecodeError):
            await fetcher.fetch_json(API_URL, {"action": "get_epg"})

        assert fake_provider.calls() == 1
        assert recording_sleep.calls == []


@pytest.mark.unit
class TestCancellation:
    """Tests for cancellation precedence."""

    @pytest.mark.asyncio
    async def test_cancelled_before_start(
        self, fetcher: RetryingFetcher, fake_provider: FakeProvider
    ):
        """Test no request is made once cancel is set."""
        fake_provider.add("get_epg", [])
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(Cancelled):
            await fetcher.fetch_json(API_URL, {"action": "get_epg"}, cancel=cancel)

        assert fake_provider.calls() == 0

    @pytest.mark.asyncio
    async def test_cancelled_during_request(
        self, fetcher: RetryingFetcher, fake_provider: FakeProvider, caplog
    ):
        """Test cancel wins over an outstanding request and is not retried."""
        fake_provider.add("get_epg", [])
        fake_provider.gate = asyncio.Event()
        cancel = asyncio.Event()

        with caplog.at_level(logging.DEBUG, logger="xtreamtv.provider.fetcher"):
            task = asyncio.create_task(
                fetcher.fetch_json(API_URL, {"action": "get_epg"}, cancel=cancel)
            )
            await wait_until(lambda: fake_provider.calls() == 1)
            cancel.set()

            with pytest.raises(Cancelled):
                await task

        assert fake_provider.calls() == 1
        assert not any(r.levelno >= logging.ERROR for r in caplog.records)

    @pytest.mark.asyncio
    async def test_cancelled_during_backoff(
        self, http_client: httpx.AsyncClient, fake_provider: FakeProvider
    ):
        """Test cancel during a backoff delay ends the call without another attempt."""
        sleep = BlockingSleep()
        fetcher = RetryingFetcher(http_client, RetryConfig(), sleep=sleep)
        fake_provider.add("get_epg", httpx.Response(502))
        cancel = asyncio.Event()

        task = asyncio.create_task(
            fetcher.fetch_json(API_URL, {"action": "get_epg"}, cancel=cancel)
        )
        await asyncio.wait_for(sleep.started.wait(), 2.0)
        cancel.set()

        with pytest.raises(Cancelled):
            await task

        assert fake_provider.calls() == 1
        assert sleep.calls == [1.0]

    @pytest.mark.asyncio
    async def test_cancel_takes_priority_over_failure(
        self, fetcher: RetryingFetcher, fake_provider: FakeProvider
    ):
        """Test a failure observed after cancel is reported as Cancelled."""
        cancel = asyncio.Event()

        def fail_and_cancel(request: httpx.Request) -> httpx.Response:
            cancel.set()
            return httpx.Response(500)

        fetcher.client = httpx.AsyncClient(transport=httpx.MockTransport(fail_and_cancel))
        try:
            with pytest.raises(Cancelled):
                await fetcher.fetch_json(API_URL, {"action": "get_epg"}, cancel=cancel)
        finally:
            await fetcher.client.aclose()
