"""
XtreamTV Test Configuration

Shared fixtures and configuration for all tests.
"""

import os
import tempfile
from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

from tests.fixtures import FakeClock, FakeProvider, RecordingSleep
import xtreamtv.config as config_module
from xtreamtv.progress import ProgressStore
from xtreamtv.database import MemoryKeyValueStore
from xtreamtv.provider import ProviderClient, ProviderCredentials, RetryConfig


BASE_URL = "http://provider.example.com:8080"


# ============ Time Fixtures ============


@pytest.fixture
def fake_clock() -> FakeClock:
    """Manually advanced clock."""
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Backoff sleep that returns immediately and records delays."""
    return RecordingSleep()


# ============ Provider Fixtures ============


@pytest.fixture
def credentials() -> ProviderCredentials:
    """Valid provider credentials."""
    return ProviderCredentials(base_url=BASE_URL, username="alice", password="s3cret")


@pytest.fixture
def fake_provider() -> FakeProvider:
    """Scripted provider endpoint."""
    return FakeProvider()


@pytest_asyncio.fixture
async def http_client(fake_provider: FakeProvider) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client routed to the fake provider."""
    async with httpx.AsyncClient(transport=fake_provider.transport()) as client:
        yield client


@pytest.fixture
def progress_store(fake_clock: FakeClock) -> ProgressStore:
    """Progress store over an in-memory medium."""
    return ProgressStore(MemoryKeyValueStore(), clock=fake_clock)


@pytest_asyncio.fixture
async def provider_client(
    credentials: ProviderCredentials,
    http_client: httpx.AsyncClient,
    fake_clock: FakeClock,
    recording_sleep: RecordingSleep,
    progress_store: ProgressStore,
) -> AsyncGenerator[ProviderClient, None]:
    """Started client wired to the fake provider, clock and sleep."""
    client = ProviderClient(
        credentials,
        retry_config=RetryConfig(delays=(1.0, 2.0, 5.0), request_timeout=5.0),
        progress_store=progress_store,
        http_client=http_client,
        clock=fake_clock,
        sleep=recording_sleep,
    )
    await client.start()
    yield client
    await client.close()


# ============ Temporary File Fixtures ============


@pytest.fixture(scope="function")
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(scope="function")
def temp_config_file(temp_dir: Path) -> Path:
    """Create a temporary config file."""
    config_file = temp_dir / "config.yaml"
    config_content = f"""
provider:
  base_url: "{BASE_URL}"
  username: "alice"
  password: 1234

fetch:
  retry_delays: [0.5, 1.5]
  request_timeout: 3

cache:
  epg_ttl: 60

progress:
  database_url: "sqlite:///{temp_dir}/progress.db"
  max_entries: 50

logging:
  level: "DEBUG"
  to_file: false
  to_console: false
"""
    config_file.write_text(config_content)
    return config_file


# ============ Environment Fixtures ============


@pytest.fixture(autouse=True)
def clean_environment():
    """Clean environment variables and the cached config for each test."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith(("XTREAM_", "XTREAMTV_")):
            del os.environ[key]
    config_module._config = None

    yield

    os.environ.clear()
    os.environ.update(original_env)
    config_module._config = None


# ============ Markers ============


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
