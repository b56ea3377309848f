"""
Xtream provider client.

Composes the response cache, the in-flight deduplicator and the retrying
fetcher into the catalog, EPG and movie-info queries used by the player,
and builds direct playback URLs from the session credentials.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from xtreamtv.cache import CacheType, MemoryCache, cache_key
from xtreamtv.config import CacheSettings, XtreamTVConfig
from xtreamtv.database.kv_store import MemoryKeyValueStore, SqliteKeyValueStore
from xtreamtv.errors import ConfigurationError, DecodeError, ProviderError, StorageError
from xtreamtv.progress import ContentKind, ProgressStore
from xtreamtv.provider.dedup import InFlightDeduplicator
from xtreamtv.provider.fetcher import RetryConfig, RetryingFetcher, Sleep
from xtreamtv.provider.models import (
    AuthResponse,
    EPGEntry,
    LiveCategory,
    LiveStream,
    MovieInfo,
    ProviderCredentials,
    Session,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LIVE_STREAMS = TypeAdapter(tuple[LiveStream, ...])
_LIVE_CATEGORIES = TypeAdapter(tuple[LiveCategory, ...])
_EPG_LISTINGS = TypeAdapter(tuple[EPGEntry, ...])
_MOVIE_INFO = TypeAdapter(MovieInfo)

_CACHE_KIND_ALIASES = {"movieInfo": CacheType.MOVIE_INFO}


class ProviderClient:
    """
    Client for an Xtream-Codes style provider API.

    Owns its cache and in-flight registry; nothing is shared between
    instances. Call ``start()`` before use (or use ``async with``) to run
    the cache sweep and open the progress store.

    Usage:
        async with ProviderClient(credentials) as client:
            if await client.authenticate():
                streams = await client.list_live_streams()
                url = client.get_live_stream_url(streams[0].stream_id)
    """

    API_PATH = "player_api.php"

    def __init__(
        self,
        credentials: ProviderCredentials | dict[str, str],
        *,
        retry_config: RetryConfig | None = None,
        cache_settings: CacheSettings | None = None,
        progress_store: ProgressStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Sleep = asyncio.sleep,
        progress_max_age_days: float = 30,
        user_agent: str = "XtreamTV/1.0",
    ):
        """
        Initialize the client.

        Args:
            credentials: Provider base URL, username and password.
            retry_config: Backoff schedule and per-attempt timeout.
            cache_settings: TTL per data kind and sweep period.
            progress_store: Watch progress store (in-memory if omitted).
            http_client: Shared HTTP client; created and owned if omitted.
            clock: Time source for cache expiry and progress timestamps.
            sleep: Coroutine used for retry backoff.
            progress_max_age_days: Age limit applied once on ``start()``.
            user_agent: User-Agent for an owned HTTP client.

        Raises:
            ConfigurationError: Malformed credentials.
        """
        if isinstance(credentials, dict):
            try:
                credentials = ProviderCredentials(**credentials)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid provider credentials: {e}") from e
        self.credentials = credentials

        self.cache_settings = cache_settings or CacheSettings()
        self.cache = MemoryCache(clock=clock, sweep_interval=self.cache_settings.sweep_interval)
        self.dedup = InFlightDeduplicator()

        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": user_agent},
        )
        self.fetcher = RetryingFetcher(self._http_client, retry_config, sleep=sleep)

        self.progress_store = progress_store or ProgressStore(MemoryKeyValueStore(), clock=clock)
        self._progress_max_age_days = progress_max_age_days

        self.session: Optional[Session] = None
        self._started = False

    @classmethod
    def from_config(cls, config: XtreamTVConfig, **kwargs: Any) -> "ProviderClient":
        """Build a client from application configuration."""
        try:
            credentials = ProviderCredentials(
                base_url=config.provider.base_url,
                username=config.provider.username,
                password=config.provider.password,
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid provider configuration: {e}") from e

        clock = kwargs.get("clock", time.time)
        if config.progress.persist:
            medium = SqliteKeyValueStore(config.progress.database_url)
        else:
            medium = MemoryKeyValueStore()
        kwargs.setdefault(
            "progress_store",
            ProgressStore(
                medium,
                storage_key=config.progress.storage_key,
                max_entries=config.progress.max_entries,
                clock=clock,
            ),
        )
        kwargs.setdefault(
            "retry_config",
            RetryConfig(
                delays=tuple(config.fetch.retry_delays),
                request_timeout=config.fetch.request_timeout,
            ),
        )
        kwargs.setdefault("cache_settings", config.cache)
        kwargs.setdefault("progress_max_age_days", config.progress.max_age_days)
        kwargs.setdefault("user_agent", config.fetch.user_agent)
        return cls(credentials, **kwargs)

    async def __aenter__(self) -> "ProviderClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def start(self) -> None:
        """Start the cache sweep and open the progress store."""
        if self._started:
            return
        await self.cache.start()
        try:
            await self.progress_store.initialize(self._progress_max_age_days)
        except StorageError:
            await self.close()
            raise
        self._started = True
        logger.info(f"Provider client started for {self.credentials.base_url}")

    async def close(self) -> None:
        """Stop the cache sweep and release owned resources."""
        await self.cache.stop()
        await self.progress_store.close()
        if self._owns_http_client:
            await self._http_client.aclose()
        self._started = False

    @property
    def api_url(self) -> str:
        return f"{self.credentials.base_url}/{self.API_PATH}"

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    def _params(self, **extra: Any) -> dict[str, Any]:
        params: dict[str, Any] = {
            "username": self.credentials.username,
            "password": self.credentials.password,
        }
        params.update({k: v for k, v in extra.items() if v is not None})
        return params

    # Authentication

    async def authenticate(self) -> bool:
        """
        Log in once against the provider.

        Returns:
            True if the provider reports an authorized account. Every
            failure, including network errors, is logged and reported as False.
        """
        try:
            data = await self.fetcher.fetch_json(
                self.api_url, self._params(), operation_name="authenticate"
            )
            response = AuthResponse.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Authentication failed: unexpected response shape: {e}")
            return False
        except ProviderError as e:
            logger.warning(f"Authentication failed: {e}")
            return False

        if not response.user_info.is_authorized:
            logger.warning(
                f"Authentication rejected for {self.credentials.username}: "
                f"{response.user_info.message or response.user_info.status or 'not authorized'}"
            )
            return False

        self.session = Session(user_info=response.user_info, server_info=response.server_info)
        logger.info(
            f"Authenticated as {self.credentials.username} "
            f"(status={self.session.status}, max_connections={self.session.max_connections})"
        )
        return True

    # Catalog queries

    async def list_live_streams(
        self,
        category_id: str | int | None = None,
        cancel: asyncio.Event | None = None,
    ) -> tuple[LiveStream, ...]:
        """Live channels, optionally limited to one category."""
        return await self._cached_fetch(
            CacheType.STREAMS,
            cache_key(CacheType.STREAMS, "live", category_id),
            self._params(action="get_live_streams", category_id=category_id),
            _LIVE_STREAMS.validate_python,
            cancel,
        )

    async def list_live_categories(
        self,
        cancel: asyncio.Event | None = None,
    ) -> tuple[LiveCategory, ...]:
        """Live channel categories, whose ids filter ``list_live_streams``."""
        return await self._cached_fetch(
            CacheType.STREAMS,
            cache_key(CacheType.STREAMS, "categories"),
            self._params(action="get_live_categories"),
            _LIVE_CATEGORIES.validate_python,
            cancel,
        )

    async def get_epg(
        self,
        stream_id: str | int,
        limit: int = 24,
        cancel: asyncio.Event | None = None,
    ) -> tuple[EPGEntry, ...]:
        """Current and upcoming programs for a channel, ordered by start time."""
        if limit <= 0:
            raise ValueError("limit must be > 0")

        def decode(data: Any) -> tuple[EPGEntry, ...]:
            if isinstance(data, dict) and "epg_listings" in data:
                data = data["epg_listings"]
            entries = _EPG_LISTINGS.validate_python(data)
            return tuple(sorted(entries, key=lambda e: e.start_timestamp)[:limit])

        return await self._cached_fetch(
            CacheType.EPG,
            cache_key(CacheType.EPG, stream_id, limit),
            self._params(action="get_epg", stream_id=stream_id, limit=limit),
            decode,
            cancel,
        )

    async def get_movie_info(
        self,
        movie_id: str | int,
        cancel: asyncio.Event | None = None,
    ) -> MovieInfo:
        """Movie metadata with subtitle and audio tracks."""
        return await self._cached_fetch(
            CacheType.MOVIE_INFO,
            cache_key(CacheType.MOVIE_INFO, movie_id),
            self._params(action="get_movie_info", movie_id=movie_id),
            _MOVIE_INFO.validate_python,
            cancel,
        )

    async def _cached_fetch(
        self,
        cache_type: CacheType,
        key: str,
        params: dict[str, Any],
        decode: Callable[[Any], T],
        cancel: asyncio.Event | None,
    ) -> T:
        """Cache, then in-flight registry, then the network."""
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit {key}")
            return cached

        async def load(group_cancel: asyncio.Event) -> T:
            data = await self.fetcher.fetch_json(
                self.api_url, params, cancel=group_cancel, operation_name=key
            )
            try:
                payload = decode(data)
            except ValidationError as e:
                raise DecodeError(f"Unexpected response shape for {key}: {e}") from e
            self.cache.set(key, payload, ttl=self._ttl_for(cache_type), cache_type=cache_type)
            return payload

        return await self.dedup.run(key, load, cancel=cancel)

    def _ttl_for(self, cache_type: CacheType) -> int:
        if cache_type is CacheType.EPG:
            return self.cache_settings.epg_ttl
        if cache_type is CacheType.MOVIE_INFO:
            return self.cache_settings.movie_info_ttl
        return self.cache_settings.streams_ttl

    def clear_cache(self, kind: CacheType | str) -> int:
        """Drop every cached entry of one data kind."""
        try:
            cache_type = _CACHE_KIND_ALIASES.get(kind) or CacheType(kind)
        except ValueError as e:
            raise ValueError(
                f"Unknown cache kind {kind!r}, expected one of "
                f"{[t.value for t in CacheType]}"
            ) from e
        removed = self.cache.invalidate_type(cache_type)
        logger.debug(f"Cleared {removed} {cache_type.value} cache entries")
        return removed

    # Playback URLs

    def get_live_stream_url(self, stream_id: str | int, extension: str | None = None) -> str:
        return self._stream_url("live", stream_id, extension)

    def get_movie_stream_url(self, movie_id: str | int, extension: str | None = None) -> str:
        return self._stream_url("movie", movie_id, extension)

    def get_series_stream_url(self, episode_id: str | int, extension: str | None = None) -> str:
        return self._stream_url("series", episode_id, extension)

    def _stream_url(self, kind: str, content_id: str | int, extension: str | None) -> str:
        """``<base>/<kind>/<username>/<password>/<id>[.<ext>]``; no network."""
        name = quote(str(content_id), safe="")
        if extension:
            name = f"{name}.{quote(extension.lstrip('.'), safe='')}"
        return "/".join((
            self.credentials.base_url,
            kind,
            quote(self.credentials.username, safe=""),
            quote(self.credentials.password, safe=""),
            name,
        ))

    # Watch progress

    async def save_watch_progress(
        self,
        kind: ContentKind,
        content_id: str,
        position: float,
        duration: float,
    ) -> None:
        """Persist a playback position. ``StorageError`` propagates."""
        await self.progress_store.save_progress(kind, content_id, position, duration)

    async def get_watch_progress(self, kind: ContentKind, content_id: str) -> float:
        """Saved position in seconds, 0 if unknown or unreadable."""
        return await self.progress_store.get_progress(kind, content_id)


__all__ = ["ProviderClient"]
