"""
Xtream provider access.

HTTP fetching with retry and cancellation, request deduplication, response
models, and the ``ProviderClient`` that ties them to the response cache.
"""

from xtreamtv.provider.client import ProviderClient
from xtreamtv.provider.dedup import InFlightDeduplicator
from xtreamtv.provider.fetcher import RetryConfig, RetryingFetcher
from xtreamtv.provider.models import (
    AudioTrack,
    AuthResponse,
    EPGEntry,
    LiveCategory,
    LiveStream,
    MovieData,
    MovieInfo,
    ProviderCredentials,
    ServerInfo,
    Session,
    SubtitleTrack,
    UserInfo,
)

__all__ = [
    "AudioTrack",
    "AuthResponse",
    "EPGEntry",
    "InFlightDeduplicator",
    "LiveCategory",
    "LiveStream",
    "MovieData",
    "MovieInfo",
    "ProviderClient",
    "ProviderCredentials",
    "RetryConfig",
    "RetryingFetcher",
    "ServerInfo",
    "Session",
    "SubtitleTrack",
    "UserInfo",
]
