"""Pydantic models for provider credentials and API payloads"""

from typing import Annotated, Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator


def _number_to_str(value: Any) -> Any:
    """Providers send ids and counters as either numbers or numeric strings."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _none_to_empty(value: Any) -> Any:
    return () if value is None else value


FlexibleStr = Annotated[str, BeforeValidator(_number_to_str)]
OptionalInt = Annotated[Optional[int], BeforeValidator(_blank_to_none)]
OptionalFloat = Annotated[Optional[float], BeforeValidator(_blank_to_none)]


class _ProviderModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class ProviderCredentials(_ProviderModel):
    """Base endpoint plus account; fixed for the process lifetime."""

    base_url: str
    username: str
    password: str

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        parsed = urlparse(v.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"base_url must be an http(s) URL, got {v!r}")
        return v.strip().rstrip("/")

    @field_validator("username", "password")
    @classmethod
    def validate_not_empty(cls, v: str, info) -> str:
        if not v:
            raise ValueError(f"{info.field_name} must not be empty")
        return v


class UserInfo(_ProviderModel):
    username: FlexibleStr = ""
    message: str = ""
    auth: int = 0
    status: str = ""
    exp_date: Optional[FlexibleStr] = None
    is_trial: Optional[FlexibleStr] = None
    active_cons: Optional[FlexibleStr] = None
    created_at: Optional[FlexibleStr] = None
    max_connections: Optional[FlexibleStr] = None
    allowed_output_formats: list[str] = Field(default_factory=list)

    @property
    def is_authorized(self) -> bool:
        return self.auth == 1


class ServerInfo(_ProviderModel):
    url: Optional[str] = None
    port: Optional[FlexibleStr] = None
    https_port: Optional[FlexibleStr] = None
    server_protocol: Optional[str] = None
    timezone: Optional[str] = None
    timestamp_now: OptionalInt = None


class AuthResponse(_ProviderModel):
    """Body of the bare ``player_api.php`` login call."""

    user_info: UserInfo
    server_info: Optional[ServerInfo] = None


class Session(_ProviderModel):
    """Authenticated session state kept by the client after login."""

    user_info: UserInfo
    server_info: Optional[ServerInfo] = None

    @property
    def status(self) -> str:
        return self.user_info.status

    @property
    def expires_at(self) -> Optional[int]:
        exp = self.user_info.exp_date
        return int(exp) if exp and exp.isdigit() else None

    @property
    def max_connections(self) -> Optional[int]:
        value = self.user_info.max_connections
        return int(value) if value and value.isdigit() else None


class LiveCategory(_ProviderModel):
    category_id: FlexibleStr
    category_name: str
    parent_id: Optional[FlexibleStr] = None


class LiveStream(_ProviderModel):
    """A playable live channel."""

    num: OptionalInt = None
    name: str
    stream_type: Optional[str] = None
    stream_id: int
    stream_icon: Optional[str] = None
    epg_channel_id: Optional[str] = None
    added: Optional[FlexibleStr] = None
    category_id: Optional[FlexibleStr] = None
    custom_sid: Optional[FlexibleStr] = None
    tv_archive: OptionalInt = 0
    direct_source: Optional[str] = None
    tv_archive_duration: OptionalInt = 0

    @property
    def has_archive(self) -> bool:
        return bool(self.tv_archive)


class EPGEntry(_ProviderModel):
    """One program slot on a channel's guide."""

    id: Optional[FlexibleStr] = None
    epg_id: Optional[FlexibleStr] = None
    title: str
    lang: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None
    description: Optional[str] = None
    channel_id: Optional[FlexibleStr] = None
    start_timestamp: int
    stop_timestamp: int


class SubtitleTrack(_ProviderModel):
    id: FlexibleStr
    language: Optional[str] = None
    url: str


class AudioTrack(_ProviderModel):
    id: FlexibleStr
    language: Optional[str] = None
    name: str


class MovieData(_ProviderModel):
    name: str
    stream_id: int
    stream_icon: Optional[str] = None
    rating: Optional[FlexibleStr] = None
    rating_5based: OptionalFloat = None
    added: Optional[FlexibleStr] = None
    category_id: Optional[FlexibleStr] = None
    container_extension: Optional[str] = None
    custom_sid: Optional[FlexibleStr] = None
    direct_source: Optional[str] = None


class MovieInfo(_ProviderModel):
    """Movie metadata plus the track lists handed to the player."""

    movie_data: MovieData
    subtitle_tracks: Annotated[tuple[SubtitleTrack, ...], BeforeValidator(_none_to_empty)] = ()
    audio_tracks: Annotated[tuple[AudioTrack, ...], BeforeValidator(_none_to_empty)] = ()


__all__ = [
    "ProviderCredentials",
    "UserInfo",
    "ServerInfo",
    "AuthResponse",
    "Session",
    "LiveCategory",
    "LiveStream",
    "EPGEntry",
    "SubtitleTrack",
    "AudioTrack",
    "MovieData",
    "MovieInfo",
]
