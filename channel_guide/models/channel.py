"""
Channel, playlist and provider data models.
Maps both the M3U playlist format and the Xtream Codes player API onto one channel shape.
"""
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNCATEGORIZED = "Uncategorized"


class Channel(BaseModel):
    """A playable channel, regardless of which ingestion path produced it."""
    id: str
    name: str
    url: str
    logo: str = ""
    group: str = UNCATEGORIZED
    language: str = ""


class IngestionResult(BaseModel):
    """Channels plus the ordered category names they belong to."""
    channels: list[Channel] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)


class ConnectionMode(str, Enum):
    """Which ingestion path the persisted source belongs to."""
    M3U = "m3u"
    XTREAM = "xtream"


def normalize_server(server: str) -> str:
    """Ensure the server URL has a scheme and no trailing slash."""
    server = server.strip()
    if not server.startswith("http://") and not server.startswith("https://"):
        server = "http://" + server
    return server.rstrip("/")


class ProviderCredentials(BaseModel):
    """Xtream Codes server and login."""
    server: str
    username: str
    password: str

    @property
    def normalized_server(self) -> str:
        return normalize_server(self.server)


class PlaylistMeta(BaseModel):
    """Metadata stored next to a cached channel list."""
    url: str
    name: str = "IPTV Playlist"
    channel_count: int = 0
    last_updated: int = 0  # epoch milliseconds


# Provider API payloads

class ProviderUserInfo(BaseModel):
    """The user_info block returned by player_api.php."""
    model_config = ConfigDict(extra="ignore")

    username: Optional[str] = None
    password: Optional[str] = None
    status: Optional[str] = None
    exp_date: Optional[str] = None
    active_cons: Optional[str] = None
    max_connections: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)


class ProviderCategory(BaseModel):
    """Live category as listed by get_live_categories."""
    model_config = ConfigDict(extra="ignore")

    category_id: str
    category_name: str

    @field_validator("category_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)


class ProviderStream(BaseModel):
    """Live stream record as listed by get_live_streams."""
    model_config = ConfigDict(extra="ignore")

    num: Optional[int] = None
    name: str = ""
    stream_type: Optional[str] = None
    stream_id: int
    stream_icon: Optional[str] = None
    epg_channel_id: Optional[str] = None
    category_id: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("category_id", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)
