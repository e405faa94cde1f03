"""
SQLite-backed key-value persistence for the last used source and cached playlist data.
"""
import aiosqlite
import json
import logging
import time
from pathlib import Path
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from channel_guide.models.channel import Channel, ConnectionMode, PlaylistMeta, ProviderCredentials

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal async string store the playlist store is built on."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set_many(self, items: dict[str, str]) -> None: ...

    async def delete(self, keys: list[str]) -> None: ...


class SQLiteKeyValueStore:
    """Async SQLite key-value table."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._ensure_directory()

    def _ensure_directory(self):
        """Create data directory if it doesn't exist."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    async def initialize(self):
        """Create the table if it doesn't exist."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            await db.commit()

    async def get(self, key: str) -> Optional[str]:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = await cursor.fetchone()
            return row[0] if row else None

    async def set(self, key: str, value: str):
        await self.set_many({key: value})

    async def set_many(self, items: dict[str, str]):
        """Upsert several keys in one commit."""
        async with aiosqlite.connect(self.db_path) as db:
            for key, value in items.items():
                await db.execute(
                    """INSERT OR REPLACE INTO kv (key, value, updated_at)
                       VALUES (?, ?, CURRENT_TIMESTAMP)""",
                    (key, value)
                )
            await db.commit()

    async def delete(self, keys: list[str]):
        async with aiosqlite.connect(self.db_path) as db:
            placeholders = ','.join(['?'] * len(keys))
            await db.execute(f"DELETE FROM kv WHERE key IN ({placeholders})", keys)
            await db.commit()


class PlaylistStore:
    """Typed accessors over the key-value store.

    Writes are not transactional across keys, so every reader treats a
    missing or unreadable value as absent rather than failing.
    """

    KEYS = {
        "playlist_url": "@iptv_playlist_url",
        "playlist_channels": "@iptv_playlist_channels",
        "playlist_categories": "@iptv_playlist_categories",
        "playlist_meta": "@iptv_playlist_meta",
        "favorites": "@iptv_favorites",
        "xtream_credentials": "@iptv_xtream_credentials",
        "connection_type": "@iptv_connection_type",
    }

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    async def _get_json(self, name: str) -> Optional[Any]:
        raw = await self.kv.get(self.KEYS[name])
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring unreadable cached value for {name}")
            return None

    # Playlist URL
    async def save_playlist_url(self, url: str):
        await self.kv.set_many({self.KEYS["playlist_url"]: url})

    async def get_playlist_url(self) -> Optional[str]:
        return await self.kv.get(self.KEYS["playlist_url"])

    # Playlist data
    async def save_playlist_data(self, channels: list[Channel], categories: list[str], url: str):
        """Store channels, categories and their metadata."""
        meta = PlaylistMeta(
            url=url,
            channel_count=len(channels),
            last_updated=int(time.time() * 1000),
        )
        await self.kv.set_many({
            self.KEYS["playlist_channels"]: json.dumps([ch.model_dump() for ch in channels]),
            self.KEYS["playlist_categories"]: json.dumps(categories),
            self.KEYS["playlist_meta"]: meta.model_dump_json(),
        })
        logger.info(f"Cached {len(channels)} channels from {url}")

    async def get_playlist_channels(self) -> Optional[list[Channel]]:
        data = await self._get_json("playlist_channels")
        if not isinstance(data, list):
            return None
        channels = []
        for item in data:
            try:
                channels.append(Channel.model_validate(item))
            except ValidationError:
                logger.warning(f"Dropping malformed cached channel: {item!r}")
        return channels

    async def get_playlist_categories(self) -> Optional[list[str]]:
        data = await self._get_json("playlist_categories")
        if not isinstance(data, list):
            return None
        return [str(name) for name in data]

    async def get_playlist_meta(self) -> Optional[PlaylistMeta]:
        data = await self._get_json("playlist_meta")
        if not isinstance(data, dict):
            return None
        try:
            return PlaylistMeta.model_validate(data)
        except ValidationError:
            return None

    # Favorites
    async def save_favorites(self, ids: list[str]):
        await self.kv.set_many({self.KEYS["favorites"]: json.dumps(list(ids))})

    async def get_favorites(self) -> list[str]:
        data = await self._get_json("favorites")
        return [str(i) for i in data] if isinstance(data, list) else []

    # Provider credentials
    async def save_provider_credentials(self, creds: ProviderCredentials):
        """Store credentials and switch the connection mode to xtream."""
        await self.kv.set_many({
            self.KEYS["xtream_credentials"]: creds.model_dump_json(),
            self.KEYS["connection_type"]: ConnectionMode.XTREAM.value,
        })

    async def get_provider_credentials(self) -> Optional[ProviderCredentials]:
        data = await self._get_json("xtream_credentials")
        if not isinstance(data, dict):
            return None
        try:
            return ProviderCredentials.model_validate(data)
        except ValidationError:
            return None

    # Connection type
    async def save_connection_type(self, mode: ConnectionMode):
        await self.kv.set_many({self.KEYS["connection_type"]: ConnectionMode(mode).value})

    async def get_connection_type(self) -> ConnectionMode:
        raw = await self.kv.get(self.KEYS["connection_type"])
        try:
            return ConnectionMode(raw) if raw else ConnectionMode.M3U
        except ValueError:
            return ConnectionMode.M3U

    async def clear_all(self):
        """Forget every persisted key, favorites included."""
        await self.kv.delete(list(self.KEYS.values()))
