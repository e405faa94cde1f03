"""
Tests for the SQLite key-value store and the typed playlist store on top of it.
"""
import os

import pytest
import pytest_asyncio

from channel_guide.models.channel import Channel, ConnectionMode, ProviderCredentials
from channel_guide.services.store import PlaylistStore, SQLiteKeyValueStore


@pytest_asyncio.fixture
async def sqlite_store(tmp_path):
    kv = SQLiteKeyValueStore(os.path.join(tmp_path, "nested", "store.db"))
    await kv.initialize()
    return PlaylistStore(kv)


CHANNELS = [
    Channel(id="abc", name="One", url="http://example.com/1.m3u8", group="News"),
    Channel(id="def", name="Two", url="http://example.com/2.m3u8", logo="http://l/2.png", language="German"),
]


class TestSQLiteKeyValueStore:

    @pytest.mark.asyncio
    async def test_upsert_and_delete(self, tmp_path):
        kv = SQLiteKeyValueStore(os.path.join(tmp_path, "kv.db"))
        await kv.initialize()

        await kv.set("a", "1")
        await kv.set_many({"a": "2", "b": "3"})
        assert await kv.get("a") == "2"
        assert await kv.get("b") == "3"

        await kv.delete(["a", "missing"])
        assert await kv.get("a") is None
        assert await kv.get("b") == "3"

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, tmp_path):
        kv = SQLiteKeyValueStore(os.path.join(tmp_path, "kv.db"))
        await kv.initialize()
        await kv.set("key", "value")
        await kv.initialize()

        assert await kv.get("key") == "value"


class TestPlaylistStore:

    @pytest.mark.asyncio
    async def test_playlist_data_round_trip(self, sqlite_store):
        await sqlite_store.save_playlist_data(CHANNELS, ["News", "Uncategorized"], "http://example.com/list.m3u")

        assert await sqlite_store.get_playlist_channels() == CHANNELS
        assert await sqlite_store.get_playlist_categories() == ["News", "Uncategorized"]

        meta = await sqlite_store.get_playlist_meta()
        assert meta.url == "http://example.com/list.m3u"
        assert meta.name == "IPTV Playlist"
        assert meta.channel_count == 2
        assert meta.last_updated > 0

    @pytest.mark.asyncio
    async def test_empty_store(self, sqlite_store):
        assert await sqlite_store.get_playlist_channels() is None
        assert await sqlite_store.get_playlist_categories() is None
        assert await sqlite_store.get_playlist_meta() is None
        assert await sqlite_store.get_playlist_url() is None
        assert await sqlite_store.get_provider_credentials() is None
        assert await sqlite_store.get_favorites() == []
        assert await sqlite_store.get_connection_type() == ConnectionMode.M3U

    @pytest.mark.asyncio
    async def test_corrupt_values_read_as_missing(self, sqlite_store):
        keys = PlaylistStore.KEYS
        await sqlite_store.kv.set_many({
            keys["playlist_channels"]: "[{not json",
            keys["playlist_categories"]: '{"a": 1}',
            keys["xtream_credentials"]: '{"server": "x"}',
            keys["connection_type"]: "carrier-pigeon",
        })

        assert await sqlite_store.get_playlist_channels() is None
        assert await sqlite_store.get_playlist_categories() is None
        assert await sqlite_store.get_provider_credentials() is None
        assert await sqlite_store.get_connection_type() == ConnectionMode.M3U

    @pytest.mark.asyncio
    async def test_malformed_cached_channel_is_dropped(self, sqlite_store):
        await sqlite_store.kv.set_many({
            PlaylistStore.KEYS["playlist_channels"]:
                '[{"id": "ok", "name": "Ok", "url": "http://e/ok"}, {"name": "no url"}]',
        })

        channels = await sqlite_store.get_playlist_channels()
        assert [ch.id for ch in channels] == ["ok"]

    @pytest.mark.asyncio
    async def test_provider_credentials_switch_mode(self, sqlite_store):
        creds = ProviderCredentials(server="http://prov.example.com", username="u", password="p")

        await sqlite_store.save_connection_type(ConnectionMode.M3U)
        await sqlite_store.save_provider_credentials(creds)

        assert await sqlite_store.get_provider_credentials() == creds
        assert await sqlite_store.get_connection_type() == ConnectionMode.XTREAM

    @pytest.mark.asyncio
    async def test_favorites_and_url(self, sqlite_store):
        await sqlite_store.save_favorites(["abc", "def"])
        await sqlite_store.save_playlist_url("http://example.com/list.m3u")

        assert await sqlite_store.get_favorites() == ["abc", "def"]
        assert await sqlite_store.get_playlist_url() == "http://example.com/list.m3u"

    @pytest.mark.asyncio
    async def test_clear_all(self, sqlite_store):
        await sqlite_store.save_playlist_data(CHANNELS, ["News"], "http://example.com/list.m3u")
        await sqlite_store.save_favorites(["abc"])
        await sqlite_store.save_playlist_url("http://example.com/list.m3u")

        await sqlite_store.clear_all()

        assert await sqlite_store.get_playlist_channels() is None
        assert await sqlite_store.get_favorites() == []
        assert await sqlite_store.get_playlist_url() is None
