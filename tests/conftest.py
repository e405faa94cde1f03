"""
Pytest configuration and fixtures for channel guide tests.
"""
import json

import httpx
import pytest

from channel_guide.config import Settings
from channel_guide.services.store import PlaylistStore
from tests.fakes import MemoryKeyValueStore


@pytest.fixture
def settings():
    """Settings with short time budgets so timeout tests stay fast."""
    return Settings(
        playlist_timeout_seconds=0.2,
        provider_timeout_seconds=0.2,
        _env_file=None,
    )


@pytest.fixture
def memory_kv():
    return MemoryKeyValueStore()


@pytest.fixture
def playlist_store(memory_kv):
    return PlaylistStore(memory_kv)


@pytest.fixture
def sample_m3u_content():
    """Sample M3U content for testing."""
    return """#EXTM3U
#EXTINF:-1 tvg-id="news1.us" tvg-name="News One" tvg-logo="http://logos.example.com/news1.png" group-title="News" tvg-language="English",News One HD
http://example.com/news1.m3u8
#EXTINF:-1 tvg-logo="" group-title="Sports",Sports Two
https://example.com/sports2.m3u8
#EXTINF:-1,Plain Channel
http://example.com/plain.m3u8
"""


@pytest.fixture
def provider_categories():
    return [
        {"category_id": "1", "category_name": "Sports", "parent_id": 0},
        {"category_id": "2", "category_name": "Movies", "parent_id": 0},
    ]


@pytest.fixture
def provider_streams():
    return [
        {"num": 1, "name": "Sport 1", "stream_type": "live", "stream_id": 101,
         "stream_icon": "http://icons.example.com/s1.png", "epg_channel_id": None, "category_id": "1"},
        {"num": 2, "name": "Cinema", "stream_type": "live", "stream_id": 202,
         "stream_icon": "", "epg_channel_id": "cinema.us", "category_id": "2"},
        {"num": 3, "name": "Mystery", "stream_type": "live", "stream_id": 303,
         "stream_icon": None, "epg_channel_id": None, "category_id": "99"},
    ]


@pytest.fixture
def provider_handler(provider_categories, provider_streams):
    """Factory for an Xtream Codes server mock with a given account status."""
    def factory(status="Active", calls=None):
        def handler(request: httpx.Request) -> httpx.Response:
            if calls is not None:
                calls.append(request.url)
            if request.url.path != "/player_api.php":
                return httpx.Response(404)
            action = request.url.params.get("action")
            if action == "get_live_categories":
                return httpx.Response(200, json=provider_categories)
            if action == "get_live_streams":
                return httpx.Response(200, json=provider_streams)
            return httpx.Response(200, content=json.dumps({
                "user_info": {
                    "username": request.url.params.get("username"),
                    "password": request.url.params.get("password"),
                    "status": status,
                    "exp_date": "1767225600",
                    "active_cons": "0",
                    "max_connections": "1",
                },
                "server_info": {"url": "prov.example.com", "port": "8080"},
            }))
        return handler
    return factory
