"""
Detects Xtream Codes URLs pasted in place of a plain playlist URL.
"""
from typing import Optional
from urllib.parse import parse_qs, urlparse

from channel_guide.models.channel import ProviderCredentials

PROVIDER_PATH_MARKERS = ("get.php", "player_api.php")


def classify_url(url: str) -> Optional[ProviderCredentials]:
    """
    Extract provider credentials from a get.php / player_api.php URL.

    Returns None for anything else, including strings that are not URLs.
    """
    try:
        parsed = urlparse(url.strip())
        if not parsed.scheme or not parsed.netloc:
            return None
        if not any(marker in parsed.path for marker in PROVIDER_PATH_MARKERS):
            return None

        query = parse_qs(parsed.query)
        username = (query.get("username") or [""])[0]
        password = (query.get("password") or [""])[0]
        if not username or not password:
            return None

        # Rebuild from host and port so any user:pass@ prefix is dropped
        host = parsed.hostname
        if not host:
            return None
        if ":" in host:
            host = f"[{host}]"
        if parsed.port is not None:
            host = f"{host}:{parsed.port}"

        return ProviderCredentials(
            server=f"{parsed.scheme}://{host}",
            username=username,
            password=password,
        )
    except (ValueError, AttributeError):
        return None
