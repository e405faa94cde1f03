"""
Xtream Codes player API client.
Authenticates, lists live categories and streams, and maps them onto channels.
"""
import asyncio
import logging
from typing import Callable, Optional
from urllib.parse import quote, urlencode

import httpx
from pydantic import BaseModel, ValidationError

from channel_guide.models.channel import (
    UNCATEGORIZED,
    Channel,
    IngestionResult,
    ProviderCategory,
    ProviderCredentials,
    ProviderStream,
    ProviderUserInfo,
)
from channel_guide.services.errors import (
    PROVIDER,
    AuthError,
    FetchTimeoutError,
    HttpStatusError,
    InvalidContentError,
    InvalidServerError,
    NetworkUnreachableError,
)

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str], None]


def _validate_records(model: type[BaseModel], items: list) -> list:
    """Validate provider records, dropping the ones that don't fit the schema."""
    records = []
    for item in items:
        try:
            records.append(model.model_validate(item))
        except ValidationError:
            logger.debug(f"Skipping malformed {model.__name__} record: {item!r}")
    return records


class ProviderApiClient:
    """Client for the player_api.php endpoint family."""

    DEFAULT_TIMEOUT = 20.0
    STREAM_EXTENSION = "m3u8"

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = "IPTVPlayer/1.0",
    ):
        self.client = client
        self.timeout = timeout
        self.headers = {"User-Agent": user_agent, "Accept": "*/*"}

    def api_url(self, creds: ProviderCredentials) -> str:
        return f"{creds.normalized_server}/player_api.php"

    async def _request(self, creds: ProviderCredentials, action: Optional[str] = None) -> httpx.Response:
        """Issue one API call under the client's time budget."""
        params = {"username": creds.username, "password": creds.password}
        if action:
            params["action"] = action

        try:
            return await asyncio.wait_for(
                self.client.get(self.api_url(creds), params=params, headers=self.headers),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"Provider request timed out after {self.timeout}s ({action or 'auth'})")
            raise FetchTimeoutError(PROVIDER)
        except httpx.TransportError as e:
            logger.warning(f"Provider request failed ({action or 'auth'}): {e}")
            raise NetworkUnreachableError(PROVIDER)

    async def authenticate(self, creds: ProviderCredentials) -> ProviderUserInfo:
        """Validate credentials; the account must report status Active."""
        response = await self._request(creds)

        if not response.is_success:
            raise InvalidServerError(
                f"Server returned {response.status_code}. Check your credentials.",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = None

        user_info = data.get("user_info") if isinstance(data, dict) else None
        if not isinstance(user_info, dict):
            raise InvalidServerError(
                "Invalid response from server. This may not be an Xtream Codes server."
            )

        info = ProviderUserInfo.model_validate(user_info)
        if info.status != "Active":
            logger.warning(f"Provider account for {creds.username} is {info.status}")
            raise AuthError(info.status)

        return info

    async def _fetch_list(self, creds: ProviderCredentials, action: str, label: str) -> list:
        response = await self._request(creds, action)

        if not response.is_success:
            raise HttpStatusError(
                response.status_code,
                f"Failed to fetch {label}: {response.status_code}",
            )

        try:
            data = response.json()
        except ValueError:
            raise InvalidContentError(f"Invalid {label} response from server.")

        if not isinstance(data, list):
            raise InvalidContentError(f"Invalid {label} response from server.")
        return data

    async def fetch_categories(self, creds: ProviderCredentials) -> list[ProviderCategory]:
        """Fetch live stream categories in server order."""
        data = await self._fetch_list(creds, "get_live_categories", "categories")
        return _validate_records(ProviderCategory, data)

    async def fetch_streams(self, creds: ProviderCredentials) -> list[ProviderStream]:
        """Fetch all live streams."""
        data = await self._fetch_list(creds, "get_live_streams", "streams")
        return _validate_records(ProviderStream, data)

    def build_stream_url(self, creds: ProviderCredentials, stream_id: int) -> str:
        """Build the playback URL for a live stream."""
        return (
            f"{creds.normalized_server}/live/"
            f"{quote(creds.username, safe='')}/{quote(creds.password, safe='')}/"
            f"{stream_id}.{self.STREAM_EXTENSION}"
        )

    def build_m3u_url(self, creds: ProviderCredentials) -> str:
        """Build the get.php playlist URL for the same account."""
        query = urlencode(
            {
                "username": creds.username,
                "password": creds.password,
                "type": "m3u_plus",
                "output": "ts",
            },
            quote_via=quote,
        )
        return f"{creds.normalized_server}/get.php?{query}"

    async def load_channels(
        self,
        creds: ProviderCredentials,
        on_status: Optional[StatusCallback] = None,
    ) -> IngestionResult:
        """
        Full flow: authenticate, fetch categories + streams, convert to channels.

        Cancelling the awaiting task aborts whichever requests are in flight.
        """
        def report(status: str):
            if on_status:
                on_status(status)

        report("Authenticating...")
        await self.authenticate(creds)

        report("Fetching channels...")
        category_task = asyncio.ensure_future(self.fetch_categories(creds))
        stream_task = asyncio.ensure_future(self.fetch_streams(creds))
        try:
            categories, streams = await asyncio.gather(category_task, stream_task)
        except BaseException:
            # Don't leave the sibling request running after a failure or cancel
            category_task.cancel()
            stream_task.cancel()
            raise
        logger.info(f"Fetched {len(categories)} categories and {len(streams)} streams from {creds.normalized_server}")

        report("Processing channels...")
        category_names = {cat.category_id: cat.category_name for cat in categories}
        channels = [
            Channel(
                id=f"xtream_{stream.stream_id}",
                name=stream.name,
                url=self.build_stream_url(creds, stream.stream_id),
                logo=stream.stream_icon or "",
                group=category_names.get(stream.category_id) or UNCATEGORIZED,
                language="",
            )
            for stream in streams
        ]

        return IngestionResult(
            channels=channels,
            categories=[cat.category_name for cat in categories],
        )
