"""
Playlist ingestion service.

Owns the in-memory channel list and decides how to (re)load it: from the
persisted cache, from an M3U URL, or from an Xtream Codes provider. At most
one load runs at a time; starting a new one cancels the previous one, and a
cancelled or superseded load never touches shared state.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from channel_guide.config import Settings, get_settings
from channel_guide.models.channel import (
    Channel,
    ConnectionMode,
    IngestionResult,
    ProviderCredentials,
)
from channel_guide.models.status import ErrorInfo, ErrorKind, IngestionStatus, LoadState
from channel_guide.services.errors import (
    PLAYLIST,
    PROVIDER,
    FetchTimeoutError,
    HttpStatusError,
    IngestionCancelled,
    InvalidContentError,
    NetworkUnreachableError,
    classify_error,
)
from channel_guide.services.m3u_parser import parse_m3u
from channel_guide.services.provider_api import ProviderApiClient
from channel_guide.services.store import PlaylistStore
from channel_guide.services.url_classifier import classify_url

logger = logging.getLogger(__name__)


class _Attempt:
    """Handle for one in-flight load; its task doubles as the cancellation token."""

    def __init__(self, seq: int, source: str):
        self.seq = seq
        self.source = source
        self.task: Optional[asyncio.Task] = None

    def cancel(self):
        if self.task is not None and not self.task.done():
            self.task.cancel()


class IngestionOrchestrator:
    """Fetches, parses, caches and exposes the channel list."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        store: PlaylistStore,
        provider: Optional[ProviderApiClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.client = client
        self.store = store
        self.provider = provider or ProviderApiClient(
            client,
            timeout=self.settings.provider_timeout_seconds,
            user_agent=self.settings.user_agent,
        )
        self.headers = {"User-Agent": self.settings.user_agent, "Accept": "*/*"}

        self.channels: list[Channel] = []
        self.categories: list[str] = []
        self.state = LoadState.IDLE
        self.loading_status = ""
        self.error: Optional[ErrorInfo] = None

        # Session: the last source that loaded successfully (or was restored)
        self.current_url: Optional[str] = None
        self.current_credentials: Optional[ProviderCredentials] = None
        self.mode: Optional[ConnectionMode] = None

        self._attempt: Optional[_Attempt] = None
        self._attempt_seq = 0
        self._background: set[asyncio.Task] = set()
        self._last_persist: Optional[asyncio.Task] = None

    # ==================== STATUS ====================

    @property
    def loading(self) -> bool:
        return self.state == LoadState.LOADING

    @property
    def channel_count(self) -> int:
        return len(self.channels)

    def status(self) -> IngestionStatus:
        """Snapshot of the reactive fields for the UI layer."""
        if self.mode == ConnectionMode.XTREAM and self.current_credentials:
            source = f"xtream://{self.current_credentials.server}"
        else:
            source = self.current_url
        return IngestionStatus(
            state=self.state,
            loading=self.loading,
            loading_status=self.loading_status,
            error=self.error,
            channel_count=self.channel_count,
            category_count=len(self.categories),
            source=source,
            mode=self.mode,
        )

    def filter_channels(self, category: Optional[str] = None, search: Optional[str] = None) -> list[Channel]:
        """Channels in one category (None or "All" for every category) matching a search term."""
        result = self.channels
        if category and category != "All":
            result = [ch for ch in result if ch.group == category]
        if search and search.strip():
            query = search.strip().lower()
            result = [
                ch for ch in result
                if query in ch.name.lower() or query in ch.group.lower()
            ]
        return result

    def export_url(self) -> Optional[str]:
        """Playlist URL for the current source; providers get their get.php URL."""
        if self.mode == ConnectionMode.XTREAM and self.current_credentials:
            return self.provider.build_m3u_url(self.current_credentials)
        return self.current_url

    def get_channel(self, channel_id: str) -> Optional[Channel]:
        for channel in self.channels:
            if channel.id == channel_id:
                return channel
        return None

    # ==================== STARTUP ====================

    async def initialize(self) -> IngestionStatus:
        """
        Restore the previous session.

        Cached channels win and need no network. Otherwise reload from the
        stored provider credentials (when the saved mode is xtream) or from
        the stored playlist URL. With nothing stored, stay idle.

        Any load started before or during the cache read wins; the restore
        then leaves state alone.
        """
        if self._restore_superseded(0):
            logger.info("Skipping restore, a playlist is already loading or loaded")
            return self.status()

        seq = self._attempt_seq
        self.state = LoadState.LOADING
        self.loading_status = "Loading cached data..."

        try:
            channels, categories, url, mode, creds = await asyncio.gather(
                self.store.get_playlist_channels(),
                self.store.get_playlist_categories(),
                self.store.get_playlist_url(),
                self.store.get_connection_type(),
                self.store.get_provider_credentials(),
            )
        except Exception as e:
            if self._restore_superseded(seq):
                logger.warning(f"Failed to load cached playlist: {e}")
                return self.status()
            logger.error(f"Failed to load cached playlist: {e}")
            self.state = LoadState.FAILED
            self.error = ErrorInfo(
                kind=ErrorKind.UNKNOWN,
                message="Failed to load cached playlist",
                retryable=True,
            )
            return self.status()

        if self._restore_superseded(seq):
            logger.info("Discarding cached playlist, a newer load took over")
            return self.status()

        self.current_url = url
        self.current_credentials = creds
        if mode == ConnectionMode.XTREAM and creds:
            self.mode = ConnectionMode.XTREAM
        elif url:
            self.mode = ConnectionMode.M3U

        if channels:
            self.channels = channels
            self.categories = categories or []
            self.state = LoadState.READY
            self.loading_status = f"Loaded {len(channels)} channels"
            logger.info(f"Restored {len(channels)} cached channels")
            return self.status()

        if self.mode == ConnectionMode.XTREAM:
            logger.info("Cache empty, reloading from provider")
            return await self.load_provider(creds)

        if url:
            logger.info("Cache empty, reloading playlist URL")
            return await self.load_playlist(url)

        self.state = LoadState.IDLE
        self.loading_status = ""
        return self.status()

    # ==================== PUBLIC OPERATIONS ====================

    async def load_playlist(self, url: str) -> IngestionStatus:
        """Load an M3U URL, routing disguised provider URLs to the provider path."""
        creds = classify_url(url)
        if creds is not None:
            logger.info(f"Detected Xtream Codes URL, switching to provider API for {creds.server}")
            return await self.load_provider(creds)

        async def work(attempt: _Attempt) -> IngestionResult:
            return await self._fetch_playlist(attempt, url)

        def commit(result: IngestionResult):
            self.current_url = url
            self.mode = ConnectionMode.M3U
            self._persist_in_background(self._persist_playlist(result, url))

        return await self._run_attempt(PLAYLIST, work, commit, "Connecting to server...")

    async def load_provider(self, creds: ProviderCredentials) -> IngestionStatus:
        """Load live channels from an Xtream Codes provider."""
        async def work(attempt: _Attempt) -> IngestionResult:
            result = await self.provider.load_channels(
                creds,
                on_status=lambda status: self._set_phase(attempt, status),
            )
            if not result.channels:
                raise InvalidContentError("No live channels found on this server.")
            return result

        def commit(result: IngestionResult):
            self.current_credentials = creds
            self.mode = ConnectionMode.XTREAM
            self._persist_in_background(self._persist_provider(result, creds))

        return await self._run_attempt(PROVIDER, work, commit, "Connecting to server...")

    async def refresh(self) -> IngestionStatus:
        """Reload the current source; does nothing when there is none."""
        if self.mode == ConnectionMode.XTREAM and self.current_credentials:
            return await self.load_provider(self.current_credentials)
        if self.current_url:
            return await self.load_playlist(self.current_url)
        logger.info("Refresh requested with no playlist configured")
        return self.status()

    def cancel(self) -> IngestionStatus:
        """Abort the in-flight load, keeping whatever was loaded before."""
        attempt = self._abort_inflight()
        if attempt is not None:
            logger.info(f"Cancelled {attempt.source} load #{attempt.seq}")
            self._mark_cancelled()
        return self.status()

    async def clear(self) -> IngestionStatus:
        """Forget the current source, the loaded channels and everything persisted."""
        self._abort_inflight()
        await self.flush()
        await self.store.clear_all()

        self.channels = []
        self.categories = []
        self.current_url = None
        self.current_credentials = None
        self.mode = None
        self.state = LoadState.IDLE
        self.loading_status = ""
        self.error = None
        logger.info("Cleared playlist session and cache")
        return self.status()

    async def flush(self):
        """Wait for background persistence to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def close(self):
        """Abort any load and let pending writes land."""
        self._abort_inflight()
        await self.flush()

    # ==================== ATTEMPT LIFECYCLE ====================

    async def _run_attempt(
        self,
        source: str,
        work: Callable[[_Attempt], Awaitable[IngestionResult]],
        commit: Callable[[IngestionResult], None],
        initial_status: str,
    ) -> IngestionStatus:
        superseded = self._abort_inflight()
        if superseded is not None:
            logger.info(f"Superseding {superseded.source} load #{superseded.seq}")

        self._attempt_seq += 1
        attempt = _Attempt(self._attempt_seq, source)
        self._attempt = attempt
        self.state = LoadState.LOADING
        self.error = None
        self.loading_status = initial_status

        attempt.task = asyncio.create_task(work(attempt))
        try:
            await asyncio.wait({attempt.task})
        except asyncio.CancelledError:
            # The caller went away; the load goes with it
            attempt.cancel()
            if self._attempt is attempt:
                self._attempt = None
                self._mark_cancelled()
            raise

        if self._attempt is not attempt:
            # Cancelled or superseded while running; state belongs to someone else now
            logger.debug(f"Discarding outcome of stale {source} load #{attempt.seq}")
            if not attempt.task.cancelled():
                attempt.task.exception()
            return self.status()
        self._attempt = None

        if attempt.task.cancelled():
            self._mark_cancelled()
            return self.status()

        exc = attempt.task.exception()
        if exc is not None:
            error = classify_error(exc, source)
            if isinstance(error, IngestionCancelled):
                self._mark_cancelled()
            else:
                logger.error(f"{source.capitalize()} load failed: {error.message}")
                self.state = LoadState.FAILED
                self.error = error.to_info()
            return self.status()

        result = attempt.task.result()
        self.channels = result.channels
        self.categories = result.categories
        self.state = LoadState.READY
        self.loading_status = f"Loaded {len(result.channels)} channels"
        commit(result)
        logger.info(f"✅ Loaded {len(result.channels)} channels in {len(result.categories)} categories")
        return self.status()

    def _abort_inflight(self) -> Optional[_Attempt]:
        attempt = self._attempt
        self._attempt = None
        if attempt is not None:
            attempt.cancel()
        return attempt

    def _restore_superseded(self, seq: int) -> bool:
        return self._attempt is not None or self._attempt_seq != seq

    def _mark_cancelled(self):
        self.state = LoadState.CANCELLED
        self.error = IngestionCancelled().to_info()

    def _set_phase(self, attempt: _Attempt, status: str):
        if self._attempt is attempt:
            self.loading_status = status

    async def _fetch_playlist(self, attempt: _Attempt, url: str) -> IngestionResult:
        request = self.client.build_request("GET", url, headers=self.headers)
        try:
            response = await asyncio.wait_for(
                self.client.send(request, stream=True, follow_redirects=True),
                timeout=self.settings.playlist_timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise FetchTimeoutError(PLAYLIST)
        except httpx.TransportError as e:
            logger.warning(f"Playlist request failed for {url}: {e}")
            raise NetworkUnreachableError(PLAYLIST)

        try:
            if not response.is_success:
                raise HttpStatusError(
                    response.status_code,
                    f"Server returned {response.status_code} ({response.reason_phrase or 'error'})",
                )
            self._set_phase(attempt, "Downloading playlist...")
            try:
                await response.aread()
            except httpx.TimeoutException:
                raise FetchTimeoutError(PLAYLIST)
            except httpx.TransportError:
                raise NetworkUnreachableError(PLAYLIST)
        finally:
            await response.aclose()

        content = response.text
        if not content or not content.strip():
            raise InvalidContentError("Server returned an empty response")

        self._set_phase(attempt, "Parsing channels...")
        result = parse_m3u(content)
        if not result.channels:
            raise InvalidContentError("No channels found. The URL may not be a valid M3U playlist.")
        return result

    # ==================== PERSISTENCE ====================

    def _persist_in_background(self, coro: Awaitable[None]):
        """Queue a write behind the previous commit's so the newest source lands last."""
        previous = self._last_persist

        async def run():
            if previous is not None and not previous.done():
                await asyncio.wait({previous})
            await coro

        task = asyncio.ensure_future(run())
        self._last_persist = task
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _persist_playlist(self, result: IngestionResult, url: str):
        try:
            await self.store.save_playlist_data(result.channels, result.categories, url)
            await self.store.save_playlist_url(url)
            await self.store.save_connection_type(ConnectionMode.M3U)
        except Exception as e:
            logger.warning(f"Failed to persist playlist (cache is best-effort): {e}")

    async def _persist_provider(self, result: IngestionResult, creds: ProviderCredentials):
        try:
            await self.store.save_playlist_data(
                result.channels, result.categories, f"xtream://{creds.server}"
            )
            await self.store.save_provider_credentials(creds)
        except Exception as e:
            logger.warning(f"Failed to persist provider data (cache is best-effort): {e}")
