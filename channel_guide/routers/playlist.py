"""
Playlist ingestion API endpoints.
Load, refresh and cancel the channel source; read the loading status.
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from channel_guide.dependencies import get_ingestion
from channel_guide.models.channel import PlaylistMeta, ProviderCredentials
from channel_guide.models.status import IngestionStatus
from channel_guide.services.ingestion import IngestionOrchestrator

router = APIRouter(prefix="/api/playlist", tags=["playlist"])


class PlaylistRequest(BaseModel):
    url: str


@router.get("/status", response_model=IngestionStatus)
async def get_status(ingestion: IngestionOrchestrator = Depends(get_ingestion)):
    """Current loading state, phase label, error and channel count."""
    return ingestion.status()


@router.get("/meta", response_model=PlaylistMeta | None)
async def get_meta(ingestion: IngestionOrchestrator = Depends(get_ingestion)):
    """Metadata of the cached channel list, if any."""
    return await ingestion.store.get_playlist_meta()


@router.get("/export")
async def get_export_url(ingestion: IngestionOrchestrator = Depends(get_ingestion)):
    """M3U URL of the current source, usable in any other player."""
    url = ingestion.export_url()
    if not url:
        raise HTTPException(status_code=404, detail="No playlist loaded")
    return {"url": url, "mode": ingestion.mode}


@router.post("/load", response_model=IngestionStatus)
async def load_playlist(
    request: PlaylistRequest,
    ingestion: IngestionOrchestrator = Depends(get_ingestion)
):
    """
    Load channels from a playlist URL.

    Xtream Codes get.php / player_api.php URLs are loaded through the provider API.
    Returns once the load has finished, failed or been cancelled.
    """
    return await ingestion.load_playlist(request.url.strip())


@router.post("/provider", response_model=IngestionStatus)
async def load_provider(
    credentials: ProviderCredentials,
    ingestion: IngestionOrchestrator = Depends(get_ingestion)
):
    """Load live channels from an Xtream Codes provider."""
    return await ingestion.load_provider(credentials)


@router.post("/refresh", response_model=IngestionStatus)
async def refresh(ingestion: IngestionOrchestrator = Depends(get_ingestion)):
    """Reload the current source."""
    return await ingestion.refresh()


@router.post("/cancel", response_model=IngestionStatus)
async def cancel(ingestion: IngestionOrchestrator = Depends(get_ingestion)):
    """Cancel the load in progress; previously loaded channels stay available."""
    return ingestion.cancel()


@router.delete("", response_model=IngestionStatus)
async def clear(ingestion: IngestionOrchestrator = Depends(get_ingestion)):
    """Forget the current source and the cached channel list."""
    return await ingestion.clear()
