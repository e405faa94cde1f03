"""
Favorites API endpoints.
Reads and replaces the persisted list of favorite channel IDs.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from channel_guide.dependencies import get_ingestion
from channel_guide.services.ingestion import IngestionOrchestrator

router = APIRouter(prefix="/api/favorites", tags=["favorites"])


class FavoritesRequest(BaseModel):
    channel_ids: list[str] = []


def _favorites_response(ingestion: IngestionOrchestrator, channel_ids: list[str]) -> dict:
    # IDs whose channel is not in the current playlist stay stored but unresolved
    channels = [ch for ch in map(ingestion.get_channel, channel_ids) if ch]
    return {
        "favorites": channel_ids,
        "channels": channels,
        "count": len(channel_ids),
    }


@router.get("")
async def get_favorites(ingestion: IngestionOrchestrator = Depends(get_ingestion)):
    """Favorite channel IDs plus the channels they resolve to."""
    channel_ids = await ingestion.store.get_favorites()
    return _favorites_response(ingestion, channel_ids)


@router.put("")
async def replace_favorites(
    request: FavoritesRequest,
    ingestion: IngestionOrchestrator = Depends(get_ingestion)
):
    """Replace the stored favorites list, keeping the given order."""
    channel_ids = list(dict.fromkeys(request.channel_ids))
    await ingestion.store.save_favorites(channel_ids)
    return _favorites_response(ingestion, channel_ids)
