"""
Channel browsing API endpoints.
"""
from collections import Counter
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from channel_guide.dependencies import get_ingestion
from channel_guide.models.channel import Channel
from channel_guide.services.ingestion import IngestionOrchestrator

router = APIRouter(prefix="/api", tags=["channels"])


@router.get("/channels")
async def list_channels(
    category: Optional[str] = Query(None, description="Filter by category name (\"All\" for every category)"),
    search: Optional[str] = Query(None, description="Search in channel names and categories"),
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(50, ge=1, le=500, description="Results per page"),
    ingestion: IngestionOrchestrator = Depends(get_ingestion),
):
    """
    List loaded channels with filtering and pagination.

    - **category**: Category name from /api/categories
    - **search**: Case-insensitive match on channel name or category
    """
    channels = ingestion.filter_channels(category=category, search=search)
    total = len(channels)
    offset = (page - 1) * per_page

    return {
        "channels": channels[offset:offset + per_page],
        "total": total,
        "page": page,
        "per_page": per_page,
        "has_more": (page * per_page) < total,
    }


@router.get("/channels/{channel_id}", response_model=Channel)
async def get_channel(channel_id: str, ingestion: IngestionOrchestrator = Depends(get_ingestion)):
    """Get a single channel by its stable ID."""
    channel = ingestion.get_channel(channel_id)
    if not channel:
        raise HTTPException(status_code=404, detail="Channel not found")
    return channel


@router.get("/categories")
async def list_categories(ingestion: IngestionOrchestrator = Depends(get_ingestion)):
    """Categories in display order with their channel counts."""
    counts = Counter(ch.group for ch in ingestion.channels)
    return [
        {"name": name, "channel_count": counts.get(name, 0)}
        for name in ingestion.categories
    ]
