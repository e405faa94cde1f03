"""
Channel Guide - FastAPI Backend

Ingests M3U playlists and Xtream Codes providers and serves the channel guide.
"""
import asyncio
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from channel_guide.config import get_settings
from channel_guide.routers import channels, favorites, playlist
from channel_guide.services.ingestion import IngestionOrchestrator
from channel_guide.services.store import PlaylistStore, SQLiteKeyValueStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

settings = get_settings()

# Rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"]
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("Starting Channel Guide Backend...")

    kv = SQLiteKeyValueStore(settings.database_path)
    await kv.initialize()
    logger.info("Persistent store initialized")

    client = httpx.AsyncClient()
    ingestion = IngestionOrchestrator(client, PlaylistStore(kv), settings=settings)
    app.state.ingestion = ingestion

    # Restore the previous session without holding up startup
    restore_task = None
    if settings.restore_on_startup:
        restore_task = asyncio.create_task(ingestion.initialize())

    yield

    logger.info("Shutting down Channel Guide Backend...")
    if restore_task is not None and not restore_task.done():
        restore_task.cancel()
        await asyncio.gather(restore_task, return_exceptions=True)
    await ingestion.close()
    await client.aclose()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Channel guide backed by M3U playlists and Xtream Codes providers",
    lifespan=lifespan
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(playlist.router)
app.include_router(channels.router)
app.include_router(favorites.router)


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


# Error handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "channel_guide.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
