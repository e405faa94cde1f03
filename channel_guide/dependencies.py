"""
FastAPI dependencies shared by the routers.
"""
from fastapi import Request

from channel_guide.services.ingestion import IngestionOrchestrator


def get_ingestion(request: Request) -> IngestionOrchestrator:
    """The orchestrator built by the app lifespan."""
    return request.app.state.ingestion
