"""
Ingestion status models exposed to the UI layer.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from channel_guide.models.channel import ConnectionMode


class LoadState(str, Enum):
    """Lifecycle of the latest ingestion attempt."""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ErrorKind(str, Enum):
    """Closed set of user-facing failure categories."""
    TIMEOUT = "timeout"
    NETWORK = "network"
    HTTP = "http"
    INVALID_CONTENT = "invalid_content"
    AUTH = "auth"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class ErrorInfo(BaseModel):
    """Human-readable failure surfaced instead of raw exception text."""
    kind: ErrorKind
    message: str
    retryable: bool = False
    status_code: Optional[int] = None


class IngestionStatus(BaseModel):
    """Snapshot of the orchestrator's reactive fields."""
    state: LoadState = LoadState.IDLE
    loading: bool = False
    loading_status: str = ""
    error: Optional[ErrorInfo] = None
    channel_count: int = 0
    category_count: int = 0
    source: Optional[str] = None
    mode: Optional[ConnectionMode] = None
