"""
Ingestion error taxonomy.

Every failure that can end an ingestion attempt is converted into one of these
exceptions before it reaches the UI layer, so the status surface only ever
carries a short, human-readable message plus a closed error kind.
"""
import asyncio
import json
from typing import Optional

import httpx

from channel_guide.models.status import ErrorInfo, ErrorKind

PLAYLIST = "playlist"
PROVIDER = "provider"


class IngestionError(Exception):
    """Base class for ingestion failures."""

    kind = ErrorKind.UNKNOWN
    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_info(self) -> ErrorInfo:
        return ErrorInfo(
            kind=self.kind,
            message=self.message,
            retryable=self.retryable,
            status_code=self.status_code,
        )


class FetchTimeoutError(IngestionError):
    """A network call exceeded its time budget."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, source: str = PLAYLIST):
        if source == PROVIDER:
            message = "Connection timed out. The server took too long to respond."
        else:
            message = (
                "Connection timed out. The server took too long to respond. "
                "Check the URL and try again."
            )
        super().__init__(message)
        self.source = source


class NetworkUnreachableError(IngestionError):
    """DNS failure, refused connection or another transport-level error."""

    kind = ErrorKind.NETWORK

    def __init__(self, source: str = PLAYLIST):
        if source == PROVIDER:
            message = "Network error. Check your internet connection and server URL."
        else:
            message = (
                "Network error. Check your internet connection and make sure "
                "the URL is correct."
            )
        super().__init__(message)
        self.source = source


class HttpStatusError(IngestionError):
    """The server answered with a non-2xx status."""

    kind = ErrorKind.HTTP
    retryable = False

    def __init__(self, status_code: int, message: Optional[str] = None):
        super().__init__(message or f"Server returned {status_code}", status_code=status_code)


class InvalidContentError(IngestionError):
    """Empty body, unparseable JSON or no channels extracted."""

    kind = ErrorKind.INVALID_CONTENT
    retryable = False


class InvalidServerError(InvalidContentError):
    """The server does not behave like an Xtream Codes player API."""


class AuthError(IngestionError):
    """The provider reports an account status other than Active."""

    kind = ErrorKind.AUTH
    retryable = False

    def __init__(self, account_status: Optional[str]):
        super().__init__(f"Account status: {account_status}. Contact your provider.")
        self.account_status = account_status


class IngestionCancelled(IngestionError):
    """The attempt was aborted by the user or superseded by a newer one."""

    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "Load cancelled"):
        super().__init__(message)


def classify_error(exc: BaseException, source: str = PLAYLIST) -> IngestionError:
    """Map any exception raised during an attempt onto the ingestion taxonomy."""
    if isinstance(exc, IngestionError):
        return exc
    if isinstance(exc, asyncio.CancelledError):
        return IngestionCancelled()
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return FetchTimeoutError(source)
    if isinstance(exc, httpx.HTTPStatusError):
        return HttpStatusError(exc.response.status_code)
    if isinstance(exc, httpx.TransportError):
        return NetworkUnreachableError(source)
    if isinstance(exc, (json.JSONDecodeError, ValueError)):
        return InvalidContentError("The server returned data that could not be read.")
    fallback = "Failed to connect to Xtream server" if source == PROVIDER else "Failed to load playlist"
    return IngestionError(str(exc) or fallback)
