"""Translate engine errors into HTTP errors."""

import structlog
from fastapi import HTTPException

from leaguesync.services.errors import (
    ConfigurationError,
    MappingError,
    ProviderError,
    RecordNotFoundError,
    SyncAlreadyRunningError,
)

logger = structlog.get_logger(__name__)


def to_http_error(error: Exception) -> HTTPException:
    """Map an engine error to the HTTP status the API reports."""
    if isinstance(error, (RecordNotFoundError, ConfigurationError)):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, SyncAlreadyRunningError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, (MappingError, ValueError)):
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, ProviderError):
        return HTTPException(status_code=502, detail=f"Provider error: {error}")
    logger.error("request_failed", error=str(error), error_type=type(error).__name__)
    return HTTPException(status_code=500, detail=str(error))
