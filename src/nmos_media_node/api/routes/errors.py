"""Mapping of node errors to HTTP responses."""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import HTTPException

from nmos_media_node.domain.errors import (
    DuplicateResourceError,
    InvalidStagedRequestError,
    NoMatchingInterfaceError,
    ResourceNotFoundError,
    SdpParseError,
    UnsupportedFormatError,
)

logger = logging.getLogger(__name__)


def raise_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, ResourceNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, DuplicateResourceError):
        raise HTTPException(status_code=409, detail=str(exc))
    validation_errors = (
        SdpParseError
        | UnsupportedFormatError
        | NoMatchingInterfaceError
        | InvalidStagedRequestError
    )
    if isinstance(exc, validation_errors):
        raise HTTPException(status_code=400, detail=str(exc))
    logger.error("Unexpected node error", exc_info=exc)
    raise HTTPException(status_code=500, detail="Unexpected node error")


__all__ = ["raise_http_exception"]
