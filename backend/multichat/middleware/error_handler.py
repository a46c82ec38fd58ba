from __future__ import annotations

import logging
import traceback

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from multichat.api.envelope import err
from multichat.providers.errors import ProviderConfigError, ProviderNotFoundError

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Known, user-facing failure raised by the action layer."""


def _format_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for entry in exc.errors():
        loc = ".".join(str(x) for x in entry.get("loc", ()) if x != "body")
        msg = entry.get("msg", "Validation error")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Request validation failed"


def full_error_message(exc: Exception) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).strip()


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    message = _format_validation_error(exc)
    logger.warning("Validation error on %s %s: %s", request.method, request.url.path, message)
    return JSONResponse(status_code=422, content=err(message).model_dump())


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=400, content=err(str(exc)).model_dump())


async def provider_error_handler(
    request: Request, exc: ProviderConfigError | ProviderNotFoundError
) -> JSONResponse:
    """Provider unusable before any stream exists, e.g. no API key configured."""
    logger.warning("Provider unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content=err(str(exc)).model_dump())


async def catch_all_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error in %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=err(full_error_message(exc)).model_dump())
