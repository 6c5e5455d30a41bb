import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .exceptions import InternalServerError

logger = logging.getLogger("tokenhub")


def _describe(request: Request, label: str) -> str:
    client = request.client.host if request.client else "-"
    # query strings can carry batch ids and search terms; path is enough here
    return f"[{label}] {request.method} {request.url.path} from {client}"


def _envelope(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> dict:
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details or {}},
    }


def _respond(status_code: int, content: Any, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content=jsonable_encoder(content), headers=headers
    )


async def handle_base_api_exception(request, exc):
    """Domain errors already carry the envelope in ``exc.detail``."""
    line = f"{_describe(request, exc.error_code)} -> {exc.status_code}: {exc.message}"
    if exc.status_code >= 500:
        logger.error(line)
    else:
        logger.warning(line)
    return _respond(exc.status_code, exc.detail, getattr(exc, "headers", None))


async def handle_http_exception(request, exc):
    line = f"{_describe(request, 'HTTPException')} -> {exc.status_code}: {exc.detail}"
    if exc.status_code >= 500:
        tb_str = "".join(traceback.format_tb(exc.__traceback__))
        logger.error(f"{line}\n{tb_str}")
    else:
        logger.warning(line)

    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = _envelope("HTTP_ERROR", str(exc.detail))
    return _respond(exc.status_code, content, getattr(exc, "headers", None))


async def handle_validation_error(request, exc):
    errors = exc.errors()
    logger.warning(f"{_describe(request, 'ValidationError')} -> 422: {errors}")
    return _respond(
        422, _envelope("VALIDATION_001", "Validation failed", {"errors": errors})
    )


async def handle_unexpected_error(request, exc):
    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        f"{_describe(request, 'Unhandled Error')} {type(exc).__name__}: {exc}\n{tb_str}"
    )
    internal = InternalServerError()
    return _respond(internal.status_code, internal.detail)
