"""
Error taxonomy for the API and the FastAPI handlers that render it.

Every error leaves the service as::

    {"errors": {"<field-or-category>": ["<message>", ...]}}

Domain code raises the subclasses below; request-shape problems surface as
FastAPI's ``RequestValidationError`` and are folded into the same body here.
"""
import logging
from collections.abc import Iterable, Mapping, Sequence

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ConduitError(Exception):
    """Base class for errors that map directly onto an HTTP response."""

    status_code: int = 500

    def __init__(self, field: str, *messages: str, errors: Mapping[str, Sequence[str]] | None = None):
        if errors is None:
            errors = {field: list(messages)}
        self.errors = {key: list(value) for key, value in errors.items()}
        super().__init__(f"{field}: {', '.join(messages)}" if messages else field)

    def to_dict(self) -> dict:
        return {"errors": self.errors}


class BadRequest(ConduitError):
    status_code = 400


class Unauthorized(ConduitError):
    status_code = 401


class Forbidden(ConduitError):
    status_code = 403


class NotFound(ConduitError):
    status_code = 404


class ValidationFailed(ConduitError):
    status_code = 422


# ---------------------------------------------------------------------------
# Validation error shaping
# ---------------------------------------------------------------------------

# Request sections FastAPI prefixes onto every error location.
_LOCATIONS = frozenset({"body", "query", "path", "header", "cookie"})

# Entity keys the request payloads are wrapped in.
_WRAPPERS = frozenset({"user", "article", "comment"})


def _field_name(loc: Iterable) -> str:
    """
    Turn a pydantic error location into the public field name.

    ``("body", "article", "title")`` becomes ``"title"``; a missing wrapper
    key (``("body", "article")``) keeps the wrapper name.
    """
    parts = [str(p) for p in loc]
    if parts and parts[0] in _LOCATIONS:
        parts = parts[1:]
    if len(parts) > 1 and parts[0] in _WRAPPERS:
        parts = parts[1:]
    return ".".join(parts) or "body"


def validation_errors_to_fields(errors: Iterable[Mapping]) -> dict[str, list[str]]:
    """Group pydantic error dicts by public field name."""
    fields: dict[str, list[str]] = {}
    for error in errors:
        fields.setdefault(_field_name(error.get("loc", ())), []).append(error.get("msg", "is invalid"))
    return fields


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

async def conduit_exception_handler(request: Request, exc: ConduitError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.errors)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Malformed JSON is a transport problem and answers 400 before any
    validator runs; everything else is a field-level 422.
    """
    errors = exc.errors()
    if any(error.get("type") == "json_invalid" for error in errors):
        body = BadRequest("body", "malformed JSON payload")
        logger.info("%s %s -> 400 malformed JSON", request.method, request.url.path)
        return JSONResponse(status_code=body.status_code, content=body.to_dict())

    failed = ValidationFailed("body", errors=validation_errors_to_fields(errors))
    logger.info("%s %s -> 422 %s", request.method, request.url.path, failed.errors)
    return JSONResponse(status_code=failed.status_code, content=failed.to_dict())
