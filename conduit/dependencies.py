import logging

from fastapi import Depends, Query, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.database import get_db
from conduit.exceptions import Unauthorized
from conduit.models import User
from conduit.security import InvalidToken, strip_token_prefix, verify_token
from conduit.services import user_service

logger = logging.getLogger(__name__)

# Reads the raw header; "Token <jwt>" is not a scheme HTTPBearer understands.
authorization_header = APIKeyHeader(name="Authorization", auto_error=False)


# Largest value a BIGINT bind parameter accepts.
_MAX_BIND_INT = 2**63 - 1


def _parse_int(raw: str | None, default: int, minimum: int, maximum: int = _MAX_BIND_INT) -> int:
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        return default
    return value if minimum <= value <= maximum else default


class PaginationParams:
    """
    Reusable FastAPI dependency for ``limit`` / ``offset`` query parameters.

    Both are accepted as raw strings so that garbage such as
    ``?limit=abc&offset=xyz`` falls back to the defaults instead of failing
    the request.

    Attributes
    ----------
    limit:
        Page size; defaults to ``settings.DEFAULT_PAGE_SIZE`` when missing,
        non-numeric or below 1, and is clamped to ``settings.MAX_PAGE_SIZE``.
    offset:
        Number of rows to skip; defaults to 0 when missing, non-numeric,
        negative or too large for a 64-bit bind parameter.
    """

    def __init__(
        self,
        limit: str | None = Query(
            None,
            description="Number of items to return (default 20, max 100).",
        ),
        offset: str | None = Query(
            None,
            description="Number of items to skip (default 0).",
        ),
    ) -> None:
        self.limit = min(
            _parse_int(limit, settings.DEFAULT_PAGE_SIZE, minimum=1),
            settings.MAX_PAGE_SIZE,
        )
        self.offset = _parse_int(offset, 0, minimum=0)


class TokenAuth:
    """
    Resolve the requesting user from ``Authorization: Token <jwt>``.

    ============  =================  ==================
    header        required=True      required=False
    ============  =================  ==================
    absent        401                anonymous (None)
    invalid       401                401
    valid         User               User
    ============  =================  ==================
    """

    def __init__(self, required: bool = True) -> None:
        self.required = required

    async def __call__(
        self,
        request: Request,
        authorization: str | None = Depends(authorization_header),
        db: AsyncSession = Depends(get_db),
    ) -> User | None:
        if authorization is None:
            if self.required:
                raise Unauthorized("token", "authorization token is required")
            return None

        try:
            user_id = verify_token(strip_token_prefix(authorization))
        except InvalidToken as exc:
            logger.warning("Rejected token on %s %s: %s", request.method, request.url.path, exc)
            raise Unauthorized("token", "invalid or expired token") from exc

        user = await user_service.get_user(db, user_id)
        if user is None:
            logger.warning("Token for unknown user id=%s on %s", user_id, request.url.path)
            raise Unauthorized("token", "invalid or expired token")

        return user


require_user = TokenAuth(required=True)
optional_user = TokenAuth(required=False)
