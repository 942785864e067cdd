from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.config import settings
from conduit.database import get_db
from conduit.dependencies import optional_user, require_user
from conduit.exceptions import NotFound
from conduit.models import User
from conduit.routers.articles import get_article_or_404
from conduit.schemas import CommentListResponse, CommentResponse, NewCommentRequest
from conduit.services import comment_service

router = APIRouter(prefix=f"{settings.API_PREFIX}/articles/{{slug}}/comments", tags=["comments"])

# Comment ids are 32-bit serial keys.
_MAX_COMMENT_ID = 2**31 - 1


def _parse_comment_id(raw: str) -> int | None:
    if not (raw.isascii() and raw.isdigit()):
        return None
    value = int(raw)
    return value if value <= _MAX_COMMENT_ID else None


@router.get("", response_model=CommentListResponse)
async def list_comments(
    slug: str,
    viewer: User | None = Depends(optional_user),
    db: AsyncSession = Depends(get_db),
):
    article = await get_article_or_404(slug, db)
    comments = await comment_service.get_comments(db, article)
    return {"comments": await comment_service.serialize_comments(db, comments, viewer)}

@router.post("", status_code=201, response_model=CommentResponse)
async def add_comment(
    slug: str,
    payload: NewCommentRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    article = await get_article_or_404(slug, db)
    comment = await comment_service.add_comment(db, article, user, payload.comment)
    return {"comment": await comment_service.serialize_comment(db, comment, user)}

# The id is taken as a string so a non-numeric id is a 404 rather than a 422.
@router.delete("/{comment_id}")
async def delete_comment(
    slug: str,
    comment_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    article = await get_article_or_404(slug, db)
    comment = None
    parsed_id = _parse_comment_id(comment_id)
    if parsed_id is not None:
        comment = await comment_service.get_comment(db, article, parsed_id)
    if comment is None or comment.author_id != user.id:
        raise NotFound("comment", "not found")
    await comment_service.delete_comment(db, comment)
    return {"comment": "Delete success"}
