"""
Comment service: comments on an article.

Comments cannot be edited, only added and deleted by their author.  A
comment is always looked up through its article, so an id that exists but
belongs to another article is treated as missing.
"""
import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from conduit.models import Article, Comment, User
from conduit.schemas import NewComment
from conduit.services import profile_service
from conduit.services.article_service import format_timestamp

logger = logging.getLogger(__name__)


def _comment_to_dict(comment: Comment, following: bool) -> dict:
    return {
        "id": comment.id,
        "createdAt": format_timestamp(comment.created_at),
        "updatedAt": format_timestamp(comment.updated_at),
        "body": comment.body,
        "author": profile_service.serialize_profile(comment.author, following),
    }


async def serialize_comments(
    db: AsyncSession, comments: Sequence[Comment], viewer: User | None = None
) -> list[dict]:
    """Serialise *comments* with ``author.following`` resolved in one query."""
    followed_ids: set[int] = set()
    if viewer is not None and comments:
        followed_ids = await profile_service.following_ids(
            db, viewer.id, {c.author_id for c in comments}
        )
    return [_comment_to_dict(c, c.author_id in followed_ids) for c in comments]


async def serialize_comment(db: AsyncSession, comment: Comment, viewer: User | None = None) -> dict:
    return (await serialize_comments(db, [comment], viewer))[0]


async def add_comment(
    db: AsyncSession, article: Article, author: User, data: NewComment
) -> Comment:
    comment = Comment(body=data.body, article_id=article.id, author_id=author.id)
    db.add(comment)
    await db.flush()
    comment.author = author
    logger.info("Comment id=%d added to article=%s by %s", comment.id, article.slug, author.username)
    return comment


async def get_comments(db: AsyncSession, article: Article) -> list[Comment]:
    """Comments on *article*, oldest first."""
    result = await db.execute(
        select(Comment)
        .where(Comment.article_id == article.id)
        .options(joinedload(Comment.author))
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    return list(result.unique().scalars().all())


async def get_comment(db: AsyncSession, article: Article, comment_id: int) -> Comment | None:
    result = await db.execute(
        select(Comment)
        .where(Comment.id == comment_id, Comment.article_id == article.id)
        .options(joinedload(Comment.author))
    )
    return result.unique().scalar_one_or_none()


async def delete_comment(db: AsyncSession, comment: Comment) -> None:
    await db.delete(comment)
    await db.flush()
