"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Eager loading via ``joinedload`` (many-to-one: author) and
  ``selectinload`` (many-to-many: tags) is used throughout to eliminate
  N+1 queries.  The ``unique()`` call is required after any query that
  uses ``joinedload`` to deduplicate the joined rows.
- Per-viewer data (favorited, favoritesCount, author.following) is
  resolved for a whole page at once in ``serialize_articles``, so a list
  costs the same number of statements whether it holds 1 or 100 rows.
- Tag and favorite links are written with explicit INSERT / DELETE on the
  association tables; the ORM collections are read-only views.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import logging
import re
import secrets
import string
import unicodedata
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from conduit.models import Article, Comment, Tag, User, article_tags, favorites, follows, utcnow
from conduit.schemas import NewArticle, UpdateArticle
from conduit.services import profile_service, tag_service

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]", re.ASCII)
_SLUG_SPACE_RE = re.compile(r"[\s_]+", re.ASCII)
_SLUG_DASH_RE = re.compile(r"-+")

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_SUFFIX_LENGTH = 6


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase ASCII slug derived from *text*."""
    # Decompose accented letters and keep their base characters.
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def _random_suffix() -> str:
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(_SUFFIX_LENGTH))


async def _slug_taken(db: AsyncSession, slug: str) -> bool:
    result = await db.execute(select(Article.id).where(Article.slug == slug))
    return result.first() is not None


async def unique_slug(db: AsyncSession, title: str) -> str:
    """
    Slug for *title* that no existing article uses.

    A random suffix is appended only on collision; a title with no slug
    characters at all gets a purely random slug.
    """
    base = slugify(title)
    slug = base or _random_suffix()
    while await _slug_taken(db, slug):
        slug = f"{base}-{_random_suffix()}" if base else _random_suffix()
    return slug


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _base_query():
    return select(Article).options(joinedload(Article.author), selectinload(Article.tags))


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _article_to_dict(
    article: Article, favorited: bool, favorites_count: int, following: bool
) -> dict:
    return {
        "slug": article.slug,
        "title": article.title,
        "description": article.description,
        "body": article.body,
        "tagList": [t.name for t in article.tags],
        "createdAt": format_timestamp(article.created_at),
        "updatedAt": format_timestamp(article.updated_at),
        "favorited": favorited,
        "favoritesCount": favorites_count,
        "author": profile_service.serialize_profile(article.author, following),
    }


async def serialize_articles(
    db: AsyncSession, articles: Sequence[Article], viewer: User | None = None
) -> list[dict]:
    """
    Serialise *articles* as seen by *viewer* (None for anonymous).

    Issues at most three statements regardless of page size: favourite
    counts, the viewer's favourites, and the viewer's follows.
    """
    if not articles:
        return []
    article_ids = [a.id for a in articles]

    counts_result = await db.execute(
        select(favorites.c.article_id, func.count())
        .where(favorites.c.article_id.in_(article_ids))
        .group_by(favorites.c.article_id)
    )
    counts = {article_id: count for article_id, count in counts_result.all()}

    favorited_ids: set[int] = set()
    followed_ids: set[int] = set()
    if viewer is not None:
        fav_result = await db.execute(
            select(favorites.c.article_id).where(
                favorites.c.user_id == viewer.id,
                favorites.c.article_id.in_(article_ids),
            )
        )
        favorited_ids = set(fav_result.scalars().all())
        followed_ids = await profile_service.following_ids(
            db, viewer.id, {a.author_id for a in articles}
        )

    return [
        _article_to_dict(
            a,
            favorited=a.id in favorited_ids,
            favorites_count=counts.get(a.id, 0),
            following=a.author_id in followed_ids,
        )
        for a in articles
    ]


async def serialize_article(db: AsyncSession, article: Article, viewer: User | None = None) -> dict:
    return (await serialize_articles(db, [article], viewer))[0]


# ---------------------------------------------------------------------------
# Tag links
# ---------------------------------------------------------------------------

async def set_tags(db: AsyncSession, article: Article, tag_names: Sequence[str]) -> None:
    """
    Replace the tags of *article* with *tag_names*.

    Duplicates are collapsed keeping first occurrence, and the given order is
    preserved through ``article_tags.position``.
    """
    await db.execute(delete(article_tags).where(article_tags.c.article_id == article.id))

    names = list(dict.fromkeys(name for name in tag_names if name))
    tags: list[Tag] = [await tag_service.get_or_create_tag(db, name) for name in names]
    if tags:
        await db.execute(
            insert(article_tags),
            [
                {"article_id": article.id, "tag_id": tag.id, "position": position}
                for position, tag in enumerate(tags)
            ],
        )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def get_article(db: AsyncSession, slug: str) -> Article | None:
    """Return the article with *slug* (author and tags loaded), or None."""
    result = await db.execute(
        _base_query()
        .where(Article.slug == slug)
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def find_articles(
    db: AsyncSession,
    tag: str | None = None,
    author: str | None = None,
    favorited: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Article], int]:
    """
    Return one page of articles matching every given filter, newest first,
    together with the total number of matches.

    Filters are ANDed; an empty string counts as "not given".
    """
    conditions = []
    if tag:
        conditions.append(
            Article.id.in_(
                select(article_tags.c.article_id)
                .join(Tag, Tag.id == article_tags.c.tag_id)
                .where(Tag.name == tag)
            )
        )
    if author:
        conditions.append(
            Article.author_id.in_(select(User.id).where(User.username == author))
        )
    if favorited:
        conditions.append(
            Article.id.in_(
                select(favorites.c.article_id)
                .join(User, User.id == favorites.c.user_id)
                .where(User.username == favorited)
            )
        )
    return await _paginate(db, conditions, limit, offset)


async def get_feed(
    db: AsyncSession, user: User, limit: int = 20, offset: int = 0
) -> tuple[list[Article], int]:
    """Articles written by users that *user* follows, newest first."""
    conditions = [
        Article.author_id.in_(
            select(follows.c.followed_id).where(follows.c.follower_id == user.id)
        )
    ]
    return await _paginate(db, conditions, limit, offset)


async def _paginate(
    db: AsyncSession, conditions: list, limit: int, offset: int
) -> tuple[list[Article], int]:
    # 1. Total count
    count_q = select(func.count()).select_from(Article).where(*conditions)
    total: int = (await db.execute(count_q)).scalar_one()

    # 2. Page rows with eager-loaded relationships
    articles_q = (
        _base_query()
        .where(*conditions)
        .order_by(Article.created_at.desc(), Article.id.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(articles_q)
    return list(result.unique().scalars().all()), total


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

async def create_article(db: AsyncSession, author: User, data: NewArticle) -> Article:
    """Create an article owned by *author* and return it fully loaded."""
    article = Article(
        slug=await unique_slug(db, data.title),
        title=data.title,
        description=data.description,
        body=data.body,
        author_id=author.id,
    )
    db.add(article)
    await db.flush()

    if data.tagList:
        await set_tags(db, article, data.tagList)

    logger.info("Created article id=%d slug=%s author=%s", article.id, article.slug, author.username)
    return await get_article(db, article.slug)


async def update_article(db: AsyncSession, article: Article, data: UpdateArticle) -> Article:
    """
    Apply the fields explicitly present in *data*.

    The slug is fixed at creation and survives title changes.  A supplied
    ``tagList`` replaces the existing tags; an omitted one leaves them alone.
    """
    update_data = data.model_dump(exclude_unset=True)
    tag_names: list[str] | None = update_data.pop("tagList", None)

    for field, value in update_data.items():
        if value is not None:
            setattr(article, field, value)
    article.updated_at = utcnow()

    if tag_names is not None:
        await set_tags(db, article, tag_names)

    await db.flush()
    return await get_article(db, article.slug)


async def delete_article(db: AsyncSession, article: Article) -> None:
    """Delete *article* together with its tag links, favourites and comments."""
    await db.execute(delete(article_tags).where(article_tags.c.article_id == article.id))
    await db.execute(delete(favorites).where(favorites.c.article_id == article.id))
    await db.execute(delete(Comment).where(Comment.article_id == article.id))
    await db.delete(article)
    await db.flush()
    logger.info("Deleted article id=%d slug=%s", article.id, article.slug)


# ---------------------------------------------------------------------------
# Favourites
# ---------------------------------------------------------------------------

async def is_favorited(db: AsyncSession, article_id: int, user_id: int) -> bool:
    result = await db.execute(
        select(favorites.c.article_id).where(
            favorites.c.article_id == article_id,
            favorites.c.user_id == user_id,
        )
    )
    return result.first() is not None


async def favorite(db: AsyncSession, article: Article, user: User) -> None:
    if await is_favorited(db, article.id, user.id):
        return
    await db.execute(insert(favorites).values(article_id=article.id, user_id=user.id))


async def unfavorite(db: AsyncSession, article: Article, user: User) -> None:
    await db.execute(
        delete(favorites).where(
            favorites.c.article_id == article.id,
            favorites.c.user_id == user.id,
        )
    )
