"""
Direct service-layer tests: exercises business logic without HTTP overhead.

These call the service functions with a database session, covering query
paths (filters, tag replacement, batched serialisation) that are awkward to
reach precisely through the endpoints.
"""
from datetime import datetime

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.exceptions import ValidationFailed
from conduit.models import Comment, User, article_tags, favorites
from conduit.schemas import NewArticle, NewComment, NewUser, UpdateArticle, UpdateUser
from conduit.services import (
    article_service,
    comment_service,
    profile_service,
    tag_service,
    user_service,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _create_user(db: AsyncSession, username: str = "svcuser") -> User:
    return await user_service.create_user(db, NewUser(
        username=username,
        email=f"{username}@example.com",
        password="password123",
    ))


def _draft(title: str = "Service Test Article", tags: list[str] | None = None) -> NewArticle:
    return NewArticle(
        title=title,
        description="Summary",
        body="Direct service test body",
        tagList=tags or [],
    )


# ---------------------------------------------------------------------------
# user_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_user_stores_hash(db_session: AsyncSession):
    user = await _create_user(db_session)
    assert user.id is not None
    assert user.password_hash != "password123"


@pytest.mark.asyncio
async def test_create_user_duplicate_email(db_session: AsyncSession):
    await _create_user(db_session, "original")
    with pytest.raises(ValidationFailed) as exc_info:
        await user_service.create_user(db_session, NewUser(
            username="impostor", email="original@example.com", password="password123",
        ))
    assert exc_info.value.errors == {"email": ["has already been taken"]}


@pytest.mark.asyncio
async def test_authenticate(db_session: AsyncSession):
    user = await _create_user(db_session)
    assert await user_service.authenticate(db_session, "svcuser@example.com", "password123") is user
    assert await user_service.authenticate(db_session, "svcuser@example.com", "wrong-password") is None
    assert await user_service.authenticate(db_session, "missing@example.com", "password123") is None


@pytest.mark.asyncio
async def test_update_user_partial(db_session: AsyncSession):
    user = await _create_user(db_session)
    await user_service.update_user(db_session, user, UpdateUser(bio="hello"))
    assert user.bio == "hello"
    assert user.username == "svcuser"


@pytest.mark.asyncio
async def test_get_user_not_found(db_session: AsyncSession):
    assert await user_service.get_user(db_session, 9999) is None
    assert await user_service.get_user_by_username(db_session, "nobody") is None


def test_serialize_user_mints_token():
    user = User(id=7, username="tokenuser", email="t@example.com", password_hash="x")
    data = user_service.serialize_user(user)
    assert set(data) == {"email", "token", "username", "bio", "image"}
    assert data["token"]


# ---------------------------------------------------------------------------
# profile_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_follow_relation(db_session: AsyncSession):
    fan = await _create_user(db_session, "fanuser")
    star = await _create_user(db_session, "staruser")
    other = await _create_user(db_session, "otheruser")

    await profile_service.follow(db_session, fan, star)
    await profile_service.follow(db_session, fan, star)
    assert await profile_service.is_following(db_session, fan.id, star.id)
    assert not await profile_service.is_following(db_session, star.id, fan.id)
    assert await profile_service.following_ids(db_session, fan.id, [star.id, other.id]) == {star.id}

    await profile_service.unfollow(db_session, fan, star)
    assert not await profile_service.is_following(db_session, fan.id, star.id)


@pytest.mark.asyncio
async def test_follow_self_rejected(db_session: AsyncSession):
    user = await _create_user(db_session)
    with pytest.raises(ValidationFailed):
        await profile_service.follow(db_session, user, user)


@pytest.mark.asyncio
async def test_following_ids_empty_candidates(db_session: AsyncSession):
    assert await profile_service.following_ids(db_session, 1, []) == set()


# ---------------------------------------------------------------------------
# tag_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_or_create_tag_reuses_existing(db_session: AsyncSession):
    first = await tag_service.get_or_create_tag(db_session, "python")
    second = await tag_service.get_or_create_tag(db_session, "python")
    assert first.id == second.id
    assert await tag_service.get_tags(db_session) == ["python"]


# ---------------------------------------------------------------------------
# article_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_article_via_service(db_session: AsyncSession):
    user = await _create_user(db_session)
    article = await article_service.create_article(db_session, user, _draft(tags=["python", "fastapi"]))
    assert article.slug == "service-test-article"
    assert article.author.username == "svcuser"
    assert [t.name for t in article.tags] == ["python", "fastapi"]


@pytest.mark.asyncio
async def test_set_tags_replaces(db_session: AsyncSession):
    user = await _create_user(db_session)
    article = await article_service.create_article(db_session, user, _draft())

    await article_service.set_tags(db_session, article, ["a", "b"])
    await article_service.set_tags(db_session, article, ["a", "b", "c"])

    count = (await db_session.execute(
        select(func.count()).select_from(article_tags).where(article_tags.c.article_id == article.id)
    )).scalar_one()
    assert count == 3
    reloaded = await article_service.get_article(db_session, article.slug)
    assert [t.name for t in reloaded.tags] == ["a", "b", "c"]

    await article_service.set_tags(db_session, article, [])
    reloaded = await article_service.get_article(db_session, article.slug)
    assert reloaded.tags == []


@pytest.mark.asyncio
async def test_update_article_via_service(db_session: AsyncSession):
    user = await _create_user(db_session)
    article = await article_service.create_article(db_session, user, _draft(tags=["keep"]))
    updated = await article_service.update_article(
        db_session, article, UpdateArticle(title="Another Title", description="New summary")
    )
    assert updated.slug == "service-test-article"
    assert updated.title == "Another Title"
    assert updated.description == "New summary"
    assert [t.name for t in updated.tags] == ["keep"]


@pytest.mark.asyncio
async def test_find_articles_unmatched_tag(db_session: AsyncSession):
    user = await _create_user(db_session)
    await article_service.create_article(db_session, user, _draft(tags=["python"]))
    assert await article_service.find_articles(db_session, tag="cobol") == ([], 0)


@pytest.mark.asyncio
async def test_find_articles_empty_filters_ignored(db_session: AsyncSession):
    user = await _create_user(db_session)
    await article_service.create_article(db_session, user, _draft())
    articles, total = await article_service.find_articles(db_session, tag="", author="", favorited="")
    assert total == 1
    assert len(articles) == 1


@pytest.mark.asyncio
async def test_favorites(db_session: AsyncSession):
    author = await _create_user(db_session, "author")
    fan = await _create_user(db_session, "fanuser")
    article = await article_service.create_article(db_session, author, _draft())

    await article_service.favorite(db_session, article, fan)
    await article_service.favorite(db_session, article, fan)
    assert (await article_service.serialize_article(db_session, article))["favoritesCount"] == 1
    assert await article_service.is_favorited(db_session, article.id, fan.id)
    assert not await article_service.is_favorited(db_session, article.id, author.id)

    await article_service.unfavorite(db_session, article, fan)
    assert (await article_service.serialize_article(db_session, article))["favoritesCount"] == 0


@pytest.mark.asyncio
async def test_serialize_articles_per_viewer(db_session: AsyncSession):
    author = await _create_user(db_session, "author")
    fan = await _create_user(db_session, "fanuser")
    article = await article_service.create_article(db_session, author, _draft())
    await article_service.favorite(db_session, article, fan)
    await profile_service.follow(db_session, fan, author)

    as_fan = await article_service.serialize_article(db_session, article, fan)
    assert as_fan["favorited"] is True
    assert as_fan["favoritesCount"] == 1
    assert as_fan["author"]["following"] is True

    anonymous = await article_service.serialize_article(db_session, article)
    assert anonymous["favorited"] is False
    assert anonymous["favoritesCount"] == 1
    assert anonymous["author"]["following"] is False


@pytest.mark.asyncio
async def test_delete_article_removes_dependents(db_session: AsyncSession):
    author = await _create_user(db_session, "author")
    fan = await _create_user(db_session, "fanuser")
    article = await article_service.create_article(db_session, author, _draft(tags=["gone"]))
    await article_service.favorite(db_session, article, fan)
    await comment_service.add_comment(db_session, article, fan, NewComment(body="bye"))
    article_id = article.id

    await article_service.delete_article(db_session, article)

    assert await article_service.get_article(db_session, "service-test-article") is None
    for table, column in ((article_tags, article_tags.c.article_id), (favorites, favorites.c.article_id)):
        count = (await db_session.execute(
            select(func.count()).select_from(table).where(column == article_id)
        )).scalar_one()
        assert count == 0
    comments = (await db_session.execute(
        select(func.count()).select_from(Comment).where(Comment.article_id == article_id)
    )).scalar_one()
    assert comments == 0
    # The tag itself survives.
    assert await tag_service.get_tags(db_session) == ["gone"]


@pytest.mark.asyncio
async def test_get_feed(db_session: AsyncSession):
    reader = await _create_user(db_session, "reader")
    star = await _create_user(db_session, "staruser")
    await article_service.create_article(db_session, star, _draft("Star Article"))
    assert await article_service.get_feed(db_session, reader) == ([], 0)

    await profile_service.follow(db_session, reader, star)
    articles, total = await article_service.get_feed(db_session, reader)
    assert total == 1
    assert articles[0].title == "Star Article"


def test_slugify_special_characters():
    assert article_service.slugify("Hello, World!") == "hello-world"
    assert article_service.slugify("  spaces   and___underscores ") == "spaces-and-underscores"
    assert article_service.slugify("!!!") == ""


def test_slugify_folds_to_ascii():
    assert article_service.slugify("Caf\u00e9 \u00dcn\u00efcode") == "cafe-unicode"
    assert article_service.slugify("\uff21\uff22\uff23 full width") == "abc-full-width"
    assert article_service.slugify("\u65e5\u672c\u8a9e") == ""


@pytest.mark.asyncio
async def test_unique_slug_for_symbol_only_title(db_session: AsyncSession):
    slug = await article_service.unique_slug(db_session, "!!!!")
    assert slug
    assert slug.isalnum()


def test_format_timestamp_naive_is_utc():
    assert article_service.format_timestamp(datetime(2024, 1, 2, 3, 4, 5, 678901)) == (
        "2024-01-02T03:04:05.678Z"
    )


# ---------------------------------------------------------------------------
# comment_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_comments_scoped_to_article(db_session: AsyncSession):
    user = await _create_user(db_session)
    first = await article_service.create_article(db_session, user, _draft("First Article"))
    second = await article_service.create_article(db_session, user, _draft("Second Article"))
    comment = await comment_service.add_comment(db_session, first, user, NewComment(body="hi"))

    assert (await comment_service.get_comment(db_session, first, comment.id)).body == "hi"
    assert await comment_service.get_comment(db_session, second, comment.id) is None
    assert [c.body for c in await comment_service.get_comments(db_session, first)] == ["hi"]

    data = await comment_service.serialize_comment(db_session, comment, user)
    assert data["author"]["username"] == "svcuser"
    assert data["author"]["following"] is False

    await comment_service.delete_comment(db_session, comment)
    assert await comment_service.get_comments(db_session, first) == []
