"""Populate a development database with users, follows, articles, tags, favorites and comments."""
import argparse
import asyncio
import logging
import random
import time
from datetime import datetime, timedelta, timezone

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import Base, async_session, engine
from conduit.models import Article, Comment, Tag, User, article_tags, favorites, follows
from conduit.security import hash_password
from conduit.services.article_service import slugify

logger = logging.getLogger("conduit.seed")

TAGS = ["python", "fastapi", "postgresql", "docker", "kubernetes",
        "react", "typescript", "aws", "devops", "testing", "performance",
        "security", "microservices", "graphql", "rest-api", "writing"]

SEED_PASSWORD = "password123"


async def populate(
    session: AsyncSession,
    num_users: int = 10,
    num_articles: int = 100,
    num_comments_per_article: int = 2,
    rng: random.Random | None = None,
) -> dict[str, int]:
    """
    Insert a random but well-formed data set through *session* and return
    the number of rows created per entity.  Every seeded user logs in with
    ``SEED_PASSWORD``.  The caller commits.
    """
    rng = rng or random.Random()
    password_hash = hash_password(SEED_PASSWORD)

    tags = [Tag(name=name) for name in TAGS]
    session.add_all(tags)

    users = [
        User(
            username=f"user{i:04d}",
            email=f"user{i:04d}@example.com",
            password_hash=password_hash,
            bio=f"I am test user number {i}. I write about technology.",
        )
        for i in range(num_users)
    ]
    session.add_all(users)
    await session.flush()

    # Follows: each user follows up to three others
    follow_rows = set()
    for user in users:
        others = [u for u in users if u.id != user.id]
        for followed in rng.sample(others, k=min(3, len(others))):
            follow_rows.add((user.id, followed.id))
    if follow_rows:
        await session.execute(
            insert(follows),
            [{"follower_id": a, "followed_id": b} for a, b in follow_rows],
        )

    now = datetime.now(timezone.utc)
    articles = []
    for i in range(num_articles):
        topic = rng.choice(TAGS)
        title = f"Article {i}: How to optimize {topic} applications"
        created = now - timedelta(days=rng.randint(0, 365), minutes=rng.randint(0, 1440))
        articles.append(Article(
            slug=f"{slugify(title)}-{i}",
            title=title,
            description=f"A guide to optimizing {topic} applications for production.",
            body=f"This is the full body of article {i}. " * 20,
            created_at=created,
            updated_at=created,
            author_id=rng.choice(users).id,
        ))
    session.add_all(articles)
    await session.flush()

    tag_rows = []
    favorite_rows = set()
    comments = []
    for article in articles:
        for position, tag in enumerate(rng.sample(tags, k=rng.randint(1, 4))):
            tag_rows.append({"article_id": article.id, "tag_id": tag.id, "position": position})
        for fan in rng.sample(users, k=rng.randint(0, min(3, len(users)))):
            favorite_rows.add((article.id, fan.id))
        for _ in range(rng.randint(1, max(1, num_comments_per_article))):
            commenter = rng.choice(users)
            comments.append(Comment(
                body=f"Great article! Very helpful for understanding the topic. Comment by {commenter.username}.",
                article_id=article.id,
                author_id=commenter.id,
            ))
    if tag_rows:
        await session.execute(insert(article_tags), tag_rows)
    if favorite_rows:
        await session.execute(
            insert(favorites),
            [{"article_id": a, "user_id": u} for a, u in favorite_rows],
        )
    session.add_all(comments)
    await session.flush()

    return {
        "users": len(users),
        "follows": len(follow_rows),
        "articles": len(articles),
        "tags": len(tags),
        "favorites": len(favorite_rows),
        "comments": len(comments),
    }


async def seed(small: bool = False):
    num_users = 10 if small else 50
    num_articles = 100 if small else 10000
    num_comments_per_article = 2 if small else 5

    logger.info("Seeding: %d users, %d articles", num_users, num_articles)
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        counts = await populate(session, num_users, num_articles, num_comments_per_article)
        await session.commit()

    logger.info("Seeding complete in %.1fs: %s", time.perf_counter() - start, counts)
    await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Seed the Conduit database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 articles)")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
