"""
Profile service: the follow relation between users and the public profile
shape.

Follow / unfollow are idempotent: following twice leaves one row, and
unfollowing someone you do not follow is a no-op.  The composite primary key
on ``follows`` rejects a duplicate row produced by two racing requests.
"""
from collections.abc import Iterable

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.exceptions import ValidationFailed
from conduit.models import User, follows


def serialize_profile(user: User, following: bool = False) -> dict:
    return {
        "username": user.username,
        "bio": user.bio,
        "image": user.image,
        "following": following,
    }


async def is_following(db: AsyncSession, follower_id: int, followed_id: int) -> bool:
    result = await db.execute(
        select(follows.c.follower_id).where(
            follows.c.follower_id == follower_id,
            follows.c.followed_id == followed_id,
        )
    )
    return result.first() is not None


async def following_ids(
    db: AsyncSession, follower_id: int, candidate_ids: Iterable[int]
) -> set[int]:
    """Return the subset of *candidate_ids* that *follower_id* follows, in one query."""
    candidates = set(candidate_ids)
    if not candidates:
        return set()
    result = await db.execute(
        select(follows.c.followed_id).where(
            follows.c.follower_id == follower_id,
            follows.c.followed_id.in_(candidates),
        )
    )
    return set(result.scalars().all())


async def follow(db: AsyncSession, follower: User, followed: User) -> None:
    if follower.id == followed.id:
        raise ValidationFailed("profile", "cannot follow yourself")
    if await is_following(db, follower.id, followed.id):
        return
    await db.execute(insert(follows).values(follower_id=follower.id, followed_id=followed.id))


async def unfollow(db: AsyncSession, follower: User, followed: User) -> None:
    await db.execute(
        delete(follows).where(
            follows.c.follower_id == follower.id,
            follows.c.followed_id == followed.id,
        )
    )

