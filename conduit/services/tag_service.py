"""Tag service: find-or-create and the global tag list."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.models import Tag


async def get_or_create_tag(db: AsyncSession, name: str) -> Tag:
    """
    Return the Tag called *name*, inserting it first if it does not exist.
    The insert is flushed within the caller's transaction.
    """
    result = await db.execute(select(Tag).where(Tag.name == name))
    tag = result.scalar_one_or_none()
    if tag is None:
        tag = Tag(name=name)
        db.add(tag)
        await db.flush()
    return tag


async def get_tags(db: AsyncSession) -> list[str]:
    result = await db.execute(select(Tag.name).order_by(Tag.name))
    return list(result.scalars().all())
