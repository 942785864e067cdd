from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.config import settings
from conduit.database import get_db
from conduit.dependencies import optional_user, require_user
from conduit.exceptions import NotFound
from conduit.models import User
from conduit.schemas import ProfileResponse
from conduit.services import profile_service, user_service

router = APIRouter(prefix=f"{settings.API_PREFIX}/profiles", tags=["profiles"])

async def _get_profile_user(db: AsyncSession, username: str) -> User:
    user = await user_service.get_user_by_username(db, username)
    if user is None:
        raise NotFound("profile", "not found")
    return user

@router.get("/{username}", response_model=ProfileResponse)
async def get_profile(
    username: str,
    viewer: User | None = Depends(optional_user),
    db: AsyncSession = Depends(get_db),
):
    user = await _get_profile_user(db, username)
    following = viewer is not None and await profile_service.is_following(db, viewer.id, user.id)
    return {"profile": profile_service.serialize_profile(user, following)}

@router.post("/{username}/follow", response_model=ProfileResponse)
async def follow_user(
    username: str,
    viewer: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    user = await _get_profile_user(db, username)
    await profile_service.follow(db, viewer, user)
    return {"profile": profile_service.serialize_profile(user, True)}

@router.delete("/{username}/follow", response_model=ProfileResponse)
async def unfollow_user(
    username: str,
    viewer: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    user = await _get_profile_user(db, username)
    await profile_service.unfollow(db, viewer, user)
    return {"profile": profile_service.serialize_profile(user, False)}
