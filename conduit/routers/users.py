from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.config import settings
from conduit.database import get_db
from conduit.dependencies import authorization_header, require_user
from conduit.exceptions import Forbidden, ValidationFailed
from conduit.models import User
from conduit.schemas import LoginUserRequest, NewUserRequest, UpdateUserRequest, UserResponse
from conduit.security import strip_token_prefix
from conduit.services import user_service

router = APIRouter(prefix=settings.API_PREFIX, tags=["users"])

@router.post("/users", status_code=201, response_model=UserResponse)
async def register(payload: NewUserRequest, db: AsyncSession = Depends(get_db)):
    try:
        user = await user_service.create_user(db, payload.user)
    except IntegrityError:
        raise ValidationFailed("user", "username or email has already been taken")
    return {"user": user_service.serialize_user(user)}

@router.post("/users/login", response_model=UserResponse)
async def login(payload: LoginUserRequest, db: AsyncSession = Depends(get_db)):
    user = await user_service.authenticate(db, payload.user.email, payload.user.password)
    if user is None:
        raise Forbidden("login", "email or password is invalid")
    return {"user": user_service.serialize_user(user)}

@router.get("/user", response_model=UserResponse)
async def current_user(
    user: User = Depends(require_user),
    authorization: str = Depends(authorization_header),
):
    return {"user": user_service.serialize_user(user, strip_token_prefix(authorization))}

@router.put("/user", response_model=UserResponse)
async def update_current_user(
    payload: UpdateUserRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        user = await user_service.update_user(db, user, payload.user)
    except IntegrityError:
        raise ValidationFailed("user", "username or email has already been taken")
    return {"user": user_service.serialize_user(user)}
