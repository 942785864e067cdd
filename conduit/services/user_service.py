"""
User service: registration, login and account updates for the User
aggregate.

Email and username uniqueness is checked up front so the caller gets a
field-level 422; the unique constraints in the schema remain the last line
for concurrent registrations, and the router maps the resulting
``IntegrityError`` onto the same error shape.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.exceptions import ValidationFailed
from conduit.models import User
from conduit.schemas import NewUser, UpdateUser
from conduit.security import hash_password, issue_token, verify_password

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def serialize_user(user: User, token: str | None = None) -> dict:
    """Serialise *user* for the ``{"user": ...}`` envelope, minting a token if none given."""
    return {
        "email": user.email,
        "token": token or issue_token(user.id),
        "username": user.username,
        "bio": user.bio,
        "image": user.image,
    }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_user(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def _ensure_available(
    db: AsyncSession,
    email: str | None,
    username: str | None,
    current: User | None = None,
) -> None:
    """Raise ValidationFailed naming every field already taken by another user."""
    errors: dict[str, list[str]] = {}
    if email is not None:
        owner = await get_user_by_email(db, email)
        if owner is not None and owner is not current:
            errors["email"] = ["has already been taken"]
    if username is not None:
        owner = await get_user_by_username(db, username)
        if owner is not None and owner is not current:
            errors["username"] = ["has already been taken"]
    if errors:
        raise ValidationFailed("user", errors=errors)


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_user(db: AsyncSession, data: NewUser) -> User:
    """Register a new user; the password is stored only as a salted hash."""
    await _ensure_available(db, data.email, data.username)

    user = User(
        username=data.username,
        email=data.email,
        password_hash=hash_password(data.password),
    )
    db.add(user)
    await db.flush()
    logger.info("Registered user id=%d username=%s", user.id, user.username)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User | None:
    """Return the user owning *email* when *password* matches, else None."""
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login for email=%s", email)
        return None
    return user


async def update_user(db: AsyncSession, user: User, data: UpdateUser) -> User:
    """
    Apply the fields explicitly present in *data* to *user*.

    A supplied password is re-hashed; email and username changes are checked
    for collisions with other accounts.
    """
    update_data = data.model_dump(exclude_unset=True)
    password = update_data.pop("password", None)
    # username and email are NOT NULL; an explicit null leaves them unchanged
    for field in ("username", "email"):
        if field in update_data and update_data[field] is None:
            del update_data[field]

    await _ensure_available(
        db, update_data.get("email"), update_data.get("username"), current=user
    )

    for field, value in update_data.items():
        setattr(user, field, value)
    if password is not None:
        user.password_hash = hash_password(password)

    await db.flush()
    return user
