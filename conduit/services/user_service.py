"""
User service: registration, login and self-service updates for User.

Users are fetched without caching; identity resolution reads the row on
every authenticated request so a changed username or deleted account is
seen immediately.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.cache import cache
from conduit.exceptions import InvalidCredentialsError, UserNotFoundError
from conduit.models import Article, User
from conduit.schemas import UserCreate, UserLogin, UserUpdate
from conduit.security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

# Columns that cannot be cleared through an explicit null in the payload.
_REQUIRED_FIELDS: frozenset[str] = frozenset({"username", "email"})

# Fields embedded as ``author`` in every cached article detail.
_PROFILE_FIELDS: frozenset[str] = frozenset({"username", "bio", "image"})


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def user_to_dict(user: User) -> dict:
    """Serialise a User together with a freshly issued access token."""
    return {
        "email": user.email,
        "username": user.username,
        "bio": user.bio,
        "image": user.image,
        "token": create_access_token(user),
    }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def register_user(db: AsyncSession, data: UserCreate) -> dict:
    """
    Create a new user and return its serialised dict with a token.

    Username and email uniqueness is enforced by the database; the router
    translates the resulting ``IntegrityError`` into a 409 response.
    """
    user = User(
        username=data.username,
        email=data.email,
        password_hash=hash_password(data.password),
    )
    db.add(user)
    await db.flush()
    logger.info("Registered user id=%s username=%r", user.id, user.username)
    return user_to_dict(user)


async def login_user(db: AsyncSession, data: UserLogin) -> dict:
    result = await db.execute(select(User).where(User.email == data.email))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(data.password, user.password_hash):
        logger.info("Failed login for email=%r", data.email)
        raise InvalidCredentialsError()
    return user_to_dict(user)


async def update_user(db: AsyncSession, user_id: int, data: UserUpdate) -> dict:
    """
    Apply the allow-listed fields present in *data* to the user.

    A new password is re-hashed; every other field is copied verbatim.
    Changing the public profile drops the cached detail of the user's
    articles, which embed it as ``author``.
    """
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise UserNotFoundError()

    update_data = data.model_dump(exclude_unset=True)
    password = update_data.pop("password", None)

    for field, value in update_data.items():
        if value is None and field in _REQUIRED_FIELDS:
            continue
        setattr(user, field, value)
    if password:
        user.password_hash = hash_password(password)

    await db.flush()

    if _PROFILE_FIELDS & update_data.keys():
        slugs = (
            await db.execute(select(Article.slug).where(Article.author_id == user.id))
        ).scalars().all()
        await cache.invalidate_articles(db, *slugs)
    return user_to_dict(user)
