import logging

import jwt
from fastapi import Depends, Header, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings
from conduit.database import get_db
from conduit.models import User
from conduit.security import decode_access_token
from conduit.services import user_service

logger = logging.getLogger(__name__)

_TOKEN_SCHEMES = frozenset({"token", "bearer"})


class ArticleListQuery:
    """
    Reusable FastAPI dependency that parses the article listing filters.

    Usage in a router::

        @router.get("/articles")
        async def list_articles(query: ArticleListQuery = Depends()):
            ...

    Attributes
    ----------
    tag:
        Substring matched against the article's serialized tag list.
    author:
        Exact username of the article author.
    favorited:
        Username whose favorites set constrains the result.
    limit:
        Page size, clamped to ``settings.MAX_LIMIT``.
    offset:
        Number of matching articles to skip.
    """

    def __init__(
        self,
        tag: str | None = Query(None, description="Only articles whose tags contain this text."),
        author: str | None = Query(None, description="Only articles written by this username."),
        favorited: str | None = Query(None, description="Only articles favorited by this username."),
        limit: int = Query(
            settings.DEFAULT_LIMIT,
            ge=1,
            le=100,
            description="Maximum number of articles returned (max 100).",
        ),
        offset: int = Query(0, ge=0, description="Number of articles to skip."),
    ) -> None:
        # Empty strings behave like an absent filter.
        self.tag = tag or None
        self.author = author or None
        self.favorited = favorited or None
        self.limit = min(limit, settings.MAX_LIMIT)
        self.offset = offset


def _extract_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() not in _TOKEN_SCHEMES:
        return None
    return parts[1]


async def get_current_user_optional(
    authorization: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """
    Resolve the caller from the ``Authorization`` header.

    Every failure (missing or malformed header, bad signature, expired
    token, deleted user) degrades to an anonymous caller rather than
    rejecting the request.
    """
    token = _extract_token(authorization)
    if token is None:
        if authorization:
            logger.debug("Ignoring malformed Authorization header")
        return None

    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError as exc:
        logger.warning("Rejected access token: %s", exc)
        return None

    user_id = payload.get("id")
    if not isinstance(user_id, int):
        logger.warning("Access token without a usable id claim")
        return None

    user = await user_service.get_user_by_id(db, user_id)
    if user is None:
        logger.warning("Access token refers to unknown user id=%s", user_id)
    return user


async def get_current_user(
    user: User | None = Depends(get_current_user_optional),
) -> User:
    """Guard for endpoints that require an authenticated caller."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized",
            headers={"WWW-Authenticate": "Token"},
        )
    return user
