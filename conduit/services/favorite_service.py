"""
Favorite service: adds and removes articles from a user's favorites set
while keeping ``Article.favorites_count`` equal to the number of
membership rows.

The membership statement decides whether the counter moves: the counter is
only bumped when the INSERT actually created a row (or the DELETE actually
removed one), and the bump is an in-database ``favorites_count +/- 1``.
Both statements run in the request transaction owned by ``get_db``, so
either both are committed or neither is.  Repeating a toggle is a no-op.
"""
import logging

from sqlalchemy import delete, insert, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.cache import cache
from conduit.models import Article, user_favorites
from conduit.schemas import ArticleResponse
from conduit.services.article_service import (
    article_to_response,
    find_by_slug,
    is_favorited,
)

logger = logging.getLogger(__name__)

# Dialects with INSERT ... ON CONFLICT DO NOTHING.
_CONFLICT_AWARE_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


async def _insert_membership(db: AsyncSession, user_id: int, article_id: int) -> bool:
    """Insert the (user, article) pair; return True only if a row was created."""
    values = {"user_id": user_id, "article_id": article_id}
    dialect_insert = _CONFLICT_AWARE_INSERTS.get(db.get_bind().dialect.name)
    if dialect_insert is not None:
        stmt = dialect_insert(user_favorites).values(**values).on_conflict_do_nothing()
        result = await db.execute(stmt)
        return result.rowcount == 1

    if await is_favorited(db, user_id, article_id):
        return False
    await db.execute(insert(user_favorites).values(**values))
    return True


async def _delete_membership(db: AsyncSession, user_id: int, article_id: int) -> bool:
    """Delete the (user, article) pair; return True only if a row was removed."""
    result = await db.execute(
        delete(user_favorites).where(
            user_favorites.c.user_id == user_id,
            user_favorites.c.article_id == article_id,
        )
    )
    return result.rowcount == 1


async def _shift_favorites_count(db: AsyncSession, article_id: int, delta: int) -> None:
    await db.execute(
        update(Article)
        .where(Article.id == article_id)
        .values(favorites_count=Article.favorites_count + delta)
        .execution_options(synchronize_session=False)
    )


async def add_to_favorites(db: AsyncSession, slug: str, user_id: int) -> ArticleResponse:
    """
    Add the article to the user's favorites and return it with
    ``favorited=True``.  Raises ``ArticleNotFoundError`` for an unknown slug.
    """
    article = await find_by_slug(db, slug)

    if await _insert_membership(db, user_id, article.id):
        await _shift_favorites_count(db, article.id, +1)
        await db.flush()
        await cache.invalidate_articles(db, slug)
        article = await find_by_slug(db, slug)
        logger.info("User id=%s favorited article %r", user_id, slug)
    else:
        logger.debug("User id=%s already favorited article %r", user_id, slug)

    return article_to_response(article, favorited=True)


async def remove_from_favorites(db: AsyncSession, slug: str, user_id: int) -> ArticleResponse:
    """
    Remove the article from the user's favorites and return it with
    ``favorited=False``.  Unfavoriting an article that is not in the set
    changes nothing.
    """
    article = await find_by_slug(db, slug)

    if await _delete_membership(db, user_id, article.id):
        await _shift_favorites_count(db, article.id, -1)
        await db.flush()
        await cache.invalidate_articles(db, slug)
        article = await find_by_slug(db, slug)
        logger.info("User id=%s unfavorited article %r", user_id, slug)
    else:
        logger.debug("User id=%s had not favorited article %r", user_id, slug)

    return article_to_response(article, favorited=False)
