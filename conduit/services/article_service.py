"""
Article service: listing, lookup and lifecycle for the Article aggregate.

Design notes
------------
- ``find_by_slug`` is the single lookup used by every slug-addressed
  operation here and in ``favorite_service``; it raises
  ``ArticleNotFoundError`` instead of returning ``None``.
- Listing filters are turned into a list of SQL conditions that is shared by
  the COUNT and the page SELECT, so ``articlesCount`` always reflects the
  filters while ignoring ``limit``/``offset``.
- Unknown ``author`` / ``favorited`` usernames short-circuit to an empty
  result; nothing ever dereferences a missing user.
- Only the viewer-independent article detail is cached (Redis, keyed by
  slug).  The ``favorited`` flag is always computed per request.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import logging
import random
import re
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from conduit.cache import cache
from conduit.config import settings
from conduit.exceptions import ArticleNotFoundError, NotArticleAuthorError
from conduit.models import Article, User, user_favorites
from conduit.schemas import (
    ArticleCreate,
    ArticleListResponse,
    ArticleResponse,
    ArticleUpdate,
)
from conduit.services import user_service

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"
_SLUG_SUFFIX_SPACE = 36 ** 6


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def generate_slug(title: str) -> str:
    """
    ``slugify(title)`` plus a random base-36 suffix of one to six characters.

    Identical titles get distinct slugs without a uniqueness probe; a
    collision is possible but vanishingly rare and is not retried.
    """
    base = slugify(title) or "article"
    return f"{base}-{to_base36(random.randrange(_SLUG_SUFFIX_SPACE))}"


def article_to_response(article: Article, favorited: bool = False) -> ArticleResponse:
    """Serialise an Article (author loaded) into its API representation."""
    response = ArticleResponse.model_validate(article)
    response.favorited = favorited
    return response


def _empty_listing() -> ArticleListResponse:
    return ArticleListResponse(articles=[], articles_count=0)


def _ensure_author(article: Article, caller_id: int) -> None:
    if article.author_id != caller_id:
        logger.warning(
            "User id=%s denied write access to article %r (author id=%s)",
            caller_id, article.slug, article.author_id,
        )
        raise NotArticleAuthorError()


async def _load_article(db: AsyncSession, *criteria) -> Article | None:
    """
    Fetch one article with its author.  ``populate_existing`` makes sure
    rows already in the identity map are refreshed (server defaults after
    an INSERT, counters after an in-database UPDATE).
    """
    q = (
        select(Article)
        .where(*criteria)
        .options(joinedload(Article.author))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


async def favorited_article_ids(
    db: AsyncSession, user_id: int, article_ids: list[int]
) -> set[int]:
    """Return the subset of *article_ids* in *user_id*'s favorites set."""
    if not article_ids:
        return set()
    q = select(user_favorites.c.article_id).where(
        user_favorites.c.user_id == user_id,
        user_favorites.c.article_id.in_(article_ids),
    )
    result = await db.execute(q)
    return set(result.scalars().all())


async def is_favorited(db: AsyncSession, user_id: int, article_id: int) -> bool:
    return article_id in await favorited_article_ids(db, user_id, [article_id])


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def find_by_slug(db: AsyncSession, slug: str) -> Article:
    """Return the article for *slug* with its author, or raise ``ArticleNotFoundError``."""
    article = await _load_article(db, Article.slug == slug)
    if article is None:
        raise ArticleNotFoundError()
    return article


async def list_articles(
    db: AsyncSession,
    *,
    tag: str | None = None,
    author: str | None = None,
    favorited: str | None = None,
    limit: int = settings.DEFAULT_LIMIT,
    offset: int = 0,
    viewer_id: int | None = None,
) -> ArticleListResponse:
    """
    Return articles matching every given filter, oldest first.

    Two SQL statements are issued once filters are resolved:
    1. COUNT over the filtered set (no limit/offset).
    2. SELECT of the requested page with the author joined.
    A third statement resolves the viewer's ``favorited`` flags when a
    viewer is present.
    """
    conditions = []

    if tag:
        # Substring match against the serialized list, LIKE wildcards escaped.
        conditions.append(Article.tag_list.contains(tag, autoescape=True))

    if author:
        author_user = await user_service.get_user_by_username(db, author)
        if author_user is None:
            logger.debug("Listing filtered by unknown author %r", author)
            return _empty_listing()
        conditions.append(Article.author_id == author_user.id)

    if favorited:
        fan = await user_service.get_user_by_username(db, favorited)
        if fan is None:
            logger.debug("Listing filtered by favorites of unknown user %r", favorited)
            return _empty_listing()
        # An empty favorites set makes the subquery empty, hence the result.
        conditions.append(
            Article.id.in_(
                select(user_favorites.c.article_id).where(user_favorites.c.user_id == fan.id)
            )
        )

    count_q = select(func.count()).select_from(Article).where(*conditions)
    total: int = (await db.execute(count_q)).scalar_one()
    if total == 0:
        return _empty_listing()

    articles_q = (
        select(Article)
        .where(*conditions)
        .options(joinedload(Article.author))
        .order_by(Article.created_at.asc(), Article.id.asc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(articles_q)
    articles = result.unique().scalars().all()

    favorite_ids: set[int] = set()
    if viewer_id is not None:
        favorite_ids = await favorited_article_ids(db, viewer_id, [a.id for a in articles])

    return ArticleListResponse(
        articles=[article_to_response(a, a.id in favorite_ids) for a in articles],
        articles_count=total,
    )


async def get_article(
    db: AsyncSession, slug: str, viewer_id: int | None = None
) -> ArticleResponse:
    """
    Return the article for *slug*, using Redis for the viewer-independent
    part and annotating ``favorited`` for *viewer_id*.
    """
    cached = await cache.get_article_detail(slug)
    if cached:
        response = ArticleResponse.model_validate(cached)
        if viewer_id is not None:
            q = (
                select(user_favorites.c.article_id)
                .join(Article, Article.id == user_favorites.c.article_id)
                .where(user_favorites.c.user_id == viewer_id, Article.slug == slug)
            )
            response.favorited = (await db.execute(q)).first() is not None
        return response

    article = await find_by_slug(db, slug)
    response = article_to_response(article)
    await cache.put_article_detail(slug, response.model_dump(mode="json"))

    if viewer_id is not None:
        response.favorited = await is_favorited(db, viewer_id, article.id)
    return response


async def create_article(db: AsyncSession, author: User, data: ArticleCreate) -> ArticleResponse:
    """Create a new article owned by *author*; ``tagList`` defaults to empty."""
    article = Article(
        slug=generate_slug(data.title),
        title=data.title,
        description=data.description,
        body=data.body,
        tag_list=data.tag_list or [],
        favorites_count=0,
        author_id=author.id,
    )
    db.add(article)
    await db.flush()

    article = await _load_article(db, Article.id == article.id)
    logger.info("Created article %r (id=%s) by user id=%s", article.slug, article.id, author.id)
    return article_to_response(article)


async def update_article(
    db: AsyncSession, slug: str, caller_id: int, data: ArticleUpdate
) -> ArticleResponse:
    """
    Apply the fields explicitly present in *data* to the caller's article.

    The slug stays stable across title changes so existing links keep
    working.
    """
    article = await find_by_slug(db, slug)
    _ensure_author(article, caller_id)

    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if value is None:
            if field != "tag_list":
                continue
            value = []
        setattr(article, field, value)
    article.updated_at = datetime.now(timezone.utc)

    await db.flush()
    await cache.invalidate_articles(db, slug)

    article = await _load_article(db, Article.id == article.id)
    logger.info("Updated article %r fields=%s", slug, sorted(update_data))
    return article_to_response(article, await is_favorited(db, caller_id, article.id))


async def delete_article(db: AsyncSession, slug: str, caller_id: int) -> str:
    """
    Delete the caller's article together with every favorites membership
    that points at it.  Returns the deleted slug.
    """
    article = await find_by_slug(db, slug)
    _ensure_author(article, caller_id)

    await db.execute(delete(user_favorites).where(user_favorites.c.article_id == article.id))
    await db.delete(article)
    await db.flush()
    await cache.invalidate_articles(db, slug)

    logger.info("Deleted article %r (id=%s)", slug, article.id)
    return slug
