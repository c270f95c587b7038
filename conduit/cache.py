import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.config import settings

logger = logging.getLogger(__name__)

# Session.info key holding slugs to invalidate again after commit.
_PENDING_KEY = "conduit.stale_articles"


def article_detail_key(slug: str) -> str:
    return f"articles:detail:{slug}"


class CacheManager:
    """
    Redis-backed store for the viewer-independent article detail.

    The database stays the source of truth: a missing client or a Redis
    failure reads as a miss and writes are dropped, so callers never need
    their own error handling.  Per-viewer fields (``favorited``) are never
    stored here.
    """

    def __init__(self) -> None:
        self._redis: redis.Redis | None = None
        self._hits = 0
        self._misses = 0

    async def connect(self) -> None:
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await self._redis.ping()
        except RedisError as exc:
            logger.warning("Redis ping failed, article cache disabled: %s", exc)
            await self._redis.aclose()
            self._redis = None
            return
        logger.info("Redis connected: %s", settings.REDIS_URL)

    async def disconnect(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    # -- article detail -------------------------------------------------

    async def get_article_detail(self, slug: str) -> dict | None:
        raw = await self._read(article_detail_key(slug))
        if raw is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(raw)

    async def put_article_detail(self, slug: str, detail: dict) -> None:
        await self._write(
            article_detail_key(slug),
            json.dumps(detail, default=str),
            ttl=settings.CACHE_TTL_DETAIL,
        )

    async def invalidate_articles(self, db: AsyncSession, *slugs: str) -> None:
        """
        Drop the cached detail of *slugs* now, and again once *db* commits.

        A reader running between the write and the commit can refill an
        entry from the pre-commit rows; ``flush_pending`` clears it again.
        """
        if not slugs:
            return
        db.info.setdefault(_PENDING_KEY, set()).update(slugs)
        await self._delete(*(article_detail_key(slug) for slug in slugs))

    async def flush_pending(self, db: AsyncSession) -> None:
        """Re-drop every slug ``invalidate_articles`` recorded on *db*."""
        slugs = db.info.pop(_PENDING_KEY, None)
        if slugs:
            await self._delete(*(article_detail_key(slug) for slug in slugs))

    # -- raw access -----------------------------------------------------

    async def _read(self, key: str) -> str | None:
        if self._redis is None:
            return None
        try:
            return await self._redis.get(key)
        except RedisError as exc:
            logger.debug("Cache read failed for %r: %s", key, exc)
            return None

    async def _write(self, key: str, value: str, ttl: int) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.set(key, value, ex=ttl)
        except RedisError as exc:
            logger.debug("Cache write failed for %r: %s", key, exc)

    async def _delete(self, *keys: str) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.delete(*keys)
        except RedisError as exc:
            logger.debug("Cache invalidation failed for %r: %s", keys, exc)

    @property
    def stats(self) -> dict:
        """Hit/miss counters reported by ``/api/metrics``."""
        lookups = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / lookups * 100, 1) if lookups else 0.0,
        }


cache = CacheManager()
