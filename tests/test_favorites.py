"""
Favorite endpoint tests: idempotent toggles, the favorites_count invariant,
per-viewer ``favorited`` flags and the ``favorited`` listing filter.
"""
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.models import Article, user_favorites
from tests.support import create_article, register


async def _assert_counter_matches_membership(db: AsyncSession) -> None:
    """favorites_count of every article equals its number of membership rows."""
    members = (
        select(user_favorites.c.article_id, func.count().label("n"))
        .group_by(user_favorites.c.article_id)
        .subquery()
    )
    rows = (
        await db.execute(
            select(Article.slug, Article.favorites_count, func.coalesce(members.c.n, 0))
            .outerjoin(members, members.c.article_id == Article.id)
        )
    ).all()
    for slug, counter, membership in rows:
        assert counter == membership, f"{slug}: counter={counter} members={membership}"


# ---------------------------------------------------------------------------
# Favorite / unfavorite
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_favorite_article(async_client: AsyncClient):
    author = await register(async_client, "fav_author")
    fan = await register(async_client, "fan")
    article = await create_article(async_client, author, "Loved")

    resp = await async_client.post(f"/api/articles/{article['slug']}/favorite", headers=fan)
    assert resp.status_code == 200
    favorited = resp.json()["article"]
    assert favorited["favorited"] is True
    assert favorited["favoritesCount"] == 1


@pytest.mark.asyncio
async def test_favorite_twice_is_idempotent(async_client: AsyncClient, db_session: AsyncSession):
    author = await register(async_client, "idem_author")
    fan = await register(async_client, "idem_fan")
    article = await create_article(async_client, author, "Twice")

    await async_client.post(f"/api/articles/{article['slug']}/favorite", headers=fan)
    resp = await async_client.post(f"/api/articles/{article['slug']}/favorite", headers=fan)
    assert resp.status_code == 200
    assert resp.json()["article"]["favoritesCount"] == 1
    assert resp.json()["article"]["favorited"] is True

    await _assert_counter_matches_membership(db_session)


@pytest.mark.asyncio
async def test_unfavorite_not_favorited_is_noop(async_client: AsyncClient):
    author = await register(async_client, "noop_author")
    stranger = await register(async_client, "noop_stranger")
    article = await create_article(async_client, author, "Untouched")

    resp = await async_client.delete(f"/api/articles/{article['slug']}/favorite", headers=stranger)
    assert resp.status_code == 200
    assert resp.json()["article"]["favoritesCount"] == 0
    assert resp.json()["article"]["favorited"] is False


@pytest.mark.asyncio
async def test_favorite_then_unfavorite_twice(async_client: AsyncClient, db_session: AsyncSession):
    """The second unfavorite succeeds and the count returns to its original value."""
    author = await register(async_client, "cycle_author")
    fan = await register(async_client, "cycle_fan")
    article = await create_article(async_client, author, "Cycle")
    path = f"/api/articles/{article['slug']}/favorite"

    await async_client.post(path, headers=fan)
    first = await async_client.delete(path, headers=fan)
    second = await async_client.delete(path, headers=fan)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["article"]["favoritesCount"] == article["favoritesCount"]

    await _assert_counter_matches_membership(db_session)


@pytest.mark.asyncio
async def test_counter_tracks_multiple_users(async_client: AsyncClient, db_session: AsyncSession):
    author = await register(async_client, "multi_author")
    fans = [await register(async_client, f"multi_fan{i}") for i in range(3)]
    article = await create_article(async_client, author, "Popular")
    path = f"/api/articles/{article['slug']}/favorite"

    for headers in fans:
        await async_client.post(path, headers=headers)
    await async_client.delete(path, headers=fans[0])
    await async_client.post(path, headers=fans[1])

    resp = await async_client.get(f"/api/articles/{article['slug']}")
    assert resp.json()["article"]["favoritesCount"] == 2

    await _assert_counter_matches_membership(db_session)


@pytest.mark.asyncio
async def test_favorite_unknown_article(async_client: AsyncClient):
    fan = await register(async_client, "lost_fan")
    resp = await async_client.post("/api/articles/missing-1/favorite", headers=fan)
    assert resp.status_code == 404
    resp = await async_client.delete("/api/articles/missing-1/favorite", headers=fan)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_favorite_requires_auth(async_client: AsyncClient):
    author = await register(async_client, "auth_author")
    article = await create_article(async_client, author, "Private Love")
    resp = await async_client.post(f"/api/articles/{article['slug']}/favorite")
    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# favorited flag per viewer
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_favorited_flag_is_per_viewer(async_client: AsyncClient):
    author = await register(async_client, "flag_author")
    fan = await register(async_client, "flag_fan")
    other = await register(async_client, "flag_other")
    liked = await create_article(async_client, author, "Liked")
    await create_article(async_client, author, "Ignored")
    await async_client.post(f"/api/articles/{liked['slug']}/favorite", headers=fan)

    resp = await async_client.get("/api/articles", headers=fan)
    flags = {a["title"]: a["favorited"] for a in resp.json()["articles"]}
    assert flags == {"Liked": True, "Ignored": False}

    resp = await async_client.get("/api/articles", headers=other)
    assert all(a["favorited"] is False for a in resp.json()["articles"])

    resp = await async_client.get("/api/articles")
    assert all(a["favorited"] is False for a in resp.json()["articles"])

    resp = await async_client.get(f"/api/articles/{liked['slug']}", headers=fan)
    assert resp.json()["article"]["favorited"] is True


# ---------------------------------------------------------------------------
# favorited listing filter
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_favorited_by_user(async_client: AsyncClient):
    author = await register(async_client, "filter_author")
    fan = await register(async_client, "filter_fan")
    first = await create_article(async_client, author, "First")
    await create_article(async_client, author, "Second")
    third = await create_article(async_client, author, "Third")
    for article in (third, first):
        await async_client.post(f"/api/articles/{article['slug']}/favorite", headers=fan)

    resp = await async_client.get("/api/articles?favorited=filter_fan")
    data = resp.json()
    assert data["articlesCount"] == 2
    # Listing order is creation order, not favoriting order.
    assert [a["title"] for a in data["articles"]] == ["First", "Third"]


@pytest.mark.asyncio
async def test_list_favorited_by_user_without_favorites(async_client: AsyncClient):
    author = await register(async_client, "empty_author")
    await register(async_client, "empty_fan")
    await create_article(async_client, author, "Unloved")

    resp = await async_client.get("/api/articles?favorited=empty_fan")
    assert resp.json() == {"articles": [], "articlesCount": 0}


@pytest.mark.asyncio
async def test_list_favorited_by_unknown_user(async_client: AsyncClient):
    author = await register(async_client, "unk_author")
    await create_article(async_client, author, "Whatever")

    resp = await async_client.get("/api/articles?favorited=nobody_here")
    assert resp.status_code == 200
    assert resp.json() == {"articles": [], "articlesCount": 0}


# ---------------------------------------------------------------------------
# Delete cascades memberships
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_deleting_article_removes_memberships(async_client: AsyncClient, db_session: AsyncSession):
    author = await register(async_client, "casc_author")
    fan = await register(async_client, "casc_fan")
    article = await create_article(async_client, author, "Ephemeral")
    await async_client.post(f"/api/articles/{article['slug']}/favorite", headers=fan)

    resp = await async_client.delete(f"/api/articles/{article['slug']}", headers=author)
    assert resp.status_code == 200

    remaining = (
        await db_session.execute(select(func.count()).select_from(user_favorites))
    ).scalar_one()
    assert remaining == 0

    resp = await async_client.get("/api/articles?favorited=casc_fan")
    assert resp.json()["articlesCount"] == 0
