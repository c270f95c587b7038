from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import ArticleListQuery, get_current_user, get_current_user_optional
from conduit.models import User
from conduit.schemas import (
    ArticleCreateRequest,
    ArticleDeleteResponse,
    ArticleEnvelope,
    ArticleListResponse,
    ArticleUpdateRequest,
)
from conduit.services import article_service, favorite_service

router = APIRouter(prefix="/api/articles", tags=["articles"])


@router.get("", response_model=ArticleListResponse)
async def list_articles(
    query: ArticleListQuery = Depends(),
    viewer: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.list_articles(
        db,
        tag=query.tag,
        author=query.author,
        favorited=query.favorited,
        limit=query.limit,
        offset=query.offset,
        viewer_id=viewer.id if viewer else None,
    )


@router.get("/{slug}", response_model=ArticleEnvelope)
async def get_article(
    slug: str,
    viewer: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.get_article(db, slug, viewer.id if viewer else None)
    return {"article": article}


@router.post("", status_code=201, response_model=ArticleEnvelope)
async def create_article(
    payload: ArticleCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.create_article(db, user, payload.article)
    return {"article": article}


@router.put("/{slug}", response_model=ArticleEnvelope)
async def update_article(
    slug: str,
    payload: ArticleUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.update_article(db, slug, user.id, payload.article)
    return {"article": article}


@router.delete("/{slug}", response_model=ArticleDeleteResponse)
async def delete_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    deleted_slug = await article_service.delete_article(db, slug, user.id)
    return ArticleDeleteResponse(slug=deleted_slug)


@router.post("/{slug}/favorite", response_model=ArticleEnvelope)
async def favorite_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    article = await favorite_service.add_to_favorites(db, slug, user.id)
    return {"article": article}


@router.delete("/{slug}/favorite", response_model=ArticleEnvelope)
async def unfavorite_article(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    article = await favorite_service.remove_from_favorites(db, slug, user.id)
    return {"article": article}
