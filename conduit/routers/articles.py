from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.config import settings
from conduit.database import get_db
from conduit.dependencies import PaginationParams, optional_user, require_user
from conduit.exceptions import Forbidden, NotFound
from conduit.models import Article, User
from conduit.schemas import (
    ArticleListResponse,
    ArticleResponse,
    NewArticleRequest,
    UpdateArticleRequest,
)
from conduit.services import article_service

router = APIRouter(prefix=f"{settings.API_PREFIX}/articles", tags=["articles"])

async def get_article_or_404(slug: str, db: AsyncSession) -> Article:
    article = await article_service.get_article(db, slug)
    if article is None:
        raise NotFound("article", "not found")
    return article

def _ensure_author(article: Article, user: User) -> None:
    if article.author_id != user.id:
        raise Forbidden("article", "only the author may modify this article")

@router.get("", response_model=ArticleListResponse)
async def list_articles(
    tag: str | None = Query(None),
    author: str | None = Query(None),
    favorited: str | None = Query(None),
    pagination: PaginationParams = Depends(),
    viewer: User | None = Depends(optional_user),
    db: AsyncSession = Depends(get_db),
):
    articles, total = await article_service.find_articles(
        db, tag, author, favorited, pagination.limit, pagination.offset
    )
    return {
        "articles": await article_service.serialize_articles(db, articles, viewer),
        "articlesCount": total,
    }

# Declared before "/{slug}" so "feed" is not taken for a slug.
@router.get("/feed", response_model=ArticleListResponse)
async def feed_articles(
    pagination: PaginationParams = Depends(),
    viewer: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    articles, total = await article_service.get_feed(
        db, viewer, pagination.limit, pagination.offset
    )
    return {
        "articles": await article_service.serialize_articles(db, articles, viewer),
        "articlesCount": total,
    }

@router.post("", status_code=201, response_model=ArticleResponse)
async def create_article(
    payload: NewArticleRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.create_article(db, user, payload.article)
    return {"article": await article_service.serialize_article(db, article, user)}

@router.get("/{slug}", response_model=ArticleResponse)
async def get_article(
    slug: str,
    viewer: User | None = Depends(optional_user),
    db: AsyncSession = Depends(get_db),
):
    article = await get_article_or_404(slug, db)
    return {"article": await article_service.serialize_article(db, article, viewer)}

@router.put("/{slug}", response_model=ArticleResponse)
async def update_article(
    slug: str,
    payload: UpdateArticleRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    article = await get_article_or_404(slug, db)
    _ensure_author(article, user)
    article = await article_service.update_article(db, article, payload.article)
    return {"article": await article_service.serialize_article(db, article, user)}

@router.delete("/{slug}")
async def delete_article(
    slug: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    article = await get_article_or_404(slug, db)
    _ensure_author(article, user)
    await article_service.delete_article(db, article)
    return {"article": "Delete success"}

@router.post("/{slug}/favorite", response_model=ArticleResponse)
async def favorite_article(
    slug: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    article = await get_article_or_404(slug, db)
    await article_service.favorite(db, article, user)
    return {"article": await article_service.serialize_article(db, article, user)}

@router.delete("/{slug}/favorite", response_model=ArticleResponse)
async def unfavorite_article(
    slug: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    article = await get_article_or_404(slug, db)
    await article_service.unfavorite(db, article, user)
    return {"article": await article_service.serialize_article(db, article, user)}
