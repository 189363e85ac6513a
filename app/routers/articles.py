from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import (
    ArticleFilters,
    PaginationParams,
    get_current_user,
    optional_viewer,
    require_viewer,
)
from app.exceptions import NotFoundError
from app.models import Article, User
from app.projections import project_article, project_comment
from app.schemas import ArticleCreateRequest, ArticleUpdateRequest, CommentCreateRequest
from app.services import article_service, comment_service, relation_service
from app.services.relation_service import Viewer

router = APIRouter(prefix="/api/articles", tags=["articles"])


async def _article_or_404(db: AsyncSession, slug: str) -> Article:
    article = await article_service.get_article(db, slug)
    if article is None:
        raise NotFoundError("Article not found")
    return article


def _listing(articles: list[Article], total: int, viewer: Optional[Viewer]) -> dict:
    return {
        "articles": [project_article(a, viewer) for a in articles],
        "articlesCount": total,
    }


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

@router.get("")
async def list_articles(
    filters: ArticleFilters = Depends(),
    pagination: PaginationParams = Depends(),
    viewer: Optional[Viewer] = Depends(optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    articles, total = await article_service.list_articles(
        db,
        tag=filters.tag,
        author=filters.author,
        favorited=filters.favorited,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return _listing(articles, total, viewer)


@router.get("/feed")
async def feed(
    pagination: PaginationParams = Depends(),
    viewer: Viewer = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    articles, total = await article_service.feed_articles(
        db, viewer, limit=pagination.limit, offset=pagination.offset
    )
    return _listing(articles, total, viewer)


# ---------------------------------------------------------------------------
# Article CRUD
# ---------------------------------------------------------------------------

@router.post("", status_code=201)
async def create_article(
    payload: ArticleCreateRequest,
    user: User = Depends(get_current_user),
    viewer: Viewer = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    article = await article_service.create_article(db, user, payload.article)
    return {"article": project_article(article, viewer)}


@router.get("/{slug}")
async def get_article(
    slug: str,
    viewer: Optional[Viewer] = Depends(optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    article = await _article_or_404(db, slug)
    return {"article": project_article(article, viewer)}


@router.put("/{slug}")
async def update_article(
    slug: str,
    payload: ArticleUpdateRequest,
    viewer: Viewer = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    article = await _article_or_404(db, slug)
    article = await article_service.update_article(db, viewer, article, payload.article)
    return {"article": project_article(article, viewer)}


@router.delete("/{slug}", status_code=204)
async def delete_article(
    slug: str,
    viewer: Viewer = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    article = await _article_or_404(db, slug)
    await article_service.delete_article(db, viewer, article)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------

@router.post("/{slug}/favorite")
async def favorite_article(
    slug: str,
    viewer: Viewer = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    article = await _article_or_404(db, slug)
    viewer = await relation_service.favorite(db, viewer, article)
    return {"article": project_article(article, viewer)}


@router.delete("/{slug}/favorite")
async def unfavorite_article(
    slug: str,
    viewer: Viewer = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    article = await _article_or_404(db, slug)
    viewer = await relation_service.unfavorite(db, viewer, article)
    return {"article": project_article(article, viewer)}


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

@router.get("/{slug}/comments")
async def list_comments(
    slug: str,
    viewer: Optional[Viewer] = Depends(optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    article = await _article_or_404(db, slug)
    comments = await comment_service.list_comments(db, article)
    return {"comments": [project_comment(c, viewer) for c in comments]}


@router.post("/{slug}/comments", status_code=201)
async def add_comment(
    slug: str,
    payload: CommentCreateRequest,
    user: User = Depends(get_current_user),
    viewer: Viewer = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    article = await _article_or_404(db, slug)
    comment = await comment_service.add_comment(db, user, article, payload.comment)
    return {"comment": project_comment(comment, viewer)}


@router.delete("/{slug}/comments/{comment_id}", status_code=204)
async def delete_comment(
    slug: str,
    comment_id: int,
    viewer: Viewer = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    article = await _article_or_404(db, slug)
    comment = await comment_service.get_comment(db, article, comment_id)
    if comment is None:
        raise NotFoundError("Comment not found")
    await comment_service.delete_comment(db, viewer, comment)
    return Response(status_code=204)
