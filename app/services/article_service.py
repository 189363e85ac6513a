"""
Article service — business logic for the Article aggregate.

Design notes
------------
- Every article handed to the projection layer is loaded through
  ``_article_query()``: ``joinedload`` for the author (many-to-one) and
  ``selectinload`` for the ordered tag rows.  Relationships are declared
  ``lazy="noload"`` so a missing option shows up as empty data rather
  than as an implicit query.
- Writes that need an owner check take the requesting ``Viewer`` and run
  ``can_mutate`` before any attribute is assigned, so a rejected request
  leaves the stored article untouched.
- Listing issues two independent statements against the same filter
  (COUNT and the page).  They are not snapshot-consistent.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import logging
import re
import secrets
from typing import Optional, Sequence

from sqlalchemy import ColumnElement, delete, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from app.authorization import can_mutate
from app.exceptions import AuthorizationError
from app.models import Article, ArticleTag, Comment, User, favorites
from app.schemas import ArticleCreate, ArticleUpdate
from app.services.relation_service import Viewer

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Slugs
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]", re.ASCII)
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")

_SLUG_ATTEMPTS = 5


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def make_slug(title: str) -> str:
    """Slugified *title* plus a random lowercase-hex disambiguator."""
    suffix = secrets.token_hex(4)
    base = slugify(title)
    return f"{base}-{suffix}" if base else suffix


async def _unused_slug(db: AsyncSession, title: str) -> str:
    for _ in range(_SLUG_ATTEMPTS):
        slug = make_slug(title)
        taken = await db.execute(select(Article.id).where(Article.slug == slug))
        if taken.first() is None:
            return slug
    raise RuntimeError(f"Could not allocate a unique slug for {title!r}")


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------

def _article_query():
    return select(Article).options(
        joinedload(Article.author),
        selectinload(Article.tag_rows),
    )


def _tag_rows(names: Sequence[str]) -> list[ArticleTag]:
    return [ArticleTag(position=i, name=name) for i, name in enumerate(names)]


def _listing_conditions(
    tag: Optional[str],
    author: Optional[str],
    favorited: Optional[str],
) -> list[ColumnElement[bool]]:
    conditions: list[ColumnElement[bool]] = []
    if tag:
        conditions.append(Article.tag_rows.any(ArticleTag.name == tag))
    if author:
        conditions.append(Article.author.has(User.username == author.lower()))
    if favorited:
        favorited_ids = (
            select(favorites.c.article_id)
            .join(User, User.id == favorites.c.user_id)
            .where(User.username == favorited.lower())
        )
        conditions.append(Article.id.in_(favorited_ids))
    return conditions


async def _page(
    db: AsyncSession,
    conditions: list[ColumnElement[bool]],
    limit: int,
    offset: int,
) -> tuple[list[Article], int]:
    count_q = select(func.count()).select_from(Article).where(*conditions)
    total: int = (await db.execute(count_q)).scalar_one()

    page_q = (
        _article_query()
        .where(*conditions)
        .order_by(desc(Article.created_at), desc(Article.id))
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(page_q)
    return list(result.unique().scalars().all()), total


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_article(db: AsyncSession, slug: str) -> Article | None:
    """Return the article with *slug* (author and tags loaded), or None."""
    result = await db.execute(_article_query().where(Article.slug == slug))
    return result.unique().scalar_one_or_none()


async def list_articles(
    db: AsyncSession,
    tag: Optional[str] = None,
    author: Optional[str] = None,
    favorited: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Article], int]:
    """
    Return one page of articles, newest first, plus the total match count.

    *tag* matches exact membership in the tag list, *author* the author's
    username and *favorited* a username whose favorites include the
    article.  Supplied filters are combined with AND.
    """
    return await _page(db, _listing_conditions(tag, author, favorited), limit, offset)


async def feed_articles(
    db: AsyncSession,
    viewer: Viewer,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Article], int]:
    """Articles written by users the viewer follows, newest first."""
    conditions = [Article.author_id.in_(viewer.following_ids)]
    return await _page(db, conditions, limit, offset)


async def create_article(db: AsyncSession, author: User, data: ArticleCreate) -> Article:
    """Create an article owned by *author*; the slug is fixed from here on."""
    article = Article(
        slug=await _unused_slug(db, data.title),
        title=data.title,
        description=data.description,
        body=data.body,
        favorites_count=0,
        author=author,
        tag_rows=_tag_rows(data.tag_list),
    )
    db.add(article)
    await db.flush()
    logger.info("User %d created article %s", author.id, article.slug)
    return article


async def update_article(
    db: AsyncSession, viewer: Viewer, article: Article, data: ArticleUpdate
) -> Article:
    """
    Apply the fields explicitly present in *data*.

    Raises AuthorizationError, with nothing modified, unless *viewer*
    wrote the article.  The slug is not regenerated when the title
    changes.
    """
    if not can_mutate(viewer, article):
        raise AuthorizationError("Only the author may edit this article")

    changes = data.model_dump(exclude_unset=True)
    tag_list = changes.pop("tag_list", None)
    for field, value in changes.items():
        if value is not None:
            setattr(article, field, value)
    if tag_list is not None:
        article.tag_rows = _tag_rows(tag_list)

    await db.flush()
    return article


async def delete_article(db: AsyncSession, viewer: Viewer, article: Article) -> None:
    """Delete *article* with its comments, tags and favorite rows (author only)."""
    if not can_mutate(viewer, article):
        raise AuthorizationError("Only the author may delete this article")

    await db.execute(delete(Comment).where(Comment.article_id == article.id))
    await db.execute(delete(favorites).where(favorites.c.article_id == article.id))
    await db.delete(article)
    await db.flush()
    logger.info("User %d deleted article %s", viewer.id, article.slug)


async def list_tags(db: AsyncSession) -> list[str]:
    """Distinct union of every article's tag list."""
    result = await db.execute(select(ArticleTag.name).distinct().order_by(ArticleTag.name))
    return list(result.scalars().all())
