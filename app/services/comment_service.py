"""
Comment service — comments belong to one article and one author.

Only the author may delete a comment.  Deleting the row also removes it
from the parent article's comment set, which is derived from
``comments.article_id``.
"""
import logging

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.authorization import can_delete
from app.exceptions import AuthorizationError
from app.models import Article, Comment, User
from app.schemas import CommentCreate
from app.services.relation_service import Viewer

logger = logging.getLogger(__name__)


async def add_comment(
    db: AsyncSession,
    author: User,
    article: Article,
    data: CommentCreate,
) -> Comment:
    """Append a comment by *author* to *article*."""
    comment = Comment(body=data.body, author=author, article_id=article.id)
    db.add(comment)
    await db.flush()
    return comment


async def list_comments(db: AsyncSession, article: Article) -> list[Comment]:
    """Comments on *article*, newest first, with authors loaded."""
    q = (
        select(Comment)
        .where(Comment.article_id == article.id)
        .options(joinedload(Comment.author))
        .order_by(desc(Comment.created_at), desc(Comment.id))
    )
    result = await db.execute(q)
    return list(result.scalars().all())


async def get_comment(db: AsyncSession, article: Article, comment_id: int) -> Comment | None:
    """Return comment *comment_id* if it exists and belongs to *article*."""
    result = await db.execute(
        select(Comment).where(Comment.id == comment_id, Comment.article_id == article.id)
    )
    return result.scalar_one_or_none()


async def delete_comment(db: AsyncSession, viewer: Viewer, comment: Comment) -> None:
    if not can_delete(viewer, comment):
        raise AuthorizationError("Only the author may delete this comment")

    await db.delete(comment)
    await db.flush()
    logger.info("User %d deleted comment %d", viewer.id, comment.id)
