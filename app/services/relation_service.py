"""
Relation aggregator — the favorites and following many-to-many sets.

The requesting user is represented by an immutable :class:`Viewer`
snapshot holding the ids in both sets.  Membership tests are pure
functions over that snapshot; the mutating operations write the relation
row and return a new snapshot rather than changing the old one.

``Article.favorites_count`` is never incremented in place.  After every
favorite/unfavorite it is recomputed from the ``favorites`` relation
itself, so a failure between the relation write and the counter write is
corrected by the next recompute.  Two concurrent writers may still race on
the counter; that window is accepted.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Article, User, favorites, follows

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Viewer:
    id: int
    username: str
    favorite_ids: frozenset[int] = field(default_factory=frozenset)
    following_ids: frozenset[int] = field(default_factory=frozenset)


# ---------------------------------------------------------------------------
# Pure membership tests
# ---------------------------------------------------------------------------

def is_favorited(viewer: Optional[Viewer], article: Article) -> bool:
    return viewer is not None and article.id in viewer.favorite_ids


def is_following(viewer: Optional[Viewer], user: User) -> bool:
    return viewer is not None and user.id in viewer.following_ids


# ---------------------------------------------------------------------------
# Snapshot loading
# ---------------------------------------------------------------------------

async def load_viewer(db: AsyncSession, user_id: int) -> Optional[Viewer]:
    """Snapshot *user_id* and both of its relation sets; None if the user is gone."""
    user = await db.get(User, user_id)
    if user is None:
        return None

    favorite_rows = await db.execute(
        select(favorites.c.article_id).where(favorites.c.user_id == user_id)
    )
    following_rows = await db.execute(
        select(follows.c.followed_id).where(follows.c.follower_id == user_id)
    )
    return Viewer(
        id=user.id,
        username=user.username,
        favorite_ids=frozenset(favorite_rows.scalars().all()),
        following_ids=frozenset(following_rows.scalars().all()),
    )


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------

async def _has_favorite(db: AsyncSession, user_id: int, article_id: int) -> bool:
    result = await db.execute(
        select(favorites.c.user_id).where(
            favorites.c.user_id == user_id, favorites.c.article_id == article_id
        )
    )
    return result.first() is not None


async def recount_favorites(db: AsyncSession, article: Article) -> int:
    """Set ``article.favorites_count`` to the number of users favoriting it."""
    result = await db.execute(
        select(func.count()).select_from(favorites).where(favorites.c.article_id == article.id)
    )
    article.favorites_count = result.scalar_one()
    await db.flush()
    return article.favorites_count


async def favorite(db: AsyncSession, viewer: Viewer, article: Article) -> Viewer:
    """Add *article* to the viewer's favorites (no-op if present) and recount."""
    if not await _has_favorite(db, viewer.id, article.id):
        await db.execute(insert(favorites).values(user_id=viewer.id, article_id=article.id))
        logger.debug("User %d favorited article %d", viewer.id, article.id)
    await recount_favorites(db, article)
    return replace(viewer, favorite_ids=viewer.favorite_ids | {article.id})


async def unfavorite(db: AsyncSession, viewer: Viewer, article: Article) -> Viewer:
    """Remove *article* from the viewer's favorites (no-op if absent) and recount."""
    result = await db.execute(
        delete(favorites).where(
            favorites.c.user_id == viewer.id, favorites.c.article_id == article.id
        )
    )
    if result.rowcount:
        logger.debug("User %d unfavorited article %d", viewer.id, article.id)
    await recount_favorites(db, article)
    return replace(viewer, favorite_ids=viewer.favorite_ids - {article.id})


# ---------------------------------------------------------------------------
# Following
# ---------------------------------------------------------------------------

async def follow(db: AsyncSession, viewer: Viewer, target: User) -> Viewer:
    """Add *target* to the viewer's following set (no-op if present)."""
    result = await db.execute(
        select(follows.c.follower_id).where(
            follows.c.follower_id == viewer.id, follows.c.followed_id == target.id
        )
    )
    if result.first() is None:
        await db.execute(insert(follows).values(follower_id=viewer.id, followed_id=target.id))
        logger.debug("User %d followed user %d", viewer.id, target.id)
    return replace(viewer, following_ids=viewer.following_ids | {target.id})


async def unfollow(db: AsyncSession, viewer: Viewer, target: User) -> Viewer:
    """Remove *target* from the viewer's following set (no-op if absent)."""
    await db.execute(
        delete(follows).where(
            follows.c.follower_id == viewer.id, follows.c.followed_id == target.id
        )
    )
    return replace(viewer, following_ids=viewer.following_ids - {target.id})
