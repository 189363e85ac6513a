"""
Viewer-relative JSON renderings of stored entities.

Every function here is pure: it reads an entity (with the relationships
it needs already loaded) and an optional :class:`Viewer`, and returns a
plain dict.  Relational flags (``following``, ``favorited``) are always
present and are ``False`` when there is no viewer.  No projection ever
includes the password salt or hash.
"""
from datetime import datetime, timezone
from typing import Optional

from app.config import settings
from app.models import Article, Comment, User
from app.security import issue_token
from app.services.relation_service import Viewer, is_favorited, is_following


def _timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    # SQLite hands back naive datetimes; every stored value is UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def project_profile(user: User, viewer: Optional[Viewer]) -> dict:
    return {
        "username": user.username,
        "bio": user.bio,
        "image": user.image or settings.DEFAULT_PROFILE_IMAGE,
        "following": is_following(viewer, user),
    }


def project_article(article: Article, viewer: Optional[Viewer]) -> dict:
    return {
        "slug": article.slug,
        "title": article.title,
        "description": article.description,
        "body": article.body,
        "tagList": article.tag_list,
        "createdAt": _timestamp(article.created_at),
        "updatedAt": _timestamp(article.updated_at),
        "favorited": is_favorited(viewer, article),
        "favoritesCount": article.favorites_count,
        "author": project_profile(article.author, viewer),
    }


def project_comment(comment: Comment, viewer: Optional[Viewer]) -> dict:
    return {
        "id": comment.id,
        "body": comment.body,
        "createdAt": _timestamp(comment.created_at),
        "author": project_profile(comment.author, viewer),
    }


def project_auth_payload(user: User, token: Optional[str] = None) -> dict:
    """
    Render the signed-in user's own account.

    A new token is issued only when *token* is omitted, i.e. right after
    registration or a password check.  Requests that already authenticated
    with a token get that same token echoed back.
    """
    return {
        "email": user.email,
        "token": token if token is not None else issue_token(user),
        "username": user.username,
        "bio": user.bio,
        "image": user.image,
    }
