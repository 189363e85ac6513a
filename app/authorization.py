"""
Ownership checks.

Both predicates take already-resolved entities: the identity comes from a
verified token and the target from the path.  Callers must check before
touching any field and raise ``AuthorizationError`` on ``False``.
"""
from app.models import Article, Comment


def can_mutate(identity, article: Article) -> bool:
    """Only the article's author may edit or delete it."""
    return identity is not None and identity.id == article.author_id


def can_delete(identity, comment: Comment) -> bool:
    """Only the comment's author may delete it."""
    return identity is not None and identity.id == comment.author_id
