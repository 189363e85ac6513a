"""
Request-scoped FastAPI dependencies.

Authentication comes in two modes, both reading
``Authorization: Token <jwt>``:

- **required** (``get_current_user`` / ``require_viewer``): no header or
  an unusable token rejects the request with 401.
- **optional** (``optional_viewer``): no header means an anonymous
  viewer, but a header that is present and malformed is still a 401.
"""
from typing import Optional

from fastapi import Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.exceptions import AuthenticationError
from app.models import User
from app.security import TokenClaims, verify_token
from app.services import user_service
from app.services.relation_service import Viewer, load_viewer

TOKEN_SCHEME = "Token"


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

def get_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """The raw token from the Authorization header, or None when absent."""
    if authorization is None:
        return None
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme != TOKEN_SCHEME or not token:
        raise AuthenticationError("Malformed Authorization header")
    return token


def require_token(token: Optional[str] = Depends(get_token)) -> str:
    if token is None:
        raise AuthenticationError("Authorization required")
    return token


def get_optional_claims(token: Optional[str] = Depends(get_token)) -> Optional[TokenClaims]:
    return verify_token(token) if token is not None else None


def get_required_claims(token: str = Depends(require_token)) -> TokenClaims:
    return verify_token(token)


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------

async def get_current_user(
    claims: TokenClaims = Depends(get_required_claims),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await user_service.get_user_by_id(db, claims.id)
    if user is None:
        raise AuthenticationError("Token refers to an unknown user")
    return user


async def require_viewer(
    claims: TokenClaims = Depends(get_required_claims),
    db: AsyncSession = Depends(get_db),
) -> Viewer:
    viewer = await load_viewer(db, claims.id)
    if viewer is None:
        raise AuthenticationError("Token refers to an unknown user")
    return viewer


async def optional_viewer(
    claims: Optional[TokenClaims] = Depends(get_optional_claims),
    db: AsyncSession = Depends(get_db),
) -> Optional[Viewer]:
    """The requesting viewer, or None for anonymous requests."""
    if claims is None:
        return None
    return await load_viewer(db, claims.id)


# ---------------------------------------------------------------------------
# Listing parameters
# ---------------------------------------------------------------------------

class PaginationParams:
    """
    ``limit`` / ``offset`` query parameters for article listings.

    ``limit`` defaults to ``settings.DEFAULT_PAGE_SIZE`` and is clamped to
    ``settings.MAX_PAGE_SIZE`` so a single request cannot ask for an
    unbounded scan.  Negative values are rejected with 422.
    """

    def __init__(
        self,
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=0,
            description="Maximum number of articles to return.",
        ),
        offset: int = Query(
            0,
            ge=0,
            description="Number of articles to skip.",
        ),
    ) -> None:
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.offset = offset


class ArticleFilters:
    """Optional listing filters, combined with AND."""

    def __init__(
        self,
        tag: Optional[str] = Query(None, description="Exact tag to match."),
        author: Optional[str] = Query(None, description="Author username."),
        favorited: Optional[str] = Query(
            None, description="Username whose favorites must include the article."
        ),
    ) -> None:
        self.tag = tag
        self.author = author
        self.favorited = favorited
