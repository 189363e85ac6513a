"""
Credentials and bearer tokens.

Passwords
    Stored as a ``(salt, hash)`` pair of hex strings.  The hash is
    PBKDF2-HMAC over the UTF-8 password, keyed by a fresh random salt per
    call to :func:`hash_password`.  Verification re-derives with the stored
    salt and compares in constant time; a wrong password is simply
    ``False``, never an error.

Tokens
    HS256 JWTs carrying the user's ``id`` and ``username`` plus an absolute
    ``exp`` ``TOKEN_EXPIRE_DAYS`` after issuance.  Any decoding problem is
    surfaced as :class:`~app.exceptions.AuthenticationError`.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.crypto.digest import pbkdf2_hmac
from passlib.utils import consteq

from app.config import settings
from app.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def _derive(password: str, salt_hex: str) -> str:
    key = pbkdf2_hmac(
        settings.PASSWORD_HASH_DIGEST,
        password.encode("utf-8"),
        bytes.fromhex(salt_hex),
        settings.PASSWORD_HASH_ITERATIONS,
        settings.PASSWORD_HASH_BYTES,
    )
    return key.hex()


def hash_password(password: str) -> tuple[str, str]:
    """Return a new ``(salt_hex, hash_hex)`` pair for *password*."""
    salt_hex = secrets.token_hex(settings.PASSWORD_SALT_BYTES)
    return salt_hex, _derive(password, salt_hex)


def verify_password(password: str, salt_hex: str, hash_hex: str) -> bool:
    """True iff *password* derives to *hash_hex* under *salt_hex*."""
    return consteq(_derive(password, salt_hex), hash_hex)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TokenClaims:
    id: int
    username: str
    expires_at: datetime


def issue_token(user, now: Optional[datetime] = None) -> str:
    """Sign a token identifying *user* (anything with ``id``/``username``)."""
    issued_at = now or datetime.now(timezone.utc)
    claims = {
        "id": user.id,
        "username": user.username,
        "exp": int((issued_at + timedelta(days=settings.TOKEN_EXPIRE_DAYS)).timestamp()),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> TokenClaims:
    """
    Check signature and expiry of *token* and return its identity claims.

    Raises AuthenticationError for a bad signature, an expired token, a
    token that is not a JWT at all, or one missing the identity claims.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        logger.debug("Rejected expired token")
        raise AuthenticationError("Token has expired")
    except JWTError as exc:
        logger.debug("Rejected token: %s", exc)
        raise AuthenticationError("Could not validate token")

    user_id = payload.get("id")
    username = payload.get("username")
    exp = payload.get("exp")
    if not isinstance(user_id, int) or not username or exp is None:
        raise AuthenticationError("Token does not carry an identity")

    return TokenClaims(
        id=user_id,
        username=username,
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
    )
