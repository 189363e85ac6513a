"""
User service — registration, credential checks, account edits and
profile lookup for the User aggregate.

Username and email uniqueness is checked before every write so clients
get a field-level "is already taken" message.  The unique constraints in
the schema remain the final word: an ``IntegrityError`` raised by a
concurrent insert is translated into the same validation error.
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ValidationError
from app.models import User
from app.schemas import UserRegistration, UserUpdate
from app.security import hash_password, verify_password

logger = logging.getLogger(__name__)

TAKEN = "is already taken"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def set_password(user: User, password: str) -> None:
    """Replace the stored credential pair with one derived from *password*."""
    user.password_salt, user.password_hash = hash_password(password)


async def _taken_fields(
    db: AsyncSession,
    username: Optional[str],
    email: Optional[str],
    exclude_id: Optional[int] = None,
) -> dict[str, str]:
    errors: dict[str, str] = {}
    for field, column, value in (
        ("username", User.username, username),
        ("email", User.email, email),
    ):
        if value is None:
            continue
        q = select(User.id).where(column == value)
        if exclude_id is not None:
            q = q.where(User.id != exclude_id)
        if (await db.execute(q)).first() is not None:
            errors[field] = TAKEN
    return errors


async def _flush_unique(db: AsyncSession) -> None:
    try:
        await db.flush()
    except IntegrityError:
        raise ValidationError({"username or email": TAKEN})


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username.lower()))
    return result.scalar_one_or_none()


async def register(db: AsyncSession, data: UserRegistration) -> User:
    """Create a user from validated registration data."""
    errors = await _taken_fields(db, data.username, data.email)
    if errors:
        raise ValidationError(errors)

    user = User(username=data.username, email=data.email)
    set_password(user, data.password)
    db.add(user)
    await _flush_unique(db)
    logger.info("Registered user %s (id=%d)", user.username, user.id)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User | None:
    """Return the user owning *email* if *password* matches, else None."""
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.password_salt, user.password_hash):
        logger.info("Failed login for %s", email)
        return None
    return user


async def update_user(db: AsyncSession, user: User, data: UserUpdate) -> User:
    """
    Apply the fields explicitly present in *data* to *user*.

    Fields left out of the request are untouched; a supplied password
    replaces the salt/hash pair.
    """
    changes = data.model_dump(exclude_unset=True)
    errors = await _taken_fields(
        db, changes.get("username"), changes.get("email"), exclude_id=user.id
    )
    if errors:
        raise ValidationError(errors)

    password = changes.pop("password", None)
    for field in ("username", "email"):
        # Explicit nulls cannot clear required columns.
        if field in changes and changes[field] is None:
            changes.pop(field)
    for field, value in changes.items():
        setattr(user, field, value)
    if password is not None:
        set_password(user, password)

    await _flush_unique(db)
    return user
