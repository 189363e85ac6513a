from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import optional_viewer, require_viewer
from app.exceptions import NotFoundError
from app.models import User
from app.projections import project_profile
from app.services import relation_service, user_service
from app.services.relation_service import Viewer

router = APIRouter(prefix="/api/profiles", tags=["profiles"])


async def _profile_user(db: AsyncSession, username: str) -> User:
    user = await user_service.get_user_by_username(db, username)
    if user is None:
        raise NotFoundError("Profile not found")
    return user


@router.get("/{username}")
async def get_profile(
    username: str,
    viewer: Optional[Viewer] = Depends(optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    user = await _profile_user(db, username)
    return {"profile": project_profile(user, viewer)}


@router.post("/{username}/follow")
async def follow_user(
    username: str,
    viewer: Viewer = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    user = await _profile_user(db, username)
    viewer = await relation_service.follow(db, viewer, user)
    return {"profile": project_profile(user, viewer)}


@router.delete("/{username}/follow")
async def unfollow_user(
    username: str,
    viewer: Viewer = Depends(require_viewer),
    db: AsyncSession = Depends(get_db),
):
    user = await _profile_user(db, username)
    viewer = await relation_service.unfollow(db, viewer, user)
    return {"profile": project_profile(user, viewer)}
