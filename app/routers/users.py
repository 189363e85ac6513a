from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user, require_token
from app.exceptions import ValidationError
from app.models import User
from app.projections import project_auth_payload
from app.schemas import LoginRequest, RegisterRequest, UserUpdateRequest
from app.services import user_service

router = APIRouter(prefix="/api", tags=["users"])


@router.post("/users", status_code=201)
async def register(payload: RegisterRequest, db: AsyncSession = Depends(get_db)):
    user = await user_service.register(db, payload.user)
    return {"user": project_auth_payload(user)}


@router.post("/users/login")
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    user = await user_service.authenticate(db, payload.user.email, payload.user.password)
    if user is None:
        raise ValidationError({"email or password": "is invalid"})
    return {"user": project_auth_payload(user)}


@router.get("/user")
async def current_user(
    user: User = Depends(get_current_user),
    token: str = Depends(require_token),
):
    return {"user": project_auth_payload(user, token)}


@router.put("/user")
async def update_current_user(
    payload: UserUpdateRequest,
    user: User = Depends(get_current_user),
    token: str = Depends(require_token),
    db: AsyncSession = Depends(get_db),
):
    changes = payload.user
    user = await user_service.update_user(db, user, changes)
    # The token carries the username, so credential changes get a new one.
    if changes.username is not None or changes.password is not None:
        token = None
    return {"user": project_auth_payload(user, token)}
