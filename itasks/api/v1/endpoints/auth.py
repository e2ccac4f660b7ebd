# itasks/api/v1/endpoints/auth.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession
from slowapi.util import get_remote_address

from itasks.db.database import get_db
from itasks.auth.security import Hasher, create_access_token
from itasks.auth.dependencies import get_current_user, get_token_payload
from itasks.db import crud
from itasks.db.models import User
from itasks.api.v1.schemas.auth import Token, LoginRequest
from itasks.api.v1.schemas.users import UserResponse
from itasks.core.config import settings
from itasks.core import tracing
from itasks.exceptions.auth import InvalidCredentialsError, InactiveUserError
from itasks.middleware.rate_limiting import limiter

router = APIRouter()


async def authenticate(db: AsyncSession, email: str, password: str, ip: str) -> Token:
    tracing.info("Login attempt", email=email, ip=ip)

    user = await crud.get_user_by_email(db, email)
    if not user or not Hasher.verify_password(password, user.hashed_password):
        tracing.warning("Login failed - invalid credentials", email=email, ip=ip)
        raise InvalidCredentialsError()

    if not user.is_active:
        tracing.warning("Login failed - account inactive", email=email, ip=ip)
        raise InactiveUserError()

    access_token = create_access_token({"sub": user.email, "user_id": user.id, "role": user.role.value})
    tracing.info("Login successful", email=user.email, user_id=user.id, ip=ip)
    return Token(access_token=access_token, expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60)


@router.post("/login", response_model=Token)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login_for_access_token(
        request: Request,
        form_data: OAuth2PasswordRequestForm = Depends(),
        db: AsyncSession = Depends(get_db),
):
    """OAuth2 password flow; the username field carries the email address"""
    return await authenticate(db, form_data.username, form_data.password, get_remote_address(request))


@router.post("/login-json", response_model=Token)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login_json(request: Request, credentials: LoginRequest, db: AsyncSession = Depends(get_db)):
    return await authenticate(db, credentials.email, credentials.password, get_remote_address(request))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
        payload: dict = Depends(get_token_payload),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    """Revoke the presented access token until it expires"""
    expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    await crud.add_to_blacklist(db, payload["jti"], expires_at)
    tracing.info("User logged out", user_id=current_user.id)


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    user = await crud.get_user_by_uuid(db, current_user.uuid)
    return UserResponse.from_model(user)
