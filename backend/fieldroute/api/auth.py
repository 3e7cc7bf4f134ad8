"""Login and identity endpoints."""

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.config import settings
from fieldroute.database import get_db
from fieldroute.models.user import User
from fieldroute.schemas.auth import LoginRequest, Token
from fieldroute.schemas.user import UserResponse
from fieldroute.utils.logging import get_logger
from fieldroute.utils.security import authenticate, create_access_token, get_current_user

router = APIRouter()
logger = get_logger("api.auth")


@router.post("/login", response_model=Token)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> Token:
    """Exchange email and password for a bearer token."""
    user = await authenticate(db, request.email, request.password)
    if user is None:
        logger.info("login_rejected", reason="bad_credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        logger.info("login_rejected", user_id=user.id, reason="inactive")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is deactivated")

    user.last_login = datetime.now(timezone.utc)
    await db.flush()

    token = create_access_token(
        user_id=user.id,
        email=user.email,
        role=user.role,
        expires_delta=timedelta(minutes=settings.jwt_expire_minutes),
    )
    logger.info("login_succeeded", user_id=user.id, role=user.role)
    return Token(access_token=token, expires_in=settings.jwt_expire_minutes * 60)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)) -> User:
    return current_user
