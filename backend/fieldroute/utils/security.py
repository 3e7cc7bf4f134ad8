"""Bearer token auth and role checks for office staff and technicians."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldroute.config import settings
from fieldroute.database import get_db
from fieldroute.models.user import User, UserRole
from fieldroute.schemas.auth import TokenPayload

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(
    user_id: int,
    email: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Signed JWT carrying the user id, email and role."""
    expires_at = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_expire_minutes)
    )
    claims = {"sub": str(user_id), "email": email, "role": role, "exp": expires_at}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[TokenPayload]:
    """Claims of a valid token, or None when the signature or shape is wrong.

    ``jose`` already rejects expired tokens during decode.
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return TokenPayload(
            sub=int(claims["sub"]),
            email=claims["email"],
            role=claims["role"],
            exp=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )
    except (JWTError, KeyError, ValueError):
        return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def authenticate(db: AsyncSession, email: str, password: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    token_data = decode_access_token(credentials.credentials)
    if token_data is None:
        raise _unauthorized("Could not validate credentials")

    user = await db.get(User, token_data.sub)
    if user is None:
        raise _unauthorized("Could not validate credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is deactivated")
    return user


def require_role(*roles: UserRole):
    """Dependency factory admitting only the given roles."""
    allowed = [r.value for r in roles]

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {allowed}",
            )
        return current_user

    return role_checker


def ensure_own_schedule(current_user: User, technician_id: int) -> None:
    """Technicians may only act on their own itinerary; office roles on any."""
    if current_user.is_technician and current_user.id != technician_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Technicians can only access their own schedule",
        )


require_dispatcher = require_role(UserRole.ADMIN, UserRole.DISPATCHER)
require_technician = require_role(UserRole.ADMIN, UserRole.DISPATCHER, UserRole.TECHNICIAN)
