"""Authentication endpoints: registration, login, tokens and password reset."""

from datetime import datetime, timedelta, timezone
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.config import get_settings
from taskload.db.session import get_db_session
from taskload.models.user import User
from taskload.rate_limit import auth_rate_limit
from taskload.schemas.common import MessageResponse, UserSummary
from taskload.schemas.user import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    ProfileUpdate,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
)
from taskload.services.auth import AuthService
from taskload.services.cache import cache

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()
security = HTTPBearer(auto_error=False)


def _secret(token_type: str) -> str:
    key = settings.jwt_refresh_secret_key if token_type == "refresh" else settings.jwt_secret_key
    return key.get_secret_value()


def create_access_token(user_id: UUID, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.jwt_access_token_expire_minutes
        )

    to_encode = {
        "sub": str(user_id),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, _secret("access"), algorithm=settings.jwt_algorithm)


def create_refresh_token(user_id: UUID) -> str:
    """Create a JWT refresh token, signed with the refresh secret."""
    expire = datetime.now(timezone.utc) + timedelta(days=settings.jwt_refresh_token_expire_days)
    to_encode = {
        "sub": str(user_id),
        "exp": expire,
        "type": "refresh",
    }
    return jwt.encode(to_encode, _secret("refresh"), algorithm=settings.jwt_algorithm)


def decode_token(token: str, token_type: str = "access") -> UUID:
    """Return the user id in a valid token of the given type.

    Raises:
        JWTError: If the signature, expiry or type is wrong
    """
    payload = jwt.decode(token, _secret(token_type), algorithms=[settings.jwt_algorithm])
    user_id = payload.get("sub")
    if user_id is None or payload.get("type") != token_type:
        raise JWTError("Invalid token type")
    try:
        return UUID(user_id)
    except ValueError as e:
        raise JWTError("Invalid subject") from e


async def issue_tokens(user: User) -> AuthResponse:
    access_token = create_access_token(user.id)
    refresh_token = create_refresh_token(user.id)
    await cache.store_refresh_token(
        str(user.id), refresh_token, ttl=settings.jwt_refresh_token_expire_days * 86400
    )
    return AuthResponse(
        user=UserSummary.model_validate(user),
        token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Get the current authenticated user from JWT token."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = decode_token(credentials.credentials, "access")
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or disabled",
        )
    return user


# Type alias for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@auth_rate_limit()
async def register(
    request: Request,
    user_data: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    """Create an account and sign the new user in."""
    user = await AuthService(db).register(user_data)
    return await issue_tokens(user)


@router.post("/login", response_model=AuthResponse)
@auth_rate_limit()
async def login(
    request: Request,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    user = await AuthService(db).authenticate(credentials.email, credentials.password)
    return await issue_tokens(user)


@router.post("/refresh-token", response_model=AuthResponse)
@auth_rate_limit()
async def refresh_token(
    request: Request,
    token_data: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    """Exchange a refresh token for a new token pair."""
    try:
        user_id = decode_token(token_data.refresh_token, "refresh")
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )

    if cache.enabled:
        stored = await cache.get_refresh_token(str(user_id))
        if stored != token_data.refresh_token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Refresh token has been revoked",
            )

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or disabled",
        )
    return await issue_tokens(user)


@router.post("/logout", response_model=MessageResponse)
async def logout(current_user: CurrentUser) -> MessageResponse:
    """Revoke the stored refresh token; the client discards the access token."""
    await cache.revoke_refresh_token(str(current_user.id))
    logger.info("User logged out", user_id=str(current_user.id))
    return MessageResponse(message="Successfully logged out")


@router.post("/forgot-password", response_model=MessageResponse)
@auth_rate_limit()
async def forgot_password(
    request: Request,
    reset_request: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    # Same answer whether or not the email exists
    await AuthService(db).create_password_reset(reset_request.email)
    return MessageResponse(message="If that email is registered, a reset link has been sent")


@router.post("/reset-password", response_model=AuthResponse)
@auth_rate_limit()
async def reset_password(
    request: Request,
    reset_data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    user = await AuthService(db).reset_password(reset_data.token, reset_data.password)
    return await issue_tokens(user)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: CurrentUser) -> User:
    """Get current user information."""
    return current_user


@router.put("/me", response_model=UserResponse)
async def update_current_user(
    profile_data: ProfileUpdate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> User:
    return await AuthService(db).update_profile(current_user, profile_data)
