"""Account service: registration, credentials and password reset."""

import hashlib
import secrets
from datetime import timedelta
from uuid import UUID

import bcrypt
import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.config import get_settings
from taskload.db.base import ensure_utc, utcnow
from taskload.errors import BadRequestError, NotFoundError, UnauthorizedError
from taskload.models.user import User
from taskload.schemas.user import ProfileUpdate, RegisterRequest

logger = structlog.get_logger()
settings = get_settings()


def hash_password(password: str) -> str:
    # bcrypt only uses the first 72 bytes
    hashed = bcrypt.hashpw(password.encode("utf-8")[:72], bcrypt.gensalt(rounds=settings.bcrypt_rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("utf-8"))
    except ValueError:
        return False


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class AuthService:
    """User account operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: UUID) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def register(self, data: RegisterRequest) -> User:
        result = await self.db.execute(
            select(User).where(or_(User.email == data.email, User.username == data.username))
        )
        for existing in result.scalars():
            if existing.email == data.email:
                raise BadRequestError("User with this email already exists")
            raise BadRequestError("Username is already taken")

        user = User(
            username=data.username,
            email=data.email,
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            last_login=utcnow(),
        )
        self.db.add(user)
        await self.db.flush()

        logger.info("User registered", user_id=str(user.id), username=user.username)
        return user

    async def authenticate(self, email: str, password: str) -> User:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        user = result.scalar_one_or_none()

        if user is None or not user.is_active or not verify_password(password, user.password_hash):
            logger.info("Login failed", email=email.lower())
            raise UnauthorizedError("Invalid credentials")

        user.last_login = utcnow()
        await self.db.flush()
        logger.info("User logged in", user_id=str(user.id))
        return user

    async def create_password_reset(self, email: str) -> str | None:
        """Store a hashed reset token and return the raw token, or None for unknown emails."""
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        user = result.scalar_one_or_none()
        if user is None:
            return None

        token = secrets.token_hex(32)
        user.password_reset_token = hash_reset_token(token)
        user.password_reset_expires = utcnow() + timedelta(
            minutes=settings.password_reset_expire_minutes
        )
        await self.db.flush()

        # No mailer; the raw token only reaches debug logs
        logger.info("Password reset requested", user_id=str(user.id))
        logger.debug("Password reset token issued", user_id=str(user.id), reset_token=token)
        return token

    async def reset_password(self, token: str, new_password: str) -> User:
        result = await self.db.execute(
            select(User).where(User.password_reset_token == hash_reset_token(token))
        )
        user = result.scalar_one_or_none()
        expires = ensure_utc(user.password_reset_expires) if user else None

        if user is None or expires is None or expires < utcnow():
            raise BadRequestError("Invalid or expired reset token")

        user.password_hash = hash_password(new_password)
        user.password_reset_token = None
        user.password_reset_expires = None
        await self.db.flush()

        logger.info("Password reset completed", user_id=str(user.id))
        return user

    async def update_profile(self, user: User, data: ProfileUpdate) -> User:
        updates = data.model_dump(exclude_unset=True)
        if "preferences" in updates and updates["preferences"] is not None:
            updates["preferences"] = {**(user.preferences or {}), **updates["preferences"]}
        if "custom_fields" in updates and updates["custom_fields"] is not None:
            updates["custom_fields"] = {**(user.custom_fields or {}), **updates["custom_fields"]}
        for field, value in updates.items():
            setattr(user, field, value)
        await self.db.flush()
        await self.db.refresh(user)
        return user
