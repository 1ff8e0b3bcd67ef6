"""User model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from taskload.db.base import BaseModel, JSONType

USER_ROLES = ("admin", "user", "owner", "member", "supervisor")


class User(BaseModel):
    """Registered user authenticated with username/email and password."""

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile
    first_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    profile_image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default="user"
    )  # admin, user, owner, member, supervisor

    # Account status
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Password reset (sha256 of the emailed token)
    password_reset_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    preferences: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    custom_fields: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    @property
    def full_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or self.username

    def __repr__(self) -> str:
        try:
            return f"<User {self.username}>"
        except Exception:
            return f"<User id={self.id}>"
