"""User model with invitation-tree support."""

from datetime import datetime
from sqlalchemy import String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.postgres import Base, generate_id
from app.models.role import ADMIN, ROLE_PERMISSIONS


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), default=ADMIN)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False)

    # Single-use tokens for emailed links
    email_verification_token: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    email_verification_expires: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    password_reset_token: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    new_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    new_email_token: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    new_email_token_expires: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Who invited this user (null for the root admin of a team)
    invited_by_id: Mapped[str | None] = mapped_column(
        String(32),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    invited_by = relationship("User", remote_side=[id])

    qr_codes = relationship("QRCode", back_populates="owner", passive_deletes=True)

    @property
    def is_root(self) -> bool:
        return self.role == ADMIN and self.invited_by_id is None

    def has_permission(self, permission: str) -> bool:
        """Check if user has a specific permission."""
        return ROLE_PERMISSIONS.get(self.role, {}).get(permission, False)
