"""Invitation model for team membership links."""

from datetime import datetime, timedelta
from sqlalchemy import String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.postgres import Base, generate_id


class Invitation(Base):
    """Single-use invitation to join the issuer's team."""

    __tablename__ = "invitations"
    __table_args__ = (
        UniqueConstraint("email", "invited_by_id", name="uq_invitations_email_invited_by"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_id)
    email: Mapped[str] = mapped_column(String(255), index=True)
    token: Mapped[str] = mapped_column(String(64), unique=True, index=True)

    # Role to assign when invitation is accepted
    role: Mapped[str] = mapped_column(String(20))

    # Who sent the invitation
    invited_by_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    invited_by = relationship("User", foreign_keys=[invited_by_id])

    used: Mapped[bool] = mapped_column(Boolean, default=False)

    expires_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.utcnow() + timedelta(days=7)
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    @property
    def is_valid(self) -> bool:
        """Check if invitation can still be accepted."""
        return not self.used and datetime.utcnow() < self.expires_at
