"""QRCode (short link) and Scan models."""

from datetime import datetime
from sqlalchemy import String, Text, Boolean, Float, ForeignKey, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.postgres import Base, generate_id
from app.models.design import DesignMixin


class QRCode(DesignMixin, Base):
    __tablename__ = "qr_codes"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_id)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    slug: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    original_url: Mapped[str] = mapped_column(Text)
    dynamic: Mapped[bool] = mapped_column(Boolean, default=False)
    bulk: Mapped[bool] = mapped_column(Boolean, default=False)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    error_correction: Mapped[str] = mapped_column(String(1), default="M")  # L, M, Q, H
    format: Mapped[str] = mapped_column(String(10), default="PNG")  # PNG, SVG
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id"), nullable=False, index=True
    )
    owner = relationship("User", back_populates="qr_codes")

    scans: Mapped[list["Scan"]] = relationship(
        back_populates="qr_code", cascade="all, delete-orphan", passive_deletes=True
    )

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now or datetime.utcnow())


class Scan(Base):
    """Append-only record of a single scan of a QR code."""
    __tablename__ = "scans"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=generate_id)
    qr_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("qr_codes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ua: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Geolocation (each field independently nullable)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    region: Mapped[str | None] = mapped_column(String(100), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    qr_code: Mapped["QRCode"] = relationship(back_populates="scans")
