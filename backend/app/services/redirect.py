"""Scan-time redirect policy.

``RedirectGate.resolve_and_log`` looks a slug up, enforces expiry and
password protection, and hands the scan to the ``ScanRecorder`` without
waiting for it to be stored.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.qr_code import QRCode
from app.security import verify_password
from app.services.errors import NotFoundError, GoneError, PasswordRequiredError, ForbiddenError
from app.services.scan_recorder import ScanRecorder

# Checked in order, first non-empty wins
CLIENT_IP_HEADERS = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip")


@dataclass
class RedirectOutcome:
    qr_id: str
    slug: str
    dynamic: bool
    # Tracking URL for dynamic codes, the stored URL for static ones
    target: str
    # Where the scan should land right now
    destination: str


def tracking_url(base_url: str, slug: str) -> str:
    """Canonical URL that routes a scan back through /scan/{slug}."""
    return f"{base_url.rstrip('/')}/scan/{slug}"


def extract_client_ip(headers: Mapping[str, str], peer: str | None = None) -> str | None:
    for header in CLIENT_IP_HEADERS:
        value = headers.get(header)
        if not value:
            continue
        # X-Forwarded-For: client, proxy1, proxy2
        first = value.split(",")[0].strip()
        if first:
            return first
    return peer


class RedirectGate:
    def __init__(self, db: AsyncSession, recorder: ScanRecorder | None, public_base_url: str):
        self.db = db
        self.recorder = recorder
        self.public_base_url = public_base_url

    async def resolve(
        self,
        slug: str,
        supplied_password: str | None = None,
        now: datetime | None = None,
    ) -> RedirectOutcome:
        result = await self.db.execute(select(QRCode).where(QRCode.slug == slug))
        qr = result.scalar_one_or_none()
        if qr is None:
            raise NotFoundError("QR not found")

        if qr.is_expired(now):
            raise GoneError("QR expired")

        if qr.password_hash:
            if not supplied_password:
                raise PasswordRequiredError("Password required")
            if not verify_password(supplied_password, qr.password_hash):
                raise ForbiddenError("Wrong password")

        target = tracking_url(self.public_base_url, qr.slug) if qr.dynamic else qr.original_url
        return RedirectOutcome(
            qr_id=qr.id,
            slug=qr.slug,
            dynamic=qr.dynamic,
            target=target,
            destination=qr.original_url,
        )

    async def resolve_and_log(
        self,
        slug: str,
        supplied_password: str | None,
        client_ip: str | None,
        user_agent: str | None,
    ) -> RedirectOutcome:
        """Resolve a slug and schedule scan recording. Does not wait on the recording."""
        outcome = await self.resolve(slug, supplied_password)
        if self.recorder is not None:
            self.recorder.submit(outcome.qr_id, client_ip, user_agent)
        return outcome
