"""QR code management and team statistics."""

import logging
import secrets
import string
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete

from app.config import get_settings
from app.db.postgres import get_db
from app.dependencies import get_analytics, get_team_resolver
from app.models.qr_code import QRCode, Scan
from app.models.user import User
from app.schemas.qr_code import (
    QRCodeCreate,
    QRCodeUpdate,
    QRCodeResponse,
    QRCodeListItem,
    QRCodeImage,
)
from app.schemas.stats import StatsReport
from app.security import get_current_user, get_password_hash, require_permission
from app.services.analytics import AnalyticsAggregator
from app.services.qr_image import render_data_url
from app.services.redirect import tracking_url
from app.services.team import TeamResolver
from app.utils.tenant import team_filter, set_owner

router = APIRouter()
logger = logging.getLogger(__name__)
settings = get_settings()

SLUG_ALPHABET = string.ascii_letters + string.digits


def generate_slug(length: int) -> str:
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


def build_qr_response(qr: QRCode) -> QRCodeResponse:
    return QRCodeResponse(
        id=qr.id,
        name=qr.name,
        slug=qr.slug,
        original_url=qr.original_url,
        dynamic=qr.dynamic,
        bulk=qr.bulk,
        password_protected=qr.password_hash is not None,
        expires_at=qr.expires_at,
        error_correction=qr.error_correction,
        format=qr.format,
        owner_id=qr.owner_id,
        created_at=qr.created_at,
        updated_at=qr.updated_at,
        tracking_url=tracking_url(settings.public_base_url, qr.slug),
        design_options=qr.design_options(),
    )


async def get_owned_qr_code(db: AsyncSession, qr_id: str, user: User) -> QRCode:
    """Load a QR code the user owns. Team members' codes are read-only."""
    result = await db.execute(
        select(QRCode).where(QRCode.id == qr_id, QRCode.owner_id == user.id)
    )
    qr = result.scalar_one_or_none()
    if not qr:
        raise HTTPException(status_code=404, detail="QR code not found")
    return qr


@router.get("/stats", response_model=StatsReport)
async def get_stats(
    current_user: User = Depends(require_permission("view_stats")),
    analytics: AnalyticsAggregator = Depends(get_analytics),
):
    """Scan statistics across every QR code owned by the caller's team."""
    try:
        return await analytics.compute_stats(current_user.id)
    except Exception:
        logger.exception("Error fetching stats for user %s", current_user.id)
        raise HTTPException(status_code=500, detail="Failed to fetch statistics")


@router.get("/my-codes", response_model=list[QRCodeListItem])
async def list_qr_codes(
    current_user: User = Depends(require_permission("view_qr_codes")),
    team_resolver: TeamResolver = Depends(get_team_resolver),
    db: AsyncSession = Depends(get_db),
):
    """List every QR code owned by the caller's team."""
    try:
        team_ids = await team_resolver.team_ids_for(current_user.id)

        scan_count = func.count(Scan.id).label("scans")
        result = await db.execute(
            select(QRCode, User.email, scan_count)
            .join(User, QRCode.owner_id == User.id)
            .outerjoin(Scan, Scan.qr_id == QRCode.id)
            .where(team_filter(QRCode, team_ids))
            .group_by(QRCode.id, User.email)
            .order_by(QRCode.created_at.desc())
        )
        rows = result.all()
    except Exception:
        logger.exception("Error fetching QR codes for user %s", current_user.id)
        raise HTTPException(status_code=500, detail="Failed to fetch QR codes")

    now = datetime.utcnow()
    return [
        QRCodeListItem(
            id=qr.id,
            title=qr.name or "Unnamed QR Code",
            name=qr.name,
            type="Dynamic" if qr.dynamic else "Static",
            status="Inactive" if qr.is_expired(now) else "Active",
            data=qr.original_url,
            scans=scans,
            created_at=qr.created_at,
            slug=qr.slug,
            dynamic=qr.dynamic,
            bulk=qr.bulk,
            format=qr.format,
            error_correction=qr.error_correction,
            owner=owner_email,
            is_owner=qr.owner_id == current_user.id,
            design_options=qr.design_options() if qr.has_custom_design else None,
        )
        for qr, owner_email, scans in rows
    ]


@router.post("/url", response_model=QRCodeResponse, status_code=status.HTTP_201_CREATED)
async def create_qr_code(
    data: QRCodeCreate,
    current_user: User = Depends(require_permission("manage_qr_codes")),
    db: AsyncSession = Depends(get_db),
):
    """Create a QR code pointing at a URL."""
    slug = generate_slug(settings.slug_length)
    for _ in range(5):
        existing = await db.execute(select(QRCode.id).where(QRCode.slug == slug))
        if existing.scalar_one_or_none() is None:
            break
        slug = generate_slug(settings.slug_length)
    else:
        raise HTTPException(status_code=500, detail="Could not allocate a unique slug")

    qr = QRCode(
        name=data.name,
        original_url=data.url,
        dynamic=data.dynamic,
        bulk=data.bulk,
        password_hash=get_password_hash(data.password) if data.password else None,
        expires_at=data.expires_at,
        slug=slug,
        error_correction=data.error_correction,
        format=data.format,
    )
    if data.design_options:
        qr.apply_design(data.design_options.model_dump())
    set_owner(qr, current_user)

    db.add(qr)
    await db.commit()
    await db.refresh(qr)
    return build_qr_response(qr)


@router.get("/{qr_id}", response_model=QRCodeResponse)
async def get_qr_code(
    qr_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    qr = await get_owned_qr_code(db, qr_id, current_user)
    return build_qr_response(qr)


@router.put("/{qr_id}", response_model=QRCodeResponse)
async def update_qr_code(
    qr_id: str,
    data: QRCodeUpdate,
    current_user: User = Depends(require_permission("manage_qr_codes")),
    db: AsyncSession = Depends(get_db),
):
    """Update target URL (dynamic codes only), name, design, or active status."""
    qr = await get_owned_qr_code(db, qr_id, current_user)

    if data.url is not None:
        if not qr.dynamic:
            raise HTTPException(status_code=400, detail="not dynamic")
        qr.original_url = data.url

    if data.name is not None:
        qr.name = data.name

    if data.design_options:
        qr.apply_design(data.design_options.model_dump())

    # Status is expressed through expiry
    if data.status == "inactive":
        qr.expires_at = datetime.utcnow()
    elif data.status == "active":
        qr.expires_at = None

    await db.commit()
    await db.refresh(qr)
    return build_qr_response(qr)


@router.delete("/{qr_id}")
async def delete_qr_code(
    qr_id: str,
    current_user: User = Depends(require_permission("manage_qr_codes")),
    db: AsyncSession = Depends(get_db),
):
    qr = await get_owned_qr_code(db, qr_id, current_user)

    # Remove scans first so the foreign key holds on every backend
    await db.execute(delete(Scan).where(Scan.qr_id == qr.id))
    await db.delete(qr)
    await db.commit()
    return {"status": "deleted", "qr_id": qr_id}


@router.get("/{qr_id}/image", response_model=QRCodeImage)
async def get_qr_code_image(
    qr_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Render the QR symbol. Dynamic codes encode the tracking URL."""
    qr = await get_owned_qr_code(db, qr_id, current_user)
    target = tracking_url(settings.public_base_url, qr.slug) if qr.dynamic else qr.original_url
    return QRCodeImage(
        image=render_data_url(target, qr.format, qr.error_correction),
        format=qr.format,
    )
