"""Team management: members, roles, and invitations (admin only)."""

import logging
import secrets
from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, HTTPException, BackgroundTasks, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_

from app.config import get_settings
from app.db.postgres import get_db
from app.models.invitation import Invitation
from app.models.qr_code import QRCode
from app.models.user import User
from app.schemas.team import (
    TeamUserResponse,
    InvitationCreate,
    InvitationResponse,
    UserRoleUpdate,
)
from app.security import require_admin
from app.services.notifications import client_link, send_invitation_email

router = APIRouter()
logger = logging.getLogger(__name__)
settings = get_settings()


def generate_invitation_token() -> str:
    """Generate a secure random token for invitation links."""
    return secrets.token_urlsafe(32)


def invitation_link(token: str) -> str:
    return client_link("signup", "invite", token)


def inviter_name(user: User) -> str:
    return user.email.split("@")[0]


async def get_own_invitation(db: AsyncSession, invitation_id: str, current_user: User) -> Invitation:
    result = await db.execute(select(Invitation).where(Invitation.id == invitation_id))
    invitation = result.scalar_one_or_none()

    if not invitation:
        raise HTTPException(status_code=404, detail="Invitation not found")
    if invitation.invited_by_id != current_user.id:
        raise HTTPException(status_code=403, detail="Unauthorized")
    return invitation


# ============== Member Endpoints ==============

@router.get("", response_model=list[TeamUserResponse])
async def list_team_users(
    current_user: User = Depends(require_admin()),
    db: AsyncSession = Depends(get_db)
):
    """List the admin and every user they invited."""
    try:
        qr_count = func.count(QRCode.id).label("qr_codes")
        result = await db.execute(
            select(User, qr_count)
            .outerjoin(QRCode, QRCode.owner_id == User.id)
            .where(or_(User.id == current_user.id, User.invited_by_id == current_user.id))
            .group_by(User.id)
            .order_by(User.created_at.desc())
        )
        rows = result.all()
    except Exception:
        logger.exception("Error fetching users for %s", current_user.id)
        raise HTTPException(status_code=500, detail="Failed to fetch users")

    return [
        TeamUserResponse(
            id=user.id,
            name=user.email.split("@")[0],
            email=user.email,
            role=user.role,
            status="Active" if user.email_verified else "Pending",
            qr_codes=count,
            invited_by_id=user.invited_by_id,
            created_at=user.created_at,
        )
        for user, count in rows
    ]


@router.put("/{user_id}/role", response_model=TeamUserResponse)
async def update_user_role(
    user_id: str,
    data: UserRoleUpdate,
    current_user: User = Depends(require_admin()),
    db: AsyncSession = Depends(get_db)
):
    """Change a team member between editor and viewer."""
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot change your own role")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if user.is_root:
        raise HTTPException(status_code=400, detail="Cannot change the original admin's role")

    if user.invited_by_id != current_user.id:
        raise HTTPException(status_code=403, detail="User is not on your team")

    user.role = data.role
    await db.commit()
    await db.refresh(user)

    count_result = await db.execute(select(func.count(QRCode.id)).where(QRCode.owner_id == user.id))
    return TeamUserResponse(
        id=user.id,
        name=user.email.split("@")[0],
        email=user.email,
        role=user.role,
        status="Active" if user.email_verified else "Pending",
        qr_codes=count_result.scalar() or 0,
        invited_by_id=user.invited_by_id,
        created_at=user.created_at,
    )


@router.delete("/{user_id}")
async def remove_user(
    user_id: str,
    current_user: User = Depends(require_admin()),
    db: AsyncSession = Depends(get_db)
):
    """Remove a member from the team."""
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if user.invited_by_id != current_user.id:
        raise HTTPException(status_code=403, detail="User is not on your team")

    owned = await db.execute(select(func.count(QRCode.id)).where(QRCode.owner_id == user.id))
    if owned.scalar():
        raise HTTPException(
            status_code=400,
            detail="User still owns QR codes; delete them first"
        )

    await db.delete(user)
    await db.commit()
    return {"status": "deleted", "user_id": user_id}


# ============== Invitation Endpoints ==============

@router.post("/invite", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
async def invite_user(
    data: InvitationCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_admin()),
    db: AsyncSession = Depends(get_db)
):
    """Create and send an invitation to join the caller's team."""
    existing_user = await db.execute(select(User).where(User.email == data.email))
    if existing_user.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="User with this email already exists")

    existing_result = await db.execute(
        select(Invitation).where(
            Invitation.email == data.email,
            Invitation.invited_by_id == current_user.id,
        )
    )
    invitation = existing_result.scalar_one_or_none()
    if invitation and not invitation.used and invitation.expires_at > datetime.utcnow():
        raise HTTPException(status_code=400, detail="Invitation already sent to this email")

    token = generate_invitation_token()
    expires_at = datetime.utcnow() + timedelta(days=settings.invitation_expire_days)

    if invitation:
        # Reuse the row for (email, issuer): an expired or consumed invitation is reissued
        invitation.role = data.role
        invitation.token = token
        invitation.expires_at = expires_at
        invitation.used = False
        invitation.created_at = datetime.utcnow()
    else:
        invitation = Invitation(
            email=data.email,
            role=data.role,
            token=token,
            expires_at=expires_at,
            invited_by_id=current_user.id,
        )
        db.add(invitation)
    await db.commit()
    await db.refresh(invitation)

    background_tasks.add_task(
        send_invitation_email,
        data.email,
        token,
        inviter_name(current_user),
        data.role,
    )

    response = InvitationResponse.model_validate(invitation)
    response.invite_link = invitation_link(token)
    return response


@router.get("/invitations", response_model=list[InvitationResponse])
async def list_invitations(
    current_user: User = Depends(require_admin()),
    db: AsyncSession = Depends(get_db)
):
    """List the caller's pending (unused, unexpired) invitations."""
    result = await db.execute(
        select(Invitation)
        .where(
            Invitation.invited_by_id == current_user.id,
            Invitation.used == False,  # noqa: E712
            Invitation.expires_at > datetime.utcnow(),
        )
        .order_by(Invitation.created_at.desc())
    )
    return result.scalars().all()


@router.post("/invitations/{invitation_id}/resend")
async def resend_invitation(
    invitation_id: str,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_admin()),
    db: AsyncSession = Depends(get_db)
):
    """Resend an invitation with a fresh token and extended expiry."""
    invitation = await get_own_invitation(db, invitation_id, current_user)

    if invitation.used:
        raise HTTPException(status_code=400, detail="Invitation already used")

    invitation.token = generate_invitation_token()
    invitation.expires_at = datetime.utcnow() + timedelta(days=settings.invitation_expire_days)
    await db.commit()

    background_tasks.add_task(
        send_invitation_email,
        invitation.email,
        invitation.token,
        inviter_name(current_user),
        invitation.role,
    )

    return {"status": "resent", "expires_at": invitation.expires_at.isoformat()}


@router.delete("/invitations/{invitation_id}")
async def cancel_invitation(
    invitation_id: str,
    current_user: User = Depends(require_admin()),
    db: AsyncSession = Depends(get_db)
):
    invitation = await get_own_invitation(db, invitation_id, current_user)
    await db.delete(invitation)
    await db.commit()
    return {"status": "revoked", "invitation_id": invitation_id}
