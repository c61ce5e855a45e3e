from typing import Annotated
from datetime import datetime
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from app.db.postgres import get_db
from app.models.user import User
from app.models.invitation import Invitation
from app.models.role import ADMIN
from app.config import get_settings
from app.schemas.user import (
    UserCreate,
    UserResponse,
    TokenWithUser,
    AcceptInvitation,
    ChangePassword,
    ChangeEmail,
    EmailRequest,
    TokenRequest,
    PasswordReset,
    Message,
)
from app.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    get_current_user,
)
from app.services.notifications import (
    generate_token,
    token_expiry,
    send_verification_email,
    send_password_reset_email,
    send_email_change_email,
)

router = APIRouter()
settings = get_settings()

RESET_SENT = "If an account exists with that email, a password reset link has been sent."


def build_token_response(user: User) -> TokenWithUser:
    access_token = create_access_token(user)
    return TokenWithUser(
        access_token=access_token,
        token_type="bearer",
        user=UserResponse.model_validate(user)
    )


@router.post("/register", response_model=TokenWithUser, status_code=status.HTTP_201_CREATED)
async def register(data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Sign up a new user as the root admin of their own team."""
    result = await db.execute(select(User).where(User.email == data.email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already in use"
        )

    user = User(
        email=data.email,
        hashed_password=get_password_hash(data.password),
        role=ADMIN,
        email_verified=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    return build_token_response(user)


@router.post("/login", response_model=TokenWithUser)
async def login(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(User).where(User.email == form_data.username))
    user = result.scalar_one_or_none()

    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return build_token_response(user)


@router.post("/accept-invitation", response_model=TokenWithUser, status_code=status.HTTP_201_CREATED)
async def accept_invitation(data: AcceptInvitation, db: AsyncSession = Depends(get_db)):
    """Consume an invitation and create the invited user under the issuer."""
    result = await db.execute(select(Invitation).where(Invitation.token == data.token))
    invitation = result.scalar_one_or_none()

    if not invitation or not invitation.is_valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired invitation"
        )

    existing = await db.execute(select(User).where(User.email == invitation.email))
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already in use"
        )

    # Conditional update so two concurrent accepts cannot both succeed
    consumed = await db.execute(
        update(Invitation)
        .where(Invitation.id == invitation.id, Invitation.used == False)  # noqa: E712
        .values(used=True)
    )
    if consumed.rowcount != 1:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired invitation"
        )

    user = User(
        email=invitation.email,
        hashed_password=get_password_hash(data.password),
        role=invitation.role,
        invited_by_id=invitation.invited_by_id,
        email_verified=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    return build_token_response(user)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: Annotated[User, Depends(get_current_user)]):
    return current_user


async def find_user_by(db: AsyncSession, column, value: str) -> User | None:
    result = await db.execute(select(User).where(column == value))
    return result.scalar_one_or_none()


def token_is_live(expires_at: datetime | None) -> bool:
    return expires_at is None or expires_at >= datetime.utcnow()


@router.post("/change-password", response_model=Message)
async def change_password(
    data: ChangePassword,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db)
):
    if not verify_password(data.current_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Current password is incorrect"
        )

    current_user.hashed_password = get_password_hash(data.new_password)
    await db.commit()
    return Message(message="Password changed successfully")


# ============== Emailed-link flows ==============

@router.post("/verify/request", response_model=Message)
async def request_verification(
    data: EmailRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db)
):
    user = await find_user_by(db, User.email, data.email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.email_verified:
        raise HTTPException(status_code=400, detail="Email already verified")

    user.email_verification_token = generate_token()
    user.email_verification_expires = token_expiry(settings.email_verification_hours)
    await db.commit()

    background_tasks.add_task(send_verification_email, user.email, user.email_verification_token)
    return Message(message="Verification email sent successfully")


@router.post("/verify/confirm", response_model=Message)
async def confirm_verification(data: TokenRequest, db: AsyncSession = Depends(get_db)):
    user = await find_user_by(db, User.email_verification_token, data.token)
    if not user or not token_is_live(user.email_verification_expires):
        raise HTTPException(status_code=400, detail="Invalid or expired verification token")
    if user.email_verified:
        raise HTTPException(status_code=400, detail="Email already verified")

    user.email_verified = True
    user.email_verification_token = None
    user.email_verification_expires = None
    await db.commit()
    return Message(message="Email verified successfully")


@router.post("/password/forgot", response_model=Message)
async def forgot_password(
    data: EmailRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db)
):
    """Issue a reset link. The response is the same whether or not the account exists."""
    user = await find_user_by(db, User.email, data.email)
    if user:
        user.password_reset_token = generate_token()
        user.password_reset_expires = token_expiry(settings.password_reset_hours)
        await db.commit()
        background_tasks.add_task(send_password_reset_email, user.email, user.password_reset_token)
    return Message(message=RESET_SENT)


@router.post("/password/reset", response_model=Message)
async def reset_password(data: PasswordReset, db: AsyncSession = Depends(get_db)):
    user = await find_user_by(db, User.password_reset_token, data.token)
    if not user or not token_is_live(user.password_reset_expires):
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    user.hashed_password = get_password_hash(data.password)
    user.password_reset_token = None
    user.password_reset_expires = None
    await db.commit()
    return Message(message="Password reset successfully")


@router.post("/change-email", response_model=Message)
async def change_email(
    data: ChangeEmail,
    background_tasks: BackgroundTasks,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db)
):
    """Start an email change; it takes effect once the new address is confirmed."""
    if not verify_password(data.password, current_user.hashed_password):
        raise HTTPException(status_code=401, detail="Password is incorrect")
    if await find_user_by(db, User.email, data.new_email):
        raise HTTPException(status_code=409, detail="Email already in use")

    current_user.new_email = data.new_email
    current_user.new_email_token = generate_token()
    current_user.new_email_token_expires = token_expiry(settings.email_change_hours)
    await db.commit()

    background_tasks.add_task(send_email_change_email, data.new_email, current_user.new_email_token)
    return Message(message="Verification email sent to your new email address")


@router.post("/change-email/verify", response_model=Message)
async def confirm_email_change(data: TokenRequest, db: AsyncSession = Depends(get_db)):
    user = await find_user_by(db, User.new_email_token, data.token)
    if not user or not token_is_live(user.new_email_token_expires) or not user.new_email:
        raise HTTPException(status_code=400, detail="Invalid or expired verification token")
    if await find_user_by(db, User.email, user.new_email):
        raise HTTPException(status_code=409, detail="Email already in use")

    user.email = user.new_email
    user.email_verified = True
    user.new_email = None
    user.new_email_token = None
    user.new_email_token_expires = None
    await db.commit()
    return Message(message="Email changed successfully")
