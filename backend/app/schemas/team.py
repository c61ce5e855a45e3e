from pydantic import BaseModel, EmailStr
from datetime import datetime
from typing import Literal


class TeamUserResponse(BaseModel):
    id: str
    name: str
    email: str
    role: str
    status: str  # Active, Pending
    qr_codes: int
    invited_by_id: str | None
    created_at: datetime


class InvitationCreate(BaseModel):
    email: EmailStr
    role: Literal["editor", "viewer"]


class InvitationResponse(BaseModel):
    id: str
    email: str
    role: str
    expires_at: datetime
    created_at: datetime
    invite_link: str | None = None

    class Config:
        from_attributes = True


class UserRoleUpdate(BaseModel):
    role: Literal["editor", "viewer"]
