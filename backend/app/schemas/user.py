from pydantic import BaseModel, EmailStr, Field
from datetime import datetime


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)


class AcceptInvitation(BaseModel):
    token: str
    password: str = Field(min_length=8)


class UserResponse(BaseModel):
    id: str
    email: str
    role: str
    email_verified: bool
    invited_by_id: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenWithUser(Token):
    user: UserResponse


class ChangePassword(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8)


class ChangeEmail(BaseModel):
    new_email: EmailStr
    password: str


class EmailRequest(BaseModel):
    email: EmailStr


class TokenRequest(BaseModel):
    token: str


class PasswordReset(BaseModel):
    token: str
    password: str = Field(min_length=8)


class Message(BaseModel):
    message: str
