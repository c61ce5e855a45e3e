from pydantic import BaseModel, Field, field_validator
from datetime import datetime, timezone
from typing import Literal

from app.schemas.design import DesignOptions, DesignOptionsResponse


class QRCodeCreate(BaseModel):
    url: str = Field(min_length=1)
    name: str | None = None
    dynamic: bool = False
    bulk: bool = False
    password: str | None = None
    expires_at: datetime | None = None
    error_correction: Literal["L", "M", "Q", "H"] = "M"
    format: Literal["PNG", "SVG"] = "PNG"
    design_options: DesignOptions | None = None

    @field_validator("expires_at")
    @classmethod
    def expiry_as_naive_utc(cls, value: datetime | None) -> datetime | None:
        # Stored and compared as naive UTC
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class QRCodeUpdate(BaseModel):
    url: str | None = None
    name: str | None = None
    design_options: DesignOptions | None = None
    status: Literal["active", "inactive"] | None = None


class QRCodeResponse(BaseModel):
    id: str
    name: str | None
    slug: str
    original_url: str
    dynamic: bool
    bulk: bool
    password_protected: bool
    expires_at: datetime | None
    error_correction: str
    format: str
    owner_id: str
    created_at: datetime
    updated_at: datetime
    tracking_url: str
    design_options: DesignOptionsResponse


class QRCodeListItem(BaseModel):
    id: str
    title: str
    name: str | None
    type: str  # Dynamic, Static
    status: str  # Active, Inactive
    data: str
    scans: int
    created_at: datetime
    slug: str
    dynamic: bool
    bulk: bool
    format: str
    error_correction: str
    owner: str
    is_owner: bool
    design_options: DesignOptionsResponse | None


class QRCodeImage(BaseModel):
    image: str
    format: str
