from pydantic import BaseModel, Field
from datetime import datetime

from app.schemas.design import DesignOptions, DesignOptionsResponse


class TemplateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    design_options: DesignOptions


class TemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    design_options: DesignOptions | None = None


class TemplateResponse(BaseModel):
    id: str
    name: str
    description: str | None
    owner: str
    is_owner: bool
    design_options: DesignOptionsResponse
    created_at: datetime
    updated_at: datetime
