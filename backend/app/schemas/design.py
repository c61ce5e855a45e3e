from pydantic import BaseModel, Field


class DesignOptions(BaseModel):
    frame: int | None = Field(default=None, ge=1, le=10)
    shape: int | None = Field(default=None, ge=1, le=4)
    logo: int | None = Field(default=None, ge=0, le=6)
    level: int | None = Field(default=None, ge=1, le=4)
    dot_style: int | None = Field(default=None, ge=1, le=8)
    bg_color: str | None = None
    outer_border: int | None = Field(default=None, ge=1, le=8)


class DesignOptionsResponse(BaseModel):
    frame: int
    shape: int
    logo: int
    level: int
    dot_style: int
    bg_color: str
    outer_border: int
