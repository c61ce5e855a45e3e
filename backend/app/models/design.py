"""Visual design attributes shared by QR codes and templates.

These are opaque styling values for the frontend renderer; nothing on the
server interprets them beyond storing and echoing them back.
"""

from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column

DEFAULT_DESIGN = {
    "frame": 1,
    "shape": 1,
    "logo": 0,
    "level": 2,
    "dot_style": 1,
    "bg_color": "#ffffff",
    "outer_border": 1,
}


class DesignMixin:
    design_frame: Mapped[int | None] = mapped_column(Integer, nullable=True)
    design_shape: Mapped[int | None] = mapped_column(Integer, nullable=True)
    design_logo: Mapped[int | None] = mapped_column(Integer, nullable=True)
    design_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    design_dot_style: Mapped[int | None] = mapped_column(Integer, nullable=True)
    design_bg_color: Mapped[str | None] = mapped_column(String(20), nullable=True)
    design_outer_border: Mapped[int | None] = mapped_column(Integer, nullable=True)

    @property
    def has_custom_design(self) -> bool:
        return any(
            value is not None and value != DEFAULT_DESIGN[key]
            for key, value in self._raw_design().items()
        )

    def _raw_design(self) -> dict:
        return {
            "frame": self.design_frame,
            "shape": self.design_shape,
            "logo": self.design_logo,
            "level": self.design_level,
            "dot_style": self.design_dot_style,
            "bg_color": self.design_bg_color,
            "outer_border": self.design_outer_border,
        }

    def design_options(self) -> dict:
        """Stored design with defaults filled in for unset fields."""
        return {
            key: DEFAULT_DESIGN[key] if value is None else value
            for key, value in self._raw_design().items()
        }

    def apply_design(self, options: dict) -> None:
        """Copy the provided (non-None) design options onto the model."""
        for key, value in options.items():
            if value is not None and key in DEFAULT_DESIGN:
                setattr(self, f"design_{key}", value)
