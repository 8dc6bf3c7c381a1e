"""System-wide settings stored as key-value pairs.

The portal settings singleton lives under the ``portal`` key.  Values are
stored as JSON for flexibility.
"""

from sqlalchemy import JSON, Text
from sqlalchemy.orm import Mapped, mapped_column

from pbportal.models.db.base import Base

__all__ = ["SystemSetting", "PORTAL_SETTINGS_KEY"]

PORTAL_SETTINGS_KEY = "portal"


class SystemSetting(Base):
    """A single key-value setting for system-wide configuration."""

    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
