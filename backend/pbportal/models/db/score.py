"""ApplicationScore ORM model.

One row per (application, scorer); the composite primary key is the
natural key, so a second save for the same pair replaces the first.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, Text
from sqlalchemy.orm import Mapped, mapped_column

from pbportal.models.db.base import Base

__all__ = ["ApplicationScore"]


class ApplicationScore(Base):
    __tablename__ = "scores"

    app_id: Mapped[str] = mapped_column(Text, primary_key=True)
    scorer_id: Mapped[str] = mapped_column(Text, primary_key=True, index=True)
    scorer_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    scores: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    notes: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    is_final: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    timestamp: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
