"""PortalApplication ORM model.

Maps to the ``apps`` table of the local backend.  The digital-path form
payload is kept whole in a JSON column.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Float, Text
from sqlalchemy.orm import Mapped, mapped_column

from pbportal.models.db.base import Base

__all__ = ["PortalApplication"]


class PortalApplication(Base):
    __tablename__ = "apps"

    id: Mapped[str] = mapped_column(Text, primary_key=True)

    # References
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    ref: Mapped[str] = mapped_column(Text, nullable=False)

    # Applicant
    applicant_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    org_name: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Project
    project_title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    area: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    amount_requested: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    # Workflow
    status: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Submission
    submission_method: Mapped[str] = mapped_column(Text, nullable=False, default="digital")
    pdf_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    stage2_pdf_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    form_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
