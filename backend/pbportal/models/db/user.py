"""User profile and credential ORM models for the local backend.

Profiles and credentials live in separate tables so the password hash is
never part of a profile row.  ``users.password`` is the profile's stored
secret field and stays empty.
"""

from typing import Optional

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from pbportal.models.db.base import Base

__all__ = ["UserProfile", "UserCredential"]


class UserProfile(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(Text, primary_key=True)

    # Core fields
    email: Mapped[str] = mapped_column(Text, nullable=False)
    username: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(Text, nullable=False, default="applicant")
    area: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    password: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default="")

    # Profile fields
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    photo_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    role_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class UserCredential(Base):
    __tablename__ = "credentials"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    # stored lower-cased
    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
