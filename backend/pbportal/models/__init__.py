"""
PB Portal Models

Pydantic models for data validation and serialization.
"""

from .core import (
    ALL_AREAS,
    APP_STATUSES,
    AREAS,
    CROSS_AREA,
    Application,
    ApplicationCreate,
    ApplicationFormData,
    ApplicationUpdate,
    BudgetLine,
    PortalSettings,
    Score,
    User,
    UserProfileUpdate,
)

__all__ = [
    "ALL_AREAS",
    "APP_STATUSES",
    "AREAS",
    "CROSS_AREA",
    "Application",
    "ApplicationCreate",
    "ApplicationFormData",
    "ApplicationUpdate",
    "BudgetLine",
    "PortalSettings",
    "Score",
    "User",
    "UserProfileUpdate",
]
