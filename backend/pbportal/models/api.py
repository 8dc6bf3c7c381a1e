"""Pydantic request/response schemas for the PB Portal HTTP API."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from pbportal.models.core import Application, Area, Role, User, validate_ratings


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Email address, or a bare committee username."""

    identifier: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    display_name: str = Field(..., min_length=1, max_length=200)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User


# ---------------------------------------------------------------------------
# Admin users
# ---------------------------------------------------------------------------


class AdminUserCreate(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    role: Role = "committee"
    area: Optional[Area] = None
    username: Optional[str] = None
    display_name: Optional[str] = None
    role_description: Optional[str] = None


class AdminUserUpdate(BaseModel):
    """Admin edit of any profile field except the id and stored secret."""

    email: Optional[str] = None
    username: Optional[str] = None
    role: Optional[Role] = None
    area: Optional[Area] = None
    display_name: Optional[str] = None
    bio: Optional[str] = None
    phone: Optional[str] = None
    photo_url: Optional[str] = None
    address: Optional[str] = None
    role_description: Optional[str] = None


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


class ScoreSubmit(BaseModel):
    """A committee member's ratings for one application.

    The scorer is always the caller; the total is computed server-side.
    """

    app_id: str
    scores: Dict[str, int] = Field(default_factory=dict)
    notes: Dict[str, str] = Field(default_factory=dict)
    is_final: bool = False

    @field_validator("scores")
    @classmethod
    def ratings_in_range(cls, v: Dict[str, int]) -> Dict[str, int]:
        return validate_ratings(v)


class ScoreReset(BaseModel):
    scorer_id: str
    app_id: Optional[str] = None


class CriterionResponse(BaseModel):
    id: str
    name: str
    guidance: str
    weight: int
    details: str = ""


class ScoreRowResponse(BaseModel):
    app_id: str
    scorer_id: str
    scorer_name: str
    app_ref: str
    is_final: bool
    total: float
    state: str


class SweepResponse(BaseModel):
    removed: int


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------


class ApplicationListResponse(BaseModel):
    applications: List[Application]
    total: int


class ApplicationSummaryResponse(BaseModel):
    app_id: str
    ref: str
    project_title: str
    area: str
    status: str
    average_total: float
    score_count: int
    final_count: int
    rag: Optional[str] = None


class OverviewResponse(BaseModel):
    total_applications: int
    total_scores: int
    final_scores: int
    total_users: int
    applications_by_status: Dict[str, int]
