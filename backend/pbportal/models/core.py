"""Core domain models for the PB Portal.

Foundational models representing the records the data service stores:
user profiles, applications, committee scores and the portal settings
singleton.  Both backends read and write these shapes.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from pbportal.services.scoring import MAX_RATING, MIN_RATING

Role = Literal["guest", "applicant", "committee", "admin"]
Area = Literal[
    "Blaenavon",
    "Thornhill & Upper Cwmbran",
    "Trevethin, Penygarn & St. Cadocs",
    "Cross-Area",
]
AppStatus = Literal[
    "Draft",
    "Submitted-Stage1",
    "Rejected-Stage1",
    "Invited-Stage2",
    "Submitted-Stage2",
    "Finalist",
    "Funded",
    "Rejected",
]
SubmissionMethod = Literal["digital", "upload"]

AREAS: List[str] = [
    "Blaenavon",
    "Thornhill & Upper Cwmbran",
    "Trevethin, Penygarn & St. Cadocs",
]
CROSS_AREA = "Cross-Area"
ALL_AREAS = "All"

APP_STATUSES: List[str] = [
    "Draft",
    "Submitted-Stage1",
    "Rejected-Stage1",
    "Invited-Stage2",
    "Submitted-Stage2",
    "Finalist",
    "Funded",
    "Rejected",
]


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(BaseModel):
    """A portal account profile.

    ``password`` is the backend-owned secret field.  Read paths always
    return it blanked via ``public_user_view``.
    """

    id: str
    email: str
    username: Optional[str] = None
    role: Role = "applicant"
    area: Optional[Area] = None
    display_name: Optional[str] = None
    password: Optional[str] = None
    bio: Optional[str] = None
    phone: Optional[str] = None
    photo_url: Optional[str] = None
    address: Optional[str] = None
    role_description: Optional[str] = None


class UserProfileUpdate(BaseModel):
    """Payload for profile edits. All fields optional for partial updates."""

    email: Optional[str] = None
    username: Optional[str] = None
    display_name: Optional[str] = None
    bio: Optional[str] = None
    phone: Optional[str] = None
    photo_url: Optional[str] = None
    address: Optional[str] = None
    role_description: Optional[str] = None
    # role and area are admin-only and go through update_user


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------


class BudgetLine(BaseModel):
    item: str = ""
    note: str = ""
    cost: float = 0.0


class ApplicationFormData(BaseModel):
    """Structured payload for the digital submission path."""

    # Stage 1 (EOI)
    multi_area: Optional[bool] = None
    org_type: Optional[str] = None
    org_type_other: Optional[str] = None
    contact_position: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    address_street: Optional[str] = None
    address_town: Optional[str] = None
    address_county: Optional[str] = None
    address_postcode: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    duration: Optional[str] = None
    positive_outcomes: Optional[List[str]] = None
    other_funding_source: Optional[str] = None
    cross_area_breakdown: Optional[str] = None
    marmot_principles: Optional[List[str]] = None
    wfg_goals: Optional[List[str]] = None
    declaration_name: Optional[str] = None
    declaration_date: Optional[str] = None

    # Stage 2 (Full Application) additions
    bank_account_name: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_sort_code: Optional[str] = None
    charity_number: Optional[str] = None
    company_number: Optional[str] = None
    activities: Optional[str] = None
    community_benefit: Optional[str] = None
    collaborations: Optional[str] = None
    risks: Optional[str] = None
    marmot_explanations: Optional[Dict[str, str]] = None
    wfg_explanations: Optional[Dict[str, str]] = None
    budget_breakdown: Optional[List[BudgetLine]] = None
    additional_budget_info: Optional[str] = None
    checklist: Optional[List[str]] = None
    declaration_statements: Optional[List[str]] = None


class ApplicationCreate(BaseModel):
    """Applicant-supplied fields for a Stage 1 submission.

    ``id``, ``ref``, ``status`` and ``created_at`` are assigned by the
    data service.
    """

    user_id: str
    applicant_name: str = ""
    org_name: str = ""
    project_title: str = ""
    area: Area
    summary: str = ""
    amount_requested: float = Field(0, ge=0)
    total_cost: float = Field(0, ge=0)
    priority: Optional[str] = None
    submission_method: SubmissionMethod = "digital"
    pdf_url: Optional[str] = None
    stage2_pdf_url: Optional[str] = None
    form_data: Optional[ApplicationFormData] = None


class Application(ApplicationCreate):
    """A stored funding request."""

    id: str
    status: AppStatus = "Submitted-Stage1"
    ref: str
    created_at: datetime


class ApplicationUpdate(BaseModel):
    """Request body for partial application edits. All fields optional."""

    applicant_name: Optional[str] = None
    org_name: Optional[str] = None
    project_title: Optional[str] = None
    area: Optional[Area] = None
    summary: Optional[str] = None
    amount_requested: Optional[float] = Field(None, ge=0)
    total_cost: Optional[float] = Field(None, ge=0)
    status: Optional[AppStatus] = None
    priority: Optional[str] = None
    submission_method: Optional[SubmissionMethod] = None
    pdf_url: Optional[str] = None
    stage2_pdf_url: Optional[str] = None
    form_data: Optional[ApplicationFormData] = None


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


def validate_ratings(v: Dict[str, int]) -> Dict[str, int]:
    """Reject ratings outside ``MIN_RATING..MAX_RATING``."""
    for criterion_id, rating in v.items():
        if not MIN_RATING <= rating <= MAX_RATING:
            raise ValueError(
                f"Rating for '{criterion_id}' must be between "
                f"{MIN_RATING} and {MAX_RATING}"
            )
    return v


class Score(BaseModel):
    """One committee member's evaluation of one application.

    (``app_id``, ``scorer_id``) is the natural key.  ``total`` is derived
    from ``scores`` by the data service on every save.
    """

    app_id: str
    scorer_id: str
    scorer_name: str = ""
    scores: Dict[str, int] = Field(default_factory=dict)
    notes: Dict[str, str] = Field(default_factory=dict)
    is_final: bool = False
    total: float = 0.0
    timestamp: Optional[datetime] = None

    @field_validator("scores")
    @classmethod
    def ratings_in_range(cls, v: Dict[str, int]) -> Dict[str, int]:
        return validate_ratings(v)


# ---------------------------------------------------------------------------
# Portal settings
# ---------------------------------------------------------------------------


class PortalSettings(BaseModel):
    stage1_visible: bool = True  # can the committee see EOIs?
    stage2_visible: bool = False  # can the committee see/score full apps?
    voting_open: bool = False
