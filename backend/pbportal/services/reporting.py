"""
Reporting helpers for the committee and admin dashboards.

Pure functions over already-fetched applications, scores and users:
filtering and sorting for the admin applications table, committee
visibility rules, the scorer's pending list, per-application score
summaries and the CSV exports (built with pandas).

Usage:
    apps = await service.get_applications()
    scores = await service.get_scores()
    csv_text = admin_export_csv(apps, scores)
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from pbportal.models.core import (
    ALL_AREAS,
    CROSS_AREA,
    Application,
    PortalSettings,
    Score,
    User,
)
from pbportal.services.scoring import display_round, rag_status

logger = logging.getLogger(__name__)

STAGE2_STATUSES = frozenset({"Submitted-Stage2", "Finalist"})
UNKNOWN_LABEL = "Unknown"

ADMIN_CSV_COLUMNS = [
    "Ref",
    "Title",
    "Area",
    "Applicant",
    "Status",
    "Requested",
    "Total Cost",
    "Avg Score",
    "Num Scores",
]
SCORER_CSV_COLUMNS = ["Ref", "Title", "Area", "My Score", "Status"]

# Scalar application fields the admin table can be ordered by
SORTABLE_FIELDS = (
    "created_at",
    "ref",
    "project_title",
    "applicant_name",
    "org_name",
    "area",
    "status",
    "amount_requested",
    "total_cost",
    "priority",
    "submission_method",
)


@dataclass
class ApplicationSummary:
    app_id: str
    ref: str
    project_title: str
    area: str
    status: str
    average_total: float
    score_count: int
    final_count: int
    rag: Optional[str]


@dataclass
class ScoreRow:
    """One line of the committee progress tracker."""

    app_id: str
    scorer_id: str
    scorer_name: str
    app_ref: str
    is_final: bool
    total: float

    @property
    def state(self) -> str:
        return "Completed" if self.is_final else "Draft"


# ============================================================================
# FILTERING & SORTING
# ============================================================================


def filter_applications(
    apps: Iterable[Application],
    area: str = ALL_AREAS,
    status: str = ALL_AREAS,
    search: str = "",
) -> List[Application]:
    """
    Filter the admin applications table.

    Unlike ``DataService.get_applications`` the area match here is exact, so
    cross-area applications only appear under ``Cross-Area`` or ``All``.
    Search is case-insensitive over title, applicant name and ref.
    """
    result = list(apps)
    if area and area != ALL_AREAS:
        result = [a for a in result if a.area == area]
    if status and status != ALL_AREAS:
        result = [a for a in result if a.status == status]
    if search:
        q = search.lower()
        result = [
            a
            for a in result
            if q in a.project_title.lower()
            or q in a.applicant_name.lower()
            or q in a.ref.lower()
        ]
    return result


def sort_applications(
    apps: Iterable[Application],
    key: str = "created_at",
    descending: bool = False,
) -> List[Application]:
    """Sort by one of ``SORTABLE_FIELDS``.

    Applications with no value for *key* come first in either direction.

    Raises:
        ValueError: If *key* is not sortable.
    """
    if key not in SORTABLE_FIELDS:
        raise ValueError(
            f"Unknown sort key: {key}. Sortable fields: {', '.join(SORTABLE_FIELDS)}"
        )

    apps = list(apps)
    missing = [app for app in apps if getattr(app, key) is None]
    present = [app for app in apps if getattr(app, key) is not None]
    return missing + sorted(present, key=lambda app: getattr(app, key), reverse=descending)


# ============================================================================
# COMMITTEE VIEWS
# ============================================================================


def visible_to_committee(
    apps: Iterable[Application], settings: PortalSettings
) -> List[Application]:
    """Apply the phase visibility switches to a committee member's list."""
    visible = []
    for app in apps:
        if app.status in STAGE2_STATUSES:
            if settings.stage2_visible:
                visible.append(app)
        elif settings.stage1_visible:
            visible.append(app)
    return visible


def can_view_application(user: User, app: Application, settings: PortalSettings) -> bool:
    """Whether *user* may read (and, for committee members, score) *app*.

    Admins see everything.  Committee members see their own area plus
    cross-area applications, subject to the phase switches.  Applicants
    see only their own.
    """
    if user.role == "admin":
        return True
    if user.role == "committee":
        if user.area and app.area not in (user.area, CROSS_AREA):
            return False
        return bool(visible_to_committee([app], settings))
    return app.user_id == user.id


def pending_for_scorer(
    apps: Iterable[Application], scores: Iterable[Score], scorer_id: str
) -> List[Application]:
    """Stage 2 applications the scorer has not yet marked final."""
    mine = {s.app_id: s for s in scores if s.scorer_id == scorer_id}
    pending = []
    for app in apps:
        if app.status not in STAGE2_STATUSES:
            continue
        score = mine.get(app.id)
        if score is None or not score.is_final:
            pending.append(app)
    return pending


# ============================================================================
# AGGREGATION
# ============================================================================


def _scores_by_app(scores: Iterable[Score]) -> Dict[str, List[Score]]:
    grouped: Dict[str, List[Score]] = {}
    for score in scores:
        grouped.setdefault(score.app_id, []).append(score)
    return grouped


def application_summaries(
    apps: Iterable[Application],
    scores: Iterable[Score],
    threshold: Optional[int] = None,
) -> List[ApplicationSummary]:
    """Average total and score counts per application.

    Applications with no scores average 0 and carry no RAG band.
    """
    grouped = _scores_by_app(scores)
    summaries = []
    for app in apps:
        app_scores = grouped.get(app.id, [])
        average = (
            sum(s.total for s in app_scores) / len(app_scores) if app_scores else 0.0
        )
        summaries.append(
            ApplicationSummary(
                app_id=app.id,
                ref=app.ref,
                project_title=app.project_title,
                area=app.area,
                status=app.status,
                average_total=average,
                score_count=len(app_scores),
                final_count=sum(1 for s in app_scores if s.is_final),
                rag=rag_status(average, threshold) if app_scores else None,
            )
        )
    return summaries


def score_rows(
    scores: Iterable[Score],
    apps: Iterable[Application],
    users: Iterable[User],
    scorer_id: Optional[str] = None,
) -> List[ScoreRow]:
    """Rows for the committee progress tracker.

    Scorers whose profile has been deleted, and applications that no longer
    exist, are labelled ``"Unknown"``.
    """
    names = {u.id: u.display_name or u.email for u in users}
    refs = {a.id: a.ref for a in apps}
    rows = []
    for score in scores:
        if scorer_id and scorer_id != ALL_AREAS and score.scorer_id != scorer_id:
            continue
        rows.append(
            ScoreRow(
                app_id=score.app_id,
                scorer_id=score.scorer_id,
                scorer_name=names.get(score.scorer_id, UNKNOWN_LABEL),
                app_ref=refs.get(score.app_id, UNKNOWN_LABEL),
                is_final=score.is_final,
                total=score.total,
            )
        )
    return rows


def overview_stats(
    apps: Sequence[Application], scores: Sequence[Score], users: Sequence[User]
) -> Dict[str, object]:
    """Headline counts for the admin overview tab."""
    by_status: Dict[str, int] = {}
    for app in apps:
        by_status[app.status] = by_status.get(app.status, 0) + 1
    return {
        "total_applications": len(apps),
        "total_scores": len(scores),
        "final_scores": sum(1 for s in scores if s.is_final),
        "total_users": len(users),
        "applications_by_status": by_status,
    }


# ============================================================================
# CSV EXPORTS
# ============================================================================


def admin_export_csv(apps: Iterable[Application], scores: Iterable[Score]) -> str:
    """Full applications report with average score and score count."""
    grouped = _scores_by_app(scores)
    rows = []
    for app in apps:
        app_scores = grouped.get(app.id, [])
        average = (
            f"{sum(s.total for s in app_scores) / len(app_scores):.1f}"
            if app_scores
            else "0"
        )
        rows.append(
            [
                app.ref,
                app.project_title,
                app.area,
                app.applicant_name,
                app.status,
                app.amount_requested,
                app.total_cost,
                average,
                len(app_scores),
            ]
        )
    df = pd.DataFrame(rows, columns=ADMIN_CSV_COLUMNS)
    logger.info("Generated admin CSV export with %d rows", len(rows))
    return df.to_csv(index=False)


def scorer_export_csv(
    apps: Iterable[Application], scores: Iterable[Score], scorer_id: str
) -> str:
    """One scorer's rounded totals across the applications they can see."""
    mine = {s.app_id: s for s in scores if s.scorer_id == scorer_id}
    rows = []
    for app in apps:
        score = mine.get(app.id)
        rows.append(
            [
                app.ref,
                app.project_title,
                app.area,
                display_round(score.total) if score else "N/A",
                "Completed" if score and score.is_final else "Pending",
            ]
        )
    df = pd.DataFrame(rows, columns=SCORER_CSV_COLUMNS)
    return df.to_csv(index=False)
