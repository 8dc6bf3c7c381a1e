"""
Unit Tests for Dashboard Reporting Functions

Tests:
- filter_applications / sort_applications: Admin applications table
- visible_to_committee / can_view_application: Area and phase visibility
- pending_for_scorer: Scorer's outstanding Stage 2 list
- application_summaries / overview_stats: Aggregates
- score_rows: Progress tracker with "Unknown" labels
- admin_export_csv / scorer_export_csv: CSV exports

Usage:
    cd backend && pytest tests/test_reporting.py -v
"""

import csv
import io
import sys
import os
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from pbportal.models.core import Application, PortalSettings, Score, User
from pbportal.services.reporting import (
    ADMIN_CSV_COLUMNS,
    SCORER_CSV_COLUMNS,
    admin_export_csv,
    application_summaries,
    can_view_application,
    filter_applications,
    overview_stats,
    pending_for_scorer,
    score_rows,
    scorer_export_csv,
    sort_applications,
    visible_to_committee,
)


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_app(
    app_id: str,
    area: str = "Blaenavon",
    status: str = "Submitted-Stage1",
    title: str = "Project",
    applicant: str = "Alex",
    ref: str = "PB-BLA-100",
    amount: float = 1000,
    days: int = 0,
) -> Application:
    """Factory function to create an application."""
    return Application(
        id=app_id,
        user_id="u1",
        applicant_name=applicant,
        project_title=title,
        area=area,
        status=status,
        ref=ref,
        amount_requested=amount,
        total_cost=amount * 1.5,
        created_at=BASE_TIME + timedelta(days=days),
    )


def make_score(app_id: str, scorer_id: str, total: float, is_final: bool = False) -> Score:
    """Factory function to create a score with a precomputed total."""
    return Score(app_id=app_id, scorer_id=scorer_id, scorer_name=scorer_id, total=total, is_final=is_final)


def make_user(role: str, area=None, user_id: str = "x") -> User:
    """Factory function to create a user."""
    return User(id=user_id, email=f"{user_id}@committee.local", role=role, area=area)


def parse_csv(text: str) -> List[dict]:
    return list(csv.DictReader(io.StringIO(text)))


@pytest.fixture
def apps() -> List[Application]:
    return [
        make_app("a1", "Blaenavon", "Submitted-Stage1", "Garden Beds", "Alex", "PB-BLA-101", 500, days=2),
        make_app("a2", "Thornhill & Upper Cwmbran", "Submitted-Stage2", "Youth Sports", "Bea", "PB-THO-202", 4000, days=0),
        make_app("a3", "Cross-Area", "Finalist", "Repair Cafe", "Cat", "PB-CRO-303", 1800, days=1),
        make_app("a4", "Blaenavon", "Rejected-Stage1", "Mural, \"Big\" Wall", "Dee", "PB-BLA-404", 900, days=3),
    ]


# ============================================================================
# FILTER & SORT
# ============================================================================


class TestFilterApplications:
    def test_no_filters(self, apps):
        assert len(filter_applications(apps)) == 4

    def test_area_is_exact(self, apps):
        # the admin table does not fold cross-area into area filters
        assert [a.id for a in filter_applications(apps, area="Blaenavon")] == ["a1", "a4"]
        assert [a.id for a in filter_applications(apps, area="Cross-Area")] == ["a3"]

    def test_status(self, apps):
        assert [a.id for a in filter_applications(apps, status="Finalist")] == ["a3"]

    @pytest.mark.parametrize("query,expected", [("garden", ["a1"]), ("BEA", ["a2"]), ("pb-cro", ["a3"])])
    def test_search_title_applicant_ref(self, apps, query, expected):
        assert [a.id for a in filter_applications(apps, search=query)] == expected

    def test_filters_combine(self, apps):
        assert filter_applications(apps, area="Blaenavon", status="Finalist") == []


class TestSortApplications:
    def test_created_at_descending(self, apps):
        assert [a.id for a in sort_applications(apps, "created_at", descending=True)] == ["a4", "a1", "a3", "a2"]

    def test_amount_ascending(self, apps):
        assert [a.id for a in sort_applications(apps, "amount_requested")] == ["a1", "a4", "a3", "a2"]

    def test_none_values_sort_first(self, apps):
        apps[2].priority = "high"
        assert sort_applications(apps, "priority")[-1].id == "a3"

    def test_unknown_key(self, apps):
        with pytest.raises(ValueError):
            sort_applications(apps, "not_a_field")

    def test_none_values_sort_first_when_descending(self, apps):
        apps[2].priority = "high"
        apps[0].priority = "low"
        ordered = sort_applications(apps, "priority", descending=True)
        assert [a.id for a in ordered] == ["a2", "a4", "a1", "a3"]

    def test_non_scalar_field_rejected(self, apps):
        with pytest.raises(ValueError):
            sort_applications(apps, "form_data")


# ============================================================================
# COMMITTEE VIEWS
# ============================================================================


class TestVisibleToCommittee:
    def test_stage1_only(self, apps):
        settings = PortalSettings(stage1_visible=True, stage2_visible=False)
        assert [a.id for a in visible_to_committee(apps, settings)] == ["a1", "a4"]

    def test_stage2_only(self, apps):
        settings = PortalSettings(stage1_visible=False, stage2_visible=True)
        assert [a.id for a in visible_to_committee(apps, settings)] == ["a2", "a3"]

    def test_nothing_visible(self, apps):
        settings = PortalSettings(stage1_visible=False, stage2_visible=False)
        assert visible_to_committee(apps, settings) == []


class TestCanViewApplication:
    def test_admin_sees_everything(self, apps):
        settings = PortalSettings(stage1_visible=False, stage2_visible=False)
        admin = make_user("admin")
        assert all(can_view_application(admin, a, settings) for a in apps)

    def test_committee_limited_to_area_and_cross_area(self, apps):
        settings = PortalSettings(stage1_visible=True, stage2_visible=True)
        member = make_user("committee", "Blaenavon")
        assert [a.id for a in apps if can_view_application(member, a, settings)] == ["a1", "a3", "a4"]

    def test_committee_respects_phase_switches(self, apps):
        settings = PortalSettings(stage1_visible=True, stage2_visible=False)
        member = make_user("committee", "Thornhill & Upper Cwmbran")
        # a2 is Stage 2 in the member's own area
        assert not can_view_application(member, apps[1], settings)

    def test_applicant_sees_own(self, apps):
        settings = PortalSettings()
        assert can_view_application(make_user("applicant", user_id="u1"), apps[0], settings)
        assert not can_view_application(make_user("applicant", user_id="u2"), apps[0], settings)


class TestPendingForScorer:
    def test_unscored_and_draft_are_pending(self, apps):
        scores = [make_score("a2", "s1", 50, is_final=False)]
        assert [a.id for a in pending_for_scorer(apps, scores, "s1")] == ["a2", "a3"]

    def test_final_scores_clear_pending(self, apps):
        scores = [make_score("a2", "s1", 50, is_final=True), make_score("a3", "s1", 70, is_final=True)]
        assert pending_for_scorer(apps, scores, "s1") == []

    def test_other_scorers_do_not_count(self, apps):
        scores = [make_score("a2", "s2", 50, is_final=True)]
        assert [a.id for a in pending_for_scorer(apps, scores, "s1")] == ["a2", "a3"]


# ============================================================================
# AGGREGATES
# ============================================================================


class TestApplicationSummaries:
    def test_average_and_rag(self, apps):
        scores = [
            make_score("a2", "s1", 60, is_final=True),
            make_score("a2", "s2", 80),
            make_score("a3", "s1", 30),
        ]
        by_id = {s.app_id: s for s in application_summaries(apps, scores, threshold=65)}

        assert by_id["a2"].average_total == pytest.approx(70)
        assert by_id["a2"].score_count == 2
        assert by_id["a2"].final_count == 1
        assert by_id["a2"].rag == "green"
        assert by_id["a3"].rag == "red"
        assert by_id["a1"].score_count == 0
        assert by_id["a1"].rag is None


class TestScoreRows:
    def test_unknown_scorer_and_application(self, apps):
        users = [User(id="s1", email="s1@committee.local", display_name="Scorer One")]
        scores = [make_score("a2", "s1", 60, True), make_score("gone", "deleted", 40)]
        rows = score_rows(scores, apps, users)

        assert rows[0].scorer_name == "Scorer One"
        assert rows[0].app_ref == "PB-THO-202"
        assert rows[0].state == "Completed"
        assert rows[1].scorer_name == "Unknown"
        assert rows[1].app_ref == "Unknown"
        assert rows[1].state == "Draft"

    def test_filter_by_scorer(self, apps):
        scores = [make_score("a2", "s1", 60), make_score("a2", "s2", 40)]
        assert [r.scorer_id for r in score_rows(scores, apps, [], scorer_id="s2")] == ["s2"]
        assert len(score_rows(scores, apps, [], scorer_id="All")) == 2


class TestOverviewStats:
    def test_counts(self, apps):
        scores = [make_score("a2", "s1", 60, True), make_score("a3", "s1", 40)]
        users = [User(id="s1", email="s1@x"), User(id="s2", email="s2@x")]
        stats = overview_stats(apps, scores, users)
        assert stats["total_applications"] == 4
        assert stats["total_scores"] == 2
        assert stats["final_scores"] == 1
        assert stats["total_users"] == 2
        assert stats["applications_by_status"]["Submitted-Stage1"] == 1


# ============================================================================
# CSV EXPORTS
# ============================================================================


class TestAdminExportCsv:
    def test_columns_and_values(self, apps):
        scores = [make_score("a2", "s1", 60), make_score("a2", "s2", 75)]
        text = admin_export_csv(apps, scores)
        rows = parse_csv(text)

        assert text.splitlines()[0].split(",") == ADMIN_CSV_COLUMNS
        assert len(rows) == 4
        row = next(r for r in rows if r["Ref"] == "PB-THO-202")
        assert row["Title"] == "Youth Sports"
        assert row["Applicant"] == "Bea"
        assert row["Avg Score"] == "67.5"
        assert row["Num Scores"] == "2"

    def test_unscored_average_is_zero(self, apps):
        rows = parse_csv(admin_export_csv(apps, []))
        assert {r["Avg Score"] for r in rows} == {"0"}

    def test_quotes_are_escaped(self, apps):
        rows = parse_csv(admin_export_csv(apps, []))
        assert rows[3]["Title"] == 'Mural, "Big" Wall'


class TestScorerExportCsv:
    def test_my_scores(self, apps):
        scores = [make_score("a2", "s1", 66.5, True), make_score("a3", "s1", 40.2), make_score("a1", "s2", 90)]
        text = scorer_export_csv(apps, scores, "s1")
        rows = {r["Ref"]: r for r in parse_csv(text)}

        assert text.splitlines()[0].split(",") == SCORER_CSV_COLUMNS
        assert rows["PB-THO-202"]["My Score"] == "67"
        assert rows["PB-THO-202"]["Status"] == "Completed"
        assert rows["PB-CRO-303"]["My Score"] == "40"
        assert rows["PB-CRO-303"]["Status"] == "Pending"
        assert rows["PB-BLA-101"]["My Score"] == "N/A"
        assert rows["PB-BLA-101"]["Status"] == "Pending"
