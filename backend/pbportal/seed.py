"""Demonstration data for the local backend.

Loaded the first time a local store is opened with no users or no
applications.  Committee accounts use the synthetic login domain so they can
sign in with a bare username (``admin`` / ``blaenavon`` ...).
"""

from datetime import datetime, timezone

from pbportal.models.core import Application, ApplicationFormData, BudgetLine, User

DEMO_PASSWORD = "password123"

DEMO_USERS: list[User] = [
    User(
        id="admin_1",
        email="admin@committee.local",
        username="admin",
        role="admin",
        display_name="Portal Administrator",
        role_description="Programme Officer",
    ),
    User(
        id="committee_bla",
        email="blaenavon@committee.local",
        username="blaenavon",
        role="committee",
        area="Blaenavon",
        display_name="Blaenavon Committee",
        role_description="Chairperson",
    ),
    User(
        id="committee_tuc",
        email="thornhill@committee.local",
        username="thornhill",
        role="committee",
        area="Thornhill & Upper Cwmbran",
        display_name="Thornhill Committee",
    ),
    User(
        id="committee_tps",
        email="trevethin@committee.local",
        username="trevethin",
        role="committee",
        area="Trevethin, Penygarn & St. Cadocs",
        display_name="Trevethin Committee",
    ),
    User(
        id="applicant_1",
        email="applicant@example.com",
        username="applicant",
        role="applicant",
        display_name="Sam Applicant",
        role_description="Lead Applicant",
    ),
]

DEMO_APPS: list[Application] = [
    Application(
        id="app_demo_1",
        user_id="applicant_1",
        applicant_name="Sam Applicant",
        org_name="Blaenavon Community Garden",
        project_title="Growing Together",
        area="Blaenavon",
        summary="Raised beds and weekly growing sessions for families.",
        amount_requested=2500,
        total_cost=3200,
        status="Submitted-Stage1",
        ref="PB-BLA-101",
        created_at=datetime(2026, 1, 12, 10, 30, tzinfo=timezone.utc),
        submission_method="digital",
        form_data=ApplicationFormData(
            org_type="Community Group",
            positive_outcomes=[
                "Fresh food for local families",
                "Reduced isolation",
                "Skills for young people",
            ],
            marmot_principles=["healthy_standard_of_living"],
            wfg_goals=["healthier_wales"],
        ),
    ),
    Application(
        id="app_demo_2",
        user_id="applicant_1",
        applicant_name="Sam Applicant",
        org_name="Thornhill Youth Hub",
        project_title="Friday Night Sports",
        area="Thornhill & Upper Cwmbran",
        summary="Free evening sports sessions for 11-18 year olds.",
        amount_requested=4000,
        total_cost=4000,
        status="Submitted-Stage2",
        ref="PB-THO-214",
        created_at=datetime(2026, 1, 15, 14, 0, tzinfo=timezone.utc),
        submission_method="digital",
        form_data=ApplicationFormData(
            activities="Weekly football, basketball and dance sessions.",
            community_benefit="Safe space for young people on Friday evenings.",
            budget_breakdown=[
                BudgetLine(item="Coaches", note="40 sessions", cost=2800),
                BudgetLine(item="Equipment", note="Balls, bibs, cones", cost=700),
                BudgetLine(item="Hall hire", note="", cost=500),
            ],
        ),
    ),
    Application(
        id="app_demo_3",
        user_id="applicant_1",
        applicant_name="Sam Applicant",
        org_name="Torfaen Repair Cafe",
        project_title="Fix It Together",
        area="Cross-Area",
        summary="Monthly pop-up repair cafes rotating across all three areas.",
        amount_requested=1800,
        total_cost=2100,
        status="Invited-Stage2",
        ref="PB-CRO-377",
        created_at=datetime(2026, 1, 20, 9, 15, tzinfo=timezone.utc),
        submission_method="upload",
        pdf_url="https://example.org/eoi/fix-it-together.pdf",
    ),
]
