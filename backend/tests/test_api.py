"""
Integration Tests for the PB Portal HTTP API

Runs the FastAPI app against a seeded local SQLite store:
- /api/v1/auth: login, registration, profile
- /api/v1/applications: role-scoped listing, creation, workflow updates
- /api/v1/scores: committee scoring and export
- /api/v1/admin: settings, users, score management, reports

Usage:
    cd backend && pytest tests/test_api.py -v
"""

import sys
import os
from typing import Dict

import pytest
from fastapi import Request
from fastapi.testclient import TestClient

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from pbportal import config, deps
from pbportal.main import app
from pbportal.seed import DEMO_PASSWORD
from pbportal.security import get_client_ip, limiter


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def client(seeded_service, monkeypatch):
    monkeypatch.setattr(deps, "_data_service", seeded_service)
    # every TestClient request comes from the same address
    monkeypatch.setattr(limiter, "enabled", False)
    return TestClient(app)


def auth_headers(client: TestClient, identifier: str, password: str = DEMO_PASSWORD) -> Dict[str, str]:
    response = client.post("/api/v1/auth/login", json={"identifier": identifier, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def admin(client):
    return auth_headers(client, "admin")


@pytest.fixture
def committee(client):
    return auth_headers(client, "blaenavon")


@pytest.fixture
def applicant(client):
    return auth_headers(client, "applicant@example.com")


# ============================================================================
# HEALTH
# ============================================================================


class TestHealth:
    def test_root(self, client):
        assert client.get("/").json()["status"] == "ok"

    def test_health_reports_backend(self, client):
        body = client.get("/api/v1/health").json()
        assert body["data_backend"] == "local"
        assert "admin_create_user" in body["capabilities"]

    def test_security_headers(self, client):
        response = client.get("/")
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "X-Request-ID" in response.headers


class TestClientIp:
    def make_request(self, forwarded=None):
        headers = [(b"x-forwarded-for", forwarded.encode())] if forwarded else []
        return Request({"type": "http", "headers": headers, "client": ("10.0.0.9", 5000)})

    def test_direct_connection(self):
        assert get_client_ip(self.make_request()) == "10.0.0.9"

    def test_trusts_only_last_proxy_hop(self, monkeypatch):
        monkeypatch.setattr(config, "TRUSTED_PROXY_COUNT", 1)
        # the leftmost entry is client-supplied and ignored
        request = self.make_request("6.6.6.6, 203.0.113.7, 10.0.0.1")
        assert get_client_ip(request) == "203.0.113.7"

    def test_malformed_header_falls_back(self):
        assert get_client_ip(self.make_request("not-an-ip")) == "10.0.0.9"


# ============================================================================
# AUTH
# ============================================================================


class TestAuth:
    def test_login_returns_public_profile(self, client):
        response = client.post("/api/v1/auth/login", json={"identifier": "ADMIN", "password": DEMO_PASSWORD})
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["id"] == "admin_1"
        assert not body["user"]["password"]

    def test_bad_password(self, client):
        response = client.post("/api/v1/auth/login", json={"identifier": "admin", "password": "nope"})
        assert response.status_code == 401

    def test_register_and_me(self, client):
        response = client.post(
            "/api/v1/auth/register",
            json={"email": "new@example.com", "password": "s3cret!", "display_name": "New Person"},
        )
        assert response.status_code == 201
        token = response.json()["access_token"]

        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "new@example.com"
        assert me.json()["role"] == "applicant"

    def test_duplicate_registration(self, client):
        response = client.post(
            "/api/v1/auth/register",
            json={"email": "applicant@example.com", "password": "s3cret!", "display_name": "Again"},
        )
        assert response.status_code == 409

    def test_missing_token(self, client):
        assert client.get("/api/v1/auth/me").status_code in (401, 403)

    def test_invalid_token(self, client):
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

    def test_update_profile(self, client, applicant):
        response = client.patch("/api/v1/auth/me", json={"bio": "Community gardener"}, headers=applicant)
        assert response.status_code == 200
        assert response.json()["bio"] == "Community gardener"
        assert response.json()["role"] == "applicant"

    def test_profile_update_cannot_change_role(self, client, applicant):
        response = client.patch("/api/v1/auth/me", json={"role": "admin"}, headers=applicant)
        # role is not part of the profile payload
        assert response.status_code == 400

    def test_null_email_rejected(self, client, applicant):
        response = client.patch("/api/v1/auth/me", json={"email": None}, headers=applicant)
        assert response.status_code == 422
        assert client.get("/api/v1/auth/me", headers=applicant).json()["email"] == "applicant@example.com"


# ============================================================================
# APPLICATIONS
# ============================================================================


class TestApplications:
    def test_applicant_creates_for_self(self, client, applicant):
        response = client.post(
            "/api/v1/applications",
            json={"user_id": "someone_else", "area": "Blaenavon", "project_title": "Bench", "amount_requested": 500},
            headers=applicant,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["user_id"] == "applicant_1"
        assert body["status"] == "Submitted-Stage1"
        assert body["ref"].startswith("PB-BLA-")

    def test_negative_amount_rejected(self, client, applicant):
        response = client.post(
            "/api/v1/applications",
            json={"user_id": "applicant_1", "area": "Blaenavon", "amount_requested": -1},
            headers=applicant,
        )
        assert response.status_code == 422

    def test_committee_cannot_create(self, client, committee):
        response = client.post(
            "/api/v1/applications", json={"user_id": "x", "area": "Blaenavon"}, headers=committee
        )
        assert response.status_code == 403

    def test_applicant_lists_own(self, client, applicant):
        body = client.get("/api/v1/applications", headers=applicant).json()
        assert body["total"] == 3
        assert {a["user_id"] for a in body["applications"]} == {"applicant_1"}

    def test_committee_sees_area_and_phase(self, client, committee):
        body = client.get("/api/v1/applications", headers=committee).json()
        # Blaenavon Stage 1 plus the cross-area EOI; Stage 2 is hidden by default
        assert {a["id"] for a in body["applications"]} == {"app_demo_1", "app_demo_3"}

    def test_committee_sees_stage2_when_enabled(self, client, admin):
        client.put(
            "/api/v1/admin/settings",
            json={"stage1_visible": False, "stage2_visible": True, "voting_open": True},
            headers=admin,
        )
        thornhill = auth_headers(client, "thornhill")
        body = client.get("/api/v1/applications", headers=thornhill).json()
        assert [a["id"] for a in body["applications"]] == ["app_demo_2"]

    def test_admin_filters_and_sorts(self, client, admin):
        body = client.get(
            "/api/v1/applications", params={"search": "pb-", "sort_by": "ref", "order": "asc"}, headers=admin
        ).json()
        assert [a["ref"] for a in body["applications"]] == ["PB-BLA-101", "PB-CRO-377", "PB-THO-214"]

        body = client.get("/api/v1/applications", params={"area": "Blaenavon"}, headers=admin).json()
        assert [a["id"] for a in body["applications"]] == ["app_demo_1"]

    def test_bad_sort_key(self, client, admin):
        response = client.get("/api/v1/applications", params={"sort_by": "nope"}, headers=admin)
        assert response.status_code == 400

    def test_non_scalar_sort_key(self, client, admin):
        response = client.get("/api/v1/applications", params={"sort_by": "form_data"}, headers=admin)
        assert response.status_code == 400

    def test_null_required_field_rejected(self, client, admin):
        response = client.patch("/api/v1/applications/app_demo_1", json={"project_title": None}, headers=admin)
        assert response.status_code == 422
        assert "project_title" in response.json()["detail"]
        stored = client.get("/api/v1/applications/app_demo_1", headers=admin).json()
        assert stored["project_title"] == "Growing Together"

    def test_nullable_field_can_be_cleared(self, client, admin):
        response = client.patch("/api/v1/applications/app_demo_3", json={"pdf_url": None}, headers=admin)
        assert response.status_code == 200
        assert response.json()["pdf_url"] is None

    def test_hidden_application_is_not_found(self, client, committee):
        # app_demo_2 is a Thornhill application
        assert client.get("/api/v1/applications/app_demo_2", headers=committee).status_code == 404

    def test_illegal_transition(self, client, admin):
        response = client.patch("/api/v1/applications/app_demo_1", json={"status": "Funded"}, headers=admin)
        assert response.status_code == 400
        assert "Cannot transition" in response.json()["detail"]

    def test_admin_force_transition(self, client, admin):
        response = client.patch(
            "/api/v1/applications/app_demo_1", params={"force": True}, json={"status": "Funded"}, headers=admin
        )
        assert response.status_code == 200
        assert response.json()["status"] == "Funded"

    def test_applicant_submits_stage2(self, client, applicant):
        response = client.patch(
            "/api/v1/applications/app_demo_3", json={"status": "Submitted-Stage2"}, headers=applicant
        )
        assert response.status_code == 200
        assert response.json()["status"] == "Submitted-Stage2"

    def test_applicant_cannot_award_themselves(self, client, applicant):
        response = client.patch("/api/v1/applications/app_demo_2", json={"status": "Funded"}, headers=applicant)
        assert response.status_code == 403

    def test_update_unknown_application(self, client, admin):
        response = client.patch("/api/v1/applications/missing", json={"summary": "x"}, headers=admin)
        assert response.status_code == 404

    def test_delete_requires_admin(self, client, applicant, admin):
        assert client.delete("/api/v1/applications/app_demo_1", headers=applicant).status_code == 403
        assert client.delete("/api/v1/applications/app_demo_1", headers=admin).status_code == 204
        assert client.get("/api/v1/applications/app_demo_1", headers=admin).status_code == 404


# ============================================================================
# SCORES
# ============================================================================


class TestScores:
    def test_save_and_list(self, client, committee):
        response = client.post(
            "/api/v1/scores",
            json={"app_id": "app_demo_1", "scores": {"community_need": 3, "outcomes": 3}, "is_final": True},
            headers=committee,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["scorer_id"] == "committee_bla"
        assert body["total"] == pytest.approx(40)

        mine = client.get("/api/v1/scores/me", headers=committee).json()
        assert [s["app_id"] for s in mine] == ["app_demo_1"]

    def test_rating_out_of_range(self, client, committee):
        response = client.post(
            "/api/v1/scores", json={"app_id": "app_demo_1", "scores": {"outcomes": 4}}, headers=committee
        )
        assert response.status_code == 422

    def test_unknown_application(self, client, committee):
        response = client.post("/api/v1/scores", json={"app_id": "missing", "scores": {}}, headers=committee)
        assert response.status_code == 404

    def test_applicant_cannot_score(self, client, applicant):
        response = client.post("/api/v1/scores", json={"app_id": "app_demo_1", "scores": {}}, headers=applicant)
        assert response.status_code == 403

    def test_pending_and_export(self, client, admin):
        pending = client.get("/api/v1/scores/me/pending", headers=admin).json()
        assert [a["id"] for a in pending] == ["app_demo_2"]

        response = client.get("/api/v1/scores/me/export", headers=admin)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.text.splitlines()[0] == "Ref,Title,Area,My Score,Status"

    def test_delete_own_score(self, client, committee):
        client.post("/api/v1/scores", json={"app_id": "app_demo_1", "scores": {"wfg": 1}}, headers=committee)
        assert client.delete("/api/v1/scores/me/app_demo_1", headers=committee).status_code == 204
        assert client.get("/api/v1/scores/me", headers=committee).json() == []

    def test_criteria(self, client):
        criteria = client.get("/api/v1/scoring/criteria").json()
        assert sum(c["weight"] for c in criteria) == 100
        assert all(c["details"] for c in criteria)

    def test_cannot_score_other_area(self, client, committee):
        # app_demo_2 belongs to Thornhill
        response = client.post(
            "/api/v1/scores", json={"app_id": "app_demo_2", "scores": {"outcomes": 3}}, headers=committee
        )
        assert response.status_code == 404
        assert client.get("/api/v1/scores/me", headers=committee).json() == []

    def test_cannot_score_while_phase_hidden(self, client, admin):
        thornhill = auth_headers(client, "thornhill")
        # Stage 2 is hidden from the committee by default
        response = client.post(
            "/api/v1/scores", json={"app_id": "app_demo_2", "scores": {"outcomes": 3}}, headers=thornhill
        )
        assert response.status_code == 404

        client.put(
            "/api/v1/admin/settings",
            json={"stage1_visible": True, "stage2_visible": True, "voting_open": True},
            headers=admin,
        )
        response = client.post(
            "/api/v1/scores", json={"app_id": "app_demo_2", "scores": {"outcomes": 3}}, headers=thornhill
        )
        assert response.status_code == 200


# ============================================================================
# ADMIN
# ============================================================================


class TestAdmin:
    def test_requires_admin(self, client, committee):
        assert client.get("/api/v1/admin/users", headers=committee).status_code == 403

    def test_settings_round_trip(self, client, admin):
        response = client.put(
            "/api/v1/admin/settings",
            json={"stage1_visible": True, "stage2_visible": True, "voting_open": False},
            headers=admin,
        )
        assert response.status_code == 200
        assert client.get("/api/v1/settings", headers=admin).json()["stage2_visible"] is True

    def test_users_never_expose_secret(self, client, admin):
        users = client.get("/api/v1/admin/users", headers=admin).json()
        assert len(users) == 5
        assert all(not u["password"] for u in users)

    def test_create_update_delete_user(self, client, admin):
        created = client.post(
            "/api/v1/admin/users",
            json={"email": "pontypool@committee.local", "password": "temporary1", "area": "Blaenavon"},
            headers=admin,
        )
        assert created.status_code == 201
        user_id = created.json()["id"]
        assert created.json()["username"] == "pontypool"

        # the new account can sign in by username
        auth_headers(client, "pontypool", "temporary1")

        updated = client.patch(
            f"/api/v1/admin/users/{user_id}", json={"display_name": "Pontypool Panel"}, headers=admin
        )
        assert updated.json()["display_name"] == "Pontypool Panel"
        assert updated.json()["role"] == "committee"

        assert client.delete(f"/api/v1/admin/users/{user_id}", headers=admin).status_code == 204
        ids = {u["id"] for u in client.get("/api/v1/admin/users", headers=admin).json()}
        assert user_id not in ids

    def test_create_duplicate_user(self, client, admin):
        response = client.post(
            "/api/v1/admin/users",
            json={"email": "admin@committee.local", "password": "temporary1"},
            headers=admin,
        )
        assert response.status_code == 409

    def test_update_unknown_user(self, client, admin):
        response = client.patch("/api/v1/admin/users/missing", json={"bio": "x"}, headers=admin)
        assert response.status_code == 404

    def test_null_required_user_field_rejected(self, client, admin):
        response = client.patch("/api/v1/admin/users/committee_bla", json={"role": None}, headers=admin)
        assert response.status_code == 422
        roles = {u["id"]: u["role"] for u in client.get("/api/v1/admin/users", headers=admin).json()}
        assert roles["committee_bla"] == "committee"

    def test_cannot_delete_self(self, client, admin):
        assert client.delete("/api/v1/admin/users/admin_1", headers=admin).status_code == 400

    def test_score_tracker_and_reset(self, client, admin, committee):
        client.post("/api/v1/scores", json={"app_id": "app_demo_1", "scores": {"wfg": 3}}, headers=committee)
        client.post("/api/v1/scores", json={"app_id": "app_demo_3", "scores": {"wfg": 2}}, headers=committee)

        rows = client.get("/api/v1/admin/scores", headers=admin).json()
        assert {r["app_ref"] for r in rows} == {"PB-BLA-101", "PB-CRO-377"}
        assert {r["scorer_name"] for r in rows} == {"Blaenavon Committee"}
        assert {r["state"] for r in rows} == {"Draft"}

        response = client.post(
            "/api/v1/admin/scores/reset", json={"scorer_id": "committee_bla", "app_id": "app_demo_1"}, headers=admin
        )
        assert response.status_code == 204
        rows = client.get("/api/v1/admin/scores", headers=admin).json()
        assert [r["app_id"] for r in rows] == ["app_demo_3"]

    def test_sweep(self, client, admin):
        assert client.post("/api/v1/admin/scores/sweep", headers=admin).json() == {"removed": 0}

    def test_summary_and_overview(self, client, admin, committee):
        client.post("/api/v1/scores", json={"app_id": "app_demo_1", "scores": {"outcomes": 3}}, headers=committee)

        summary = {s["app_id"]: s for s in client.get("/api/v1/admin/summary", headers=admin).json()}
        assert summary["app_demo_1"]["average_total"] == pytest.approx(20)
        assert summary["app_demo_1"]["rag"] == "red"
        assert summary["app_demo_2"]["score_count"] == 0

        overview = client.get("/api/v1/admin/overview", headers=admin).json()
        assert overview["total_applications"] == 3
        assert overview["total_scores"] == 1
        assert overview["total_users"] == 5

    def test_export_csv(self, client, admin):
        response = client.get("/api/v1/admin/export", params={"status": "Submitted-Stage2"}, headers=admin)
        assert response.status_code == 200
        assert 'filename="admin_export.csv"' in response.headers["content-disposition"]
        lines = response.text.splitlines()
        assert lines[0] == "Ref,Title,Area,Applicant,Status,Requested,Total Cost,Avg Score,Num Scores"
        assert len(lines) == 2
        assert lines[1].startswith("PB-THO-214,Friday Night Sports")
