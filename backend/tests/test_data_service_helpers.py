"""
Unit Tests for Data Service Helpers and Tokens

Tests the backend-independent pieces of the data service:
- normalize_login_identifier: Synthetic committee login domain
- generate_ref: Human-readable reference codes
- matches_area_filter: Cross-area visibility
- validate_transition: Application status workflow
- public_user_view: Secret field redaction
- build_record: Typed validation errors for merged records
- create_access_token / decode_access_token: Bearer tokens

Usage:
    cd backend && pytest tests/test_data_service_helpers.py -v
"""

import random
import re
import sys
import os
from datetime import datetime, timezone

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from pbportal.auth import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from pbportal.errors import InvalidRecordError, InvalidTransitionError
from pbportal.models.core import APP_STATUSES, Application, User
from pbportal.services.data_service import (
    ALLOWED_TRANSITIONS,
    build_record,
    matches_area_filter,
    normalize_login_identifier,
    generate_ref,
    public_user_view,
    score_doc_id,
    username_from_email,
    validate_transition,
)

REF_PATTERN = re.compile(r"^PB-[A-Z]{3}-\d{3}$")


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================


def make_app(app_id: str = "a1", area: str = "Blaenavon", status: str = "Submitted-Stage1") -> Application:
    """Factory function to create an application."""
    return Application(
        id=app_id,
        user_id="u1",
        project_title="Test Project",
        area=area,
        status=status,
        ref="PB-BLA-123",
        created_at=datetime.now(timezone.utc),
    )


# ============================================================================
# LOGIN IDENTIFIERS
# ============================================================================


class TestNormalizeLoginIdentifier:
    def test_bare_username_gets_synthetic_domain(self):
        assert normalize_login_identifier("Blaenavon") == "blaenavon@committee.local"

    def test_email_is_lower_cased(self):
        assert normalize_login_identifier("  Sam@Example.COM ") == "sam@example.com"

    def test_domain_from_config(self, monkeypatch):
        from pbportal import config

        monkeypatch.setattr(config, "SYNTHETIC_LOGIN_DOMAIN", "pb.test")
        assert normalize_login_identifier("admin") == "admin@pb.test"

    def test_username_from_email(self):
        assert username_from_email("sam@example.com") == "sam"


# ============================================================================
# REFERENCE CODES
# ============================================================================


class TestGenerateRef:
    @pytest.mark.parametrize(
        "area,prefix",
        [
            ("Blaenavon", "PB-BLA-"),
            ("Thornhill & Upper Cwmbran", "PB-THO-"),
            ("Trevethin, Penygarn & St. Cadocs", "PB-TRE-"),
            ("Cross-Area", "PB-CRO-"),
        ],
    )
    def test_prefix_from_area(self, area, prefix):
        ref = generate_ref(area)
        assert ref.startswith(prefix)
        assert REF_PATTERN.match(ref)

    def test_number_range(self):
        rng = random.Random(42)
        numbers = {int(generate_ref("Blaenavon", rng)[-3:]) for _ in range(500)}
        assert min(numbers) >= 100
        assert max(numbers) <= 999

    def test_score_doc_id(self):
        assert score_doc_id("a1", "s1") == "a1_s1"


# ============================================================================
# AREA FILTER
# ============================================================================


class TestMatchesAreaFilter:
    def test_none_and_all_match_everything(self):
        app = make_app(area="Thornhill & Upper Cwmbran")
        assert matches_area_filter(app, None)
        assert matches_area_filter(app, "All")

    def test_exact_area(self):
        app = make_app(area="Blaenavon")
        assert matches_area_filter(app, "Blaenavon")
        assert not matches_area_filter(app, "Thornhill & Upper Cwmbran")

    @pytest.mark.parametrize("area", ["Blaenavon", "Cross-Area", "AnyOtherAreaName"])
    def test_cross_area_matches_every_filter(self, area):
        assert matches_area_filter(make_app(area="Cross-Area"), area)


# ============================================================================
# STATUS WORKFLOW
# ============================================================================


class TestValidateTransition:
    def test_every_status_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(APP_STATUSES)

    @pytest.mark.parametrize(
        "old,new",
        [
            ("Draft", "Submitted-Stage1"),
            ("Submitted-Stage1", "Invited-Stage2"),
            ("Submitted-Stage1", "Rejected-Stage1"),
            ("Invited-Stage2", "Submitted-Stage2"),
            ("Submitted-Stage2", "Finalist"),
            ("Finalist", "Funded"),
            ("Finalist", "Rejected"),
        ],
    )
    def test_allowed(self, old, new):
        validate_transition(old, new)

    def test_same_status_is_allowed(self):
        validate_transition("Funded", "Funded")

    def test_skipping_a_stage_is_rejected(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition("Submitted-Stage1", "Funded")
        assert exc_info.value.allowed == ["Rejected-Stage1", "Invited-Stage2"]

    def test_terminal_state_message(self):
        with pytest.raises(InvalidTransitionError, match="terminal state"):
            validate_transition("Rejected", "Finalist")


# ============================================================================
# REDACTION & TOKENS
# ============================================================================


class TestPublicUserView:
    def test_secret_is_blanked(self):
        user = User(id="u1", email="a@b.c", password="hunter2")
        view = public_user_view(user)
        assert view.password is None
        assert view.email == "a@b.c"
        # the original is untouched
        assert user.password == "hunter2"


class TestBuildRecord:
    def test_valid_data(self):
        user = build_record(User, {"id": "u1", "email": "a@b.c", "role": "committee"})
        assert user.role == "committee"

    def test_null_required_field(self):
        with pytest.raises(InvalidRecordError) as exc_info:
            build_record(User, {"id": "u1", "email": None})
        assert exc_info.value.kind == "User"
        assert exc_info.value.problems[0].startswith("email:")

    def test_nullable_field_accepts_none(self):
        assert build_record(User, {"id": "u1", "email": "a@b.c", "bio": None}).bio is None


class TestTokens:
    def test_round_trip(self):
        user = User(id="u1", email="a@b.c", role="committee")
        claims = decode_access_token(create_access_token(user))
        assert claims["sub"] == "u1"
        assert claims["email"] == "a@b.c"

    def test_token_signed_with_other_secret_is_rejected(self, monkeypatch):
        from pbportal import config

        token = create_access_token(User(id="u1", email="a@b.c"))
        monkeypatch.setattr(config, "JWT_SECRET", "a-different-secret")
        assert decode_access_token(token) is None

    def test_garbage_is_rejected(self):
        assert decode_access_token("not-a-token") is None


class TestPasswordHashing:
    def test_verify(self):
        hashed = hash_password("password123")
        assert verify_password("password123", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash(self):
        assert verify_password("password123", "not-a-bcrypt-hash") is False
