"""Shared fixtures for the PB Portal test suite."""

import os
import sys

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from pbportal import config
from pbportal.services.local_service import LocalDataService


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Cheapest bcrypt cost so seeding and registration stay fast."""
    monkeypatch.setattr(config, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'pb_portal_test.db'}"


@pytest.fixture
def empty_service(db_url):
    """Local store with no demonstration data."""
    return LocalDataService.from_url(db_url, seed_demo_data=False)


@pytest.fixture
def seeded_service(db_url):
    """Local store seeded with the demonstration users and applications."""
    return LocalDataService.from_url(db_url)
