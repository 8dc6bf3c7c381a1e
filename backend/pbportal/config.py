"""Process-wide configuration read from the environment.

Values are read once at import time after ``load_dotenv()`` so a local
``.env`` file can supply them during development.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# ---------------------------------------------------------------------------
# Data backend selection
# ---------------------------------------------------------------------------
# "local" keeps everything in a SQLite file; "supabase" talks to a hosted
# Supabase project (PostgREST tables + Supabase Auth).
DATA_BACKEND: str = os.getenv("PB_DATA_BACKEND", "local").strip().lower()

SUPABASE_URL: str | None = os.getenv("SUPABASE_URL")
SUPABASE_ANON_KEY: str | None = os.getenv("SUPABASE_ANON_KEY")
# Optional: enables admin_create_user through the Auth admin API
SUPABASE_SERVICE_KEY: str | None = os.getenv("SUPABASE_SERVICE_KEY")

LOCAL_DATABASE_URL: str = os.getenv(
    "LOCAL_DATABASE_URL", "sqlite+aiosqlite:///./pb_portal.db"
)
SQLALCHEMY_ECHO: bool = os.getenv("SQLALCHEMY_ECHO", "").lower() == "true"

# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------
# Bare usernames (committee logins) are matched as <username>@<domain>
SYNTHETIC_LOGIN_DOMAIN: str = os.getenv("SYNTHETIC_LOGIN_DOMAIN", "committee.local")

JWT_SECRET: str = os.getenv("JWT_SECRET", "pb-portal-dev-secret-change-in-production")
JWT_ALGORITHM = "HS256"
JWT_EXPIRY_HOURS: int = int(os.getenv("JWT_EXPIRY_HOURS", "12"))
# Local backend password hashing cost (bcrypt minimum is 4)
BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------
SCORE_PASS_THRESHOLD: int = int(os.getenv("SCORE_PASS_THRESHOLD", "65"))

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development").lower()
IS_PRODUCTION: bool = ENVIRONMENT == "production"
ALLOWED_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv(
        "ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173"
    ).split(",")
    if origin.strip()
]
RATE_LIMIT_PER_MINUTE: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "100"))
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
# Reverse proxies in front of the API; X-Forwarded-For hops beyond this are ignored
TRUSTED_PROXY_COUNT: int = int(os.getenv("TRUSTED_PROXY_COUNT", "1"))
