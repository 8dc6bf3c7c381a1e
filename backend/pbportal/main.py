"""
PB Portal API

FastAPI application serving the participatory-budgeting grant portal:
authentication, applications, committee scoring and the admin control room.
The storage backend (Supabase or a local SQLite file) is chosen by
``PB_DATA_BACKEND``.

Run with:
    uvicorn pbportal.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pbportal import __version__, config
from pbportal.routers import admin, applications, auth, health, scores
from pbportal.security import setup_security

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    from pbportal.deps import get_data_service

    service = get_data_service()
    logger.info("PB Portal API starting (backend=%s)", service.backend_name)
    yield
    dispose = getattr(service, "dispose", None)
    if dispose is not None:
        await dispose()
    logger.info("PB Portal API stopped")


# Initialize FastAPI app
app = FastAPI(
    title="PB Portal API",
    description="Participatory budgeting grant portal",
    version=__version__,
    lifespan=lifespan,
)

# =============================================================================
# CORS Configuration
# =============================================================================
if config.IS_PRODUCTION:
    ALLOWED_ORIGINS = [
        origin
        for origin in config.ALLOWED_ORIGINS
        if origin.startswith("https://") and "localhost" not in origin
    ]
    rejected = set(config.ALLOWED_ORIGINS) - set(ALLOWED_ORIGINS)
    if rejected:
        logger.warning("[CORS] Rejecting non-HTTPS or localhost origins in production: %s", sorted(rejected))
else:
    ALLOWED_ORIGINS = list(config.ALLOWED_ORIGINS)

logger.info("[CORS] Environment: %s, allowed origins: %s", config.ENVIRONMENT, ALLOWED_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
)

setup_security(app, ALLOWED_ORIGINS)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(applications.router)
app.include_router(scores.router)
app.include_router(admin.router)
