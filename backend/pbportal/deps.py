"""Shared dependencies for all PB Portal API routers.

Centralises the data service singleton, the bearer-token authentication
dependency, role gates and the safe-error helper so router modules can
``from pbportal.deps import ...`` without importing ``main``.
"""

import logging
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from pbportal import config
from pbportal.auth import decode_access_token
from pbportal.errors import NotFoundError
from pbportal.models.core import User
from pbportal.security import log_security_event
from pbportal.services.data_service import DataService

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Data service (singleton)
# ---------------------------------------------------------------------------
_data_service: Optional[DataService] = None


def build_data_service(backend: Optional[str] = None) -> DataService:
    """Construct the configured backend.

    Raises:
        RuntimeError: If the Supabase backend is selected without its URL
            and anon key, or the backend name is unknown.
    """
    backend = (backend or config.DATA_BACKEND).lower()

    if backend == "supabase":
        from supabase import create_client

        from pbportal.services.supabase_service import SupabaseDataService

        if not (config.SUPABASE_URL and config.SUPABASE_ANON_KEY):
            raise RuntimeError(
                "PB_DATA_BACKEND=supabase requires SUPABASE_URL and SUPABASE_ANON_KEY"
            )
        client = create_client(config.SUPABASE_URL, config.SUPABASE_ANON_KEY)
        admin_client = None
        if config.SUPABASE_SERVICE_KEY:
            admin_client = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_KEY)
        logger.info(
            "Using Supabase data backend (admin client: %s)",
            "yes" if admin_client else "no",
        )
        return SupabaseDataService(client, admin_client)

    if backend == "local":
        from pbportal.services.local_service import LocalDataService

        logger.info("Using local data backend")
        return LocalDataService.from_url(config.LOCAL_DATABASE_URL)

    raise RuntimeError(f"Unknown PB_DATA_BACKEND: {backend!r}")


def get_data_service() -> DataService:
    """FastAPI dependency returning the process-wide data service."""
    global _data_service
    if _data_service is None:
        _data_service = build_data_service()
    return _data_service


# ---------------------------------------------------------------------------
# HTTPBearer security scheme
# ---------------------------------------------------------------------------
security = HTTPBearer()


# ---------------------------------------------------------------------------
# Small utility helpers
# ---------------------------------------------------------------------------


def _safe_error(operation: str, e: Exception) -> str:
    """Log the full exception but return a safe message without internal details."""
    logger.exception("Error during %s", operation)
    return f"{operation} failed. Please try again or contact support."


# ---------------------------------------------------------------------------
# Authentication dependency
# ---------------------------------------------------------------------------


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    service: DataService = Depends(get_data_service),
) -> User:
    """
    Resolve the bearer token to the caller's public profile.

    The role is read from the stored profile on every request, so a role
    change or deletion takes effect immediately.
    """
    claims = decode_access_token(credentials.credentials)
    if claims is None:
        log_security_event("auth_invalid_token", request)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )

    try:
        return await service.get_user(claims["sub"])
    except NotFoundError as e:
        logger.warning("User profile not found for token subject: %s", claims["sub"])
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        ) from e


def require_roles(*roles: str) -> Callable:
    """Dependency factory: allow only callers whose role is in *roles*."""

    async def _check(
        request: Request, current_user: User = Depends(get_current_user)
    ) -> User:
        if current_user.role not in roles:
            log_security_event(
                "role_denied",
                request,
                {"user_id": current_user.id, "role": current_user.role},
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have access to this resource",
            )
        return current_user

    return _check


require_admin = require_roles("admin")
require_committee = require_roles("committee", "admin")
