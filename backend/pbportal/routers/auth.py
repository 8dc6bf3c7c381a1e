"""Authentication router: login, registration and the caller's own profile."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from pbportal.auth import create_access_token
from pbportal.deps import get_current_user, get_data_service
from pbportal.errors import AuthenticationError, ConflictError, DataServiceError
from pbportal.models.api import LoginRequest, RegisterRequest, TokenResponse
from pbportal.models.core import User, UserProfileUpdate
from pbportal.routers._helpers import service_http_error
from pbportal.security import log_security_event, rate_limit_auth
from pbportal.services.data_service import DataService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=TokenResponse)
@rate_limit_auth()
async def login(
    request: Request,
    body: LoginRequest,
    service: DataService = Depends(get_data_service),
):
    """Exchange an email (or committee username) and password for a token."""
    try:
        user = await service.login(body.identifier, body.password)
    except AuthenticationError as e:
        log_security_event(
            "auth_login_failed",
            request,
            {"identifier": body.identifier[:100], "reason": type(e).__name__},
        )
        raise service_http_error("login", e) from e
    except DataServiceError as e:
        raise service_http_error("login", e) from e

    logger.info("User %s logged in", user.id)
    return TokenResponse(access_token=create_access_token(user), user=user)


# ---------------------------------------------------------------------------
# POST /auth/register
# ---------------------------------------------------------------------------


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
@rate_limit_auth()
async def register(
    request: Request,
    body: RegisterRequest,
    service: DataService = Depends(get_data_service),
):
    """Create an applicant account and sign it in."""
    try:
        user = await service.register(body.email, body.password, body.display_name)
    except ConflictError as e:
        log_security_event("auth_register_conflict", request)
        raise service_http_error("registration", e) from e
    except DataServiceError as e:
        raise service_http_error("registration", e) from e

    return TokenResponse(access_token=create_access_token(user), user=user)


# ---------------------------------------------------------------------------
# GET/PATCH /auth/me
# ---------------------------------------------------------------------------


@router.get("/me", response_model=User)
async def read_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=User)
async def update_me(
    body: UserProfileUpdate,
    current_user: User = Depends(get_current_user),
    service: DataService = Depends(get_data_service),
):
    """Partial update of the caller's own profile."""
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update",
        )
    try:
        return await service.update_user_profile(current_user.id, fields)
    except DataServiceError as e:
        raise service_http_error("updating profile", e) from e
