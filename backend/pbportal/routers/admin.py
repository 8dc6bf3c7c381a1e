"""Admin router: phase controls, user management, score tracking and exports.

Every endpoint requires the ``admin`` role.
"""

import logging
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from pbportal.deps import get_data_service, require_admin
from pbportal.errors import DataServiceError
from pbportal.models.api import (
    AdminUserCreate,
    AdminUserUpdate,
    ApplicationSummaryResponse,
    OverviewResponse,
    ScoreReset,
    ScoreRowResponse,
    SweepResponse,
)
from pbportal.models.core import PortalSettings, User
from pbportal.routers._helpers import csv_response, service_http_error
from pbportal.services import reporting
from pbportal.services.data_service import DataService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Portal settings
# ---------------------------------------------------------------------------


@router.get("/settings", response_model=PortalSettings)
async def get_settings(
    current_user: User = Depends(require_admin),
    service: DataService = Depends(get_data_service),
):
    return await service.get_portal_settings()


@router.put("/settings", response_model=PortalSettings)
async def put_settings(
    body: PortalSettings,
    current_user: User = Depends(require_admin),
    service: DataService = Depends(get_data_service),
):
    """Overwrite the phase visibility switches."""
    try:
        await service.update_portal_settings(body)
    except DataServiceError as e:
        raise service_http_error("updating portal settings", e) from e
    logger.info("Admin %s updated portal settings", current_user.id)
    return body


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/users", response_model=List[User])
async def list_users(
    role: Optional[str] = Query(None, description="Only users with this role"),
    current_user: User = Depends(require_admin),
    service: DataService = Depends(get_data_service),
):
    try:
        users = await service.get_users()
    except DataServiceError as e:
        raise service_http_error("listing users", e) from e
    if role:
        users = [u for u in users if u.role == role]
    return users


@router.post("/users", response_model=User, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: AdminUserCreate,
    current_user: User = Depends(require_admin),
    service: DataService = Depends(get_data_service),
):
    """Create a committee (or any other) account on someone's behalf."""
    email = body.email.strip()
    user = User(
        id="pending",
        email=email,
        username=body.username or email.split("@")[0],
        role=body.role,
        area=body.area,
        display_name=body.display_name,
        role_description=body.role_description,
    )
    try:
        return await service.admin_create_user(user, body.password)
    except DataServiceError as e:
        raise service_http_error("creating user", e) from e


@router.patch("/users/{user_id}", response_model=User)
async def update_user(
    user_id: str,
    body: AdminUserUpdate,
    current_user: User = Depends(require_admin),
    service: DataService = Depends(get_data_service),
):
    """Merge the supplied fields into an existing profile."""
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
    try:
        # update_user upserts, so check existence first
        await service.get_user(user_id)
        await service.update_user({**fields, "id": user_id})
        return await service.get_user(user_id)
    except DataServiceError as e:
        raise service_http_error("updating user", e) from e


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    current_user: User = Depends(require_admin),
    service: DataService = Depends(get_data_service),
):
    if user_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Admins cannot delete their own account",
        )
    try:
        await service.delete_user(user_id)
    except DataServiceError as e:
        raise service_http_error("deleting user", e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


@router.get("/scores", response_model=List[ScoreRowResponse])
async def list_score_rows(
    scorer_id: Optional[str] = Query(None, description="Only this scorer's rows"),
    current_user: User = Depends(require_admin),
    service: DataService = Depends(get_data_service),
):
    """Committee progress tracker."""
    try:
        scores = await service.get_scores()
        apps = await service.get_applications()
        users = await service.get_users()
    except DataServiceError as e:
        raise service_http_error("listing scores", e) from e
    return [
        ScoreRowResponse(**asdict(row), state=row.state)
        for row in reporting.score_rows(scores, apps, users, scorer_id)
    ]


@router.post("/scores/reset", status_code=status.HTTP_204_NO_CONTENT)
async def reset_scores(
    body: ScoreReset,
    current_user: User = Depends(require_admin),
    service: DataService = Depends(get_data_service),
):
    """Wipe one scorer's score for an application, or all of their scores."""
    try:
        await service.reset_user_scores(body.scorer_id, body.app_id)
    except DataServiceError as e:
        raise service_http_error("resetting scores", e) from e
    logger.info(
        "Admin %s reset scores for scorer %s (app=%s)",
        current_user.id,
        body.scorer_id,
        body.app_id or "all",
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/scores/sweep", response_model=SweepResponse)
async def sweep_orphans(
    current_user: User = Depends(require_admin),
    service: DataService = Depends(get_data_service),
):
    """Remove scores left behind by an interrupted application delete."""
    try:
        removed = await service.sweep_orphan_scores()
    except DataServiceError as e:
        raise service_http_error("sweeping orphan scores", e) from e
    return SweepResponse(removed=removed)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@router.get("/summary", response_model=List[ApplicationSummaryResponse])
async def application_summary(
    current_user: User = Depends(require_admin),
    service: DataService = Depends(get_data_service),
):
    """Average score, score count and RAG band per application."""
    try:
        apps = await service.get_applications()
        scores = await service.get_scores()
    except DataServiceError as e:
        raise service_http_error("building summary", e) from e
    return [
        ApplicationSummaryResponse(**asdict(s))
        for s in reporting.application_summaries(apps, scores)
    ]


@router.get("/overview", response_model=OverviewResponse)
async def overview(
    current_user: User = Depends(require_admin),
    service: DataService = Depends(get_data_service),
):
    try:
        apps = await service.get_applications()
        scores = await service.get_scores()
        users = await service.get_users()
    except DataServiceError as e:
        raise service_http_error("building overview", e) from e
    return OverviewResponse(**reporting.overview_stats(apps, scores, users))


@router.get("/export")
async def export_applications(
    area: str = Query("All"),
    status_filter: str = Query("All", alias="status"),
    search: str = Query("", max_length=200),
    current_user: User = Depends(require_admin),
    service: DataService = Depends(get_data_service),
):
    """Applications report as CSV, honouring the table filters."""
    try:
        apps = await service.get_applications()
        scores = await service.get_scores()
    except DataServiceError as e:
        raise service_http_error("exporting applications", e) from e
    apps = reporting.filter_applications(apps, area, status_filter, search)
    return csv_response(reporting.admin_export_csv(apps, scores), "admin_export.csv")
