"""Applications router.

Listing and reading are role-scoped:

* applicants see their own applications;
* committee members see their area (plus cross-area) filtered by the
  portal's phase visibility switches;
* admins see everything and may filter, search and sort.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from pbportal.deps import get_current_user, get_data_service, require_roles
from pbportal.errors import DataServiceError
from pbportal.models.api import ApplicationListResponse
from pbportal.models.core import (
    ALL_AREAS,
    Application,
    ApplicationCreate,
    ApplicationUpdate,
    User,
)
from pbportal.routers._helpers import service_http_error
from pbportal.services import reporting
from pbportal.services.data_service import DataService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["applications"])

# Statuses an applicant may move their own application into
APPLICANT_SETTABLE_STATUSES = frozenset({"Submitted-Stage1", "Submitted-Stage2"})


# ---------------------------------------------------------------------------
# GET /applications
# ---------------------------------------------------------------------------


@router.get("/applications", response_model=ApplicationListResponse)
async def list_applications(
    area: str = Query(ALL_AREAS, description="Exact area filter (admin only)"),
    status_filter: str = Query(ALL_AREAS, alias="status", description="Status filter"),
    search: str = Query("", max_length=200, description="Title, applicant or ref"),
    sort_by: str = Query("created_at", description="Application field to sort by"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    current_user: User = Depends(get_current_user),
    service: DataService = Depends(get_data_service),
):
    """List the applications the caller may see."""
    try:
        if current_user.role == "admin":
            apps = await service.get_applications(ALL_AREAS)
            apps = reporting.filter_applications(apps, area, status_filter, search)
        elif current_user.role == "committee":
            apps = await service.get_applications(current_user.area)
            settings = await service.get_portal_settings()
            apps = reporting.visible_to_committee(apps, settings)
            apps = reporting.filter_applications(apps, ALL_AREAS, status_filter, search)
        else:
            apps = [
                app
                for app in await service.get_applications(ALL_AREAS)
                if app.user_id == current_user.id
            ]
    except DataServiceError as e:
        raise service_http_error("listing applications", e) from e

    try:
        apps = reporting.sort_applications(apps, sort_by, descending=order == "desc")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    return ApplicationListResponse(applications=apps, total=len(apps))


# ---------------------------------------------------------------------------
# GET /applications/{app_id}
# ---------------------------------------------------------------------------


@router.get("/applications/{app_id}", response_model=Application)
async def get_application(
    app_id: str,
    current_user: User = Depends(get_current_user),
    service: DataService = Depends(get_data_service),
):
    try:
        app = await service.get_application(app_id)
        settings = await service.get_portal_settings()
    except DataServiceError as e:
        raise service_http_error("fetching application", e) from e

    # Hidden applications are reported as missing
    if not reporting.can_view_application(current_user, app, settings):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Application not found",
        )
    return app


# ---------------------------------------------------------------------------
# POST /applications
# ---------------------------------------------------------------------------


@router.post("/applications", response_model=Application, status_code=status.HTTP_201_CREATED)
async def create_application(
    body: ApplicationCreate,
    current_user: User = Depends(require_roles("applicant", "admin")),
    service: DataService = Depends(get_data_service),
):
    """Submit a Stage 1 Expression of Interest.

    Applicants always submit on their own behalf; admins may enter a paper
    submission for any user id.
    """
    if current_user.role != "admin":
        body = body.model_copy(update={"user_id": current_user.id})
    try:
        return await service.create_application(body)
    except DataServiceError as e:
        raise service_http_error("creating application", e) from e


# ---------------------------------------------------------------------------
# PATCH /applications/{app_id}
# ---------------------------------------------------------------------------


@router.patch("/applications/{app_id}", response_model=Application)
async def update_application(
    app_id: str,
    body: ApplicationUpdate,
    force: bool = Query(False, description="Admin override of the status workflow"),
    current_user: User = Depends(get_current_user),
    service: DataService = Depends(get_data_service),
):
    """Partial update.

    Admins may edit anything and force any status.  Applicants may edit
    their own application and submit it (Stage 1 or Stage 2), following
    the normal workflow.
    """
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    try:
        if current_user.role != "admin":
            existing = await service.get_application(app_id)
            if current_user.role != "applicant" or existing.user_id != current_user.id:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="You do not have access to this application",
                )
            new_status = fields.get("status")
            if new_status is not None and new_status not in APPLICANT_SETTABLE_STATUSES:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Applicants cannot set status '{new_status}'",
                )
            force = False
        return await service.update_application(app_id, fields, force=force)
    except DataServiceError as e:
        raise service_http_error("updating application", e) from e


# ---------------------------------------------------------------------------
# DELETE /applications/{app_id}
# ---------------------------------------------------------------------------


@router.delete("/applications/{app_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_application(
    app_id: str,
    current_user: User = Depends(require_roles("admin")),
    service: DataService = Depends(get_data_service),
):
    """Delete an application and its scores."""
    try:
        await service.delete_application(app_id)
    except DataServiceError as e:
        raise service_http_error("deleting application", e) from e
    logger.info("Admin %s deleted application %s", current_user.id, app_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
