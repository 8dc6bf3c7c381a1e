"""Committee scoring router.

Committee members (and admins acting as scorers) save draft or final
ratings against the rubric, list their own scores and export them.
"""

import logging
from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from pbportal.deps import get_current_user, get_data_service, require_committee
from pbportal.errors import DataServiceError
from pbportal.models.api import CriterionResponse, ScoreSubmit
from pbportal.models.core import Application, PortalSettings, Score, User
from pbportal.routers._helpers import csv_response, service_http_error
from pbportal.services import reporting
from pbportal.services.data_service import DataService
from pbportal.services.scoring import SCORING_CRITERIA

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["scores"])


async def _scorer_applications(service: DataService, user: User) -> List[Application]:
    """Applications the scorer is working through (admins see all)."""
    if user.role == "admin":
        return await service.get_applications()
    apps = await service.get_applications(user.area)
    settings = await service.get_portal_settings()
    return reporting.visible_to_committee(apps, settings)


# ---------------------------------------------------------------------------
# GET /settings, GET /scoring/criteria
# ---------------------------------------------------------------------------


@router.get("/settings", response_model=PortalSettings)
async def read_portal_settings(
    current_user: User = Depends(get_current_user),
    service: DataService = Depends(get_data_service),
):
    return await service.get_portal_settings()


@router.get("/scoring/criteria", response_model=List[CriterionResponse])
async def list_criteria():
    """The scoring rubric with weights, summary guidance and full details."""
    return [CriterionResponse(**asdict(c)) for c in SCORING_CRITERIA]


# ---------------------------------------------------------------------------
# POST /scores
# ---------------------------------------------------------------------------


@router.post("/scores", response_model=Score)
async def save_score(
    body: ScoreSubmit,
    current_user: User = Depends(require_committee),
    service: DataService = Depends(get_data_service),
):
    """Save the caller's draft or final score for one application."""
    try:
        app = await service.get_application(body.app_id)
        settings = await service.get_portal_settings()
        # same rule as GET /applications/{id}: other areas and closed phases look missing
        if not reporting.can_view_application(current_user, app, settings):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Application not found",
            )
        stored = await service.save_score(
            Score(
                app_id=body.app_id,
                scorer_id=current_user.id,
                scorer_name=current_user.display_name or current_user.email,
                scores=body.scores,
                notes=body.notes,
                is_final=body.is_final,
            )
        )
    except DataServiceError as e:
        raise service_http_error("saving score", e) from e

    if stored.is_final:
        logger.info("Final score posted by %s for %s", current_user.id, body.app_id)
    return stored


# ---------------------------------------------------------------------------
# GET /scores/me, GET /scores/me/pending, GET /scores/me/export
# ---------------------------------------------------------------------------


@router.get("/scores/me", response_model=List[Score])
async def list_my_scores(
    current_user: User = Depends(require_committee),
    service: DataService = Depends(get_data_service),
):
    try:
        scores = await service.get_scores()
    except DataServiceError as e:
        raise service_http_error("listing scores", e) from e
    return [s for s in scores if s.scorer_id == current_user.id]


@router.get("/scores/me/pending", response_model=List[Application])
async def list_my_pending(
    current_user: User = Depends(require_committee),
    service: DataService = Depends(get_data_service),
):
    """Stage 2 applications the caller has not yet finalised."""
    try:
        apps = await _scorer_applications(service, current_user)
        scores = await service.get_scores()
    except DataServiceError as e:
        raise service_http_error("listing pending applications", e) from e
    return reporting.pending_for_scorer(apps, scores, current_user.id)


@router.get("/scores/me/export")
async def export_my_scores(
    current_user: User = Depends(require_committee),
    service: DataService = Depends(get_data_service),
):
    try:
        apps = await _scorer_applications(service, current_user)
        scores = await service.get_scores()
    except DataServiceError as e:
        raise service_http_error("exporting scores", e) from e
    return csv_response(
        reporting.scorer_export_csv(apps, scores, current_user.id),
        "my_scores.csv",
    )


# ---------------------------------------------------------------------------
# DELETE /scores/me/{app_id}
# ---------------------------------------------------------------------------


@router.delete("/scores/me/{app_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_score(
    app_id: str,
    current_user: User = Depends(require_committee),
    service: DataService = Depends(get_data_service),
):
    try:
        await service.delete_score(app_id, current_user.id)
    except DataServiceError as e:
        raise service_http_error("deleting score", e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)
