"""Storage contract shared by the Supabase and local backends.

``DataService`` implements every public operation once, in terms of a small
set of storage primitives (``_fetch_user``, ``_put_application``,
``_delete_scores`` ...) that each backend provides.  Rules that must hold no
matter where the data lives are enforced here:

* profiles leave the service only through ``public_user_view``;
* application ids, refs, timestamps and the initial status are assigned here;
* status changes follow ``ALLOWED_TRANSITIONS`` unless forced;
* score totals are recomputed from the ratings on every save;
* deleting an application removes its scores in a second, separate step.

Usage::

    from pbportal.deps import get_data_service

    service = get_data_service()
    apps = await service.get_applications("Blaenavon")
"""

import logging
import random
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from pbportal import config
from pbportal.errors import (
    BackendError,
    ConflictError,
    InvalidRecordError,
    InvalidTransitionError,
    NotFoundError,
    ProfileMissingError,
)
from pbportal.models.core import (
    ALL_AREAS,
    CROSS_AREA,
    Application,
    ApplicationCreate,
    PortalSettings,
    Score,
    User,
)
from pbportal.services.scoring import calculate_total

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# ---------------------------------------------------------------------------
# Allowed status transitions
# ---------------------------------------------------------------------------
ALLOWED_TRANSITIONS: dict[str, list[str]] = {
    "Draft": ["Submitted-Stage1"],
    "Submitted-Stage1": ["Rejected-Stage1", "Invited-Stage2"],
    "Invited-Stage2": ["Submitted-Stage2"],
    "Submitted-Stage2": ["Finalist", "Rejected"],
    "Finalist": ["Funded", "Rejected"],
    # Terminal states -- no outgoing transitions
    "Rejected-Stage1": [],
    "Rejected": [],
    "Funded": [],
}

INITIAL_STATUS = "Submitted-Stage1"

# Fields the service owns; partial updates silently drop them
IMMUTABLE_APPLICATION_FIELDS = frozenset({"id", "ref", "created_at"})
IMMUTABLE_USER_FIELDS = frozenset({"id", "password"})

REF_MAX_ATTEMPTS = 20

DEFAULT_SETTINGS = PortalSettings(
    stage1_visible=True,
    stage2_visible=False,
    voting_open=False,
)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def public_user_view(user: User) -> User:
    """Return *user* with the stored secret field blanked.

    Every read path that returns a profile goes through this projection.
    """
    return user.model_copy(update={"password": None})


def normalize_login_identifier(identifier: str) -> str:
    """Lower-case *identifier*; bare usernames get the synthetic login domain."""
    normalized = identifier.strip().lower()
    if "@" not in normalized:
        normalized = f"{normalized}@{config.SYNTHETIC_LOGIN_DOMAIN}"
    return normalized


def username_from_email(email: str) -> str:
    return email.split("@")[0]


def generate_ref(area: str, rng: Optional[random.Random] = None) -> str:
    """Build a human-readable reference such as ``PB-BLA-482``."""
    rng = rng or random
    area_code = area[:3].upper()
    return f"PB-{area_code}-{rng.randint(100, 999)}"


def new_application_id() -> str:
    return f"app_{uuid.uuid4().hex}"


def new_user_id() -> str:
    return f"user_{uuid.uuid4().hex}"


def score_doc_id(app_id: str, scorer_id: str) -> str:
    """Natural key of a score as a single document id."""
    return f"{app_id}_{scorer_id}"


def matches_area_filter(app: Application, area: Optional[str]) -> bool:
    """Cross-area applications are visible under every area filter."""
    if not area or area == ALL_AREAS:
        return True
    return app.area == area or app.area == CROSS_AREA


def validate_transition(old_status: str, new_status: str) -> None:
    """Raise ``InvalidTransitionError`` unless *old_status* may move to *new_status*."""
    if old_status == new_status:
        return
    allowed = ALLOWED_TRANSITIONS.get(old_status, [])
    if new_status not in allowed:
        raise InvalidTransitionError(old_status, new_status, allowed)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_record(model: Type[ModelT], data: Mapping[str, Any]) -> ModelT:
    """Validate *data* as *model*, raising ``InvalidRecordError`` on failure.

    Partial updates are merged onto the stored record before this check, so
    an explicit ``None`` for a required field is caught here.
    """
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(part) for part in err['loc']) or 'record'}: {err['msg']}"
            for err in exc.errors()
        ]
        raise InvalidRecordError(model.__name__, problems) from exc


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


class DataService(ABC):
    """Async storage contract for users, applications, scores and settings."""

    backend_name = "abstract"

    # ------------------------------------------------------------------
    # Portal settings
    # ------------------------------------------------------------------

    async def get_portal_settings(self) -> PortalSettings:
        """Return the settings singleton, creating the default if absent.

        Backend failures are logged and answered with the defaults so a
        settings read never breaks the caller.
        """
        try:
            settings = await self._load_portal_settings()
            if settings is None:
                settings = DEFAULT_SETTINGS.model_copy()
                await self._store_portal_settings(settings)
                logger.info("Created default portal settings")
            return settings
        except Exception as exc:
            logger.error("Error fetching portal settings: %s", exc)
            return DEFAULT_SETTINGS.model_copy()

    async def update_portal_settings(self, settings: PortalSettings) -> None:
        """Overwrite the settings singleton."""
        await self._store_portal_settings(settings)
        logger.info(
            "Portal settings updated: stage1=%s stage2=%s voting=%s",
            settings.stage1_visible,
            settings.stage2_visible,
            settings.voting_open,
        )

    # ------------------------------------------------------------------
    # Identity & auth
    # ------------------------------------------------------------------

    async def login(self, identifier: str, secret: str) -> User:
        """Resolve *identifier* to an account and return its public profile.

        Raises:
            AuthenticationError: If the credentials are rejected.
            ProfileMissingError: If the credentials are valid but the
                profile record does not exist.
        """
        email = normalize_login_identifier(identifier)
        user_id = await self._authenticate(email, identifier, secret)
        user = await self._fetch_user(user_id)
        if user is None:
            logger.warning("User profile not found for authenticated user_id: %s", user_id)
            raise ProfileMissingError("User profile not found in database.")
        return public_user_view(user)

    async def register(self, email: str, secret: str, display_name: str) -> User:
        """Create credentials plus an ``applicant`` profile.

        Raises:
            ConflictError: If the email is already registered.
        """
        email = email.strip()
        user_id = await self._create_credentials(email, secret)
        user = User(
            id=user_id,
            email=email,
            # the secret lives with the auth subsystem, never in the profile
            password="",
            role="applicant",
            display_name=display_name,
            username=username_from_email(email),
        )
        await self._put_user(user)
        logger.info("Registered user %s", user_id)
        return public_user_view(user)

    async def get_user(self, user_id: str) -> User:
        user = await self._fetch_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return public_user_view(user)

    async def get_users(self) -> List[User]:
        return [public_user_view(user) for user in await self._list_users()]

    async def update_user_profile(self, user_id: str, fields: Mapping[str, Any]) -> User:
        """Apply a partial profile update and return the full public record.

        Raises:
            NotFoundError: If no profile exists for *user_id*.
            InvalidRecordError: If the merged profile is not a valid user,
                e.g. a required field was set to ``None``.
        """
        existing = await self._fetch_user(user_id)
        if existing is None:
            raise NotFoundError("User", user_id)
        changes = {
            key: value
            for key, value in fields.items()
            if key not in IMMUTABLE_USER_FIELDS
        }
        updated = build_record(User, {**existing.model_dump(), **changes})
        await self._put_user(updated)
        return public_user_view(updated)

    async def update_user(self, user: Union[User, Mapping[str, Any]]) -> None:
        """Upsert-merge *user* by id, keeping the stored secret field.

        A caller-supplied ``password`` is always ignored so a generic edit
        form can never wipe or replace credentials.
        """
        if isinstance(user, User):
            incoming = user.model_dump(exclude_unset=True)
        else:
            incoming = dict(user)
        user_id = incoming["id"]
        existing = await self._fetch_user(user_id)
        base = existing.model_dump() if existing is not None else {}
        merged = {**base, **incoming}
        merged["password"] = existing.password if existing is not None else ""
        await self._put_user(build_record(User, merged))

    async def delete_user(self, user_id: str) -> None:
        """Delete a profile. Applications and scores are left in place."""
        await self._delete_user(user_id)
        logger.info("Deleted user %s", user_id)

    @abstractmethod
    async def admin_create_user(self, user: User, secret: str) -> User:
        """Create an account on someone else's behalf.

        Raises:
            UnsupportedOperationError: If the backend's auth subsystem only
                lets an account create itself.
        """

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    async def get_applications(self, area: Optional[str] = None) -> List[Application]:
        """Return every application visible under *area*.

        ``None`` or ``"All"`` returns everything; any other value returns
        that area's applications plus all cross-area ones.
        """
        apps = await self._list_applications()
        return [app for app in apps if matches_area_filter(app, area)]

    async def get_application(self, app_id: str) -> Application:
        app = await self._fetch_application(app_id)
        if app is None:
            raise NotFoundError("Application", app_id)
        return app

    async def create_application(
        self, data: Union[ApplicationCreate, Mapping[str, Any]]
    ) -> Application:
        """Store a new Stage 1 submission.

        Assigns the id, creation time, initial status and a reference code
        that does not collide with any existing one.

        Raises:
            ConflictError: If no free reference code was found.
        """
        if not isinstance(data, ApplicationCreate):
            data = build_record(ApplicationCreate, data)

        existing_refs = {app.ref for app in await self._list_applications()}
        ref = None
        for _ in range(REF_MAX_ATTEMPTS):
            candidate = generate_ref(data.area)
            if candidate not in existing_refs:
                ref = candidate
                break
        if ref is None:
            raise ConflictError(f"Could not allocate a unique reference for area {data.area}")

        app = Application(
            **data.model_dump(),
            id=new_application_id(),
            status=INITIAL_STATUS,
            ref=ref,
            created_at=utc_now(),
        )
        await self._put_application(app)
        logger.info("Created application %s (%s) for user %s", app.id, app.ref, app.user_id)
        return app

    async def update_application(
        self,
        app_id: str,
        fields: Mapping[str, Any],
        *,
        force: bool = False,
    ) -> Application:
        """Apply a partial update to an application.

        Args:
            app_id: Application id.
            fields: Fields to change; ``id``, ``ref`` and ``created_at``
                are ignored.
            force: Skip status transition validation (admin correction).

        Raises:
            NotFoundError: If the application does not exist.
            InvalidTransitionError: If the status change is not allowed.
            InvalidRecordError: If the merged record is not a valid
                application.
        """
        existing = await self._fetch_application(app_id)
        if existing is None:
            raise NotFoundError("Application", app_id)

        changes = {
            key: value
            for key, value in fields.items()
            if key not in IMMUTABLE_APPLICATION_FIELDS
        }
        new_status = changes.get("status")
        if new_status is not None and not force:
            validate_transition(existing.status, new_status)

        updated = build_record(Application, {**existing.model_dump(), **changes})
        await self._put_application(updated)
        if new_status is not None and new_status != existing.status:
            logger.info(
                "Application %s status %s -> %s%s",
                app_id,
                existing.status,
                new_status,
                " (forced)" if force else "",
            )
        return updated

    async def delete_application(self, app_id: str) -> None:
        """Delete an application, then delete its scores.

        The two steps are independent; if the second fails the orphaned
        scores are picked up by ``sweep_orphan_scores``.
        """
        await self._delete_application(app_id)
        try:
            await self._delete_scores(app_id=app_id)
        except BackendError:
            logger.error("Scores for deleted application %s were not removed", app_id)
            raise
        logger.info("Deleted application %s and its scores", app_id)

    # ------------------------------------------------------------------
    # Scores
    # ------------------------------------------------------------------

    async def save_score(self, score: Union[Score, Mapping[str, Any]]) -> Score:
        """Upsert the score for (app_id, scorer_id) with a recomputed total."""
        if not isinstance(score, Score):
            score = build_record(Score, score)
        stored = score.model_copy(
            update={
                "total": calculate_total(score.scores),
                "timestamp": score.timestamp or utc_now(),
            }
        )
        await self._put_score(stored)
        logger.debug(
            "Saved score app=%s scorer=%s total=%.1f final=%s",
            stored.app_id,
            stored.scorer_id,
            stored.total,
            stored.is_final,
        )
        return stored

    async def get_scores(self) -> List[Score]:
        return await self._list_scores()

    async def delete_score(self, app_id: str, scorer_id: str) -> None:
        await self._delete_scores(app_id=app_id, scorer_id=scorer_id)

    async def reset_user_scores(self, scorer_id: str, app_id: Optional[str] = None) -> None:
        """Wipe one scorer's score for *app_id*, or all their scores."""
        if app_id:
            await self.delete_score(app_id, scorer_id)
            return
        await self._delete_scores(scorer_id=scorer_id)
        logger.info("Reset all scores for scorer %s", scorer_id)

    async def sweep_orphan_scores(self) -> int:
        """Delete scores whose application no longer exists.

        Safe to run repeatedly; returns the number of scores removed.
        """
        app_ids = {app.id for app in await self._list_applications()}
        orphans = [s for s in await self._list_scores() if s.app_id not in app_ids]
        for score in orphans:
            await self.delete_score(score.app_id, score.scorer_id)
        if orphans:
            logger.warning("Removed %d orphaned scores", len(orphans))
        return len(orphans)

    # ------------------------------------------------------------------
    # Storage primitives
    # ------------------------------------------------------------------

    @abstractmethod
    async def _load_portal_settings(self) -> Optional[PortalSettings]: ...

    @abstractmethod
    async def _store_portal_settings(self, settings: PortalSettings) -> None: ...

    @abstractmethod
    async def _authenticate(self, email: str, identifier: str, secret: str) -> str:
        """Check credentials and return the account id."""

    @abstractmethod
    async def _create_credentials(self, email: str, secret: str) -> str:
        """Create an auth entry for *email* and return its account id."""

    @abstractmethod
    async def _fetch_user(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    async def _list_users(self) -> List[User]: ...

    @abstractmethod
    async def _put_user(self, user: User) -> None: ...

    @abstractmethod
    async def _delete_user(self, user_id: str) -> None: ...

    @abstractmethod
    async def _fetch_application(self, app_id: str) -> Optional[Application]: ...

    @abstractmethod
    async def _list_applications(self) -> List[Application]: ...

    @abstractmethod
    async def _put_application(self, app: Application) -> None: ...

    @abstractmethod
    async def _delete_application(self, app_id: str) -> None: ...

    @abstractmethod
    async def _list_scores(self) -> List[Score]: ...

    @abstractmethod
    async def _put_score(self, score: Score) -> None: ...

    @abstractmethod
    async def _delete_scores(
        self,
        *,
        app_id: Optional[str] = None,
        scorer_id: Optional[str] = None,
    ) -> None:
        """Delete scores matching every supplied key (at least one)."""
