"""Supabase-backed data service.

Profiles, applications, scores and the settings row live in PostgREST
tables (``users``, ``apps``, ``scores``, ``settings``); credentials live in
Supabase Auth.  supabase-py is synchronous, so every call is pushed onto a
worker thread with ``asyncio.to_thread`` to keep the event loop free.

Score rows carry a text ``id`` of ``{app_id}_{scorer_id}`` so a second save
for the same pair upserts over the first.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional

from postgrest.exceptions import APIError
from supabase import AuthApiError, Client

from pbportal.errors import (
    AuthenticationError,
    BackendError,
    ConflictError,
    UnsupportedOperationError,
)
from pbportal.models.core import Application, PortalSettings, Score, User
from pbportal.services.data_service import DataService, public_user_view, score_doc_id

logger = logging.getLogger(__name__)

USERS_TABLE = "users"
APPS_TABLE = "apps"
SCORES_TABLE = "scores"
SETTINGS_TABLE = "settings"
SETTINGS_ROW_ID = "portal"


class SupabaseDataService(DataService):
    """``DataService`` over a hosted Supabase project.

    Args:
        client: Client created with the anon key; used for sign-in and
            sign-up.
        admin_client: Optional client created with the service-role key.
            When present it serves table reads/writes and enables
            ``admin_create_user``.
    """

    backend_name = "supabase"

    def __init__(self, client: Client, admin_client: Optional[Client] = None) -> None:
        self._client = client
        self._admin_client = admin_client
        self._db = admin_client or client

    # ------------------------------------------------------------------
    # Call helpers
    # ------------------------------------------------------------------

    async def _run(self, operation: str, fn: Callable[[], Any]) -> Any:
        """Run a blocking supabase-py call on a worker thread.

        PostgREST and transport failures surface as ``BackendError``.
        """
        try:
            return await asyncio.to_thread(fn)
        except APIError as exc:
            logger.error("Supabase %s failed: %s", operation, exc.message)
            raise BackendError(f"{operation} failed: {exc.message}") from exc
        except Exception as exc:
            logger.error("Supabase %s failed: %s", operation, exc)
            raise BackendError(f"{operation} failed") from exc

    async def _select_all(self, table: str) -> list[dict]:
        response = await self._run(
            f"list {table}",
            lambda: self._db.table(table).select("*").execute(),
        )
        return response.data or []

    async def _select_one(self, table: str, record_id: str) -> Optional[dict]:
        response = await self._run(
            f"fetch {table}",
            lambda: self._db.table(table).select("*").eq("id", record_id).limit(1).execute(),
        )
        return response.data[0] if response.data else None

    async def _upsert(self, table: str, row: dict) -> None:
        await self._run(
            f"upsert {table}",
            lambda: self._db.table(table).upsert(row).execute(),
        )

    # ------------------------------------------------------------------
    # Portal settings
    # ------------------------------------------------------------------

    async def _load_portal_settings(self) -> Optional[PortalSettings]:
        row = await self._select_one(SETTINGS_TABLE, SETTINGS_ROW_ID)
        return PortalSettings.model_validate(row) if row else None

    async def _store_portal_settings(self, settings: PortalSettings) -> None:
        await self._upsert(SETTINGS_TABLE, {"id": SETTINGS_ROW_ID, **settings.model_dump()})

    # ------------------------------------------------------------------
    # Identity & auth
    # ------------------------------------------------------------------

    async def _authenticate(self, email: str, identifier: str, secret: str) -> str:
        try:
            response = await asyncio.to_thread(
                self._client.auth.sign_in_with_password,
                {"email": email, "password": secret},
            )
        except AuthApiError as exc:
            logger.info("Supabase sign-in rejected for %s: %s", email, exc)
            raise AuthenticationError("Invalid credentials.") from exc
        except Exception as exc:
            logger.error("Supabase sign-in failed: %s", exc)
            raise BackendError("Authentication service unavailable") from exc

        if not response.user:
            raise AuthenticationError("Invalid credentials.")
        return response.user.id

    async def _create_credentials(self, email: str, secret: str) -> str:
        try:
            response = await asyncio.to_thread(
                self._client.auth.sign_up,
                {"email": email, "password": secret},
            )
        except AuthApiError as exc:
            if "already" in str(exc).lower():
                raise ConflictError("User already exists") from exc
            logger.error("Supabase sign-up failed: %s", exc)
            raise BackendError(f"Registration failed: {exc}") from exc
        except Exception as exc:
            logger.error("Supabase sign-up failed: %s", exc)
            raise BackendError("Authentication service unavailable") from exc

        user = response.user
        # With email confirmation on, a repeat sign-up returns an
        # obfuscated user with no identities instead of an error
        if user is None or user.identities == []:
            raise ConflictError("User already exists")
        return user.id

    async def admin_create_user(self, user: User, secret: str) -> User:
        if self._admin_client is None:
            raise UnsupportedOperationError(
                "Creating accounts for other users requires SUPABASE_SERVICE_KEY"
            )
        try:
            response = await asyncio.to_thread(
                self._admin_client.auth.admin.create_user,
                {"email": user.email, "password": secret, "email_confirm": True},
            )
        except AuthApiError as exc:
            if "already" in str(exc).lower():
                raise ConflictError("User already exists") from exc
            logger.error("Supabase admin create_user failed: %s", exc)
            raise BackendError(f"Account creation failed: {exc}") from exc
        except Exception as exc:
            logger.error("Supabase admin create_user failed: %s", exc)
            raise BackendError("Authentication service unavailable") from exc

        created = user.model_copy(update={"id": response.user.id, "password": ""})
        await self._put_user(created)
        logger.info("Admin created user %s (%s)", created.id, created.role)
        return public_user_view(created)

    async def _fetch_user(self, user_id: str) -> Optional[User]:
        row = await self._select_one(USERS_TABLE, user_id)
        return User.model_validate(row) if row else None

    async def _list_users(self) -> List[User]:
        return [User.model_validate(row) for row in await self._select_all(USERS_TABLE)]

    async def _put_user(self, user: User) -> None:
        await self._upsert(USERS_TABLE, user.model_dump(mode="json"))

    async def _delete_user(self, user_id: str) -> None:
        # The Auth account stays; only the profile row is removed
        await self._run(
            "delete users",
            lambda: self._db.table(USERS_TABLE).delete().eq("id", user_id).execute(),
        )

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    async def _fetch_application(self, app_id: str) -> Optional[Application]:
        row = await self._select_one(APPS_TABLE, app_id)
        return Application.model_validate(row) if row else None

    async def _list_applications(self) -> List[Application]:
        apps = [Application.model_validate(row) for row in await self._select_all(APPS_TABLE)]
        return sorted(apps, key=lambda app: app.created_at)

    async def _put_application(self, app: Application) -> None:
        await self._upsert(APPS_TABLE, app.model_dump(mode="json"))

    async def _delete_application(self, app_id: str) -> None:
        await self._run(
            "delete apps",
            lambda: self._db.table(APPS_TABLE).delete().eq("id", app_id).execute(),
        )

    # ------------------------------------------------------------------
    # Scores
    # ------------------------------------------------------------------

    async def _list_scores(self) -> List[Score]:
        return [Score.model_validate(row) for row in await self._select_all(SCORES_TABLE)]

    async def _put_score(self, score: Score) -> None:
        row = score.model_dump(mode="json")
        row["id"] = score_doc_id(score.app_id, score.scorer_id)
        await self._upsert(SCORES_TABLE, row)

    async def _delete_scores(
        self,
        *,
        app_id: Optional[str] = None,
        scorer_id: Optional[str] = None,
    ) -> None:
        if app_id is None and scorer_id is None:
            raise ValueError("At least one of app_id or scorer_id is required")

        def _delete():
            query = self._db.table(SCORES_TABLE).delete()
            if app_id is not None:
                query = query.eq("app_id", app_id)
            if scorer_id is not None:
                query = query.eq("scorer_id", scorer_id)
            return query.execute()

        await self._run("delete scores", _delete)
