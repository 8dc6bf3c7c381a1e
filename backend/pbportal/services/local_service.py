"""Local data service backed by a SQLite file.

Runs entirely offline through SQLAlchemy's async engine and ``aiosqlite``.
Tables are created and demonstration data is seeded the first time the
store is used.  The backend owns its own authentication subsystem: bcrypt
hashes live in ``credentials``, never in the ``users`` profile rows.

Concurrent writers sharing one file get no protection beyond SQLite's own
locking; every operation opens and commits its own session.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from pbportal.auth import hash_password, verify_password
from pbportal.database import create_session_factory, init_models
from pbportal.errors import AuthenticationError, BackendError, ConflictError
from pbportal.models.core import Application, PortalSettings, Score, User
from pbportal.models.db import (
    PORTAL_SETTINGS_KEY,
    ApplicationScore,
    PortalApplication,
    SystemSetting,
    UserCredential,
    UserProfile,
    row_to_dict,
)
from pbportal.seed import DEMO_APPS, DEMO_PASSWORD, DEMO_USERS
from pbportal.services.data_service import DataService, new_user_id, public_user_view

logger = logging.getLogger(__name__)


class LocalDataService(DataService):
    """``DataService`` over a local SQLite database."""

    backend_name = "local"

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        seed_demo_data: bool = True,
    ) -> None:
        self._engine = engine
        self._session_factory = session_factory
        self._seed_demo_data = seed_demo_data
        self._ready = False

    @classmethod
    def from_url(cls, database_url: str | None = None, **kwargs) -> "LocalDataService":
        engine, session_factory = create_session_factory(database_url)
        return cls(engine, session_factory, **kwargs)

    async def dispose(self) -> None:
        await self._engine.dispose()

    # ------------------------------------------------------------------
    # Session handling
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create tables and seed demonstration data if the store is empty."""
        try:
            await init_models(self._engine)
            if self._seed_demo_data:
                await self._seed()
        except SQLAlchemyError as exc:
            raise BackendError(f"Local store initialisation failed: {exc}") from exc
        self._ready = True

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session; commit on success, roll back on error."""
        if not self._ready:
            await self.initialize()
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error("Local store operation failed: %s", exc)
                raise BackendError(f"Local store operation failed: {exc}") from exc
            except Exception:
                await session.rollback()
                raise

    async def _seed(self) -> None:
        async with self._session_factory() as session:
            user_count = await session.scalar(select(func.count()).select_from(UserProfile))
            if not user_count:
                password_hash = hash_password(DEMO_PASSWORD)
                for user in DEMO_USERS:
                    await session.merge(UserProfile(**{**user.model_dump(), "password": ""}))
                    await session.merge(
                        UserCredential(
                            user_id=user.id,
                            email=user.email.lower(),
                            password_hash=password_hash,
                        )
                    )
                logger.info("Seeded %d demonstration users", len(DEMO_USERS))

            app_count = await session.scalar(
                select(func.count()).select_from(PortalApplication)
            )
            if not app_count:
                for app in DEMO_APPS:
                    await session.merge(PortalApplication(**app.model_dump()))
                logger.info("Seeded %d demonstration applications", len(DEMO_APPS))

            await session.commit()

    # ------------------------------------------------------------------
    # Portal settings
    # ------------------------------------------------------------------

    async def _load_portal_settings(self) -> Optional[PortalSettings]:
        async with self._session() as session:
            row = await session.get(SystemSetting, PORTAL_SETTINGS_KEY)
            if row is None:
                return None
            return PortalSettings.model_validate(row.value)

    async def _store_portal_settings(self, settings: PortalSettings) -> None:
        async with self._session() as session:
            await session.merge(
                SystemSetting(key=PORTAL_SETTINGS_KEY, value=settings.model_dump())
            )

    # ------------------------------------------------------------------
    # Identity & auth
    # ------------------------------------------------------------------

    async def _authenticate(self, email: str, identifier: str, secret: str) -> str:
        async with self._session() as session:
            credential = (
                await session.execute(
                    select(UserCredential).where(UserCredential.email == email)
                )
            ).scalar_one_or_none()

            if credential is None:
                # Fall back to a username match on the profile
                profile = (
                    await session.execute(
                        select(UserProfile).where(
                            func.lower(UserProfile.username) == identifier.strip().lower()
                        )
                    )
                ).scalars().first()
                if profile is not None:
                    credential = await session.get(UserCredential, profile.id)

        if credential is None or not verify_password(secret, credential.password_hash):
            raise AuthenticationError("Invalid credentials.")
        return credential.user_id

    async def _create_credentials(self, email: str, secret: str) -> str:
        normalized = email.strip().lower()
        async with self._session() as session:
            existing = (
                await session.execute(
                    select(UserCredential.user_id).where(UserCredential.email == normalized)
                )
            ).first()
            existing_profile = (
                await session.execute(
                    select(UserProfile.id).where(func.lower(UserProfile.email) == normalized)
                )
            ).first()
            if existing is not None or existing_profile is not None:
                raise ConflictError("User already exists")

            user_id = new_user_id()
            session.add(
                UserCredential(
                    user_id=user_id,
                    email=normalized,
                    password_hash=hash_password(secret),
                )
            )
        return user_id

    async def admin_create_user(self, user: User, secret: str) -> User:
        user_id = await self._create_credentials(user.email, secret)
        created = user.model_copy(update={"id": user_id, "password": ""})
        await self._put_user(created)
        logger.info("Admin created user %s (%s)", user_id, created.role)
        return public_user_view(created)

    async def _fetch_user(self, user_id: str) -> Optional[User]:
        async with self._session() as session:
            row = await session.get(UserProfile, user_id)
            return User.model_validate(row_to_dict(row)) if row is not None else None

    async def _list_users(self) -> List[User]:
        async with self._session() as session:
            rows = (await session.execute(select(UserProfile))).scalars().all()
            return [User.model_validate(row_to_dict(row)) for row in rows]

    async def _put_user(self, user: User) -> None:
        async with self._session() as session:
            await session.merge(UserProfile(**user.model_dump()))

    async def _delete_user(self, user_id: str) -> None:
        async with self._session() as session:
            await session.execute(delete(UserProfile).where(UserProfile.id == user_id))
            # this backend owns the credentials, so they go with the profile
            await session.execute(delete(UserCredential).where(UserCredential.user_id == user_id))

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    async def _fetch_application(self, app_id: str) -> Optional[Application]:
        async with self._session() as session:
            row = await session.get(PortalApplication, app_id)
            return Application.model_validate(row_to_dict(row)) if row is not None else None

    async def _list_applications(self) -> List[Application]:
        async with self._session() as session:
            rows = (
                await session.execute(
                    select(PortalApplication).order_by(PortalApplication.created_at)
                )
            ).scalars().all()
            return [Application.model_validate(row_to_dict(row)) for row in rows]

    async def _put_application(self, app: Application) -> None:
        async with self._session() as session:
            await session.merge(PortalApplication(**app.model_dump()))

    async def _delete_application(self, app_id: str) -> None:
        async with self._session() as session:
            await session.execute(delete(PortalApplication).where(PortalApplication.id == app_id))

    # ------------------------------------------------------------------
    # Scores
    # ------------------------------------------------------------------

    async def _list_scores(self) -> List[Score]:
        async with self._session() as session:
            rows = (await session.execute(select(ApplicationScore))).scalars().all()
            return [Score.model_validate(row_to_dict(row)) for row in rows]

    async def _put_score(self, score: Score) -> None:
        async with self._session() as session:
            await session.merge(ApplicationScore(**score.model_dump()))

    async def _delete_scores(
        self,
        *,
        app_id: Optional[str] = None,
        scorer_id: Optional[str] = None,
    ) -> None:
        if app_id is None and scorer_id is None:
            raise ValueError("At least one of app_id or scorer_id is required")
        conditions = []
        if app_id is not None:
            conditions.append(ApplicationScore.app_id == app_id)
        if scorer_id is not None:
            conditions.append(ApplicationScore.scorer_id == scorer_id)
        async with self._session() as session:
            await session.execute(delete(ApplicationScore).where(*conditions))
