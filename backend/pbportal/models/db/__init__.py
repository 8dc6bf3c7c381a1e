"""SQLAlchemy 2.0 ORM models for the local PB Portal backend.

Every model must be imported at module level to register with the
``DeclarativeBase`` metadata before ``init_models`` creates the tables.
"""

from pbportal.models.db.base import Base, row_to_dict  # noqa: F401
from pbportal.models.db.user import UserCredential, UserProfile  # noqa: F401
from pbportal.models.db.application import PortalApplication  # noqa: F401
from pbportal.models.db.score import ApplicationScore  # noqa: F401
from pbportal.models.db.system_settings import (  # noqa: F401
    PORTAL_SETTINGS_KEY,
    SystemSetting,
)
