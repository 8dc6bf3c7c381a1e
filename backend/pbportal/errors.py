"""Typed errors raised by the data service layer.

Routers translate these into HTTP responses; see
``pbportal.routers._helpers.service_http_error``.
"""

__all__ = [
    "DataServiceError",
    "NotFoundError",
    "ConflictError",
    "AuthenticationError",
    "ProfileMissingError",
    "UnsupportedOperationError",
    "InvalidTransitionError",
    "InvalidRecordError",
    "BackendError",
]


class DataServiceError(Exception):
    """Base class for every error the data service raises on purpose."""


class NotFoundError(DataServiceError):
    """A referenced record (user, application) does not exist."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")


class ConflictError(DataServiceError):
    """The write would duplicate a unique value (e.g. a registered email)."""


class AuthenticationError(DataServiceError):
    """Credentials were rejected."""


class ProfileMissingError(AuthenticationError):
    """Credentials are valid but no profile record exists for the account."""


class UnsupportedOperationError(DataServiceError):
    """The configured backend cannot perform this operation."""


class InvalidTransitionError(DataServiceError):
    """An application status change does not follow the workflow."""

    def __init__(self, old_status: str, new_status: str, allowed: list[str]):
        self.old_status = old_status
        self.new_status = new_status
        self.allowed = allowed
        super().__init__(
            f"Cannot transition from '{old_status}' to '{new_status}'. "
            f"Allowed transitions: {', '.join(allowed) if allowed else 'none (terminal state)'}"
        )


class BackendError(DataServiceError):
    """The storage backend failed (network, database, auth subsystem)."""


class InvalidRecordError(DataServiceError):
    """The merged record would break the model (e.g. ``null`` for a required field)."""

    def __init__(self, kind: str, problems: list[str]):
        self.kind = kind
        self.problems = problems
        super().__init__(f"Invalid {kind}: {'; '.join(problems)}")
