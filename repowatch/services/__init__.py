"""Service layer: business rules over the DAOs; callers own the transaction."""


class ServiceError(Exception):
    """Base service exception."""


class NotFoundError(ServiceError):
    """Repository, session or other row does not exist."""


class ConflictError(ServiceError):
    """Business rule conflict (e.g. an analysis session is already running)."""


class ValidationError(ServiceError):
    """Input validation or state transition error."""


class RepositoryIdentityError(ConflictError):
    """owner/name now resolves to a different upstream repository than the linked one."""
