"""Service-layer error taxonomy.

Services raise these; a single exception handler in app.main maps them to
HTTP responses. Messages are safe to show to end users.
"""


class ServiceError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthenticatedError(ServiceError):
    status_code = 401
    default_message = "Not authenticated"


class ForbiddenError(ServiceError):
    status_code = 403
    default_message = "Not authorized for this action"


class NotFoundError(ServiceError):
    """Entity absent or owned by another tenant. The two are never distinguished."""

    status_code = 404
    default_message = "Not found"


class ConflictError(ServiceError):
    status_code = 409
    default_message = "Conflict"


class ValidationError(ServiceError):
    status_code = 422
    default_message = "Invalid request"


class ExternalServiceError(ServiceError):
    """
    An identity provider, issue tracker or AI call failed.

    ``detail`` holds the vendor payload for server-side logs only.
    """

    status_code = 502
    default_message = "External service request failed"

    def __init__(self, message: str | None = None, *, detail: str | None = None):
        super().__init__(message)
        self.detail = detail
