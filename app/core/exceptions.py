"""Application exceptions.

Services raise these; ``app.middleware.error_handler`` turns them into the
JSON error envelope with the class's status code.
"""


class AppException(Exception):
    """Base application exception."""

    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class BadRequestException(AppException):
    """The request is well-formed but cannot be processed as sent."""

    status_code = 400
    default_message = "Bad request"


class UnauthorizedException(AppException):
    """Missing or invalid credentials."""

    status_code = 401
    default_message = "Unauthorized"


class ForbiddenException(AppException):
    """Authenticated, but the role does not allow the action."""

    status_code = 403
    default_message = "Forbidden"


class NotFoundException(AppException):
    """The resource does not exist or belongs to another clinic."""

    status_code = 404
    default_message = "Resource not found"


class ConflictException(AppException):
    """The request clashes with existing data (double booking, duplicate code)."""

    status_code = 409
    default_message = "Conflict"


class RateLimitException(AppException):
    """The caller exceeded the per-minute request budget."""

    status_code = 429
    default_message = "Rate limit exceeded"


class DeliveryException(AppException):
    """An email or WhatsApp provider rejected or failed a send."""

    status_code = 502
    default_message = "Message delivery failed"
