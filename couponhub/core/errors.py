"""Error taxonomy shared by services and rendered by the API exception handlers."""


class CouponHubError(Exception):
    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidTenantError(CouponHubError):
    status_code = 400
    code = "invalid_tenant"
    default_message = "Invalid tenant"


class ValidationError(CouponHubError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request"


class ForbiddenError(CouponHubError):
    status_code = 403
    code = "forbidden"
    default_message = "Access denied"


class NotFoundError(CouponHubError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ConflictError(CouponHubError):
    status_code = 409
    code = "conflict"
    default_message = "Conflict"


class InternalError(CouponHubError):
    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"


class StoreBusyError(CouponHubError):
    status_code = 503
    code = "store_busy"
    default_message = "Database is busy, retry shortly"
