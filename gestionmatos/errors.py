"""
Application error taxonomy.

Services raise these; the handlers in ``gestionmatos.main`` turn them into
``{"error": message, "code": code}`` responses with the class status code.
"""
import math
from typing import Optional


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.message = message or self.message
        if code:
            self.code = code
        super().__init__(self.message)

    @property
    def headers(self) -> Optional[dict[str, str]]:
        return None


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Invalid request"


class AuthenticationError(AppError):
    status_code = 401
    code = "NOT_AUTHENTICATED"
    message = "Not authenticated, please log in again"

    @property
    def headers(self) -> Optional[dict[str, str]]:
        # Bearer challenge, lets clients and Swagger recognise the scheme
        return {"WWW-Authenticate": "Bearer"}


class AuthorizationError(AppError):
    status_code = 403
    code = "FORBIDDEN"
    message = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Resource not found"


class ConflictError(AppError):
    status_code = 400
    code = "CONFLICT"
    message = "Resource already exists"


class InvalidStateError(AppError):
    status_code = 400
    code = "INVALID_STATE"
    message = "Material not available or does not exist"


class NoOpenCheckoutError(AppError):
    status_code = 400
    code = "NO_OPEN_CHECKOUT"
    message = "No open checkout found for this material and user"


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMITED"
    message = "Too many requests from this address, try again later"

    def __init__(self, retry_after: float = 0.0):
        super().__init__()
        self.retry_after = retry_after

    @property
    def headers(self) -> Optional[dict[str, str]]:
        return {"Retry-After": str(math.ceil(self.retry_after))}


class InternalError(AppError):
    pass
