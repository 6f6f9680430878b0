from typing import Any

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse


class AppError(Exception):
    """Base application error with consistent schema."""

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED", status_code=status.HTTP_401_UNAUTHORIZED)


class ForbiddenError(AppError):
    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, code="FORBIDDEN", status_code=status.HTTP_403_FORBIDDEN)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


class ConflictError(AppError):
    def __init__(self, message: str = "Conflict", details: dict[str, Any] | None = None):
        super().__init__(message, code="CONFLICT", status_code=status.HTTP_409_CONFLICT, details=details)


class BadRequestError(AppError):
    def __init__(self, message: str = "Bad request", details: dict[str, Any] | None = None):
        super().__init__(message, code="BAD_REQUEST", status_code=status.HTTP_400_BAD_REQUEST, details=details)


class ValidationError(AppError):
    """Missing or invalid input/configuration (e.g. no amount configured)."""

    def __init__(self, message: str = "Invalid input", details: dict[str, Any] | None = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=status.HTTP_400_BAD_REQUEST, details=details)


class VerificationFailedError(AppError):
    def __init__(self, message: str = "Payment not verified, please try again."):
        super().__init__(message, code="PAYMENT_NOT_VERIFIED", status_code=status.HTTP_400_BAD_REQUEST)


class RefundWindowExpiredError(AppError):
    def __init__(self, message: str = "Refund period is over, so there will not be any refunds provided."):
        super().__init__(message, code="REFUND_WINDOW_EXPIRED", status_code=status.HTTP_400_BAD_REQUEST)


class ProviderError(AppError):
    """Payment gateway rejected or failed a call; provider status and description are passed through."""

    def __init__(self, message: str = "Payment provider error", provider_status: int | None = None):
        super().__init__(
            message,
            code="PROVIDER_ERROR",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"provider_status": provider_status} if provider_status else None,
        )
        self.provider_status = provider_status


class ProviderTimeoutError(AppError):
    def __init__(self, message: str = "Payment provider timed out"):
        super().__init__(message, code="PROVIDER_TIMEOUT", status_code=status.HTTP_504_GATEWAY_TIMEOUT)


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    body = {
        "error": {
            "message": exc.message,
            "code": exc.code,
            "details": exc.details,
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(status_code=exc.status_code, content=body)


async def app_exception_handler(request: Request, exc: AppError) -> ORJSONResponse:
    return error_response(request, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    body = {
        "error": {
            "message": "Validation error",
            "code": "VALIDATION_ERROR",
            "details": {"errors": jsonable_encoder(exc.errors(), custom_encoder={Exception: str})},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=body,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    from app.core.logging import get_logger
    get_logger(__name__).exception("unhandled_exception", exc_info=exc)
    body = {
        "error": {
            "message": "Internal server error",
            "code": "INTERNAL_ERROR",
            "details": {},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body,
    )
