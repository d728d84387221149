import logging

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidIdentifier(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_IDENTIFIER"
    default_message = "Malformed identifier"


class PackageAccessDenied(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "PACKAGE_ACCESS_DENIED"
    default_message = "Client's package does not include this feature. Upgrade required."


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictRace(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT_RACE"
    default_message = "A concurrent request changed this record. Retry the request."


class StoreUnavailable(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORE_UNAVAILABLE"
    default_message = "Database unavailable"


def _error_response(request: Request, status_code: int, detail, **extra) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, **extra, "request_id": request_id},
    )


async def app_error_handler(request: Request, exc: AppError):
    return _error_response(request, exc.status_code, exc.message, code=exc.code)


async def store_unavailable_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database unavailable while handling %s %s: %s", request.method, request.url.path, exc)
    return await app_error_handler(request, StoreUnavailable())


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        jsonable_encoder(exc.errors()),
        message="Validation Error",
    )

async def integrity_exception_handler(request: Request, exc: IntegrityError):
    return _error_response(
        request,
        status.HTTP_409_CONFLICT,
        "Database conflict. A record with this identifier likely already exists.",
    )
