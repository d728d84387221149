from typing import Generic, TypeVar, Optional
from pydantic import BaseModel

T = TypeVar("T")

class ResponseBase(BaseModel, Generic[T]):
    data: Optional[T] = None
    message: Optional[str] = None
    success: bool = True

class StandardResponse(ResponseBase[T]):
    pass


class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None
    request_id: Optional[str] = None


# OpenAPI documentation for the domain errors raised by app.core.exceptions
ASSIGNMENT_ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": ErrorResponse, "description": "Malformed plan or client id"},
    403: {"model": ErrorResponse, "description": "Package does not include this plan kind"},
    404: {"model": ErrorResponse, "description": "Plan or client not found"},
    409: {"model": ErrorResponse, "description": "Concurrent assignment for the same client; retry"},
}
