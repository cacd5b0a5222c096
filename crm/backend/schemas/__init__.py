# Pydantic schemas package
from crm.backend.schemas.base import (
    ApiResponse,
    ClientError,
    ErrorDetail,
    ErrorResponse,
    IndexedError,
    Page,
    ResponseMetadata,
    UUIDStr,
)

__all__ = [
    "ApiResponse",
    "ClientError",
    "ErrorDetail",
    "ErrorResponse",
    "IndexedError",
    "Page",
    "ResponseMetadata",
    "UUIDStr",
]
