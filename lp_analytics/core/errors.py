from enum import Enum
from pydantic import BaseModel
from typing import Optional

class ErrorCode(str, Enum):
    INVALID_ADDRESS = "INVALID_ADDRESS"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    QUERY_FAILED = "QUERY_FAILED"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN = "UNKNOWN"

class ErrorResponse(BaseModel):
    error_code: ErrorCode
    message: str  # User-friendly message
    details: Optional[str] = None  # Technical details (only in dev mode)

class LPAnalyticsError(Exception):
    def __init__(self, code: ErrorCode, user_msg: str, details: str = None):
        self.code = code
        self.user_msg = user_msg
        self.details = details
        super().__init__(user_msg)

    def to_response(self, include_details: bool = False) -> ErrorResponse:
        return ErrorResponse(
            error_code=self.code,
            message=self.user_msg,
            details=self.details if include_details else None,
        )

class SubgraphError(LPAnalyticsError):
    """A GraphQL request failed at the transport, HTTP or GraphQL layer."""
    def __init__(self, url: str, details: str, code: ErrorCode = ErrorCode.QUERY_FAILED):
        super().__init__(
            code,
            "Failed to load data from the indexer.",
            f"{url}: {details}"
        )
        self.url = url

class InvalidAddressError(LPAnalyticsError):
    def __init__(self, address: str):
        super().__init__(
            ErrorCode.INVALID_ADDRESS,
            "Invalid account address format.",
            f"Address {address} does not match 0x[40 hex chars]"
        )

class ServiceUnavailableError(LPAnalyticsError):
    def __init__(self, service: str):
        super().__init__(
            ErrorCode.SERVICE_UNAVAILABLE,
            "Service temporarily unavailable. Please try again.",
            f"{service} is unreachable or circuit breaker is open"
        )
