"""
Shared error handling for the report gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class AccessLayerException(Exception):
    """Base exception for gateway services."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigurationError(AccessLayerException):
    """Missing or invalid service configuration."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class AuthenticationError(AccessLayerException):
    """Authentication-related errors."""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class UpstreamError(AccessLayerException):
    """Non-success business response from the upstream API."""

    def __init__(self, status_code: int, message: str = "Upstream error", details: Optional[str] = None):
        self.status_code = status_code
        super().__init__(
            "UPSTREAM_ERROR",
            message,
            {"status_code": status_code, "details": details} if details else {"status_code": status_code}
        )

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404 or "not found" in self.message.lower()


class TransportError(AccessLayerException):
    """Network or timeout failure once transport retries are exhausted."""

    def __init__(self, message: str = "Upstream unreachable", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSPORT_ERROR", message, details)


class InvalidArgument(AccessLayerException):
    """Caller supplied an argument that can never succeed."""

    def __init__(self, message: str = "Invalid argument", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_ARGUMENT", message, details)


class ArtifactError(AccessLayerException):
    """Document synthesis or artifact storage failure."""

    def __init__(self, message: str = "Artifact error", details: Optional[Dict[str, Any]] = None):
        super().__init__("ARTIFACT_ERROR", message, details)


class OperationCancelled(AccessLayerException):
    """Caller deadline elapsed before the operation completed."""

    def __init__(self, message: str = "Operation cancelled", details: Optional[Dict[str, Any]] = None):
        super().__init__("OPERATION_CANCELLED", message, details)


def http_status_for(exc: AccessLayerException) -> int:
    """Map a service error onto the HTTP status returned to callers."""
    if isinstance(exc, InvalidArgument):
        return 400
    if isinstance(exc, UpstreamError) and exc.is_not_found:
        return 404
    if isinstance(exc, OperationCancelled):
        return 504
    return 500
