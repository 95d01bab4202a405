"""Custom exceptions for application-specific error handling."""

from __future__ import annotations

from typing import Optional, Dict, Any


class HawkiException(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to the `{success, error}` envelope used by the API."""
        return {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class NotFoundError(HawkiException):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "not_found", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="NOT_FOUND", details=details, status_code=404)


class ConflictError(HawkiException):
    """Raised when a request conflicts with current state."""

    def __init__(self, message: str = "conflict", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="CONFLICT", details=details, status_code=409)


class BadRequestError(HawkiException):
    """Raised when request is invalid."""

    def __init__(self, message: str = "bad_request", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="BAD_REQUEST", details=details, status_code=400)


class InvalidConfigurationError(HawkiException):
    """Raised when configuration is missing or invalid."""

    def __init__(self, message: str, setting: Optional[str] = None):
        details = {"setting": setting} if setting else {}
        super().__init__(message, error_code="INVALID_CONFIG", details=details, status_code=500)


# ===== REMOTE API EXCEPTIONS =====


class RemoteAPIException(HawkiException):
    """Base exception for errors talking to an external system."""


class RemoteRequestError(RemoteAPIException):
    """Raised once retries are exhausted. Callers must not retry further."""

    source = "remote"

    def __init__(
        self,
        message: str,
        *,
        endpoint: str,
        attempts: int,
        response_status: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        self.endpoint = endpoint
        self.attempts = attempts
        self.response_status = response_status
        self.response_body = response_body
        super().__init__(
            message,
            error_code=f"{self.source.upper()}_REQUEST_FAILED",
            details={
                "endpoint": endpoint,
                "attempts": attempts,
                "response_status": response_status,
                "response_body": (response_body or "")[:2000],
            },
            status_code=502,
        )


class AzureDevOpsRequestError(RemoteRequestError):
    """Terminal Azure DevOps API failure."""

    source = "ado"


class BambooHRRequestError(RemoteRequestError):
    """Terminal BambooHR API failure."""

    source = "bamboohr"


# ===== VALIDATION EXCEPTIONS =====


class ValidationException(HawkiException):
    """Base exception for validation errors."""


class MappingConflictError(ValidationException):
    """Raised when an identity mapping would break the one-to-one invariant."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="MAPPING_CONFLICT", details=details, status_code=409)
