"""Custom exceptions for application-specific error handling."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from jirasync.integrations.jira.error_classifier import JiraErrorClassification


class SyncEngineException(Exception):
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
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class NotFoundError(SyncEngineException):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str = "not_found", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="NOT_FOUND", details=details, status_code=404)


class ConflictError(SyncEngineException):
    """Raised when a request conflicts with current state."""

    def __init__(self, message: str = "conflict", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="CONFLICT", details=details, status_code=409)


class BadRequestError(SyncEngineException):
    """Raised when request is invalid."""

    def __init__(self, message: str = "bad_request", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="BAD_REQUEST", details=details, status_code=400)


# ===== SYNC EXCEPTIONS =====


class ProjectNotFoundError(NotFoundError):
    """Raised when a sync is requested for an unknown project."""

    def __init__(self, project_id: str):
        super().__init__("project_not_found", details={"project_id": project_id})


class SyncJobNotFoundError(NotFoundError):
    """Raised when a project has no sync job yet."""

    def __init__(self, project_id: str):
        super().__init__("sync_job_not_found", details={"project_id": project_id})


class SyncAlreadyRunningError(ConflictError):
    """Raised when a second run is requested while one is in flight."""

    def __init__(self, project_id: str):
        super().__init__("sync_already_running", details={"project_id": project_id})


# ===== CREDENTIAL EXCEPTIONS =====


class SiteNotFoundError(NotFoundError):
    """Raised when the Jira site backing a project is missing."""

    def __init__(self, site_id: str):
        super().__init__("jira_site_not_found", details={"site_id": site_id})


class CredentialDecryptionError(SyncEngineException):
    """Raised when a stored site token cannot be decrypted."""

    def __init__(self, message: str = "Unable to decrypt Jira site token"):
        super().__init__(message, error_code="CREDENTIAL_DECRYPTION_ERROR", status_code=500)


# ===== JIRA EXCEPTIONS =====


class JiraException(SyncEngineException):
    """Base exception for Jira-related errors."""


class JiraClientError(JiraException):
    """Raised by the transport for any failed Jira call.

    ``classification`` is the single source of truth for whether the call may
    be retried; ``retry_after`` carries the server's Retry-After hint, if any.
    """

    def __init__(
        self,
        classification: JiraErrorClassification,
        *,
        retry_after: float | None = None,
        path: str | None = None,
    ):
        details: Dict[str, Any] = {
            "code": classification.code.value,
            "status": classification.status,
            "retryable": classification.retryable,
        }
        if path:
            details["path"] = path
        super().__init__(
            classification.message,
            error_code=f"JIRA_{classification.code.value}",
            details=details,
            status_code=502,
        )
        self.classification = classification
        self.retry_after = retry_after
        self.path = path

    @property
    def retryable(self) -> bool:
        return self.classification.retryable
