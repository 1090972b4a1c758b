"""Classification of failed Jira calls into a closed set of error kinds."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any


class JiraErrorCode(str, enum.Enum):
    SUSPENDED_PAYMENT = "SUSPENDED_PAYMENT"
    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMIT = "RATE_LIMIT"
    NETWORK = "NETWORK"
    NOT_FOUND = "NOT_FOUND"
    SERVER_ERROR = "SERVER_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    UNKNOWN = "UNKNOWN"


class ErrorSeverity(str, enum.Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


@dataclass(frozen=True)
class JiraErrorClassification:
    code: JiraErrorCode
    status: int | None
    message: str
    retryable: bool
    severity: ErrorSeverity

    def as_details(self) -> dict[str, Any]:
        return {
            "errorCode": self.code.value,
            "status": self.status,
            "retryable": self.retryable,
            "severity": self.severity.value,
        }


# Atlassian "errorCode" values that carry more meaning than the HTTP status.
VENDOR_CODE_MAP: dict[str, JiraErrorCode] = {
    "SUSPENDED_PAYMENT": JiraErrorCode.SUSPENDED_PAYMENT,
    "AUTHENTICATION_DENIED": JiraErrorCode.UNAUTHORIZED,
    "AUTHENTICATING_PROXY_DENIED": JiraErrorCode.UNAUTHORIZED,
    "RATE_LIMIT_EXCEEDED": JiraErrorCode.RATE_LIMIT,
    "RATE_LIMIT": JiraErrorCode.RATE_LIMIT,
}


def _vendor_message(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    message = payload.get("errorMessage")
    if isinstance(message, str) and message.strip():
        return message.strip()
    messages = payload.get("errorMessages")
    if isinstance(messages, list):
        for item in messages:
            if isinstance(item, str) and item.strip():
                return item.strip()
    return None


def _vendor_code(payload: Any) -> JiraErrorCode | None:
    if not isinstance(payload, dict):
        return None
    return VENDOR_CODE_MAP.get(str(payload.get("errorCode") or "").strip())


def classify_jira_error(
    status: int | None,
    payload: dict[str, Any] | None,
    fallback_message: str,
) -> JiraErrorClassification:
    """Map a failed call to a classification.

    ``status`` is None when no HTTP response was obtained at all. Vendor error
    codes are checked before the HTTP status so that, for example, a 403 caused
    by a suspended subscription is not reported as a credentials problem.
    """
    vendor_message = _vendor_message(payload)

    if status is None:
        return JiraErrorClassification(
            code=JiraErrorCode.NETWORK,
            status=None,
            message=vendor_message or "Network error while contacting Jira",
            retryable=True,
            severity=ErrorSeverity.ERROR,
        )

    mapped = _vendor_code(payload)
    if mapped == JiraErrorCode.SUSPENDED_PAYMENT:
        return JiraErrorClassification(
            code=mapped,
            status=status,
            message=vendor_message or "Jira subscription suspended",
            retryable=False,
            severity=ErrorSeverity.ERROR,
        )
    if mapped == JiraErrorCode.RATE_LIMIT:
        return JiraErrorClassification(
            code=mapped,
            status=status,
            message=vendor_message or "Rate limit reached",
            retryable=True,
            severity=ErrorSeverity.WARN,
        )
    if mapped == JiraErrorCode.UNAUTHORIZED:
        return JiraErrorClassification(
            code=mapped,
            status=status,
            message=vendor_message or "Unauthorized Jira credentials",
            retryable=False,
            severity=ErrorSeverity.ERROR,
        )

    message = vendor_message or fallback_message
    if status == 400:
        return JiraErrorClassification(JiraErrorCode.BAD_REQUEST, status, message, False, ErrorSeverity.ERROR)
    if status in {401, 403}:
        return JiraErrorClassification(
            JiraErrorCode.UNAUTHORIZED,
            status,
            vendor_message or "Unauthorized Jira credentials",
            False,
            ErrorSeverity.ERROR,
        )
    if status == 404:
        return JiraErrorClassification(
            JiraErrorCode.NOT_FOUND,
            status,
            vendor_message or "Requested Jira resource not found",
            False,
            ErrorSeverity.ERROR,
        )
    if status == 429:
        return JiraErrorClassification(
            JiraErrorCode.RATE_LIMIT,
            status,
            vendor_message or "Rate limit reached",
            True,
            ErrorSeverity.WARN,
        )
    if status >= 500:
        return JiraErrorClassification(JiraErrorCode.SERVER_ERROR, status, message, True, ErrorSeverity.ERROR)
    # Unrecognized failures stay retryable rather than being treated as permanent.
    return JiraErrorClassification(JiraErrorCode.UNKNOWN, status, message, True, ErrorSeverity.ERROR)


def classify_exception(exc: BaseException) -> JiraErrorClassification:
    """Classification for any error surfaced by a sync run."""
    classification = getattr(exc, "classification", None)
    if isinstance(classification, JiraErrorClassification):
        return classification
    return JiraErrorClassification(
        code=JiraErrorCode.UNKNOWN,
        status=None,
        message=str(exc) or exc.__class__.__name__,
        retryable=True,
        severity=ErrorSeverity.ERROR,
    )
