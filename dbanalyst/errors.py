"""
Error Taxonomy

Closed set of error codes raised by the query builder, the resilience layer
and the tools. Every failure that reaches a tool boundary is converted into
an AgentError carrying an immutable ErrorDetail value. Rendering for end
users and for logs lives in separate functions so the value stays a value.

Usage:
    try:
        await executor.execute(sql)
    except Exception as exc:
        error = normalize_error(exc, {"table": "projects"})
        logger.error(format_for_log(error))
        return format_for_user(error)
"""

import json
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class ErrorCode(StrEnum):
    DATABASE_CONNECTION_ERROR = "DATABASE_CONNECTION_ERROR"
    QUERY_EXECUTION_ERROR = "QUERY_EXECUTION_ERROR"
    INVALID_TABLE = "INVALID_TABLE"
    INVALID_COLUMN = "INVALID_COLUMN"
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_PARAMETER = "MISSING_PARAMETER"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    CALCULATION_ERROR = "CALCULATION_ERROR"
    EXPORT_ERROR = "EXPORT_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ErrorSeverity(StrEnum):
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


DEFAULT_USER_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.DATABASE_CONNECTION_ERROR: (
        "Unable to connect to the database. Please try again in a moment."
    ),
    ErrorCode.QUERY_EXECUTION_ERROR: (
        "There was an error with the query. Please check your parameters and try again."
    ),
    ErrorCode.INVALID_TABLE: "The requested table does not exist. Use list_tables to see available tables.",
    ErrorCode.INVALID_COLUMN: (
        "The requested column does not exist. Use get_table_schema to see available columns."
    ),
    ErrorCode.INVALID_INPUT: "The request parameters are invalid. Please check them and try again.",
    ErrorCode.MISSING_PARAMETER: "A required parameter is missing.",
    ErrorCode.TIMEOUT_ERROR: (
        "The query took too long to execute. Please try a more specific query or add filters."
    ),
    ErrorCode.RATE_LIMIT_ERROR: "Too many requests. Please wait a moment before trying again.",
    ErrorCode.CALCULATION_ERROR: "The result could not be calculated from the returned data.",
    ErrorCode.EXPORT_ERROR: "The results could not be exported.",
    ErrorCode.UNKNOWN_ERROR: "An unexpected error occurred. Please try again.",
}


class ErrorDetail(BaseModel):
    """Immutable description of a classified failure."""

    code: ErrorCode
    message: str = Field(..., description="Developer-facing raw message")
    user_message: str = Field(..., description="Message safe to show to the end user")
    severity: ErrorSeverity = ErrorSeverity.ERROR
    retryable: bool = False
    context: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(frozen=True)


class AgentError(Exception):
    """
    Exception wrapper around an ErrorDetail.

    Attributes mirror the detail so handlers can branch on
    ``error.code`` or ``error.retryable`` without unpacking.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        user_message: str | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        retryable: bool = False,
        context: dict[str, Any] | None = None,
    ):
        self.detail = ErrorDetail(
            code=code,
            message=message,
            user_message=user_message or DEFAULT_USER_MESSAGES[code],
            severity=severity,
            retryable=retryable,
            context=context or {},
        )
        super().__init__(message)

    @property
    def code(self) -> ErrorCode:
        return self.detail.code

    @property
    def message(self) -> str:
        return self.detail.message

    @property
    def user_message(self) -> str:
        return self.detail.user_message

    @property
    def severity(self) -> ErrorSeverity:
        return self.detail.severity

    @property
    def retryable(self) -> bool:
        return self.detail.retryable

    @property
    def context(self) -> dict[str, Any]:
        return self.detail.context

    @property
    def timestamp(self) -> datetime:
        return self.detail.timestamp

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/API responses."""
        data = self.detail.model_dump(mode="json")
        data["type"] = self.__class__.__name__
        return data

    def __repr__(self) -> str:
        return f"AgentError({self.code.value}: {self.message!r})"


# ============================================================================
# Validation errors (raised before any query runs)
# ============================================================================


def invalid_table(table: str) -> AgentError:
    message = f"Table '{table}' does not exist. Use list_tables to see available tables."
    return AgentError(
        ErrorCode.INVALID_TABLE,
        message,
        user_message=message,
        context={"table": table},
    )


def invalid_column(column: str, table: str) -> AgentError:
    message = (
        f"Column '{column}' does not exist in table '{table}'. "
        "Use get_table_schema to see available columns."
    )
    return AgentError(
        ErrorCode.INVALID_COLUMN,
        message,
        user_message=message,
        context={"table": table, "column": column},
    )


def missing_parameter(parameter: str, message: str) -> AgentError:
    return AgentError(
        ErrorCode.MISSING_PARAMETER,
        message,
        user_message=message,
        context={"parameter": parameter},
    )


def invalid_input(message: str, **context: Any) -> AgentError:
    return AgentError(
        ErrorCode.INVALID_INPUT,
        message,
        user_message=message,
        context=context,
    )


def request_error(exc: ValidationError) -> AgentError:
    """Map a pydantic validation failure onto MISSING_PARAMETER or INVALID_INPUT."""
    errors = exc.errors()
    for error in errors:
        if error["type"] == "missing_parameter":
            return missing_parameter(error.get("ctx", {}).get("parameter", "column"), error["msg"])
        if error["type"] == "missing":
            field = ".".join(str(part) for part in error["loc"])
            return missing_parameter(field, f"Missing required parameter '{field}'.")

    first = errors[0]
    field = ".".join(str(part) for part in first["loc"])
    message = f"Invalid value for '{field}': {first['msg']}." if field else f"{first['msg']}."
    return invalid_input(message, field=field)


# ============================================================================
# Normalization
# ============================================================================

# Checked in order; the first matching rule wins.
_CLASSIFICATION_RULES: tuple[tuple[tuple[str, ...], ErrorCode, ErrorSeverity, bool], ...] = (
    (
        ("connect", "econnrefused"),
        ErrorCode.DATABASE_CONNECTION_ERROR,
        ErrorSeverity.CRITICAL,
        True,
    ),
    (("timeout", "timed out"), ErrorCode.TIMEOUT_ERROR, ErrorSeverity.ERROR, True),
    (
        ("rate limit", "too many requests"),
        ErrorCode.RATE_LIMIT_ERROR,
        ErrorSeverity.WARNING,
        True,
    ),
    (("invalid input",), ErrorCode.INVALID_INPUT, ErrorSeverity.ERROR, False),
    (
        ("syntax", "column", "table"),
        ErrorCode.QUERY_EXECUTION_ERROR,
        ErrorSeverity.ERROR,
        False,
    ),
)


def normalize_error(error: BaseException | Any, context: dict[str, Any] | None = None) -> AgentError:
    """
    Classify any raised value into an AgentError.

    Already-normalized errors are returned unchanged. Everything else is
    matched on its lower-cased message; unmatched failures become
    UNKNOWN_ERROR and stay retryable.
    """
    if isinstance(error, AgentError):
        return error

    if isinstance(error, TimeoutError):
        raw = str(error) or "Operation timed out"
        return AgentError(
            ErrorCode.TIMEOUT_ERROR,
            raw,
            severity=ErrorSeverity.ERROR,
            retryable=True,
            context=context,
        )

    raw = str(error)
    lowered = raw.lower()
    for keywords, code, severity, retryable in _CLASSIFICATION_RULES:
        if any(keyword in lowered for keyword in keywords):
            return AgentError(code, raw, severity=severity, retryable=retryable, context=context)

    return AgentError(
        ErrorCode.UNKNOWN_ERROR,
        raw,
        severity=ErrorSeverity.ERROR,
        retryable=True,
        context=context,
    )


def should_retry(error: BaseException | Any) -> bool:
    """Return the retry verdict for a failure; unknown values default to retryable."""
    if isinstance(error, AgentError):
        return error.retryable
    return True


# ============================================================================
# Formatting
# ============================================================================


def format_for_user(error: BaseException | Any) -> str:
    """Short sentence suitable for direct display to the end user."""
    return normalize_error(error).user_message


def format_for_log(error: BaseException | Any) -> str:
    """Detailed JSON rendering for logs."""
    return json.dumps(normalize_error(error).to_dict(), indent=2, default=str)
