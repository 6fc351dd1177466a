from __future__ import annotations

import sys
import traceback
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import structlog
from prometheus_client import Counter

logger = structlog.get_logger(__name__)

error_counter = Counter(
    "ztp_errors_total",
    "Total number of errors surfaced to callers",
    ["error_type", "category"],
)


class ErrorSeverity(Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RENDERING = "rendering"
    STORAGE = "storage"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    error_id: str
    timestamp: datetime
    error_type: str
    error_message: str
    severity: ErrorSeverity
    category: ErrorCategory
    module: str
    function: str
    line_number: int
    stack_trace: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_id": self.error_id,
            "timestamp": self.timestamp.isoformat(),
            "error_type": self.error_type,
            "error_message": self.error_message,
            "severity": self.severity.value,
            "category": self.category.value,
            "module": self.module,
            "function": self.function,
            "line_number": self.line_number,
            "stack_trace": self.stack_trace,
            "details": self.details,
        }


class BaseApplicationException(Exception):
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.UNKNOWN
    retryable: bool = False
    user_message: str | None = None

    def __init__(
        self,
        message: str,
        *,
        severity: ErrorSeverity | None = None,
        category: ErrorCategory | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity or self.severity
        self.category = category or self.category
        self.user_message = user_message or self.user_message or message
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(UTC)
        self.error_id = f"ERR-{uuid.uuid4().hex[:12].upper()}"

    def get_context(self) -> ErrorContext:
        frame = sys.exc_info()[2]
        tb = traceback.extract_tb(frame) if frame else []
        location = tb[-1] if tb else None
        return ErrorContext(
            error_id=self.error_id,
            timestamp=self.timestamp,
            error_type=self.__class__.__name__,
            error_message=self.message,
            severity=self.severity,
            category=self.category,
            module=location.filename if location else "unknown",
            function=location.name if location else "unknown",
            line_number=0 if not location or location.lineno is None else location.lineno,
            stack_trace=traceback.format_exc() if frame else None,
            details=dict(self.details),
        )


class ValidationException(BaseApplicationException):
    severity = ErrorSeverity.WARNING
    category = ErrorCategory.VALIDATION
    user_message = "The provided data is invalid"


class ResourceNotFoundException(BaseApplicationException):
    severity = ErrorSeverity.WARNING
    category = ErrorCategory.NOT_FOUND
    user_message = "The requested resource was not found"


class ConflictException(BaseApplicationException):
    severity = ErrorSeverity.WARNING
    category = ErrorCategory.CONFLICT
    user_message = "The resource already exists"


class StorageException(BaseApplicationException):
    severity = ErrorSeverity.ERROR
    category = ErrorCategory.STORAGE


class ConfigurationException(BaseApplicationException):
    severity = ErrorSeverity.CRITICAL
    category = ErrorCategory.CONFIGURATION


class ConfigurationError(ConfigurationException):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field


class TemplateError(BaseApplicationException):
    """Base class for errors raised by the template subsystem."""

    def __init__(self, message: str, *, template_id: str | None = None, **kwargs: Any) -> None:
        details = dict(kwargs.pop("details", None) or {})
        if template_id is not None:
            details.setdefault("template_id", template_id)
        super().__init__(message, details=details, **kwargs)
        self.template_id = template_id


class TemplateValidationError(TemplateError, ValidationException):
    pass


class MissingParameterError(TemplateValidationError):
    def __init__(self, template_id: str, missing: list[str]) -> None:
        super().__init__(
            f"Template {template_id} is missing required parameters: {', '.join(missing)}",
            template_id=template_id,
            details={"missing": list(missing)},
        )
        self.missing = list(missing)


class TemplateNotFoundError(TemplateError, ResourceNotFoundException):
    pass


class TemplateConflictError(TemplateError, ConflictException):
    pass


class TemplateRenderError(TemplateError):
    severity = ErrorSeverity.ERROR
    category = ErrorCategory.RENDERING


class TemplateStorageError(TemplateError, StorageException):
    pass


def record_error(error: Exception, **context: Any) -> ErrorContext | None:
    """Log and count an error that is about to be surfaced to a caller."""
    if isinstance(error, BaseApplicationException):
        error_context = error.get_context()
        error_context.details.update(context)
        error_counter.labels(
            error_type=error_context.error_type, category=error_context.category.value
        ).inc()
        quiet = error.severity in (ErrorSeverity.WARNING, ErrorSeverity.INFO)
        getattr(logger, "warning" if quiet else "error")(
            "application_error",
            error_id=error_context.error_id,
            error_type=error_context.error_type,
            error_message=error_context.error_message,
            category=error_context.category.value,
            details=error_context.details,
        )
        return error_context

    error_counter.labels(
        error_type=type(error).__name__, category=ErrorCategory.UNKNOWN.value
    ).inc()
    logger.error(
        "unhandled_error",
        error_type=type(error).__name__,
        error_message=str(error),
        details=context,
        exc_info=error,
    )
    return None


__all__ = [
    "BaseApplicationException",
    "ConfigurationError",
    "ConfigurationException",
    "ConflictException",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "MissingParameterError",
    "ResourceNotFoundException",
    "StorageException",
    "TemplateConflictError",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRenderError",
    "TemplateStorageError",
    "TemplateValidationError",
    "ValidationException",
    "error_counter",
    "record_error",
]
