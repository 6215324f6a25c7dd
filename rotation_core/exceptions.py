"""
Error taxonomy for rotation passes.

Every error carries an ErrorCode, an HTTP-style status used for log
severity, a unique error id, the thread's correlation id and free-form
context. Errors log themselves when raised, so callers only add context.

Subclasses declare their defaults as class attributes:

    class ReconciliationInProgressError(BaseError):
        default_message = "Reconciliation already in progress"
        default_code = ErrorCode.LOCKED
        status_code = 409
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

_thread_local = threading.local()


class ErrorCode(str, Enum):
    # System (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONNECTION_ERROR = "1002"
    CONFIGURATION_ERROR = "1003"

    # Validation (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"
    TYPE_MISMATCH = "2003"
    CONSTRAINT_VIOLATION = "2004"

    # Resources (3xxx)
    NOT_FOUND = "3000"
    CONFLICT = "3002"
    LOCKED = "3003"

    # Rotation rules (4xxx)
    INVALID_STATE_TRANSITION = "4001"
    PRECONDITION_FAILED = "4004"

    # Provisioning API (5xxx)
    EXTERNAL_API_ERROR = "5002"


def set_correlation_id(correlation_id: str) -> None:
    _thread_local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    return getattr(_thread_local, "correlation_id", None)


def clear_correlation_id() -> None:
    if hasattr(_thread_local, "correlation_id"):
        delattr(_thread_local, "correlation_id")


class BaseError(Exception):
    """Root of every error raised by rotation_core."""

    default_message = "Internal error"
    default_code = ErrorCode.INTERNAL_ERROR
    status_code = 500

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_code
        if status_code is not None:
            self.status_code = status_code
        self.cause = cause
        self.error_id = str(uuid.uuid4())
        self.timestamp = datetime.now(timezone.utc).isoformat()

        self.context: Dict[str, Any] = context
        self.context["error_id"] = self.error_id
        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id
        if cause is not None:
            self.context["cause"] = {
                "type": type(cause).__name__,
                "message": str(cause),
                "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
            }

        super().__init__(self.message)
        self._log()

    def _log(self) -> None:
        # Imported here: utils.logger imports config, which is imported by modules that import us
        from .utils.logger import get_logger

        extra = {
            "error_id": self.error_id,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            "context": {k: v for k, v in self.context.items() if k != "cause"},
        }
        logger = get_logger()
        if self.status_code >= 500:
            logger.error(f"{type(self).__name__}: {self.message}", extra=extra, exc_info=self.cause)
        elif self.status_code >= 400:
            logger.warning(f"{type(self).__name__}: {self.message}", extra=extra)
        else:
            logger.info(f"{type(self).__name__}: {self.message}", extra=extra)

    def add_context(self, **kwargs: Any) -> "BaseError":
        self.context.update(kwargs)
        return self


class ServiceError(BaseError):
    """A service could not complete an operation on persisted rotation state."""

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs: Any):
        if operation:
            kwargs["operation"] = operation
        super().__init__(message, **kwargs)


class ValidationError(BaseError):
    """Input or configuration rejected before any work is done."""

    default_message = "Validation failed"
    default_code = ErrorCode.VALIDATION_FAILED
    status_code = 400

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None, **kwargs: Any):
        if field:
            kwargs["field"] = field
        super().__init__(message, **kwargs)


class InvalidIntervalError(BaseError):
    default_message = "Rotation interval must be strictly positive"
    default_code = ErrorCode.CONFIGURATION_ERROR
    status_code = 400


class PolicyViolationError(BaseError):
    """The credential policy cannot produce a valid login or password."""

    default_message = "Credential policy cannot be satisfied"
    default_code = ErrorCode.CONSTRAINT_VIOLATION
    status_code = 400


class RemoteStateUnavailableError(BaseError):
    """The provisioning API could not be reached. Safe to retry reads only."""

    default_message = "Remote state unavailable"
    default_code = ErrorCode.CONNECTION_ERROR
    status_code = 503


class CyclicDependencyError(BaseError):
    default_message = "Dependency graph contains a cycle"
    default_code = ErrorCode.PRECONDITION_FAILED
    status_code = 500


class ReconciliationInProgressError(BaseError):
    """Another pass holds the lock for this managed resource."""

    default_message = "Reconciliation already in progress"
    default_code = ErrorCode.LOCKED
    status_code = 409


class InvalidStateTransitionError(BaseError):
    default_message = "Invalid binding state transition"
    default_code = ErrorCode.INVALID_STATE_TRANSITION
    status_code = 409


class SecretNotFoundError(BaseError):
    default_message = "Secret not found"
    default_code = ErrorCode.NOT_FOUND
    status_code = 404


class ProvisioningFailedError(BaseError):
    """
    A provisioning call failed and was not retried.

    Carries the failed plan action and the last-known-good binding so the
    caller can report both without re-reading persisted state.
    ``last_known_good`` is the same dict as ``context["last_known_good"]``.
    """

    default_code = ErrorCode.EXTERNAL_API_ERROR
    status_code = 502

    def __init__(
        self,
        action: str,
        cause: Optional[Exception] = None,
        message: Optional[str] = None,
        last_known_good: Optional[Dict[str, Any]] = None,
        **context: Any,
    ):
        self.action = action
        self.last_known_good = last_known_good or {}
        super().__init__(
            message or f"Provisioning action '{action}' failed: {cause}",
            cause=cause,
            service_name="provisioning",
            action=action,
            last_known_good=self.last_known_good,
            **context,
        )
