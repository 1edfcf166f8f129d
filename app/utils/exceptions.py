"""
Exception types for the Candidate Match Service

Every service error carries a stable ``error_code`` and a ``details`` dict so
routers and middleware can turn it into a JSON body without special cases.
"""
import asyncio
import functools
import inspect
import time
from random import uniform
from typing import Any, Dict, Optional

from fastapi import HTTPException

MAX_DETAIL_TEXT = 500


def _with_details(kwargs: Dict[str, Any], **fields) -> Dict[str, Any]:
    """Merge the non-empty ``fields`` into any caller-supplied details"""
    details = kwargs.pop('details', None) or {}
    for key, value in fields.items():
        if value is not None and value != "":
            details[key] = value
    return details


class MatchServiceBaseException(Exception):
    """Root of all service errors"""

    default_code = "MATCH_SERVICE_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None
    ):
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


# -------- Input --------
class ValidationError(MatchServiceBaseException):
    """Bad request payload: missing sources, invalid base64, oversize resume, bad URL"""

    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str = None, value: Any = None, **kwargs):
        details = _with_details(kwargs, field=field, invalid_value=None if value is None else str(value))
        super().__init__(message, details=details, **kwargs)


class UnsupportedFormatError(ValidationError):
    """Resume bytes do not start with the PDF signature"""

    default_code = "UNSUPPORTED_FORMAT"

    def __init__(self, message: str = "Unsupported document format. Only PDF files are allowed",
                 expected: str = "%PDF", **kwargs):
        details = _with_details(kwargs, expected_signature=expected)
        super().__init__(message, details=details, **kwargs)


class EmptyDocumentError(ValidationError):
    """PDF parsed but yielded no text"""

    default_code = "EMPTY_DOCUMENT"

    def __init__(self, message: str = "No text content found in document", **kwargs):
        super().__init__(message, **kwargs)


# -------- Internal --------
class ProcessingError(MatchServiceBaseException):
    default_code = "PROCESSING_ERROR"

    def __init__(self, message: str, document_type: str = None, **kwargs):
        super().__init__(message, details=_with_details(kwargs, document_type=document_type), **kwargs)


class DatabaseError(MatchServiceBaseException):
    default_code = "DATABASE_ERROR"

    def __init__(self, message: str, operation: str = None, collection: str = None, **kwargs):
        details = _with_details(kwargs, operation=operation, collection=collection)
        super().__init__(message, details=details, **kwargs)


class ConfigurationError(MatchServiceBaseException):
    default_code = "CONFIGURATION_ERROR"

    def __init__(self, message: str, config_key: str = None, config_value: Any = None, **kwargs):
        details = _with_details(
            kwargs, config_key=config_key, config_value=None if config_value is None else str(config_value)
        )
        super().__init__(message, details=details, **kwargs)


class MalformedResponseError(MatchServiceBaseException):
    """LLM output that is not the expected JSON shape; the scorer turns it into the fallback"""

    default_code = "MALFORMED_RESPONSE"

    def __init__(self, message: str, raw_response: str = None, **kwargs):
        raw = raw_response[:MAX_DETAIL_TEXT] if raw_response is not None else None
        super().__init__(message, details=_with_details(kwargs, raw_response=raw), **kwargs)


# -------- Upstream (LLM gateway, profile pages) --------
class ExternalServiceError(MatchServiceBaseException):
    default_code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, message: str, service_name: str = None, status_code: int = None, **kwargs):
        details = _with_details(kwargs, service_name=service_name, status_code=status_code)
        super().__init__(message, details=details, **kwargs)


class ExternalServiceTransientError(ExternalServiceError):
    """Worth retrying: timeouts, connection resets, 429 and 5xx"""

    default_code = "EXTERNAL_SERVICE_UNAVAILABLE"


class ExternalServiceFatalError(ExternalServiceError):
    """Not worth retrying: bad credentials, exhausted quota, rejected request"""

    default_code = "EXTERNAL_SERVICE_REJECTED"


def external_error_for_status(status_code: int, body: str = "", service_name: str = None) -> ExternalServiceError:
    """Classify a failed upstream HTTP response as transient or fatal"""
    body = body or ""
    label = service_name or "External service"
    details = {"response": body[:MAX_DETAIL_TEXT]} if body else None

    if status_code == 429 and "insufficient_quota" in body:
        return ExternalServiceFatalError(f"{label} quota exhausted", service_name=service_name,
                                         status_code=status_code, details=details)
    if status_code == 429 or status_code >= 500:
        return ExternalServiceTransientError(f"{label} returned {status_code}",
                                             service_name=service_name, status_code=status_code)

    reasons = {401: "invalid API key", 403: "invalid API key", 402: "quota exhausted"}
    reason = reasons.get(status_code, f"request rejected with {status_code}")
    return ExternalServiceFatalError(f"{label} {reason}", service_name=service_name,
                                     status_code=status_code, details=details)


# HTTP Exception Mapping (most specific class wins via the MRO walk)
STATUS_CODE_MAPPING = {
    UnsupportedFormatError: 415,
    EmptyDocumentError: 422,
    ValidationError: 400,
    ConfigurationError: 400,
    DatabaseError: 500,
    ProcessingError: 500,
    MalformedResponseError: 502,
    ExternalServiceTransientError: 503,
    ExternalServiceFatalError: 502,
    ExternalServiceError: 502
}


def status_code_for(exc: MatchServiceBaseException) -> int:
    for klass in type(exc).__mro__:
        if klass in STATUS_CODE_MAPPING:
            return STATUS_CODE_MAPPING[klass]
    return 500


def map_to_http_exception(exc: MatchServiceBaseException) -> HTTPException:
    return HTTPException(
        status_code=status_code_for(exc),
        detail={"error": exc.to_dict(), "message": exc.message},
    )


# -------- Retry --------
def backoff_delay(attempt: int, backoff_factor: float = 1.0, jitter: float = 1.0) -> float:
    """Exponential delay for a zero-based attempt number, plus random jitter"""
    return backoff_factor * (2 ** attempt) + uniform(0, jitter)


def _next_delay(func_name: str, attempt: int, max_attempts: int, error: Exception,
                backoff_factor: float, jitter: float, logger) -> Optional[float]:
    """Delay before the next attempt, or None when attempts are used up"""
    if logger:
        logger.warning(f"Attempt {attempt + 1}/{max_attempts} failed for {func_name}: {error}")
    if attempt >= max_attempts - 1:
        if logger:
            logger.error(f"All {max_attempts} attempts failed for {func_name}")
        return None
    return backoff_delay(attempt, backoff_factor, jitter)


def retry_with_logging(
    max_attempts: int = 3,
    backoff_factor: float = 1.0,
    jitter: float = 1.0,
    exceptions: tuple = (Exception,),
    logger=None
):
    """Retry sync or async callables on ``exceptions`` with exponential backoff.

    Anything not listed in ``exceptions`` propagates on the first failure; the
    last retryable error is re-raised once attempts are exhausted.
    """

    def decorator(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    delay = _next_delay(func.__name__, attempt, max_attempts, e, backoff_factor, jitter, logger)
                    if delay is None:
                        raise
                    await asyncio.sleep(delay)

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    delay = _next_delay(func.__name__, attempt, max_attempts, e, backoff_factor, jitter, logger)
                    if delay is None:
                        raise
                    time.sleep(delay)

        return async_wrapper if inspect.iscoroutinefunction(func) else sync_wrapper

    return decorator
