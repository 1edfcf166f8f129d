"""
Exception handling, request logging and timing middleware for the Candidate Match API
"""
import time
import uuid
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from app.utils.exceptions import MatchServiceBaseException, map_to_http_exception
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

HEALTH_PATHS = {"/", "/health", "/healthz", "/ping"}
MAX_LOGGED_BODY = 1000
BATCH_PATH_SUFFIX = "/analysis/batch"
BATCH_THRESHOLD_FACTOR = 10
PROCESSING_TIME_HEADER = "X-Processing-Time"
REQUEST_ID_HEADER = "X-Request-ID"
INTERNAL_ERROR_BODY = {
    "error": "Internal server error",
    "message": "An unexpected error occurred. Please try again later.",
}


def _request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id is None:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
    return request_id


def error_response(request_id: str, status_code: int, detail: Any) -> JSONResponse:
    """Create standardized error response"""
    if isinstance(detail, str):
        detail = {"message": detail}
    elif not isinstance(detail, dict):
        detail = {"message": str(detail)}

    content = {
        "success": False,
        "timestamp": datetime.utcnow().isoformat(),
        "request_id": request_id,
        "status_code": status_code,
        **detail
    }
    return JSONResponse(status_code=status_code, content=content, headers={REQUEST_ID_HEADER: request_id})


async def match_service_exception_handler(request: Request, exc: MatchServiceBaseException) -> JSONResponse:
    request_id = _request_id(request)
    logger.error(
        f"{exc.__class__.__name__} in {request.method} {request.url.path}: {exc.message}",
        extra={"request_id": request_id, "error_code": exc.error_code, "details": exc.details}
    )
    http_exc = map_to_http_exception(exc)
    return error_response(request_id, http_exc.status_code, http_exc.detail)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    request_id = _request_id(request)
    # validator errors carry the raw exception in ctx
    errors = jsonable_encoder(exc.errors())
    logger.warning(f"Validation error in {request.method} {request.url.path}: {errors}")
    return error_response(request_id, 422, {
        "error": "Validation failed",
        "message": "Request data validation failed",
        "validation_errors": errors,
    })


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MatchServiceBaseException, match_service_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Outermost safety net: tags requests with an id and turns stray exceptions into JSON"""

    async def dispatch(self, request: Request, call_next):
        request_id = _request_id(request)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        except MatchServiceBaseException as exc:
            return await match_service_exception_handler(request, exc)

        except HTTPException as exc:
            logger.warning(f"HTTP exception in {request.method} {request.url.path}: {exc.detail}",
                           extra={"request_id": request_id, "status_code": exc.status_code})
            return error_response(request_id, exc.status_code, exc.detail)

        except Exception as exc:
            logger.exception(
                f"Unhandled {exc.__class__.__name__} in {request.method} {request.url.path}: {exc}",
                extra={"request_id": request_id}
            )
            return error_response(request_id, 500, dict(INTERNAL_ERROR_BODY))


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Request/response logging; health probes are not logged"""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in HEALTH_PATHS:
            return await call_next(request)

        start_time = time.time()
        request_id = _request_id(request)

        body_note = None
        if request.method in ("POST", "PUT", "PATCH"):
            body = await request.body()
            # resume payloads carry whole documents; log only their size
            if "resume_base64" in body[:MAX_LOGGED_BODY * 10].decode("utf-8", errors="ignore"):
                body_note = f"<resume payload: {len(body)} bytes>"
            else:
                body_note = body.decode("utf-8", errors="ignore")[:MAX_LOGGED_BODY]

        logger.debug(f"Request: {request.method} {request.url.path}",
                     extra={"request_id": request_id, "body": body_note,
                            "client_ip": request.client.host if request.client else "unknown"})

        response = await call_next(request)
        processing_time = time.time() - start_time
        logger.info(
            f"Response: {request.method} {request.url.path} - {response.status_code} in {processing_time:.3f}s",
            extra={"request_id": request_id, "status_code": response.status_code,
                   "processing_time": processing_time}
        )
        return response


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Reports processing time in ``X-Processing-Time`` and warns on slow requests.

    Batch analysis scores many candidates per request, so its threshold is
    scaled by ``BATCH_THRESHOLD_FACTOR``.
    """

    def __init__(self, app, slow_request_threshold: float = 2.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    def threshold_for(self, path: str) -> float:
        if path.endswith(BATCH_PATH_SUFFIX):
            return self.slow_request_threshold * BATCH_THRESHOLD_FACTOR
        return self.slow_request_threshold

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        threshold = self.threshold_for(request.url.path)
        if elapsed > threshold:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} took {elapsed:.3f}s (threshold {threshold:.1f}s)",
                extra={"request_id": _request_id(request)}
            )

        response.headers[PROCESSING_TIME_HEADER] = f"{elapsed:.3f}"
        return response
