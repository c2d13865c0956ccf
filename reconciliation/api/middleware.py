"""Request tracing middleware and structured exception handlers.

Every request gets a unique ID (from X-Request-ID header or generated),
which is bound to structlog contextvars together with the acting user so
all log lines within a request are correlated. Prometheus counters and
histograms are recorded. Exception handlers translate ReconciliationError
subclasses into the structured error body with the matching status code.
"""

import time
import uuid

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from reconciliation.core.exceptions import (
    CapacityExceededError,
    NotFoundError,
    ReconciliationError,
    ReferentialIntegrityError,
    ValidationError,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
)

# Most specific first; the first isinstance match wins.
_STATUS_BY_ERROR: tuple[tuple[type[ReconciliationError], int, str], ...] = (
    (ValidationError, 400, "validation_error"),
    (ReferentialIntegrityError, 400, "referential_integrity_error"),
    (NotFoundError, 404, "not_found"),
    (CapacityExceededError, 409, "capacity_exceeded"),
)


def _route_template(request: Request) -> str:
    """Matched route path (e.g. /cases/{case_id}) to keep metric labels bounded."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Assign a request ID, bind structured log context, and record metrics."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        actor_id = request.headers.get("X-Actor-ID")
        if actor_id:
            structlog.contextvars.bind_contextvars(actor_id=actor_id)

        start = time.perf_counter()
        logger.info(
            "request_started",
            method=request.method,
            path=str(request.url.path),
        )

        try:
            response = await call_next(request)
        except Exception:
            duration = time.perf_counter() - start
            logger.exception(
                "request_failed",
                method=request.method,
                path=str(request.url.path),
                duration_seconds=round(duration, 4),
            )
            response = JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": "internal_server_error",
                    "message": "An unexpected error occurred.",
                    "details": {},
                    "request_id": request_id,
                },
            )

        duration = time.perf_counter() - start
        endpoint = _route_template(request)

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()
        REQUEST_LATENCY.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        response.headers["X-Request-ID"] = request_id

        logger.info(
            "request_completed",
            method=request.method,
            path=str(request.url.path),
            status_code=response.status_code,
            duration_seconds=round(duration, 4),
        )
        return response


# ---------------------------------------------------------------------------
# Exception → JSON response handlers
# ---------------------------------------------------------------------------


def _request_id() -> str | None:
    """Pull the current request ID from structlog context, if bound."""
    ctx: dict[str, str] = structlog.contextvars.get_contextvars()
    return ctx.get("request_id")


def _error_body(error: str, message: str, details: dict[str, object]) -> dict[str, object]:
    return {
        "success": False,
        "error": error,
        "message": message,
        "details": details,
        "request_id": _request_id(),
    }


def register_exception_handlers(app: FastAPI) -> None:
    """Attach structured error handlers to the app."""

    @app.exception_handler(ReconciliationError)
    async def _domain_error(request: Request, exc: ReconciliationError) -> JSONResponse:
        for error_type, status_code, code in _STATUS_BY_ERROR:
            if isinstance(exc, error_type):
                logger.info(
                    "request_rejected",
                    error_type=type(exc).__name__,
                    status_code=status_code,
                    message=exc.message,
                )
                return JSONResponse(
                    status_code=status_code,
                    content=_error_body(code, exc.message, exc.details),
                )

        logger.error(
            "reconciliation_error",
            error_type=type(exc).__name__,
            message=exc.message,
            details=exc.details,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(type(exc).__name__, exc.message, exc.details),
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=_error_body(
                "validation_error",
                f"Validation failed: {', '.join(errors)}",
                {"errors": errors},
            ),
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", error_type=type(exc).__name__)
        return JSONResponse(
            status_code=500,
            content=_error_body("internal_server_error", "An unexpected error occurred.", {}),
        )
