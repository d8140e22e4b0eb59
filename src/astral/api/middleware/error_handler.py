"""
Error Handler Middleware

Provides consistent error handling and response formatting.
Logs errors with correlation IDs for debugging.
"""

from uuid import uuid4

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from astral.config.logging_config import bind_correlation_id, clear_context, get_logger
from astral.infrastructure.metrics import HTTP_REQUESTS_TOTAL
from astral.infrastructure.monitoring import capture_exception_with_context

logger = get_logger(__name__)


def _endpoint_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    Provides:
    - Correlation ID tracking for all requests
    - Sanitized 500 responses that never echo user text
    - Request counting by route template
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid4())
        bind_correlation_id(correlation_id)

        try:
            response = await call_next(request)
            response.headers["X-Correlation-ID"] = correlation_id
            HTTP_REQUESTS_TOTAL.labels(
                method=request.method,
                endpoint=_endpoint_label(request),
                status_code=str(response.status_code),
            ).inc()
            return response

        except Exception as e:
            logger.error(
                "Unhandled exception",
                path=request.url.path,
                method=request.method,
                error_type=type(e).__name__,
                exc_info=True,
            )
            capture_exception_with_context(e, correlation_id=correlation_id)
            HTTP_REQUESTS_TOTAL.labels(
                method=request.method,
                endpoint=_endpoint_label(request),
                status_code="500",
            ).inc()

            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error",
                    "correlation_id": correlation_id,
                    "message": "An unexpected error occurred. Please try again.",
                },
                headers={"X-Correlation-ID": correlation_id},
            )

        finally:
            clear_context()
