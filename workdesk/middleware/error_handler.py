"""Global error handling middleware"""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import traceback
import logging

from workdesk.errors import (
    Cancelled,
    DecodeFault,
    EmptyResult,
    NotConfigured,
    RemoteFault,
    TransportFault,
)

logger = logging.getLogger(__name__)

# nginx convention for "client closed request"
STATUS_CLIENT_CLOSED_REQUEST = 499


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Global error handler middleware"""

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except Exception as exc:
            logger.error(f"Unhandled error: {exc}")
            logger.error(traceback.format_exc())

            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "Internal server error",
                    "detail": str(exc) if logger.isEnabledFor(logging.DEBUG) else "An unexpected error occurred"
                }
            )


async def not_configured_handler(request: Request, exc: NotConfigured):
    logger.error(f"Supabase not configured: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "Service not configured", "detail": str(exc)}
    )


async def remote_fault_handler(request: Request, exc: RemoteFault):
    # Client errors from Supabase (RLS denials, bad filters) pass through as-is
    status_code = exc.status_code if 400 <= exc.status_code < 500 else status.HTTP_502_BAD_GATEWAY
    return JSONResponse(
        status_code=status_code,
        content={"error": "Upstream request failed", "status": exc.status_code, "detail": exc.body}
    )


async def bad_upstream_response_handler(request: Request, exc: Exception):
    logger.error(f"Bad response from Supabase: {exc}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"error": "Unexpected upstream response", "detail": str(exc)}
    )


async def transport_fault_handler(request: Request, exc: TransportFault):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "Upstream unavailable", "detail": str(exc)}
    )


async def cancelled_handler(request: Request, exc: Cancelled):
    return JSONResponse(
        status_code=STATUS_CLIENT_CLOSED_REQUEST,
        content={"error": "Request cancelled", "detail": str(exc)}
    )


def register_exception_handlers(app: FastAPI):
    """
    Map Supabase adapter faults to HTTP responses

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(NotConfigured, not_configured_handler)
    app.add_exception_handler(RemoteFault, remote_fault_handler)
    app.add_exception_handler(DecodeFault, bad_upstream_response_handler)
    app.add_exception_handler(EmptyResult, bad_upstream_response_handler)
    app.add_exception_handler(TransportFault, transport_fault_handler)
    app.add_exception_handler(Cancelled, cancelled_handler)
