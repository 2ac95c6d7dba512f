"""
Exception handlers mapping domain errors to JSON responses.

Every NexusError carries its own HTTP status and body. Anything else is an
unexpected fault: it is logged with its stack trace and answered with a
generic 500.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from nexus.platform.errors import NexusError

logger = logging.getLogger(__name__)


async def nexus_error_handler(request: Request, exc: NexusError) -> JSONResponse:
    log = logger.warning if exc.http_status >= 500 else logger.info
    log(
        "Request rejected",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_code": exc.error_code,
            "status_code": exc.http_status,
        },
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        extra={
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path,
        },
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(NexusError, nexus_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
