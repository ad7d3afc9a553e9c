"""
Error Handling Middleware
=========================

Last line of defense for exceptions that no route or exception handler dealt
with. The error is logged with full context server-side and the client gets a
uniform JSON 500; stack traces are only included in development.

IrisError subclasses are normally turned into responses by the exception
handler registered in app.py and never reach this middleware.
"""

import traceback
from collections.abc import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from iris.core.config.constants import HEADER_REQUEST_ID
from iris.core.logging import get_logger, get_request_id

logger = get_logger(__name__)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Catch-all for unhandled exceptions.

    Args:
        app: The ASGI application
        include_traceback: Include stack traces in responses (development only)
    """

    def __init__(self, app, include_traceback: bool = False):
        super().__init__(app)
        self.include_traceback = include_traceback

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except Exception as e:
            method = request.method
            path = request.url.path
            error_type = type(e).__name__

            logger.error(
                f"Unhandled exception: {method} {path}",
                method=method,
                path=path,
                error_type=error_type,
                error_message=str(e),
                exc_info=True,
            )

            request_id = get_request_id() or request.headers.get(HEADER_REQUEST_ID)
            error_response = {
                "error": "internal_server_error",
                "message": "Internal error while handling the query; see server logs for request_id",
                "error_type": error_type,
                "request_id": request_id,
            }
            if self.include_traceback:
                error_response["traceback"] = traceback.format_exc()
                error_response["detail"] = str(e)

            headers = {HEADER_REQUEST_ID: request_id} if request_id else None
            return JSONResponse(status_code=500, content=error_response, headers=headers)


def add_error_handling_middleware(app, include_traceback: bool = False) -> None:
    """Register ErrorHandlingMiddleware; add it early so it wraps everything else."""
    app.add_middleware(ErrorHandlingMiddleware, include_traceback=include_traceback)
    logger.info("Error handling middleware registered", include_traceback=include_traceback)
