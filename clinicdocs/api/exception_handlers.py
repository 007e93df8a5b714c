"""
Exception handlers for the FastAPI application.

Domain errors keep their stable ``kind``; anything unexpected is logged with its
traceback and answered with a generic 500 that leaks nothing.
"""
import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from clinicdocs.core.errors import DocumentError

logger = logging.getLogger(__name__)


async def document_error_handler(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, DocumentError):
        return await global_exception_handler(request, exc)
    if exc.status_code >= 500:
        logger.error("Document error on %s %s: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.kind, "message": exc.message})


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    http_exc = exc if isinstance(exc, HTTPException) else HTTPException(status_code=500)
    kind = {401: "unauthorized", 403: "forbidden", 404: "not_found"}.get(http_exc.status_code, "http_error")
    return JSONResponse(
        status_code=http_exc.status_code,
        content={"error": kind, "message": http_exc.detail},
        headers=http_exc.headers,
    )


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    details = []
    if isinstance(exc, RequestValidationError):
        details = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
    logger.warning("Request validation error on %s: %s", request.url.path, details)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "validation", "message": "Invalid request", "details": details},
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal", "message": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DocumentError, document_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
