"""
Global exception handlers.

Every error leaves the service as ``{"error": kind, "message": ...}`` with the
status code of its kind; internal details are never exposed.
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DisconnectionError, OperationalError
import structlog

from fundraising.core.errors import FundraisingError

logger = structlog.get_logger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app"""
    _register_domain_error_handler(app)
    _register_validation_error_handler(app)
    _register_store_error_handler(app)
    _register_generic_error_handler(app)


def _register_domain_error_handler(app: FastAPI) -> None:

    @app.exception_handler(FundraisingError)
    async def fundraising_error_handler(request: Request, exc: FundraisingError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "Request failed",
            error=exc.kind,
            message=exc.message,
            method=request.method,
            path=request.url.path,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Pydantic request validation maps onto validation_error"""
        logger.info("Validation error", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )


def _register_store_error_handler(app: FastAPI) -> None:

    async def store_error_handler(request: Request, exc: Exception):
        logger.error("Store unavailable", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"error": "store_unavailable", "message": "Data store temporarily unavailable"},
        )

    app.add_exception_handler(OperationalError, store_error_handler)
    app.add_exception_handler(DisconnectionError, store_error_handler)


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all, never leaks internal details"""
        logger.error(
            "Unhandled exception",
            error=str(exc),
            method=request.method,
            url=str(request.url),
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "internal_error", "message": "An internal error occurred"},
        )


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    return {
        "error": "validation_error",
        "message": "Invalid request data",
        "details": [
            {
                "field": ".".join(str(loc) for loc in e["loc"]),
                "message": e["msg"],
                "type": e["type"],
            }
            for e in exc.errors()
        ],
    }
