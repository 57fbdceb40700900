import logging
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from app.schemas.response import ErrorResponse

log = logging.getLogger("exception_handlers")


# ----------- Exception Handlers (called by FastAPI) -----------

def http_exception_handler(request: Request, exc: HTTPException):
    """Handles exceptions raised by HTTPException (e.g., 404, 400)."""
    if exc.status_code >= 500:
        log.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse.of("http_error", exc.detail))


def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles Pydantic validation errors (422 Unprocessable Entity)."""
    log.info(f"Rejected invalid body on {request.url.path}")
    body = ErrorResponse.of("validation_error", "Invalid input data", details=jsonable_errors(exc))
    return JSONResponse(status_code=422, content=body)


def jsonable_errors(exc: RequestValidationError):
    # ctx may carry exception instances that JSONResponse cannot encode
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


def generic_exception_handler(request: Request, exc: Exception):
    """Handles all unhandled exceptions (500 Internal Server Error)."""
    log.error(f"Unhandled exception on path: {request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500, content=ErrorResponse.of("server_error", "Internal Server Error"))


# ----------- Registration Function -----------

def setup_exception_handlers(app: FastAPI):
    """Registers the error envelope handlers with the FastAPI application."""
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app
