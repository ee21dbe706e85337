# src/utils/exception_handler.py
from fastapi import FastAPI, Request, HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from .logger import setup_logger
from .exceptions import PrescriptionError
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, NoResultFound

logger = setup_logger("EXCEPTION HANDLER")

# Fallback messages when an HTTPException carries no detail
DEFAULT_MESSAGES = {
    status.HTTP_400_BAD_REQUEST: "Bad request",
    status.HTTP_404_NOT_FOUND: "Resource not found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "Method not allowed",
    status.HTTP_409_CONFLICT: "Conflict",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "Validation error",
}


def error_response(
    status_code: int, message, error_type: str, headers=None, **extra
) -> JSONResponse:
    """Every error leaves the API as {message, type, status, ...}"""
    content = {"message": message, "type": error_type, "status": status_code}
    content.update({key: value for key, value in extra.items() if value is not None})
    return JSONResponse(
        status_code=status_code, content=jsonable_encoder(content), headers=headers
    )


def setup_exception_handlers(app: FastAPI):
    @app.exception_handler(PrescriptionError)
    async def prescription_exception_handler(
        request: Request, exc: PrescriptionError
    ):
        logger.warning(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")
        return error_response(
            exc.status_code,
            exc.message,
            exc.__class__.__name__,
            prescription_id=exc.prescription_id,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        logger.info(f"Rejected request body on {request.url.path}")
        return error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Validation error",
            "ValidationError",
            errors=exc.errors(),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        message = exc.detail or DEFAULT_MESSAGES.get(exc.status_code, "An error occurred")

        if exc.status_code == status.HTTP_404_NOT_FOUND:
            logger.info(f"Not found: {request.url.path}")
        else:
            logger.warning(f"HTTP Exception {exc.status_code}: {message}")

        return error_response(
            exc.status_code, message, "HTTPException", headers=exc.headers
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"Database error: {str(exc)}", exc_info=True)

        if isinstance(exc, IntegrityError):
            # refills/duration check constraints or a duplicate id
            return error_response(
                status.HTTP_409_CONFLICT,
                "Prescription violates a database constraint",
                "DatabaseError",
            )
        if isinstance(exc, NoResultFound):
            return error_response(
                status.HTTP_404_NOT_FOUND,
                "Requested resource not found in database",
                "DatabaseError",
            )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Database operation failed",
            "DatabaseError",
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unexpected error: {str(exc)}", exc_info=True)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            "InternalServerError",
        )
