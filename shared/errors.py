"""
Domain errors shared by every service.

Services raise these; main.py renders them as {"success": false, "message": ...}
with the status code carried by the exception class.
"""
import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = structlog.get_logger(__name__)


class MarketplaceError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Server Error"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


class InvalidInput(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request"


class NotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class InsufficientStock(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Insufficient stock"


class InvalidState(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid state"


class Forbidden(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Forbidden"


class GatewayFailure(MarketplaceError):
    status_code = status.HTTP_502_BAD_GATEWAY
    message = "Payment gateway failure"


class ServerError(MarketplaceError):
    pass


async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": "Invalid request",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    # Never leak driver messages to the client
    logger.error("database_error", error=str(exc), exc_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": ServerError.message},
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", exc_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": ServerError.message},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
