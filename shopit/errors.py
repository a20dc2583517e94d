import logging
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ShopError(Exception):
    """Base error; subclasses pick the HTTP status they map to."""

    status_code = 500
    default_message = "internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestError(ShopError):
    status_code = 400
    default_message = "bad request"


class AuthenticationError(ShopError):
    status_code = 401
    default_message = "invalid authentication credentials"


class PermissionDenied(ShopError):
    status_code = 403
    default_message = "you are not allowed to access this resource"


class NotFoundError(ShopError):
    status_code = 404
    default_message = "resource not found"


class ConflictError(ShopError):
    status_code = 409
    default_message = "conflict"


class OrderAlreadyDelivered(ConflictError):
    default_message = "you have already delivered this order"


class InsufficientStock(ConflictError):
    default_message = "not enough stock"


class ValidationFailed(ShopError):
    status_code = 422
    default_message = "failed validation"

    def __init__(self, errors: Dict[str, str]):
        super().__init__()
        self.errors = errors


class RateLimited(ShopError):
    status_code = 429
    default_message = "Too many requests"


class UpstreamError(ShopError):
    status_code = 502
    default_message = "upstream service failure"


def error_body(message: str, errors: Optional[Dict[str, str]] = None) -> dict:
    body = {"success": False, "message": message}
    if errors is not None:
        body["errors"] = errors
    return body


def _field_name(loc) -> str:
    # ("body", "shippingInfo", "city") -> "shippingInfo.city"
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "form", "header")]
    return ".".join(parts) or "request"


async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    errors = exc.errors if isinstance(exc, ValidationFailed) else None
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, errors))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: Dict[str, str] = {}
    for err in exc.errors():
        errors.setdefault(_field_name(err.get("loc", ())), err.get("msg", "invalid value"))
    logger.info("Failed validation on %s: %s", request.url.path, errors)
    return JSONResponse(status_code=422, content=error_body("failed validation", errors))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body("internal server error"))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShopError, shop_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
