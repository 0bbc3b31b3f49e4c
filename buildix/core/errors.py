"""Error normalization and handlers."""

import logging
from typing import Any, Dict, Optional
from uuid import uuid4

from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse
from starlette.requests import Request

from buildix.core.logging import get_request_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class NotFoundError(AppError, LookupError):
    code = "not_found"
    status_code = 404


class UnauthorizedError(AppError):
    code = "unauthorized"
    status_code = 401


class ForbiddenError(AppError):
    code = "forbidden"
    status_code = 403


class UserNotFoundError(NotFoundError):
    """Identity resolution failed; never retried."""
    code = "user_not_found"


class InvalidFeatureError(AppError, ValueError):
    """Unknown feature key. Programmer error, never defaulted."""
    code = "invalid_feature"
    status_code = 500


class StorageUnavailableError(AppError):
    """Ledger read/write failed."""
    code = "storage_unavailable"
    status_code = 503


class BillingDisabledError(AppError):
    code = "billing_disabled"
    status_code = 503


class UsageLimitError(AppError):
    """Raised when the gate denies a metered action.

    Rendered with the usage-limit body clients check for
    (``{"error", "usageLimit", "usage", "plan"}``), not the generic envelope.
    """
    code = "usage_limit"
    status_code = 429

    def __init__(self, message: str, *, usage: Dict[str, Any], plan: str, request_id: Optional[str] = None):
        super().__init__(message, request_id=request_id)
        self.usage = usage
        self.plan = plan


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def _error_payload(code: str, message: str, request_id: str) -> dict:
    return {
        "error": {"code": code, "message": message, "request_id": request_id},
        "detail": message,
    }


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    payload = _error_payload(exc.code, exc.message, rid)
    logger = logging.getLogger("buildix")
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def usage_limit_handler(request: Request, exc: UsageLimitError):
    rid = exc.request_id or _extract_request_id(request)
    logger = logging.getLogger("buildix")
    logger.info(
        "usage.limit_reached",
        extra={"request_id": rid, "plan": exc.plan, "used": exc.usage.get("used"), "limit": exc.usage.get("limit")},
    )
    response = JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "usageLimit": True, "usage": exc.usage, "plan": exc.plan},
    )
    response.headers["x-request-id"] = rid
    return response


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_request_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    message = exc.detail if exc.detail else "HTTP error"
    payload = _error_payload(code, message, rid)
    logger = logging.getLogger("buildix")
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logger = logging.getLogger("buildix")
    logger.error("unhandled.exception", exc_info=True, extra={"request_id": rid, "error_code": "internal_error"})
    payload = _error_payload("internal_error", "Unexpected error", rid)
    response = JSONResponse(status_code=500, content=payload)
    response.headers["x-request-id"] = rid
    return response
