from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorCode:
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CONFLICT = "CONFLICT"
    DB_ERROR = "DB_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def _default_code(status_code: int) -> str:
    mapping = {
        400: "BAD_REQUEST",
        401: ErrorCode.UNAUTHORIZED,
        403: ErrorCode.FORBIDDEN,
        404: ErrorCode.NOT_FOUND,
        405: "METHOD_NOT_ALLOWED",
        409: ErrorCode.CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
        429: ErrorCode.RATE_LIMITED,
        500: ErrorCode.INTERNAL_ERROR,
    }
    return mapping.get(status_code, "HTTP_ERROR")


def _default_message(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Request failed"


def _normalize_details(details: Any) -> dict:
    if details is None:
        return {}
    if isinstance(details, dict):
        return details
    if isinstance(details, list):
        return {"errors": details}
    if isinstance(details, str):
        return {"detail": details}
    return {"detail": str(details)}


def build_error_payload(code: str, message: str, details: Any | None = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    normalized = _normalize_details(details)
    if normalized:
        error["details"] = normalized
    return {"success": False, "error": error}


def _build_response(
    status_code: int,
    code: str,
    message: str,
    details: Any | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload = build_error_payload(code, message, details)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload), headers=headers)


def _parse_http_exception_detail(detail: Any, status_code: int) -> tuple[str, str, dict]:
    code = _default_code(status_code)
    message = _default_message(status_code)

    if isinstance(detail, dict):
        code = detail.get("code") or code
        message = detail.get("message") or detail.get("detail") or detail.get("error") or message
        if "details" in detail:
            details = _normalize_details(detail.get("details"))
        else:
            details = {
                k: v for k, v in detail.items() if k not in {"code", "message", "detail", "error"}
            }
        return code, message, details

    if isinstance(detail, list):
        return code, message, {"errors": detail}

    if isinstance(detail, str):
        return code, detail, {}

    return code, message, {"detail": str(detail)}


def field_errors_from_pydantic(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Flatten pydantic error dicts into ``{field, message, type}`` entries."""
    flattened: list[dict[str, Any]] = []
    for error in errors:
        loc = error.get("loc") or []
        # Drop the request section (body/query/path) from the location
        parts = [str(part) for part in loc if part not in {"body", "query", "path"}]
        flattened.append(
            {
                "field": ".".join(parts),
                "message": error.get("msg") or "Invalid value",
                "type": error.get("type"),
            }
        )
    return flattened


def validation_details(errors: list[dict[str, Any]]) -> dict[str, Any]:
    field_errors = field_errors_from_pydantic(errors)
    return {
        "field_errors": [entry for entry in field_errors if entry["field"]],
        "form_errors": [entry["message"] for entry in field_errors if not entry["field"]],
    }


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code, message, details = _parse_http_exception_detail(exc.detail, exc.status_code)
    headers = getattr(exc, "headers", None)
    return _build_response(exc.status_code, code, message, details, headers=headers)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = list(exc.errors())
    message = "Validation failed"
    field_errors = field_errors_from_pydantic(errors)
    if field_errors:
        first = field_errors[0]
        message = f"{first['field']}: {first['message']}" if first["field"] else first["message"]
    return _build_response(
        status_code=400,
        code=ErrorCode.VALIDATION_ERROR,
        message=message,
        details=validation_details(errors),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _build_response(
        status_code=500,
        code=ErrorCode.INTERNAL_ERROR,
        message="Internal server error",
    )


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    details = getattr(exc, "detail", None)
    response = _build_response(
        status_code=429,
        code=ErrorCode.RATE_LIMITED,
        message=_default_message(429),
        details=details,
    )
    headers = getattr(exc, "headers", None)
    if isinstance(headers, dict):
        response.headers.update(headers)
    return response


def register_exception_handlers(app) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
