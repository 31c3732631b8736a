from __future__ import annotations

import json
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response


def build_success_envelope(data: Any, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    envelope: dict[str, Any] = {"success": True, "data": data}
    if meta:
        envelope["meta"] = meta
    return envelope


def _is_enveloped(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    if isinstance(payload.get("success"), bool):
        return "data" in payload or "error" in payload
    return False


def _normalize_envelope(payload: dict[str, Any]) -> dict[str, Any]:
    normalized = dict(payload)
    if normalized.get("success"):
        normalized.setdefault("data", None)
    return normalized


def _copy_headers(source: Response, target: Response) -> Response:
    for key, value in source.headers.items():
        if key.lower() in {"content-length", "content-type"}:
            continue
        target.headers[key] = value
    return target


class ResponseEnvelopeMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next) -> Response:
        response = await call_next(request)

        if response.status_code < 200 or response.status_code >= 300:
            return response

        # Convert 204 to a 200 success envelope for frontend consistency
        if response.status_code == 204:
            new_response = JSONResponse(status_code=200, content=build_success_envelope(None))
            return _copy_headers(response, new_response)

        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("application/json"):
            return response

        # BaseHTTPMiddleware hands back a streaming response; drain it to inspect the body.
        raw = b""
        async for chunk in response.body_iterator:
            raw += chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")

        try:
            payload = json.loads(raw.decode("utf-8")) if raw else None
        except ValueError:
            return _copy_headers(
                response,
                Response(content=raw, status_code=response.status_code, media_type=content_type),
            )

        if _is_enveloped(payload):
            content = _normalize_envelope(payload)
        else:
            content = build_success_envelope(payload)
        new_response = JSONResponse(status_code=response.status_code, content=content)
        return _copy_headers(response, new_response)


def register_response_envelope(app) -> None:
    app.add_middleware(ResponseEnvelopeMiddleware)
