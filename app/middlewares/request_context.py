import re
from uuid import uuid4

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.core import context

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def _incoming_request_id(headers: dict[bytes, bytes]) -> str:
    candidate = headers.get(b"x-request-id", b"").decode("latin-1").strip()
    # Client ids end up in every log line; anything odd is replaced.
    if candidate and _REQUEST_ID_RE.fullmatch(candidate):
        return candidate
    return str(uuid4())


class RequestContextMiddleware:
    """Bind request/tenant ids to the logging context for the life of one request."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = _incoming_request_id(headers)
        tenant_id = headers.get(b"x-tenant-id", b"").decode("latin-1")

        context.clear_context()
        context.set_request_id(request_id)
        if tenant_id:
            context.set_tenant_id(tenant_id)

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers_list = list(message.get("headers", []))
                headers_list.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers_list
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            context.clear_context()
