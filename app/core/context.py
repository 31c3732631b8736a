import contextvars

_tenant_id: contextvars.ContextVar[str] = contextvars.ContextVar("tenant_id", default="-")
_request_id: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")
_actor_id: contextvars.ContextVar[str] = contextvars.ContextVar("actor_id", default="-")


def set_tenant_id(tenant_id: str) -> None:
    _tenant_id.set(tenant_id)


def get_tenant_id() -> str:
    return _tenant_id.get()


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


def set_actor_id(actor_id) -> None:
    _actor_id.set(str(actor_id) if actor_id is not None else "-")


def get_actor_id() -> str:
    return _actor_id.get()


def snapshot() -> dict[str, str]:
    """Current ids as a dict, for attaching to structured log payloads."""
    return {
        "tenant_id": get_tenant_id(),
        "request_id": get_request_id(),
        "actor_id": get_actor_id(),
    }


def clear_context() -> None:
    _tenant_id.set("-")
    _request_id.set("-")
    _actor_id.set("-")
