from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import set_actor_id, set_tenant_id
from app.core.security import decode_token
from app.core.settings import settings
from app.db.session import get_db
from app.models.user import User


@dataclass(slots=True)
class TenantContext:
    org_id: str


# The identity provider issues tokens; this service only verifies them.
bearer_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "UNAUTHORIZED", "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def enforce_inactivity(last_active_at: Optional[datetime], now: datetime) -> None:
    timeout = timedelta(minutes=settings.session_timeout_minutes)
    if last_active_at and now - last_active_at > timeout:
        raise _unauthorized("Session expired due to inactivity")


def _resolve_subdomain(request: Request) -> str | None:
    host = request.headers.get("host", "")
    # strip port if present
    host = host.split(":")[0]
    if settings.allowed_tenant_hosts:
        if host not in settings.allowed_tenant_hosts:
            return None
    parts = host.split(".")
    # ignore localhost/invalid hosts
    if len(parts) >= 3:
        return parts[0]
    return None


async def get_tenant_context(
    request: Request,
    tenant_id: str | None = Header(default=None, alias="X-Tenant-ID"),
) -> TenantContext:
    if settings.tenancy_mode == "multi":
        candidate = tenant_id or _resolve_subdomain(request)
        if not candidate:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Tenant resolution failed: provide X-Tenant-ID header or subdomain",
            )
        set_tenant_id(candidate)
        return TenantContext(org_id=candidate)

    default_org = settings.default_org_id
    set_tenant_id(default_org)
    return TenantContext(org_id=default_org)


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


async def get_current_user(
    token: str | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
    ctx: TenantContext = Depends(get_tenant_context),
) -> User:
    if not token:
        raise _unauthorized("Not authenticated")
    try:
        payload = decode_token(token, expected_type="access")
    except ValueError as exc:
        raise _unauthorized(str(exc)) from exc
    user_sub = payload.get("sub")
    token_version = payload.get("tv")
    if not user_sub:
        raise _unauthorized("Invalid token")

    stmt = select(User).where(User.id == user_sub, User.org_id == ctx.org_id)
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()
    if not user:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("Inactive user")
    if token_version is not None and user.token_version != token_version:
        raise _unauthorized("Token revoked")

    now = datetime.now(timezone.utc)
    enforce_inactivity(user.last_active_at, now)
    user.last_active_at = now
    db.add(user)
    await db.commit()
    set_actor_id(user.id)
    return user


async def require_authenticated_user(current_user: User = Depends(get_current_user)) -> User:
    """Simple guard to require an authenticated user (no permission checks)."""
    return current_user
