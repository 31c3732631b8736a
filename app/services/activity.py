from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.deal_activity import DealActivity
from app.schemas.deals import ActivityType

UNKNOWN_ACTOR = "Unknown"


def serialize_for_audit(value: Any) -> Any:
    return jsonable_encoder(
        value,
        custom_encoder={
            Decimal: lambda v: str(v),
            datetime: lambda v: v.isoformat(),
            date: lambda v: v.isoformat(),
            Enum: lambda v: v.value,
        },
    )


def model_snapshot(model: Any, *, exclude: Iterable[str] | None = None) -> dict[str, Any]:
    if model is None:
        return {}
    excluded = set(exclude or [])
    data: dict[str, Any] = {}
    for column in model.__table__.columns:
        name = column.name
        if name in excluded:
            continue
        data[name] = getattr(model, name)
    return serialize_for_audit(data)


def diff_values(old: Any, new: Any, prefix: str = "") -> dict[str, dict[str, Any]]:
    changes: dict[str, dict[str, Any]] = {}
    if isinstance(old, dict) and isinstance(new, dict):
        keys = set(old.keys()) | set(new.keys())
        for key in sorted(keys):
            path = f"{prefix}.{key}" if prefix else str(key)
            changes.update(diff_values(old.get(key), new.get(key), path))
        return changes
    if old != new:
        changes[prefix or "value"] = {"from": old, "to": new}
    return changes


def build_summary(action: str, changes: dict[str, dict[str, Any]] | None) -> str:
    if not changes:
        return action
    keys = list(changes.keys())
    snippet = ", ".join(keys[:3])
    suffix = "..." if len(keys) > 3 else ""
    return f"{action}: {snippet}{suffix}"


def build_activity(
    *,
    deal_id,
    activity_type: ActivityType | str,
    actor_id=None,
    actor_name: str | None = None,
    details: dict[str, Any] | None = None,
) -> DealActivity:
    kind = activity_type.value if isinstance(activity_type, ActivityType) else str(activity_type)
    return DealActivity(
        deal_id=deal_id,
        activity_type=kind,
        actor_id=actor_id,
        actor_name=actor_name or UNKNOWN_ACTOR,
        details=serialize_for_audit(details) if details is not None else None,
    )


def record_deal_activity(
    db: AsyncSession,
    *,
    deal_id,
    activity_type: ActivityType | str,
    actor_id=None,
    actor_name: str | None = None,
    details: dict[str, Any] | None = None,
) -> DealActivity:
    entry = build_activity(
        deal_id=deal_id,
        activity_type=activity_type,
        actor_id=actor_id,
        actor_name=actor_name,
        details=details,
    )
    db.add(entry)
    return entry
