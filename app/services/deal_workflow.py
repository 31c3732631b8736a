"""Deal status change: validate, persist, and record it on the activity feed."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import ErrorCode, validation_details
from app.core.logging import get_audit_logger
from app.schemas.deals import ActivityType, DealRecord, DealStatusUpdate
from app.services import deal_transitions
from app.services.activity import UNKNOWN_ACTOR
from app.services.deal_errors import DealWorkflowError, deal_not_found
from app.services.deal_store import DealStore

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_status_update(body: Any) -> DealStatusUpdate:
    if not isinstance(body, dict):
        raise DealWorkflowError(
            code=ErrorCode.VALIDATION_ERROR,
            message="Request body must be a JSON object",
            details={"field_errors": [], "form_errors": ["Request body must be a JSON object"]},
        )
    try:
        return DealStatusUpdate.model_validate(body)
    except ValidationError as exc:
        errors = exc.errors(include_url=False)
        details = validation_details(errors)
        first = details["field_errors"][0] if details["field_errors"] else None
        message = f"{first['field']}: {first['message']}" if first else "Invalid request"
        raise DealWorkflowError(
            code=ErrorCode.VALIDATION_ERROR, message=message, details=details
        ) from exc


async def resolve_actor_name(store: DealStore, deal_id: str, user_id: Any) -> str:
    try:
        name = await store.fetch_participant_name(deal_id, user_id)
    except Exception:
        logger.warning("Participant lookup failed for deal %s", deal_id, exc_info=True)
        return UNKNOWN_ACTOR
    return name or UNKNOWN_ACTOR


async def update_deal_status(
    store: DealStore,
    current_user: Any,
    deal_id: str,
    body: Any,
    *,
    clock: Callable[[], datetime] = _utcnow,
) -> DealRecord:
    if current_user is None or getattr(current_user, "id", None) is None:
        raise DealWorkflowError(code=ErrorCode.UNAUTHORIZED, message="Unauthorized")

    payload = parse_status_update(body)
    requested = payload.status.value

    try:
        current = await store.fetch_status(deal_id)
    except SQLAlchemyError as exc:
        logger.warning("Status lookup failed for deal %s: %s", deal_id, exc)
        raise deal_not_found(deal_id) from exc
    if current is None:
        raise deal_not_found(deal_id)

    if not deal_transitions.is_valid_transition(current, requested):
        raise DealWorkflowError(
            code=ErrorCode.INVALID_TRANSITION,
            message=deal_transitions.transition_error_message(current, requested),
            details={
                "current_status": current,
                "requested_status": requested,
                "allowed_transitions": deal_transitions.sorted_transitions(current),
            },
        )

    try:
        updated = await store.update_status(
            deal_id,
            expected_status=current,
            status=requested,
            updated_at=clock(),
        )
        if updated is None:
            still_exists = await store.deal_exists(deal_id)
    except DealWorkflowError:
        await store.rollback()
        raise
    except SQLAlchemyError as exc:
        await store.rollback()
        raise DealWorkflowError(
            code=ErrorCode.DB_ERROR,
            message=str(getattr(exc, "orig", None) or exc),
        ) from exc

    if updated is None:
        await store.rollback()
        if not still_exists:
            raise deal_not_found(deal_id)
        raise DealWorkflowError(
            code=ErrorCode.CONFLICT,
            message="Deal status changed while the request was in flight; reload and retry",
            details={"expected_status": current, "requested_status": requested},
        )

    actor_name = await resolve_actor_name(store, deal_id, current_user.id)

    # Activity logging never fails the request; the status change stands on its own.
    try:
        await store.insert_activity(
            deal_id,
            activity_type=ActivityType.STATUS_CHANGED,
            actor_id=current_user.id,
            actor_name=actor_name,
            details={
                "previous_status": current,
                "new_status": requested,
                "reason": payload.reason,
            },
        )
    except Exception:
        logger.exception("Failed to record status_changed activity for deal %s", deal_id)

    try:
        await store.commit()
    except SQLAlchemyError as exc:
        await store.rollback()
        raise DealWorkflowError(
            code=ErrorCode.DB_ERROR,
            message=str(getattr(exc, "orig", None) or exc),
        ) from exc

    audit_logger.info(
        "deal.status_changed",
        extra={
            "deal_id": str(updated.id),
            "previous_status": current,
            "new_status": requested,
            "actor_name": actor_name,
        },
    )
    return updated
