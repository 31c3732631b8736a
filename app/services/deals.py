from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.errors import ErrorCode
from app.core.logging import get_audit_logger
from app.models.deal import Deal
from app.models.deal_activity import DealActivity
from app.models.deal_participant import DealParticipant
from app.schemas.deals import (
    ActivityType,
    DealCreate,
    DealDetail,
    DealListItem,
    DealRole,
    DealStats,
    DealStatus,
    DealUpdate,
    Pagination,
    PartyType,
)
from app.services import deal_transitions
from app.services.activity import build_summary, diff_values, model_snapshot, record_deal_activity
from app.services.deal_errors import DealWorkflowError, deal_not_found
from app.services.deal_store import parse_deal_id, to_deal_record

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

CREATOR_PARTY_NAME = "Creator"


def _db_error(exc: SQLAlchemyError) -> DealWorkflowError:
    return DealWorkflowError(
        code=ErrorCode.DB_ERROR,
        message=str(getattr(exc, "orig", None) or exc),
    )


async def _get_deal_or_404(db: AsyncSession, ctx: deps.TenantContext, deal_id: Any) -> Deal:
    deal_uuid = parse_deal_id(deal_id)
    if deal_uuid is None:
        raise deal_not_found(deal_id)
    stmt = select(Deal).where(Deal.id == deal_uuid, Deal.organization_id == ctx.org_id)
    try:
        deal = (await db.execute(stmt)).scalar_one_or_none()
    except SQLAlchemyError as exc:
        raise _db_error(exc) from exc
    if deal is None:
        raise deal_not_found(deal_id)
    return deal


async def _participant_counts(db: AsyncSession, deal_ids: list) -> dict:
    if not deal_ids:
        return {}
    stmt = (
        select(DealParticipant.deal_id, func.count())
        .where(DealParticipant.deal_id.in_(deal_ids), DealParticipant.status == "active")
        .group_by(DealParticipant.deal_id)
    )
    rows = (await db.execute(stmt)).all()
    return {deal_id: int(count or 0) for deal_id, count in rows}


async def list_deals(
    db: AsyncSession,
    ctx: deps.TenantContext,
    *,
    status: str | None = None,
    deal_type: str | None = None,
    search: str | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[DealListItem], Pagination]:
    conditions = [Deal.organization_id == ctx.org_id]
    if status and status != "all":
        conditions.append(Deal.status == status)
    if deal_type and deal_type != "all":
        conditions.append(Deal.deal_type == deal_type)
    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(or_(Deal.deal_name.ilike(pattern), Deal.deal_reference.ilike(pattern)))

    offset = (page - 1) * page_size
    try:
        count_stmt = select(func.count()).select_from(Deal).where(*conditions)
        total = int((await db.execute(count_stmt)).scalar_one() or 0)

        stmt = (
            select(Deal)
            .where(*conditions)
            .order_by(Deal.updated_at.desc())
            .offset(offset)
            .limit(page_size)
        )
        deals = (await db.execute(stmt)).scalars().all()
        counts = await _participant_counts(db, [deal.id for deal in deals])
    except SQLAlchemyError as exc:
        raise _db_error(exc) from exc

    items = [
        DealListItem(
            **to_deal_record(deal).model_dump(),
            participant_count=counts.get(deal.id, 0),
        )
        for deal in deals
    ]
    pagination = Pagination(
        page=page,
        page_size=page_size,
        total=total,
        total_pages=math.ceil(total / page_size) if page_size else 0,
    )
    return items, pagination


async def get_deal(db: AsyncSession, ctx: deps.TenantContext, deal_id: Any) -> DealDetail:
    deal = await _get_deal_or_404(db, ctx, deal_id)
    try:
        counts = await _participant_counts(db, [deal.id])
    except SQLAlchemyError as exc:
        raise _db_error(exc) from exc
    record = to_deal_record(deal)
    return DealDetail(
        **record.model_dump(),
        stats=DealStats(participant_count=counts.get(deal.id, 0)),
        allowed_transitions=deal_transitions.sorted_transitions(record.status),
    )


async def create_deal(
    db: AsyncSession,
    ctx: deps.TenantContext,
    payload: DealCreate,
    *,
    actor_id,
) -> Deal:
    now = datetime.now(timezone.utc)
    deal = Deal(
        organization_id=ctx.org_id,
        created_by=actor_id,
        deal_name=payload.deal_name,
        deal_reference=payload.deal_reference,
        deal_type=payload.deal_type.value,
        description=payload.description,
        base_facility_id=payload.base_facility_id,
        status=DealStatus.DRAFT.value,
        negotiation_mode=payload.negotiation_mode.value,
        require_unanimous_consent=payload.require_unanimous_consent,
        auto_lock_agreed_terms=payload.auto_lock_agreed_terms,
        target_signing_date=payload.target_signing_date,
        target_closing_date=payload.target_closing_date,
        created_at=now,
        updated_at=now,
    )
    db.add(deal)
    try:
        await db.flush()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise _db_error(exc) from exc

    db.add(
        DealParticipant(
            deal_id=deal.id,
            user_id=actor_id,
            party_name=CREATOR_PARTY_NAME,
            party_type=PartyType.LENDER_SIDE.value,
            party_role="Deal Lead",
            deal_role=DealRole.DEAL_LEAD.value,
            can_approve=True,
            status="active",
            invited_at=now,
            joined_at=now,
        )
    )
    invited = [invite for invite in payload.participants if invite.party_name.strip()]
    for invite in invited:
        db.add(
            DealParticipant(
                deal_id=deal.id,
                party_name=invite.party_name.strip(),
                party_type=invite.party_type.value,
                party_role=invite.party_role,
                deal_role=invite.deal_role.value,
                can_approve=invite.deal_role == DealRole.DEAL_LEAD,
                status="invited",
                invited_at=now,
            )
        )

    record_deal_activity(
        db,
        deal_id=deal.id,
        activity_type=ActivityType.DEAL_CREATED,
        actor_id=actor_id,
        actor_name=CREATOR_PARTY_NAME,
        details={
            "deal_name": deal.deal_name,
            "deal_type": deal.deal_type,
        },
    )
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise _db_error(exc) from exc
    audit_logger.info(
        "deal.created",
        extra={"deal_id": str(deal.id), "deal_type": deal.deal_type},
    )
    return deal


async def update_deal(
    db: AsyncSession,
    ctx: deps.TenantContext,
    deal_id: Any,
    payload: DealUpdate,
) -> Deal:
    deal = await _get_deal_or_404(db, ctx, deal_id)
    before = model_snapshot(deal, exclude={"updated_at"})

    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(deal, field, value.value if hasattr(value, "value") else value)
    deal.updated_at = datetime.now(timezone.utc)
    db.add(deal)
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise _db_error(exc) from exc

    diff = diff_values(before, model_snapshot(deal, exclude={"updated_at"}))
    audit_logger.info(build_summary("deal.updated", diff), extra={"deal_id": str(deal.id)})
    return deal


async def delete_deal(db: AsyncSession, ctx: deps.TenantContext, deal_id: Any) -> None:
    deal = await _get_deal_or_404(db, ctx, deal_id)
    if deal.status != DealStatus.DRAFT.value:
        raise DealWorkflowError(
            code=ErrorCode.FORBIDDEN,
            message="Only draft deals can be deleted",
            details={"status": deal.status},
        )
    try:
        await db.execute(delete(DealActivity).where(DealActivity.deal_id == deal.id))
        await db.execute(delete(DealParticipant).where(DealParticipant.deal_id == deal.id))
        await db.execute(
            delete(Deal).where(Deal.id == deal.id, Deal.organization_id == ctx.org_id)
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise _db_error(exc) from exc
    audit_logger.info("deal.deleted", extra={"deal_id": str(deal.id)})


async def list_activities(
    db: AsyncSession,
    ctx: deps.TenantContext,
    deal_id: Any,
    *,
    activity_type: ActivityType | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[DealActivity], int]:
    deal = await _get_deal_or_404(db, ctx, deal_id)
    conditions = [DealActivity.deal_id == deal.id]
    if activity_type is not None:
        conditions.append(DealActivity.activity_type == activity_type.value)
    try:
        count_stmt = select(func.count()).select_from(DealActivity).where(*conditions)
        total = int((await db.execute(count_stmt)).scalar_one() or 0)
        stmt = (
            select(DealActivity)
            .where(*conditions)
            .order_by(DealActivity.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        items = (await db.execute(stmt)).scalars().all()
    except SQLAlchemyError as exc:
        raise _db_error(exc) from exc
    return list(items), total
