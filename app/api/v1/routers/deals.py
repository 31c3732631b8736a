from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.response_envelope import build_success_envelope
from app.core.settings import settings
from app.db.session import get_db
from app.models.user import User
from app.schemas.deals import (
    ActivityType,
    DealActivityOut,
    DealCreate,
    DealDetail,
    DealRecord,
    DealUpdate,
)
from app.services import deals
from app.services.deal_errors import DealWorkflowError

router = APIRouter(prefix="/deals", tags=["deals"])


@router.get("", summary="List deals")
async def list_deals(
    status_filter: str | None = Query(default=None, alias="status"),
    deal_type: str | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        items, pagination = await deals.list_deals(
            db,
            ctx,
            status=status_filter,
            deal_type=deal_type,
            search=search,
            page=page,
            page_size=page_size,
        )
    except DealWorkflowError as exc:
        raise exc.to_http() from exc
    return build_success_envelope(
        [item.model_dump(mode="json") for item in items],
        meta={"pagination": pagination.model_dump()},
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=DealRecord, summary="Create a deal")
async def create_deal(
    payload: DealCreate,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> DealRecord:
    try:
        deal = await deals.create_deal(db, ctx, payload, actor_id=current_user.id)
    except DealWorkflowError as exc:
        raise exc.to_http() from exc
    return DealRecord.model_validate(deal)


@router.get("/{deal_id}", response_model=DealDetail, summary="Get a deal with stats")
async def get_deal(
    deal_id: str,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> DealDetail:
    try:
        return await deals.get_deal(db, ctx, deal_id)
    except DealWorkflowError as exc:
        raise exc.to_http() from exc


@router.patch("/{deal_id}", response_model=DealRecord, summary="Update deal details")
async def update_deal(
    deal_id: str,
    payload: DealUpdate,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> DealRecord:
    try:
        deal = await deals.update_deal(db, ctx, deal_id, payload)
    except DealWorkflowError as exc:
        raise exc.to_http() from exc
    return DealRecord.model_validate(deal)


@router.delete("/{deal_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a draft deal")
async def delete_deal(
    deal_id: str,
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await deals.delete_deal(db, ctx, deal_id)
    except DealWorkflowError as exc:
        raise exc.to_http() from exc


@router.get("/{deal_id}/activities", summary="Deal activity feed")
async def list_activities(
    deal_id: str,
    activity_type: ActivityType | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    try:
        items, total = await deals.list_activities(
            db, ctx, deal_id, activity_type=activity_type, limit=limit, offset=offset
        )
    except DealWorkflowError as exc:
        raise exc.to_http() from exc
    return build_success_envelope(
        [DealActivityOut.model_validate(item).model_dump(mode="json") for item in items],
        meta={"pagination": {"limit": limit, "offset": offset, "total": total}},
    )
