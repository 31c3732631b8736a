from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.errors import ErrorCode
from app.db.session import get_db
from app.models.user import User
from app.schemas.deals import DealRecord, DealStatusUpdate, DealStatusView
from app.services import deal_transitions, deal_workflow
from app.services.deal_errors import DealWorkflowError, deal_not_found
from app.services.deal_store import DealStore, SqlDealStore

router = APIRouter(prefix="/deals", tags=["deals"])


def get_deal_store(
    ctx: deps.TenantContext = Depends(deps.get_tenant_context),
    db: AsyncSession = Depends(get_db),
) -> DealStore:
    return SqlDealStore(db, ctx)


@router.get("/{deal_id}/status", response_model=DealStatusView, summary="Current status and allowed next states")
async def get_deal_status(
    deal_id: str,
    current_user: User = Depends(deps.require_authenticated_user),
    store: DealStore = Depends(get_deal_store),
) -> DealStatusView:
    try:
        current = await store.fetch_status(deal_id)
    except SQLAlchemyError as exc:
        raise DealWorkflowError(code=ErrorCode.DB_ERROR, message=str(exc)).to_http() from exc
    if current is None:
        raise deal_not_found(deal_id).to_http()
    return DealStatusView(
        deal_id=deal_id,
        status=current,
        allowed_transitions=deal_transitions.sorted_transitions(current),
        is_terminal=deal_transitions.is_terminal(current),
    )


@router.put(
    "/{deal_id}/status",
    response_model=DealRecord,
    summary="Move a deal to a new status",
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {
                "application/json": {
                    "schema": DealStatusUpdate.model_json_schema(
                        ref_template="#/components/schemas/{model}"
                    )
                }
            },
        }
    },
)
async def update_deal_status(
    deal_id: str,
    request: Request,
    current_user: User = Depends(deps.require_authenticated_user),
    store: DealStore = Depends(get_deal_store),
) -> DealRecord:
    # Body is read after the auth dependency so an anonymous caller never gets a 400.
    try:
        body = await request.json()
    except ValueError:
        body = None
    try:
        return await deal_workflow.update_deal_status(store, current_user, deal_id, body)
    except DealWorkflowError as exc:
        raise exc.to_http() from exc
