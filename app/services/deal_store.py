"""Data access for the deal status workflow.

``DealStore`` is the seam the workflow depends on; ``SqlDealStore`` is the
production implementation over an ``AsyncSession``. Rows are validated into
``DealRecord`` here so malformed data fails at the boundary.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Protocol

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.errors import ErrorCode
from app.models.deal import Deal
from app.models.deal_participant import DealParticipant
from app.schemas.deals import ActivityType, DealRecord
from app.services.activity import record_deal_activity
from app.services.deal_errors import DealWorkflowError


class DealStore(Protocol):
    async def fetch_status(self, deal_id: str) -> str | None: ...

    async def deal_exists(self, deal_id: str) -> bool: ...

    async def update_status(
        self,
        deal_id: str,
        *,
        expected_status: str,
        status: str,
        updated_at: datetime,
    ) -> DealRecord | None: ...

    async def fetch_participant_name(self, deal_id: str, user_id: Any) -> str | None: ...

    async def insert_activity(
        self,
        deal_id: str,
        *,
        activity_type: ActivityType,
        actor_id: Any,
        actor_name: str,
        details: dict[str, Any],
    ) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


def parse_deal_id(deal_id: Any) -> uuid.UUID | None:
    if isinstance(deal_id, uuid.UUID):
        return deal_id
    try:
        return uuid.UUID(str(deal_id))
    except (TypeError, ValueError):
        return None


def to_deal_record(row: Any) -> DealRecord:
    try:
        return DealRecord.model_validate(row)
    except ValidationError as exc:
        raise DealWorkflowError(
            code=ErrorCode.DB_ERROR,
            message="Malformed deal record",
            details={"errors": exc.errors(include_url=False, include_input=False)},
        ) from exc


class SqlDealStore:
    def __init__(self, db: AsyncSession, ctx: deps.TenantContext) -> None:
        self.db = db
        self.ctx = ctx

    def _deal_conditions(self, deal_uuid: uuid.UUID) -> list:
        return [Deal.id == deal_uuid, Deal.organization_id == self.ctx.org_id]

    async def fetch_status(self, deal_id: str) -> str | None:
        deal_uuid = parse_deal_id(deal_id)
        if deal_uuid is None:
            return None
        stmt = select(Deal.status).where(*self._deal_conditions(deal_uuid))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def deal_exists(self, deal_id: str) -> bool:
        return await self.fetch_status(deal_id) is not None

    async def update_status(
        self,
        deal_id: str,
        *,
        expected_status: str,
        status: str,
        updated_at: datetime,
    ) -> DealRecord | None:
        deal_uuid = parse_deal_id(deal_id)
        if deal_uuid is None:
            return None
        # Matching on the status we read turns a concurrent change into a zero-row update.
        stmt = (
            update(Deal)
            .where(*self._deal_conditions(deal_uuid), Deal.status == expected_status)
            .values(status=status, updated_at=updated_at)
            .returning(Deal)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return to_deal_record(row)

    async def fetch_participant_name(self, deal_id: str, user_id: Any) -> str | None:
        deal_uuid = parse_deal_id(deal_id)
        if deal_uuid is None or user_id is None:
            return None
        stmt = (
            select(DealParticipant.party_name)
            .where(DealParticipant.deal_id == deal_uuid, DealParticipant.user_id == user_id)
            .limit(1)
        )
        # Savepoint: a failed lookup must not abort the transaction holding the status update.
        async with self.db.begin_nested():
            result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def insert_activity(
        self,
        deal_id: str,
        *,
        activity_type: ActivityType,
        actor_id: Any,
        actor_name: str,
        details: dict[str, Any],
    ) -> None:
        # Savepoint: a failed insert rolls back alone and leaves the status update intact.
        async with self.db.begin_nested():
            record_deal_activity(
                self.db,
                deal_id=parse_deal_id(deal_id),
                activity_type=activity_type,
                actor_id=actor_id,
                actor_name=actor_name,
                details=details,
            )

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
