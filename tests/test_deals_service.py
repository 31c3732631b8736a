from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import FakeAsyncSession, FakeResult, make_deal, sequence_handler

from app.api import deps
from app.models.deal import Deal
from app.models.deal_activity import DealActivity
from app.models.deal_participant import DealParticipant
from app.schemas.deals import ActivityType, DealCreate, DealUpdate
from app.services import deals
from app.services.deal_errors import DealWorkflowError

CTX = deps.TenantContext(org_id="default")


@pytest.mark.asyncio
async def test_list_deals_pages_and_counts_participants():
    first = make_deal(deal_name="Acme TLB")
    second = make_deal(deal_name="Globex RCF", status="active")
    db = FakeAsyncSession().on_execute(
        sequence_handler(
            [
                FakeResult(scalar=21),
                FakeResult(items=[first, second]),
                FakeResult(rows=[(first.id, 3)]),
            ]
        )
    )

    items, pagination = await deals.list_deals(db, CTX, page=2, page_size=10)

    assert [item.deal_name for item in items] == ["Acme TLB", "Globex RCF"]
    assert items[0].participant_count == 3
    assert items[1].participant_count == 0
    assert items[0].total_terms == 0
    assert items[0].pending_proposals == 0
    assert pagination.model_dump() == {"page": 2, "page_size": 10, "total": 21, "total_pages": 3}


@pytest.mark.asyncio
async def test_list_deals_all_means_no_filter():
    db = FakeAsyncSession().on_execute(sequence_handler([FakeResult(scalar=0), FakeResult()]))

    items, pagination = await deals.list_deals(db, CTX, status="all", deal_type="all")

    assert items == []
    assert pagination.total_pages == 0
    where = str(db.executed[0].whereclause)
    assert "deals.status" not in where
    assert "deals.deal_type" not in where


@pytest.mark.asyncio
async def test_list_deals_applies_filters_and_search():
    db = FakeAsyncSession().on_execute(sequence_handler([FakeResult(scalar=0), FakeResult()]))

    await deals.list_deals(db, CTX, status="active", deal_type="amendment", search=" acme ")

    where = str(db.executed[0].whereclause)
    assert "deals.status" in where
    assert "deals.deal_type" in where
    assert "deals.deal_name" in where
    assert "deals.deal_reference" in where


@pytest.mark.asyncio
async def test_create_deal_adds_creator_invites_and_activity():
    db = FakeAsyncSession()
    actor_id = uuid4()
    payload = DealCreate.model_validate(
        {
            "deal_name": "  Acme Term Loan B  ",
            "deal_type": "new_facility",
            "target_close_date": "2026-06-30",
            "participants": [
                {"party_name": "Globex Borrower", "party_type": "borrower_side", "party_role": "Borrower"},
                {"party_name": "   "},
            ],
        }
    )

    deal = await deals.create_deal(db, CTX, payload, actor_id=actor_id)

    assert deal.status == "draft"
    assert deal.deal_name == "Acme Term Loan B"
    assert deal.organization_id == "default"
    assert str(deal.target_closing_date) == "2026-06-30"
    participants = [obj for obj in db.added if isinstance(obj, DealParticipant)]
    assert len(participants) == 2
    creator, invited = participants
    assert creator.party_name == "Creator"
    assert creator.user_id == actor_id
    assert creator.deal_role == "deal_lead"
    assert creator.party_type == "lender_side"
    assert creator.can_approve is True
    assert creator.status == "active"
    assert invited.party_name == "Globex Borrower"
    assert invited.status == "invited"
    assert invited.user_id is None
    [activity] = [obj for obj in db.added if isinstance(obj, DealActivity)]
    assert activity.activity_type == ActivityType.DEAL_CREATED.value
    assert activity.details == {"deal_name": "Acme Term Loan B", "deal_type": "new_facility"}
    assert db.committed is True


@pytest.mark.asyncio
async def test_get_deal_includes_stats_and_transitions():
    deal = make_deal(status="paused")
    db = FakeAsyncSession().on_execute(
        sequence_handler([FakeResult(scalar=deal), FakeResult(rows=[(deal.id, 2)])])
    )

    detail = await deals.get_deal(db, CTX, str(deal.id))

    assert detail.stats.participant_count == 2
    assert detail.stats.total_terms == 0
    assert [status.value for status in detail.allowed_transitions] == ["active", "terminated"]


@pytest.mark.asyncio
@pytest.mark.parametrize("deal_id", ["D1", str(uuid4())])
async def test_get_deal_missing_is_not_found(deal_id):
    with pytest.raises(DealWorkflowError) as exc:
        await deals.get_deal(FakeAsyncSession(), CTX, deal_id)
    assert exc.value.code == "NOT_FOUND"


@pytest.mark.asyncio
async def test_update_deal_applies_partial_changes():
    deal = make_deal(deal_name="Old name")
    original_updated_at = deal.updated_at
    db = FakeAsyncSession().on_execute_return(FakeResult(scalar=deal))

    updated = await deals.update_deal(
        db,
        CTX,
        str(deal.id),
        DealUpdate(deal_name="New name", negotiation_mode="multilateral"),
    )

    assert updated.deal_name == "New name"
    assert updated.negotiation_mode == "multilateral"
    assert updated.status == "draft"
    assert updated.updated_at > original_updated_at
    assert db.committed is True


def test_update_payload_rejects_status():
    with pytest.raises(ValueError):
        DealUpdate.model_validate({"status": "closed"})


@pytest.mark.parametrize(
    "body",
    [
        {"deal_name": "   "},
        {"deal_name": None},
        {"deal_type": None},
        {"negotiation_mode": None},
        {"require_unanimous_consent": None},
        {"auto_lock_agreed_terms": None},
    ],
)
def test_update_payload_rejects_blank_and_null_required_fields(body):
    with pytest.raises(ValueError):
        DealUpdate.model_validate(body)


def test_update_payload_allows_clearing_optional_fields():
    payload = DealUpdate.model_validate({"description": None, "target_closing_date": None})
    assert payload.model_dump(exclude_unset=True) == {
        "description": None,
        "target_closing_date": None,
    }


@pytest.mark.asyncio
async def test_update_deal_stores_stripped_name():
    deal = make_deal(deal_name="Old name")
    db = FakeAsyncSession().on_execute_return(FakeResult(scalar=deal))

    updated = await deals.update_deal(
        db, CTX, str(deal.id), DealUpdate.model_validate({"deal_name": "  Acme Term Loan B  "})
    )

    assert updated.deal_name == "Acme Term Loan B"
    assert db.committed is True


@pytest.mark.asyncio
async def test_update_deal_commit_failure_is_db_error(monkeypatch):
    deal = make_deal()
    db = FakeAsyncSession().on_execute_return(FakeResult(scalar=deal))

    async def _fail():
        raise IntegrityError("UPDATE deals", {}, Exception("value too long"))

    monkeypatch.setattr(db, "commit", _fail)

    with pytest.raises(DealWorkflowError) as exc:
        await deals.update_deal(db, CTX, str(deal.id), DealUpdate(description="x"))

    assert exc.value.code == "DB_ERROR"
    assert db.rolled_back is True


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["active", "paused", "agreed", "closed", "terminated"])
async def test_delete_deal_only_drafts(status):
    deal = make_deal(status=status)
    db = FakeAsyncSession().on_execute_return(FakeResult(scalar=deal))

    with pytest.raises(DealWorkflowError) as exc:
        await deals.delete_deal(db, CTX, str(deal.id))

    assert exc.value.code == "FORBIDDEN"
    assert exc.value.status_code == 403
    assert len(db.executed) == 1


@pytest.mark.asyncio
async def test_delete_draft_removes_children_first():
    deal = make_deal(status="draft")
    db = FakeAsyncSession().on_execute(sequence_handler([FakeResult(scalar=deal)]))

    await deals.delete_deal(db, CTX, str(deal.id))

    tables = [stmt.table.name for stmt in db.executed[1:]]
    assert tables == ["deal_activities", "deal_participants", "deals"]
    assert db.committed is True


@pytest.mark.asyncio
async def test_list_activities_newest_first_with_total():
    deal = make_deal()
    entries = [
        DealActivity(
            id=uuid4(),
            deal_id=deal.id,
            activity_type="status_changed",
            actor_name="Creator",
            details={"previous_status": "draft", "new_status": "active"},
        )
    ]
    db = FakeAsyncSession().on_execute(
        sequence_handler(
            [FakeResult(scalar=deal), FakeResult(scalar=1), FakeResult(items=entries)]
        )
    )

    items, total = await deals.list_activities(
        db, CTX, str(deal.id), activity_type=ActivityType.STATUS_CHANGED
    )

    assert total == 1
    assert items == entries
    assert "deal_activities.activity_type" in str(db.executed[1].whereclause)
    assert db.executed[0].column_descriptions[0]["entity"] is Deal
