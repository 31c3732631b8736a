from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class DealStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    AGREED = "agreed"
    CLOSED = "closed"
    TERMINATED = "terminated"


class DealType(str, Enum):
    NEW_FACILITY = "new_facility"
    AMENDMENT = "amendment"
    REFINANCING = "refinancing"
    RESTRUCTURING = "restructuring"


class NegotiationMode(str, Enum):
    BILATERAL = "bilateral"
    MULTILATERAL = "multilateral"


class PartyType(str, Enum):
    BORROWER_SIDE = "borrower_side"
    LENDER_SIDE = "lender_side"
    THIRD_PARTY = "third_party"


class DealRole(str, Enum):
    DEAL_LEAD = "deal_lead"
    NEGOTIATOR = "negotiator"
    REVIEWER = "reviewer"
    OBSERVER = "observer"


class ActivityType(str, Enum):
    DEAL_CREATED = "deal_created"
    PARTICIPANT_JOINED = "participant_joined"
    PARTICIPANT_REMOVED = "participant_removed"
    TERM_PROPOSED = "term_proposed"
    TERM_AGREED = "term_agreed"
    TERM_LOCKED = "term_locked"
    COMMENT_ADDED = "comment_added"
    DOCUMENT_EXPORTED = "document_exported"
    STATUS_CHANGED = "status_changed"


class DealStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: DealStatus
    reason: str | None = Field(default=None, max_length=1000)


class DealRecord(BaseModel):
    """A deal row as read back from the store."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: str
    created_by: UUID
    deal_name: str
    deal_reference: str | None = None
    deal_type: DealType
    description: str | None = None
    base_facility_id: UUID | None = None
    status: DealStatus
    negotiation_mode: NegotiationMode = NegotiationMode.BILATERAL
    require_unanimous_consent: bool = False
    auto_lock_agreed_terms: bool = True
    target_signing_date: date | None = None
    target_closing_date: date | None = None
    created_at: datetime
    updated_at: datetime


class DealStats(BaseModel):
    total_terms: int = 0
    agreed_terms: int = 0
    pending_proposals: int = 0
    participant_count: int = 0


class DealListItem(DealRecord):
    total_terms: int = 0
    agreed_terms: int = 0
    pending_proposals: int = 0
    participant_count: int = 0


class DealDetail(DealRecord):
    stats: DealStats
    allowed_transitions: list[DealStatus] = Field(default_factory=list)


class DealStatusView(BaseModel):
    deal_id: UUID
    status: DealStatus
    allowed_transitions: list[DealStatus]
    is_terminal: bool


class ParticipantInvite(BaseModel):
    party_name: str = ""
    party_type: PartyType = PartyType.LENDER_SIDE
    party_role: str = "Participant"
    deal_role: DealRole = DealRole.NEGOTIATOR


class DealCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    deal_name: str = Field(min_length=1, max_length=255)
    deal_type: DealType
    deal_reference: str | None = Field(default=None, max_length=100)
    description: str | None = None
    base_facility_id: UUID | None = None
    negotiation_mode: NegotiationMode = NegotiationMode.BILATERAL
    require_unanimous_consent: bool = False
    auto_lock_agreed_terms: bool = True
    target_signing_date: date | None = None
    target_closing_date: date | None = Field(
        default=None,
        validation_alias=AliasChoices("target_closing_date", "target_close_date"),
    )
    participants: list[ParticipantInvite] = Field(default_factory=list)

    @field_validator("deal_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("deal_name must not be blank")
        return stripped


class DealUpdate(BaseModel):
    # Status moves only through PUT /deals/{id}/status.
    model_config = ConfigDict(extra="forbid")

    deal_name: str | None = Field(default=None, min_length=1, max_length=255)
    deal_reference: str | None = Field(default=None, max_length=100)
    deal_type: DealType | None = None
    description: str | None = None
    negotiation_mode: NegotiationMode | None = None
    require_unanimous_consent: bool | None = None
    auto_lock_agreed_terms: bool | None = None
    target_signing_date: date | None = None
    target_closing_date: date | None = None

    @field_validator("deal_name")
    @classmethod
    def _strip_name(cls, value: str | None) -> str:
        if value is None:
            raise ValueError("deal_name must not be null")
        stripped = value.strip()
        if not stripped:
            raise ValueError("deal_name must not be blank")
        return stripped

    @field_validator(
        "deal_type", "negotiation_mode", "require_unanimous_consent", "auto_lock_agreed_terms"
    )
    @classmethod
    def _reject_null(cls, value: Any, info: ValidationInfo) -> Any:
        # Only explicit nulls reach here; omitted fields keep their unset default.
        if value is None:
            raise ValueError(f"{info.field_name} must not be null")
        return value


class DealActivityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    deal_id: UUID
    activity_type: ActivityType
    actor_id: UUID | None = None
    actor_name: str
    details: dict[str, Any] | None = None
    created_at: datetime


class Pagination(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int
