import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base, in_clause
from app.schemas.deals import DealStatus, DealType, NegotiationMode


DEAL_STATUSES = tuple(status.value for status in DealStatus)
DEAL_TYPES = tuple(deal_type.value for deal_type in DealType)
NEGOTIATION_MODES = tuple(mode.value for mode in NegotiationMode)


class Deal(Base):
    __tablename__ = "deals"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint(in_clause("status", DEAL_STATUSES), name="ck_deals_status"),
        CheckConstraint(in_clause("deal_type", DEAL_TYPES), name="ck_deals_deal_type"),
        CheckConstraint(
            in_clause("negotiation_mode", NEGOTIATION_MODES), name="ck_deals_negotiation_mode"
        ),
        Index("ix_deals_organization_status", "organization_id", "status"),
        Index("ix_deals_organization_updated_at", "organization_id", "updated_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(String, nullable=False, index=True)
    created_by = Column(UUID(as_uuid=True), nullable=False)
    deal_name = Column(String(255), nullable=False)
    deal_reference = Column(String(100), nullable=True)
    deal_type = Column(String(30), nullable=False)
    description = Column(Text, nullable=True)
    base_facility_id = Column(UUID(as_uuid=True), nullable=True)
    status = Column(String(20), nullable=False, default="draft", server_default="draft")
    negotiation_mode = Column(
        String(20), nullable=False, default="bilateral", server_default="bilateral"
    )
    require_unanimous_consent = Column(Boolean, nullable=False, default=False, server_default="false")
    auto_lock_agreed_terms = Column(Boolean, nullable=False, default=True, server_default="true")
    target_signing_date = Column(Date, nullable=True)
    target_closing_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    participants = relationship(
        "DealParticipant", back_populates="deal", cascade="all, delete-orphan", passive_deletes=True
    )
    activities = relationship(
        "DealActivity", back_populates="deal", cascade="all, delete-orphan", passive_deletes=True
    )
