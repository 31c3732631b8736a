import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base, in_clause
from app.schemas.deals import DealRole, PartyType


PARTY_TYPES = tuple(party_type.value for party_type in PartyType)
DEAL_ROLES = tuple(role.value for role in DealRole)
PARTICIPANT_STATUSES = ("pending", "invited", "active", "removed")


class DealParticipant(Base):
    __tablename__ = "deal_participants"
    __table_args__ = (
        UniqueConstraint("deal_id", "user_id", name="uq_deal_participants_deal_user"),
        CheckConstraint(in_clause("party_type", PARTY_TYPES), name="ck_deal_participants_party_type"),
        CheckConstraint(in_clause("deal_role", DEAL_ROLES), name="ck_deal_participants_deal_role"),
        CheckConstraint(
            in_clause("status", PARTICIPANT_STATUSES), name="ck_deal_participants_status"
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    deal_id = Column(
        UUID(as_uuid=True),
        ForeignKey("deals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Null for outside parties invited by name who have no account yet.
    user_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    party_name = Column(String(255), nullable=False)
    party_type = Column(String(20), nullable=False)
    party_role = Column(String(100), nullable=False)
    deal_role = Column(String(20), nullable=False, default="negotiator")
    can_approve = Column(Boolean, nullable=False, default=False, server_default="false")
    status = Column(String(20), nullable=False, default="pending")
    invited_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    joined_at = Column(DateTime(timezone=True), nullable=True)

    deal = relationship("Deal", back_populates="participants")
