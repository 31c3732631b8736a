import uuid

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Index, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.base import Base, in_clause
from app.schemas.deals import ActivityType


ACTIVITY_TYPES = tuple(activity_type.value for activity_type in ActivityType)


class DealActivity(Base):
    """Append-only audit trail of deal-level events."""

    __tablename__ = "deal_activities"
    __table_args__ = (
        CheckConstraint(
            in_clause("activity_type", ACTIVITY_TYPES), name="ck_deal_activities_activity_type"
        ),
        Index("ix_deal_activities_deal_created_at", "deal_id", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    deal_id = Column(
        UUID(as_uuid=True),
        ForeignKey("deals.id", ondelete="CASCADE"),
        nullable=False,
    )
    activity_type = Column(String(50), nullable=False)
    actor_id = Column(UUID(as_uuid=True), nullable=True)
    actor_name = Column(String(255), nullable=False, default="Unknown")
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    deal = relationship("Deal", back_populates="activities")
