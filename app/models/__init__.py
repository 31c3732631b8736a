from app.models.deal import Deal
from app.models.deal_activity import DealActivity
from app.models.deal_participant import DealParticipant
from app.models.user import User

__all__ = [
    "Deal",
    "DealActivity",
    "DealParticipant",
    "User",
]
