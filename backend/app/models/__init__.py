from app.models.user import User, UserRole
from app.models.inquiry import CONVERTED_STAGES, Inquiry, InquiryStage
from app.models.interaction import CONNECTED_OUTCOMES, Interaction, InteractionOutcome
from app.models.activity import ActivityType, UserActivityLog

__all__ = [
    "User",
    "UserRole",
    "Inquiry",
    "InquiryStage",
    "CONVERTED_STAGES",
    "Interaction",
    "InteractionOutcome",
    "CONNECTED_OUTCOMES",
    "UserActivityLog",
    "ActivityType",
]
