"""
Export all models
"""
from migralert.models.user import User
from migralert.models.report import (
    ActivityType,
    InteractionType,
    Report,
    ReportInteraction,
    ReportStatus,
)
from migralert.models.emergency import EmergencyContact, AlertConfig, AlertHistory
from migralert.models.feedback import Feedback, FeedbackCategory

__all__ = [
    "User",
    "ActivityType",
    "InteractionType",
    "Report",
    "ReportInteraction",
    "ReportStatus",
    "EmergencyContact",
    "AlertConfig",
    "AlertHistory",
    "Feedback",
    "FeedbackCategory"
]
