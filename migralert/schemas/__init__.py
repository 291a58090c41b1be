from .report import ReportResponse, ReportListResponse, InteractionCreate, StatusUpdate
from .emergency import (
    ContactCreate,
    ContactUpdate,
    ContactResponse,
    AlertConfigResponse,
    DispatchResult,
)
from .feedback import FeedbackCreate, FeedbackResponse
