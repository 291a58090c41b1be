from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from migralert.models.feedback import FeedbackCategory


class FeedbackCreate(BaseModel):
    category: FeedbackCategory
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    email: Optional[str] = Field(None, max_length=255)


class FeedbackResponse(BaseModel):
    id: int
    category: FeedbackCategory
    title: str
    created_at: datetime

    class Config:
        from_attributes = True
