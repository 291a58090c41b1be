from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from migralert.api.dependencies import get_optional_user
from migralert.core.database import get_db
from migralert.models.user import User
from migralert.schemas.feedback import FeedbackCreate, FeedbackResponse
from migralert.services.feedback_service import FeedbackService

router = APIRouter(prefix="/feedback", tags=["Feedback"])


@router.post("", response_model=FeedbackResponse, status_code=201)
async def submit_feedback(
    payload: FeedbackCreate,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    return FeedbackService(db).submit(
        payload.category.value,
        payload.title,
        description=payload.description,
        email=payload.email,
        actor=current_user,
    )
