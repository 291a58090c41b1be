import logging
from typing import Optional

from sqlalchemy.orm import Session

from migralert.core.database import utcnow
from migralert.core.exceptions import ValidationError
from migralert.models.feedback import Feedback, FeedbackCategory
from migralert.models.user import User

logger = logging.getLogger(__name__)


class FeedbackService:
    def __init__(self, db: Session):
        self.db = db

    def submit(
        self,
        category: str,
        title: str,
        description: Optional[str] = None,
        email: Optional[str] = None,
        actor: Optional[User] = None,
    ) -> Feedback:
        """Store product feedback; anonymous submissions are accepted"""
        try:
            category = FeedbackCategory(category)
        except ValueError:
            allowed = ", ".join(c.value for c in FeedbackCategory)
            raise ValidationError(f"Invalid category. Use: {allowed}")

        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required")
        if len(title) > 200:
            raise ValidationError("Title must be at most 200 characters")

        feedback = Feedback(
            category=category.value,
            title=title,
            description=(description or "").strip() or None,
            user_id=actor.id if actor is not None else None,
            user_email=(email or "").strip() or None,
            created_at=utcnow(),
        )
        self.db.add(feedback)
        self.db.commit()
        self.db.refresh(feedback)

        logger.info(f"[Feedback] #{feedback.id} {feedback.category}: {feedback.title}")
        return feedback
