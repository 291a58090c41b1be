import enum

from sqlalchemy import Column, Integer, String, Text, DateTime

from migralert.core.database import Base, utcnow


class FeedbackCategory(str, enum.Enum):
    BUG = "bug"
    FEATURE = "feature"
    IMPROVEMENT = "improvement"
    OTHER = "other"


class Feedback(Base):
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True)
    category = Column(String(20), nullable=False)  # FeedbackCategory
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    user_id = Column(String(64), nullable=True)
    user_email = Column(String(255), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
