"""
User model - mirror of the identity provider's account
"""
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from migralert.core.database import Base, utcnow


class User(Base):
    __tablename__ = "users"

    # Identity provider subject
    id = Column(String(64), primary_key=True)
    phone = Column(String(20), nullable=True)  # E.164
    phone_verified = Column(Boolean, default=False, nullable=False)
    display_name = Column(String(100), nullable=True)

    # Role
    role = Column(String(20), default="user", nullable=False)  # 'user', 'moderator', 'admin'

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    emergency_contacts = relationship(
        "EmergencyContact",
        back_populates="user",
        order_by="EmergencyContact.contact_order",
        cascade="all, delete-orphan",
    )

    @property
    def verified_phone(self):
        return self.phone if self.phone and self.phone_verified else None

    @property
    def is_moderator(self) -> bool:
        return self.role in ("moderator", "admin")
