# migralert/models/emergency.py
"""
Emergency contacts, alert configuration and alert history
"""
from sqlalchemy import Column, Integer, String, Float, Boolean, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from migralert.core.database import Base, utcnow


class EmergencyContact(Base):
    __tablename__ = "emergency_contacts"
    __table_args__ = (
        # Concurrent adds that read the same max order collide here instead of duplicating it
        UniqueConstraint("user_id", "contact_order", name="uq_emergency_contacts_user_order"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)

    name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=False)  # E.164
    relationship_label = Column("relationship", String(50), nullable=True)  # 'family', 'friend', 'lawyer', ...

    # Display/send order, 1..N; gaps allowed after deletes
    contact_order = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="emergency_contacts")


class AlertConfig(Base):
    __tablename__ = "alert_configs"

    user_id = Column(String(64), ForeignKey("users.id"), primary_key=True)
    message = Column(Text, nullable=False)
    share_location = Column(Boolean, nullable=False, default=True)

    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class AlertHistory(Base):
    """Append-only; rows are only ever bulk-deleted by their owner."""
    __tablename__ = "alert_history"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)

    message = Column(Text, nullable=False)
    is_test = Column(Boolean, nullable=False, default=False)
    contacts_notified = Column(Integer, nullable=False, default=0)

    # Only when the location was shared
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
