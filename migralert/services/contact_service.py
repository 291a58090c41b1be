"""
Emergency contacts, alert configuration and alert history
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from migralert.core.config import settings
from migralert.core.database import utcnow
from migralert.core.exceptions import (
    CapacityExceeded,
    ConcurrentUpdateError,
    NotFoundError,
    Unauthorized,
    ValidationError,
)
from migralert.core.logging_config import mask_phone
from migralert.models.emergency import AlertConfig, AlertHistory, EmergencyContact
from migralert.models.user import User
from migralert.utils.phone import to_e164

logger = logging.getLogger(__name__)


@dataclass
class EffectiveAlertConfig:
    message: str
    share_location: bool
    is_default: bool
    updated_at: Optional[object] = None


class UserAlertCache:
    """
    Read-through cache of one user's contacts and alert config.

    Lives as long as the service instance that owns it; any mutation drops
    the entries of the affected user.
    """

    def __init__(self):
        self._contacts: Dict[str, List[EmergencyContact]] = {}
        self._configs: Dict[str, EffectiveAlertConfig] = {}

    def contacts(self, user_id: str) -> Optional[List[EmergencyContact]]:
        return self._contacts.get(user_id)

    def store_contacts(self, user_id: str, contacts: List[EmergencyContact]) -> None:
        self._contacts[user_id] = list(contacts)

    def config(self, user_id: str) -> Optional[EffectiveAlertConfig]:
        return self._configs.get(user_id)

    def store_config(self, user_id: str, config: EffectiveAlertConfig) -> None:
        self._configs[user_id] = config

    def invalidate(self, user_id: str) -> None:
        self._contacts.pop(user_id, None)
        self._configs.pop(user_id, None)


class ContactService:
    def __init__(self, db: Session, cache: Optional[UserAlertCache] = None):
        self.db = db
        self.cache = cache or UserAlertCache()

    @staticmethod
    def _require(user: Optional[User]) -> User:
        if user is None:
            raise Unauthorized()
        return user

    # ============================================
    # CONTACTS
    # ============================================

    def list(self, user: Optional[User]) -> List[EmergencyContact]:
        user = self._require(user)
        cached = self.cache.contacts(user.id)
        if cached is not None:
            return cached

        contacts = self.db.query(EmergencyContact).filter(
            EmergencyContact.user_id == user.id
        ).order_by(EmergencyContact.contact_order, EmergencyContact.id).all()
        self.cache.store_contacts(user.id, contacts)
        return contacts

    def _get_owned(self, user: User, contact_id: int) -> EmergencyContact:
        contact = self.db.query(EmergencyContact).filter(
            EmergencyContact.id == contact_id,
            EmergencyContact.user_id == user.id,
        ).first()
        if not contact:
            # Other users' contacts are indistinguishable from missing ones
            raise NotFoundError("Contact not found")
        return contact

    @staticmethod
    def _phone(phone: str) -> str:
        try:
            return to_e164(phone)
        except ValueError as e:
            raise ValidationError(str(e))

    def add(
        self,
        user: Optional[User],
        name: str,
        phone: str,
        relationship: Optional[str] = None,
    ) -> EmergencyContact:
        user = self._require(user)

        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required")
        phone = self._phone(phone)

        count = self.db.query(func.count(EmergencyContact.id)).filter(
            EmergencyContact.user_id == user.id
        ).scalar() or 0
        if count >= settings.MAX_EMERGENCY_CONTACTS:
            raise CapacityExceeded(
                f"Maximum {settings.MAX_EMERGENCY_CONTACTS} emergency contacts allowed"
            )

        max_order = self.db.query(func.max(EmergencyContact.contact_order)).filter(
            EmergencyContact.user_id == user.id
        ).scalar() or 0

        contact = EmergencyContact(
            user_id=user.id,
            name=name,
            phone=phone,
            relationship_label=(relationship or "").strip() or None,
            contact_order=max_order + 1,
            created_at=utcnow(),
        )
        try:
            self.db.add(contact)
            self.db.commit()
        except IntegrityError:
            # Another add for this user took the same order first
            self.db.rollback()
            self.cache.invalidate(user.id)
            raise ConcurrentUpdateError("Contacts were changed concurrently, please retry")
        self.db.refresh(contact)
        self.cache.invalidate(user.id)

        logger.info(f"[Contacts] + {mask_phone(phone)} for {user.id} (order {contact.contact_order})")
        return contact

    def update(self, user: Optional[User], contact_id: int, changes: dict) -> EmergencyContact:
        """Apply a partial update; keys are name, phone and relationship."""
        user = self._require(user)
        contact = self._get_owned(user, contact_id)

        if changes.get("name") is not None:
            name = changes["name"].strip()
            if not name:
                raise ValidationError("Name is required")
            contact.name = name
        if changes.get("phone") is not None:
            contact.phone = self._phone(changes["phone"])
        if "relationship" in changes:
            contact.relationship_label = (changes["relationship"] or "").strip() or None

        self.db.commit()
        self.db.refresh(contact)
        self.cache.invalidate(user.id)
        return contact

    def remove(self, user: Optional[User], contact_id: int) -> None:
        user = self._require(user)
        contact = self._get_owned(user, contact_id)
        self.db.delete(contact)
        self.db.commit()
        self.cache.invalidate(user.id)
        logger.info(f"[Contacts] - contact {contact_id} for {user.id}")

    def reorder(self, user: Optional[User], ordered_ids: List[int]) -> List[EmergencyContact]:
        user = self._require(user)
        contacts = self.db.query(EmergencyContact).filter(
            EmergencyContact.user_id == user.id
        ).all()
        by_id = {c.id: c for c in contacts}

        if len(ordered_ids) != len(set(ordered_ids)) or set(ordered_ids) != set(by_id):
            raise ValidationError("ordered_ids must list each of your contacts exactly once")

        # Park every row on a negative order first so no step of the swap
        # trips the per-user unique order
        for position, contact_id in enumerate(ordered_ids, start=1):
            by_id[contact_id].contact_order = -position
        self.db.flush()
        for position, contact_id in enumerate(ordered_ids, start=1):
            by_id[contact_id].contact_order = position
        self.db.commit()
        self.cache.invalidate(user.id)
        return self.list(user)

    # ============================================
    # ALERT CONFIG
    # ============================================

    def get_alert_config(self, user: Optional[User]) -> EffectiveAlertConfig:
        user = self._require(user)
        cached = self.cache.config(user.id)
        if cached is not None:
            return cached

        row = self.db.query(AlertConfig).filter(AlertConfig.user_id == user.id).first()
        if row:
            config = EffectiveAlertConfig(
                message=row.message,
                share_location=row.share_location,
                is_default=False,
                updated_at=row.updated_at,
            )
        else:
            config = EffectiveAlertConfig(
                message=settings.DEFAULT_ALERT_MESSAGE,
                share_location=True,
                is_default=True,
            )
        self.cache.store_config(user.id, config)
        return config

    def set_alert_config(
        self,
        user: Optional[User],
        message: str,
        share_location: bool = True,
    ) -> EffectiveAlertConfig:
        user = self._require(user)
        message = (message or "").strip()
        if not message:
            raise ValidationError("Alert message is required")

        row = self.db.query(AlertConfig).filter(AlertConfig.user_id == user.id).first()
        if row is None:
            row = AlertConfig(user_id=user.id)
            self.db.add(row)
        row.message = message
        row.share_location = bool(share_location)
        row.updated_at = utcnow()
        self.db.commit()
        self.cache.invalidate(user.id)
        return self.get_alert_config(user)

    # ============================================
    # HISTORY
    # ============================================

    def record_history(
        self,
        user: User,
        message: str,
        contacts_notified: int,
        is_test: bool = False,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> AlertHistory:
        entry = AlertHistory(
            user_id=user.id,
            message=message,
            is_test=is_test,
            contacts_notified=contacts_notified,
            latitude=latitude,
            longitude=longitude,
            created_at=utcnow(),
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def list_history(self, user: Optional[User], limit: Optional[int] = None) -> List[AlertHistory]:
        user = self._require(user)
        if limit is None:
            limit = settings.ALERT_HISTORY_DEFAULT_LIMIT
        if limit < 1:
            raise ValidationError("limit must be positive")

        return self.db.query(AlertHistory).filter(
            AlertHistory.user_id == user.id
        ).order_by(AlertHistory.created_at.desc(), AlertHistory.id.desc()).limit(limit).all()

    def clear_history(self, user: Optional[User]) -> int:
        user = self._require(user)
        deleted = self.db.query(AlertHistory).filter(
            AlertHistory.user_id == user.id
        ).delete(synchronize_session=False)
        self.db.commit()
        logger.info(f"[Alerts] Cleared {deleted} history entries for {user.id}")
        return deleted
