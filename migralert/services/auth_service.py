import logging
from typing import Optional

from sqlalchemy.orm import Session

from migralert.core.security import decode_token
from migralert.models.user import User
from migralert.utils.phone import to_e164

logger = logging.getLogger(__name__)

ROLES = ("user", "moderator", "admin")


class AuthService:
    """Resolves identity-provider tokens to local User rows"""

    def __init__(self, db: Session):
        self.db = db

    def get_current_user(self, token: str) -> Optional[User]:
        """User for a bearer token, or None when the token is invalid"""
        payload = decode_token(token)

        if not payload:
            logger.info("[Auth] Token rejected (invalid signature or expired)")
            return None

        user_id = payload.get("sub") or payload.get("user_id")
        if not user_id:
            logger.info("[Auth] Token without 'sub' claim")
            return None

        return self.sync_user(str(user_id), payload)

    def sync_user(self, user_id: str, claims: dict) -> User:
        """
        Materialise or refresh the local mirror of the account.

        Only claims present in the token overwrite stored values.
        """
        user = self.db.query(User).filter(User.id == user_id).first()
        is_new = user is None
        if is_new:
            user = User(id=user_id)
            self.db.add(user)

        if "phone" in claims:
            user.phone = self._normalise_phone(claims.get("phone"))
        if "phone_verified" in claims:
            user.phone_verified = bool(claims.get("phone_verified"))
        elif is_new:
            user.phone_verified = False
        if claims.get("role") in ROLES:
            user.role = claims["role"]
        elif is_new:
            user.role = "user"
        if claims.get("name"):
            user.display_name = str(claims["name"])[:100]

        if is_new or self.db.is_modified(user):
            self.db.commit()
            self.db.refresh(user)
            if is_new:
                logger.info(f"[Auth] New account mirrored: {user_id}")

        return user

    @staticmethod
    def _normalise_phone(phone) -> Optional[str]:
        if not phone:
            return None
        try:
            return to_e164(str(phone))
        except ValueError:
            logger.warning("[Auth] Ignoring malformed phone claim")
            return None
