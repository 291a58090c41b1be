"""
Request-scoped dependencies: identity and client fingerprint
"""
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from migralert.core.database import get_db
from migralert.core.exceptions import Unauthorized
from migralert.models.user import User
from migralert.services.auth_service import AuthService
from migralert.services.report_service import hash_client_ip

bearer_scheme = HTTPBearer(auto_error=False)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Signed-in user, or None for anonymous callers and bad tokens"""
    if credentials is None or not credentials.credentials:
        return None
    return AuthService(db).get_current_user(credentials.credentials)


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise Unauthorized("Not authenticated")
    return user


def client_ip_hash(request: Request) -> Optional[str]:
    """Salted hash of the caller's address, used to dedupe anonymous interactions"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    elif request.client:
        ip = request.client.host
    else:
        return None
    return hash_client_ip(ip) if ip else None
