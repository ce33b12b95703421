"""Authorization guard: credential -> identity, plus role checks against the user store."""
from typing import NamedTuple, Optional

import jwt
from sqlalchemy.orm import Session

from routelynk.core.config import Settings
from routelynk.core.errors import Forbidden, Unauthenticated
from routelynk.core.security import decode_access_token
from routelynk.models.user import User


class Identity(NamedTuple):
    email: str
    # Only populated when a role check loaded the user record
    role: Optional[str] = None


def identity_from_token(settings: Settings, token: Optional[str]) -> Identity:
    if not token:
        raise Unauthenticated("Unauthorized access")
    try:
        payload = decode_access_token(settings, token)
    except jwt.PyJWTError:
        raise Unauthenticated("Unauthorized access")
    email = payload.get("email") or payload.get("sub")
    if not email or not isinstance(email, str):
        raise Unauthenticated("Unauthorized access")
    return Identity(email=email.lower())


def authorize(db: Session, settings: Settings, token: Optional[str], *roles: str) -> Identity:
    """Validate the credential and, if roles are given, require one of them.

    Banned users and users flagged as fraud never pass a role check, whatever
    the requested role is.
    """
    identity = identity_from_token(settings, token)
    if not roles:
        return identity
    user = db.query(User).filter(User.email == identity.email).first()
    if not user or user.status == "banned" or user.role == "fraud":
        raise Forbidden("forbidden access")
    if user.role not in roles:
        raise Forbidden("forbidden access")
    return Identity(email=user.email, role=user.role)
