import logging
from datetime import datetime, timezone
from typing import Optional

import jwt
from sqlalchemy.orm import Session

from routelynk.core.config import Settings
from routelynk.core.errors import Forbidden, InvalidInput, NotFound, Unauthenticated
from routelynk.core.security import create_access_token, decode_identity_token
from routelynk.models.user import User
from routelynk.services import catalog

logger = logging.getLogger(__name__)


def get_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower()).first()


def _initial_role(settings: Settings, email: str) -> str:
    if email in settings.admin_emails:
        return "admin"
    if email in settings.vendor_emails:
        return "vendor"
    return "user"


def login_with_identity_token(db: Session, settings: Settings, id_token: str) -> str:
    """Exchange an identity-provider token for an access token.

    The user record is created on first login. Banned users get 403.
    """
    try:
        claims = decode_identity_token(settings, id_token)
    except jwt.PyJWTError:
        raise Unauthenticated("Invalid identity token")
    email = claims.get("email")
    if not email or not isinstance(email, str):
        raise Unauthenticated("Identity token has no email")
    email = email.lower().strip()
    now = datetime.now(timezone.utc)
    user = get_by_email(db, email)
    if not user:
        user = User(
            email=email,
            name=claims.get("name"),
            image=claims.get("picture"),
            role=_initial_role(settings, email),
            status="active",
            created_at=now,
        )
        db.add(user)
        logger.info("Created user %s with role %s", email, user.role)
    if user.status == "banned":
        db.rollback()
        raise Forbidden("User is banned")
    user.last_login = now
    db.commit()
    return create_access_token(settings, email)


def upsert_profile(db: Session, email: str, name: Optional[str], image: Optional[str]) -> User:
    email = email.lower()
    now = datetime.now(timezone.utc)
    user = get_by_email(db, email)
    if not user:
        user = User(email=email, role="user", status="active", created_at=now)
        db.add(user)
    if name is not None:
        user.name = name
    if image is not None:
        user.image = image
    user.last_login = now
    db.commit()
    db.refresh(user)
    return user


def list_users(db: Session, page: int, page_size: int, search: Optional[str] = None) -> dict:
    page = max(page, 1)
    page_size = max(1, min(page_size, 200))
    q = db.query(User)
    if search:
        s = search.strip()
        q = q.filter(User.email.icontains(s, autoescape=True) | User.name.icontains(s, autoescape=True))
    total = q.count()
    users = q.order_by(User.id.asc()).offset((page - 1) * page_size).limit(page_size).all()
    pages = (total + page_size - 1) // page_size
    return {"items": users, "total": total, "page": page, "page_size": page_size, "total_pages": pages}


def _get(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def set_role(db: Session, user_id: int, role: str) -> User:
    user = _get(db, user_id)
    if role not in ("user", "vendor", "admin"):
        raise InvalidInput("Invalid role")
    previous = user.role
    user.role = role
    db.commit()
    db.refresh(user)
    logger.info("Role of %s changed %s -> %s", user.email, previous, role)
    return user


def set_status(db: Session, user_id: int, status: str) -> User:
    user = _get(db, user_id)
    if status not in ("active", "banned"):
        raise InvalidInput("Invalid status")
    user.status = status
    db.commit()
    db.refresh(user)
    logger.info("Status of %s set to %s", user.email, status)
    return user


def mark_fraud(db: Session, user_id: int) -> dict:
    """Flag a vendor as fraud and reject every ticket they own.

    Both writes share one transaction: either the role change and the ticket
    rejections are all visible, or none of them are.
    """
    user = _get(db, user_id)
    if user.role not in ("vendor", "fraud"):
        raise InvalidInput("Only vendors can be marked as fraud")
    try:
        user.role = "fraud"
        db.flush()
        rejected = catalog.reject_vendor_tickets(db, user.email)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    logger.warning("Vendor %s marked as fraud; %d ticket(s) rejected", user.email, rejected)
    return {"user": user, "rejected_tickets": rejected}

