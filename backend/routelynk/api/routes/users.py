from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from routelynk.api.deps import get_current_identity, require_roles
from routelynk.core.errors import Forbidden, NotFound
from routelynk.db.session import get_db
from routelynk.schemas.user import FraudResult, RoleUpdate, StatusUpdate, UserOut, UserPage, UserProfileIn
from routelynk.services import users as users_service
from routelynk.services.guard import Identity

router = APIRouter()

admin_only = require_roles("admin")


@router.get("", response_model=UserPage)
def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    _admin: Identity = Depends(admin_only),
):
    return users_service.list_users(db, page, page_size, search)


@router.patch("/role/{user_id}", response_model=UserOut)
def change_role(user_id: int, body: RoleUpdate, db: Session = Depends(get_db), _admin: Identity = Depends(admin_only)):
    return users_service.set_role(db, user_id, body.role)


@router.patch("/fraud/{user_id}", response_model=FraudResult)
def mark_fraud(user_id: int, db: Session = Depends(get_db), _admin: Identity = Depends(admin_only)):
    return users_service.mark_fraud(db, user_id)


@router.patch("/status/{user_id}", response_model=UserOut)
def change_status(user_id: int, body: StatusUpdate, db: Session = Depends(get_db), _admin: Identity = Depends(admin_only)):
    return users_service.set_status(db, user_id, body.status)


@router.put("/{email}", response_model=UserOut)
def upsert_user(email: str, body: UserProfileIn, db: Session = Depends(get_db), identity: Identity = Depends(get_current_identity)):
    if email.lower() != identity.email:
        raise Forbidden("Cannot edit another user's profile")
    return users_service.upsert_profile(db, identity.email, body.name, body.image)


@router.get("/{email}", response_model=dict)
def get_user_role(email: str, db: Session = Depends(get_db), _identity: Identity = Depends(get_current_identity)):
    user = users_service.get_by_email(db, email)
    if not user:
        raise NotFound("User not found")
    return {"email": user.email, "role": user.role}
