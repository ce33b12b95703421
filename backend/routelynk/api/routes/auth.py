from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from routelynk.api.deps import get_settings
from routelynk.core.config import Settings
from routelynk.db.session import get_db
from routelynk.schemas.auth import IdentityTokenIn, Token
from routelynk.services import users as users_service

router = APIRouter()

@router.post("/jwt", response_model=Token)
def issue_token(payload: IdentityTokenIn, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    """Exchange an identity-provider token for an API access token.

    Returns 401 if the identity token is invalid or expired,
    403 if the account is banned.
    """
    access_token = users_service.login_with_identity_token(db, settings, payload.id_token)
    return {"access_token": access_token, "token_type": "bearer"}
