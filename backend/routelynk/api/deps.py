from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from routelynk.core.config import Settings
from routelynk.db.session import get_db
from routelynk.services.gateway import PaymentGateway
from routelynk.services.guard import Identity, authorize, identity_from_token

# auto_error=False so a missing header reaches the guard and becomes a 401
bearer_scheme = HTTPBearer(auto_error=False)

def get_settings(request: Request) -> Settings:
    return request.app.state.settings

def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway

def get_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Optional[str]:
    return credentials.credentials if credentials else None

def get_current_identity(token: Optional[str] = Depends(get_token), settings: Settings = Depends(get_settings)) -> Identity:
    """Token-only check: any valid credential passes, no store lookup."""
    return identity_from_token(settings, token)

def require_roles(*allowed: str):
    def checker(
        token: Optional[str] = Depends(get_token),
        db: Session = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ) -> Identity:
        return authorize(db, settings, token, *allowed)
    return checker
