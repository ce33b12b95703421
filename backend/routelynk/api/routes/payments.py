from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from routelynk.api.deps import get_current_identity, get_gateway, get_settings
from routelynk.core.config import Settings
from routelynk.db.session import get_db
from routelynk.schemas.payment import PaymentCreate, PaymentIntentIn, PaymentIntentOut, PaymentOut, PaymentResult
from routelynk.services import payments as payments_service
from routelynk.services.gateway import PaymentGateway
from routelynk.services.guard import Identity

router = APIRouter()


@router.post("/create-payment-intent", response_model=PaymentIntentOut)
def create_payment_intent(
    body: PaymentIntentIn,
    gateway: PaymentGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
    _identity: Identity = Depends(get_current_identity),
):
    return {"client_secret": payments_service.create_payment_intent(gateway, settings, body.price)}


@router.post("/payments", response_model=PaymentResult)
def record_payment(
    body: PaymentCreate,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
    identity: Identity = Depends(get_current_identity),
):
    """Record a completed charge: payment row, booking -> paid, stock decrement.

    Replaying a transaction id that is already recorded returns the stored
    result with ``replayed: true``.
    """
    return payments_service.record_payment(db, gateway, settings, identity, body)


@router.get("/payments/mine", response_model=List[PaymentOut])
def my_payments(db: Session = Depends(get_db), identity: Identity = Depends(get_current_identity)):
    return payments_service.list_for_user(db, identity.email)
