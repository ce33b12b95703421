from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from routelynk.schemas.booking import BookingOut
from routelynk.schemas.ticket import TicketOut

class PaymentIntentIn(BaseModel):
    price: float = Field(..., gt=0)

class PaymentIntentOut(BaseModel):
    client_secret: str

class PaymentCreate(BaseModel):
    booking_id: int
    ticket_id: int
    quantity: int = Field(..., ge=1)
    price: float = Field(..., gt=0)
    transaction_id: str = Field(..., min_length=1, max_length=255)

class PaymentOut(BaseModel):
    id: int
    booking_id: Optional[int] = None
    ticket_id: Optional[int] = None
    user_email: str
    vendor_email: str
    price: float
    quantity: int
    transaction_id: str
    date: datetime

    class Config:
        from_attributes = True

class PaymentResult(BaseModel):
    payment: PaymentOut
    booking: BookingOut
    ticket: Optional[TicketOut] = None
    replayed: bool = False

class VendorStats(BaseModel):
    total_revenue: float
    total_sold: int
    total_added: int
    pending_requests: int
