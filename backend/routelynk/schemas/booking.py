from datetime import date, datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

class BookingCreate(BaseModel):
    ticket_id: int
    quantity: int = Field(..., ge=1)

class BookingStatusUpdate(BaseModel):
    status: Literal["accepted", "rejected"]

class BookingOut(BaseModel):
    id: int
    ticket_id: Optional[int] = None
    user_email: str
    vendor_email: str
    quantity: int
    status: str
    transaction_id: Optional[str] = None
    booked_at: datetime

    class Config:
        from_attributes = True

class BookingTicketSummary(BaseModel):
    id: int
    title: str
    from_location: str
    to_location: str
    departure_date: date
    departure_time: Optional[str] = None
    price: float
    image: Optional[str] = None

    class Config:
        from_attributes = True

class BookingWithTicket(BookingOut):
    ticket: Optional[BookingTicketSummary] = None
