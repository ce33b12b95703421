from datetime import date, datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

class TicketCreate(BaseModel):
    """Vendor draft. status, is_advertised and created_at are not accepted from clients."""
    title: str = Field(..., min_length=1, max_length=255)
    from_location: str = Field(..., min_length=1, max_length=128)
    to_location: str = Field(..., min_length=1, max_length=128)
    transport_type: str = Field(..., min_length=1, max_length=32)
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=0)
    departure_date: date
    departure_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    description: Optional[str] = None
    perks: List[str] = Field(default_factory=list)
    image: Optional[str] = None

    @field_validator("title", "from_location", "to_location", "transport_type")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

class TicketUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    from_location: Optional[str] = Field(None, min_length=1, max_length=128)
    to_location: Optional[str] = Field(None, min_length=1, max_length=128)
    transport_type: Optional[str] = Field(None, min_length=1, max_length=32)
    price: Optional[float] = Field(None, ge=0)
    quantity: Optional[int] = Field(None, ge=0)
    departure_date: Optional[date] = None
    departure_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    description: Optional[str] = None
    perks: Optional[List[str]] = None
    image: Optional[str] = None

class TicketOut(BaseModel):
    id: int
    vendor_email: str
    title: str
    from_location: str
    to_location: str
    transport_type: str
    price: float
    quantity: int
    departure_date: date
    departure_time: Optional[str] = None
    description: Optional[str] = None
    perks: List[str] = Field(default_factory=list)
    image: Optional[str] = None
    status: str
    is_advertised: bool
    created_at: datetime

    class Config:
        from_attributes = True

class TicketPage(BaseModel):
    items: List[TicketOut]
    total: int
    page: int
    page_size: int
    total_pages: int

class StatusUpdate(BaseModel):
    status: Literal["approved", "rejected"]

class AdvertiseUpdate(BaseModel):
    is_advertised: bool

class AdvertiseResult(BaseModel):
    limit_reached: bool
    ticket: TicketOut
