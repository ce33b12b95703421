from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from routelynk.api.deps import get_current_identity, require_roles
from routelynk.db.session import get_db
from routelynk.schemas.booking import BookingCreate, BookingOut, BookingStatusUpdate, BookingTicketSummary, BookingWithTicket
from routelynk.services import bookings as bookings_service
from routelynk.services.guard import Identity

router = APIRouter()


def _serialize(rows: list[dict]) -> list[BookingWithTicket]:
    out = []
    for row in rows:
        ticket = row["ticket"]
        out.append(BookingWithTicket(
            **BookingOut.model_validate(row["booking"]).model_dump(),
            ticket=BookingTicketSummary.model_validate(ticket) if ticket is not None else None,
        ))
    return out


@router.post("", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
def create_booking(body: BookingCreate, db: Session = Depends(get_db), identity: Identity = Depends(get_current_identity)):
    return bookings_service.create_booking(db, identity, body.ticket_id, body.quantity)


@router.get("/mine", response_model=List[BookingWithTicket])
def my_bookings(db: Session = Depends(get_db), identity: Identity = Depends(get_current_identity)):
    return _serialize(bookings_service.list_for_user(db, identity.email))


@router.get("/requests", response_model=List[BookingWithTicket])
def booking_requests(db: Session = Depends(get_db), vendor: Identity = Depends(require_roles("vendor"))):
    return _serialize(bookings_service.list_for_vendor(db, vendor.email))


@router.patch("/status/{booking_id}", response_model=BookingOut)
def decide_booking(
    booking_id: int,
    body: BookingStatusUpdate,
    db: Session = Depends(get_db),
    vendor: Identity = Depends(require_roles("vendor")),
):
    return bookings_service.set_booking_status(db, vendor, booking_id, body.status)
