from sqlalchemy import func
from sqlalchemy.orm import Session

from routelynk.models.booking import Booking
from routelynk.models.payment import Payment
from routelynk.models.ticket import Ticket


def get_vendor_stats(db: Session, vendor_email: str) -> dict:
    revenue, sold = (
        db.query(func.coalesce(func.sum(Payment.price), 0), func.coalesce(func.sum(Payment.quantity), 0))
        .filter(Payment.vendor_email == vendor_email)
        .one()
    )
    added = db.query(func.count(Ticket.id)).filter(Ticket.vendor_email == vendor_email).scalar() or 0
    pending = (
        db.query(func.count(Booking.id))
        .filter(Booking.vendor_email == vendor_email, Booking.status == "pending")
        .scalar()
        or 0
    )
    return {
        "total_revenue": float(revenue or 0),
        "total_sold": int(sold or 0),
        "total_added": int(added),
        "pending_requests": int(pending),
    }
