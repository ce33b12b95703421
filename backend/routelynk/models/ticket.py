from sqlalchemy import String, Integer, Date, DateTime, Boolean, Numeric, Text, JSON, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import date, datetime, timezone

from routelynk.models.base import Base

TICKET_STATUSES = ("pending", "approved", "rejected")

class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_tickets_quantity_non_negative"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    vendor_email: Mapped[str] = mapped_column(String(255), index=True)
    title: Mapped[str] = mapped_column(String(255))
    from_location: Mapped[str] = mapped_column(String(128), index=True)
    to_location: Mapped[str] = mapped_column(String(128), index=True)
    transport_type: Mapped[str] = mapped_column(String(32), index=True)  # bus | train | launch | plane ...
    price: Mapped[float] = mapped_column(Numeric(10, 2))
    # Remaining stock
    quantity: Mapped[int] = mapped_column(Integer)
    departure_date: Mapped[date] = mapped_column(Date, index=True)
    departure_time: Mapped[str | None] = mapped_column(String(8), nullable=True)  # HH:MM
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    perks: Mapped[list] = mapped_column(JSON, default=list)
    image: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="pending", index=True)
    is_advertised: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
