from sqlalchemy import Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from routelynk.models.base import Base

class AdvertisementSlot(Base):
    """Fixed pool of promotional slots; a ticket is advertised while it holds one."""
    __tablename__ = "advertisement_slots"

    slot: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    ticket_id: Mapped[int | None] = mapped_column(ForeignKey("tickets.id", ondelete="SET NULL"), unique=True, nullable=True)
