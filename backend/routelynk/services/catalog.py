"""Ticket catalog: vendor listings, moderation and public search.

Every write that depends on current state (the edit lock on rejected tickets,
the advertisement cap) is a single conditional UPDATE, never a read followed
by a separate write.
"""
import logging
import math
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from routelynk.core.errors import Forbidden, InvalidInput, NotFound
from routelynk.models.advertisement_slot import AdvertisementSlot
from routelynk.models.ticket import Ticket
from routelynk.schemas.ticket import TicketCreate, TicketUpdate
from routelynk.services.guard import Identity

logger = logging.getLogger(__name__)

LATEST_LIMIT = 6


def create_ticket(db: Session, vendor: Identity, draft: TicketCreate) -> Ticket:
    ticket = Ticket(
        vendor_email=vendor.email,
        title=draft.title,
        from_location=draft.from_location,
        to_location=draft.to_location,
        transport_type=draft.transport_type,
        price=draft.price,
        quantity=draft.quantity,
        departure_date=draft.departure_date,
        departure_time=draft.departure_time,
        description=draft.description,
        perks=list(draft.perks),
        image=draft.image,
        # Server controlled
        status="pending",
        is_advertised=False,
        created_at=datetime.now(timezone.utc),
    )
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    return ticket


def get_ticket(db: Session, ticket_id: int) -> Ticket:
    ticket = db.get(Ticket, ticket_id)
    if not ticket:
        raise NotFound("Ticket not found")
    return ticket


def get_public_ticket(db: Session, ticket_id: int) -> Ticket:
    ticket = db.get(Ticket, ticket_id)
    if not ticket or ticket.status != "approved":
        raise NotFound("Ticket not found")
    return ticket


def update_ticket(db: Session, vendor: Identity, ticket_id: int, patch: TicketUpdate) -> Ticket:
    changes = patch.model_dump(exclude_unset=True)
    # Explicit nulls only make sense for optional columns
    for key in ("title", "from_location", "to_location", "transport_type", "price", "quantity", "departure_date", "perks"):
        if key in changes and changes[key] is None:
            raise InvalidInput(f"{key} cannot be null")
    if not changes:
        ticket = get_ticket(db, ticket_id)
        _check_editable(ticket, vendor)
        return ticket
    result = db.execute(
        update(Ticket)
        .where(Ticket.id == ticket_id, Ticket.vendor_email == vendor.email, Ticket.status != "rejected")
        .values(**changes)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        # Work out why the conditional update matched nothing
        _check_editable(get_ticket(db, ticket_id), vendor)
        raise NotFound("Ticket not found")
    db.commit()
    ticket = get_ticket(db, ticket_id)
    db.refresh(ticket)
    return ticket


def _check_editable(ticket: Ticket, vendor: Identity):
    if ticket.vendor_email != vendor.email:
        raise Forbidden("Not your ticket")
    if ticket.status == "rejected":
        raise Forbidden("Rejected tickets cannot be edited")


def delete_ticket(db: Session, actor: Identity, ticket_id: int):
    ticket = get_ticket(db, ticket_id)
    if actor.role != "admin" and ticket.vendor_email != actor.email:
        raise Forbidden("Not your ticket")
    _release_slot(db, ticket_id)
    db.delete(ticket)
    db.commit()


def set_status(db: Session, ticket_id: int, status: str) -> Ticket:
    if status not in ("approved", "rejected"):
        raise InvalidInput("Invalid status")
    ticket = get_ticket(db, ticket_id)
    values: dict = {"status": status}
    if status == "rejected":
        _release_slot(db, ticket_id)
        values["is_advertised"] = False
    db.execute(update(Ticket).where(Ticket.id == ticket_id).values(**values).execution_options(synchronize_session=False))
    db.commit()
    db.refresh(ticket)
    return ticket


def set_advertised(db: Session, ticket_id: int, advertised: bool) -> tuple[Ticket, bool]:
    """Toggle promotion of a ticket. Returns (ticket, limit_reached).

    Advertising claims one row of the fixed ``advertisement_slots`` pool with a
    conditional update, so the cap holds under concurrent requests.
    """
    ticket = get_ticket(db, ticket_id)
    if not advertised:
        _release_slot(db, ticket_id)
        db.execute(update(Ticket).where(Ticket.id == ticket_id).values(is_advertised=False).execution_options(synchronize_session=False))
        db.commit()
        db.refresh(ticket)
        return ticket, False
    if ticket.status != "approved":
        raise InvalidInput("Only approved tickets can be advertised")
    try:
        claimed = _claim_slot(db, ticket_id)
        if not claimed:
            db.rollback()
            logger.info("Advertisement limit reached, ticket %s not advertised", ticket_id)
            db.refresh(ticket)
            return ticket, True
        marked = db.execute(
            update(Ticket)
            .where(Ticket.id == ticket_id, Ticket.status == "approved")
            .values(is_advertised=True)
            .execution_options(synchronize_session=False)
        )
        if marked.rowcount != 1:
            # Rejected or deleted since the check above; give the slot back
            db.rollback()
            raise InvalidInput("Only approved tickets can be advertised")
        db.commit()
    except IntegrityError:
        # A concurrent request advertised the same ticket first
        db.rollback()
    db.refresh(ticket)
    return ticket, False


def _claim_slot(db: Session, ticket_id: int) -> bool:
    held = db.query(AdvertisementSlot.slot).filter(AdvertisementSlot.ticket_id == ticket_id).first()
    if held:
        return True
    free = db.query(AdvertisementSlot.slot).filter(AdvertisementSlot.ticket_id.is_(None)).order_by(AdvertisementSlot.slot).all()
    for (slot,) in free:
        result = db.execute(
            update(AdvertisementSlot)
            .where(AdvertisementSlot.slot == slot, AdvertisementSlot.ticket_id.is_(None))
            .values(ticket_id=ticket_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return True
    return False


def _release_slot(db: Session, ticket_id: int):
    db.execute(
        update(AdvertisementSlot)
        .where(AdvertisementSlot.ticket_id == ticket_id)
        .values(ticket_id=None)
        .execution_options(synchronize_session=False)
    )


def reject_vendor_tickets(db: Session, vendor_email: str) -> int:
    """Reject every ticket of a vendor inside the caller's transaction (no commit)."""
    ids = [tid for (tid,) in db.query(Ticket.id).filter(Ticket.vendor_email == vendor_email).all()]
    if not ids:
        return 0
    db.execute(
        update(AdvertisementSlot)
        .where(AdvertisementSlot.ticket_id.in_(ids))
        .values(ticket_id=None)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(
        update(Ticket)
        .where(Ticket.vendor_email == vendor_email)
        .values(status="rejected", is_advertised=False)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def _page(q, page: int, page_size: int) -> dict:
    total = q.count()
    items = q.offset((page - 1) * page_size).limit(page_size).all()
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size) if total else 0,
    }


def search(
    db: Session,
    from_location: Optional[str] = None,
    to_location: Optional[str] = None,
    transport_type: Optional[str] = None,
    sort: Optional[str] = None,
    page: int = 1,
    page_size: int = 6,
) -> dict:
    """Search approved tickets.

    Location filters are case-insensitive substring matches. ``sort`` is
    ``asc``/``desc`` on price; anything else orders by departure date.
    """
    q = db.query(Ticket).filter(Ticket.status == "approved")
    if from_location:
        q = q.filter(Ticket.from_location.icontains(from_location.strip(), autoescape=True))
    if to_location:
        q = q.filter(Ticket.to_location.icontains(to_location.strip(), autoescape=True))
    if transport_type:
        q = q.filter(func.lower(Ticket.transport_type) == transport_type.strip().lower())
    if sort == "asc":
        q = q.order_by(Ticket.price.asc(), Ticket.id.asc())
    elif sort == "desc":
        q = q.order_by(Ticket.price.desc(), Ticket.id.asc())
    else:
        q = q.order_by(Ticket.departure_date.asc(), Ticket.id.asc())
    return _page(q, page, page_size)


def list_advertised(db: Session) -> list[Ticket]:
    return (
        db.query(Ticket)
        .filter(Ticket.status == "approved", Ticket.is_advertised.is_(True))
        .order_by(Ticket.created_at.desc())
        .all()
    )


def list_latest(db: Session, limit: int = LATEST_LIMIT) -> list[Ticket]:
    return (
        db.query(Ticket)
        .filter(Ticket.status == "approved")
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
        .limit(limit)
        .all()
    )


def list_for_vendor(db: Session, vendor_email: str) -> list[Ticket]:
    return db.query(Ticket).filter(Ticket.vendor_email == vendor_email).order_by(Ticket.created_at.desc()).all()


def list_all(db: Session, page: int, page_size: int, status: Optional[str] = None) -> dict:
    q = db.query(Ticket)
    if status:
        q = q.filter(Ticket.status == status)
    return _page(q.order_by(Ticket.created_at.desc(), Ticket.id.desc()), page, page_size)
