from typing import List, Literal, Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from routelynk.api.deps import require_roles
from routelynk.db.session import get_db
from routelynk.schemas.ticket import (
    AdvertiseResult,
    AdvertiseUpdate,
    StatusUpdate,
    TicketCreate,
    TicketOut,
    TicketPage,
    TicketUpdate,
)
from routelynk.services import catalog
from routelynk.services.guard import Identity

router = APIRouter()

vendor_only = require_roles("vendor")
admin_only = require_roles("admin")
vendor_or_admin = require_roles("vendor", "admin")


@router.get("", response_model=TicketPage)
def search_tickets(
    request: Request,
    from_location: Optional[str] = Query(None, description="Case-insensitive match on origin"),
    to_location: Optional[str] = Query(None, description="Case-insensitive match on destination"),
    transport_type: Optional[str] = None,
    sort: Optional[Literal["asc", "desc", "none"]] = Query(None, description="Price order; none or absent orders by departure date"),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1, le=100),
    db: Session = Depends(get_db),
):
    size = page_size or request.app.state.settings.default_page_size
    return catalog.search(db, from_location, to_location, transport_type, sort, page, size)


@router.get("/advertised", response_model=List[TicketOut])
def advertised_tickets(db: Session = Depends(get_db)):
    return catalog.list_advertised(db)


@router.get("/latest", response_model=List[TicketOut])
def latest_tickets(db: Session = Depends(get_db)):
    return catalog.list_latest(db)


@router.get("/mine", response_model=List[TicketOut])
def my_tickets(db: Session = Depends(get_db), vendor: Identity = Depends(vendor_only)):
    return catalog.list_for_vendor(db, vendor.email)


@router.get("/all", response_model=TicketPage)
def all_tickets(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(pending|approved|rejected)$"),
    db: Session = Depends(get_db),
    _admin: Identity = Depends(admin_only),
):
    return catalog.list_all(db, page, page_size, status_filter)


@router.patch("/status/{ticket_id}", response_model=TicketOut)
def moderate_ticket(ticket_id: int, body: StatusUpdate, db: Session = Depends(get_db), _admin: Identity = Depends(admin_only)):
    return catalog.set_status(db, ticket_id, body.status)


@router.patch("/advertise/{ticket_id}", response_model=AdvertiseResult)
def advertise_ticket(ticket_id: int, body: AdvertiseUpdate, db: Session = Depends(get_db), _admin: Identity = Depends(admin_only)):
    ticket, limit_reached = catalog.set_advertised(db, ticket_id, body.is_advertised)
    return {"limit_reached": limit_reached, "ticket": ticket}


@router.get("/{ticket_id}", response_model=TicketOut)
def ticket_detail(ticket_id: int, db: Session = Depends(get_db)):
    return catalog.get_public_ticket(db, ticket_id)


@router.post("", response_model=TicketOut, status_code=status.HTTP_201_CREATED)
def create_ticket(draft: TicketCreate, db: Session = Depends(get_db), vendor: Identity = Depends(vendor_only)):
    return catalog.create_ticket(db, vendor, draft)


@router.patch("/{ticket_id}", response_model=TicketOut)
def update_ticket(ticket_id: int, patch: TicketUpdate, db: Session = Depends(get_db), vendor: Identity = Depends(vendor_only)):
    return catalog.update_ticket(db, vendor, ticket_id, patch)


@router.delete("/{ticket_id}")
def delete_ticket(ticket_id: int, db: Session = Depends(get_db), actor: Identity = Depends(vendor_or_admin)):
    catalog.delete_ticket(db, actor, ticket_id)
    return {"status": "deleted"}
