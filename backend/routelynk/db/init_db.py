import logging

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from routelynk.models import user, ticket, booking, payment, advertisement_slot  # noqa: F401
from routelynk.models.base import Base
from routelynk.models.advertisement_slot import AdvertisementSlot
from routelynk.models.user import User
from routelynk.core.config import Settings

logger = logging.getLogger(__name__)

def create_tables(engine: Engine):
    Base.metadata.create_all(bind=engine)

def ensure_advertisement_slots(db: Session, limit: int):
    """Make sure slots 1..limit exist. Idempotent; never removes a held slot."""
    existing = {s for (s,) in db.query(AdvertisementSlot.slot).all()}
    missing = [n for n in range(1, limit + 1) if n not in existing]
    if missing:
        db.add_all([AdvertisementSlot(slot=n, ticket_id=None) for n in missing])
        db.commit()
        logger.info("Created %d advertisement slot(s)", len(missing))

def seed_demo_data(session_factory: sessionmaker, settings: Settings):
    db = session_factory()
    try:
        ensure_advertisement_slots(db, settings.advertise_limit)
        # Seed default admin (idempotent)
        if settings.seed_admin_email:
            admin_email = settings.seed_admin_email.lower()
            admin = db.query(User).filter(User.email == admin_email).first()
            if not admin:
                db.add(User(email=admin_email, name="Admin", role="admin", status="active"))
                db.commit()
                logger.info("Seeded admin user %s", admin_email)
    finally:
        db.close()
