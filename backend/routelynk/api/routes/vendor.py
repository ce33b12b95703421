from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from routelynk.api.deps import require_roles
from routelynk.core.errors import Forbidden
from routelynk.db.session import get_db
from routelynk.schemas.payment import VendorStats
from routelynk.services import stats
from routelynk.services.guard import Identity

router = APIRouter()


@router.get("/{email}", response_model=VendorStats)
def vendor_stats(email: str, db: Session = Depends(get_db), vendor: Identity = Depends(require_roles("vendor"))):
    if email.lower() != vendor.email:
        raise Forbidden("forbidden access")
    return stats.get_vendor_stats(db, vendor.email)
