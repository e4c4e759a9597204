# pricehawk/crud.py
"""Store operations for listings, price history and alerts.

Every helper takes the SQLAlchemy session as its first argument. Helpers used
inside the ingest workflow (`update_listing_price`, `touch_listing`,
`append_history`, `deactivate_alert`) only flush; the caller owns the commit
so a price update and its history entry land together.
"""
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Dict, Any, List, Optional
from .models import Alert, Listing, PriceHistory, LISTING_ACTIVE

def _now():
    return datetime.now(timezone.utc)

def get_listing(db: Session, listing_id: int) -> Optional[Listing]:
    return db.get(Listing, listing_id)

def get_listing_by_url(db: Session, url: str) -> Optional[Listing]:
    return db.query(Listing).filter(Listing.url == url).first()

def create_listing(db: Session, data: Dict[str, Any]) -> Listing:
    obj = Listing(**data)
    db.add(obj)
    db.flush()
    # every listing starts with its initial observation
    db.add(PriceHistory(listing_id=obj.id, price=obj.price, recorded_at=_now()))
    db.commit()
    db.refresh(obj)
    return obj

def list_listings(db: Session, skip: int = 0, limit: int = 50, status: Optional[str] = LISTING_ACTIVE):
    q = db.query(Listing)
    if status:
        q = q.filter(Listing.status == status)
    return q.order_by(Listing.id.desc()).offset(skip).limit(limit).all()

def list_active_listings(db: Session) -> List[Listing]:
    return db.query(Listing).filter(Listing.status == LISTING_ACTIVE).order_by(Listing.id).all()

def delete_listing(db: Session, listing_id: int) -> bool:
    obj = get_listing(db, listing_id)
    if not obj:
        return False
    db.delete(obj)
    db.commit()
    return True

def update_listing_price(db: Session, listing_id: int, price: Decimal, checked_at: datetime):
    db.query(Listing).filter(Listing.id == listing_id).update(
        {Listing.price: price, Listing.last_checked_at: checked_at},
        synchronize_session="fetch",
    )
    db.flush()

def touch_listing(db: Session, listing_id: int, checked_at: datetime):
    db.query(Listing).filter(Listing.id == listing_id).update(
        {Listing.last_checked_at: checked_at},
        synchronize_session="fetch",
    )
    db.flush()

def append_history(db: Session, listing_id: int, price: Decimal, recorded_at: datetime) -> PriceHistory:
    entry = PriceHistory(listing_id=listing_id, price=price, recorded_at=recorded_at)
    db.add(entry)
    db.flush()
    return entry

def get_price_history(db: Session, listing_id: int) -> List[PriceHistory]:
    return (
        db.query(PriceHistory)
        .filter(PriceHistory.listing_id == listing_id)
        .order_by(PriceHistory.recorded_at.asc(), PriceHistory.id.asc())
        .all()
    )

def create_alert(db: Session, data: Dict[str, Any]) -> Alert:
    obj = Alert(**data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def list_alerts(db: Session, active_only: bool = True) -> List[Alert]:
    q = db.query(Alert).join(Listing, Alert.listing_id == Listing.id)
    if active_only:
        q = q.filter(Alert.is_active.is_(True))
    return q.order_by(Alert.created_at.desc(), Alert.id.desc()).all()

def get_active_alerts(db: Session, listing_id: int) -> List[Alert]:
    return (
        db.query(Alert)
        .filter(Alert.listing_id == listing_id, Alert.is_active.is_(True))
        .order_by(Alert.id)
        .all()
    )

def deactivate_alert(db: Session, alert_id: int, triggered_at: datetime) -> bool:
    # guarded on is_active so an alert can only ever fire once
    updated = (
        db.query(Alert)
        .filter(Alert.id == alert_id, Alert.is_active.is_(True))
        .update({Alert.is_active: False, Alert.triggered_at: triggered_at}, synchronize_session="fetch")
    )
    db.flush()
    return updated == 1

def get_stats(db: Session) -> Dict[str, Any]:
    total_listings = db.query(func.count(Listing.id)).filter(Listing.status == LISTING_ACTIVE).scalar()
    total_alerts = db.query(func.count(Alert.id)).filter(Alert.is_active.is_(True)).scalar()
    avg = db.query(func.avg(Listing.price)).filter(Listing.status == LISTING_ACTIVE).scalar()
    return {
        "total_listings": int(total_listings or 0),
        "total_alerts": int(total_alerts or 0),
        "average_price": f"{float(avg or 0):.2f}",
    }
