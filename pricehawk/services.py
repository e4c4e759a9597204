# pricehawk/services.py
"""Price observation ingest and alert evaluation.

One ingest-evaluate cycle runs under a lock keyed by listing id, and the
price update plus history append are committed together. Concurrent checks
of the same listing therefore see each other's writes and a price change is
recorded, and its alerts fired, once.
"""
import threading
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from . import crud
from .errors import NotFound, NotifyFailure, StoreFailure
from .models import Alert
from .notifier import BaseNotifier
from .utils import logger, to_price


class ListingLocks:
    """Hands out one lock per listing id.

    Locks are held weakly: an entry disappears once no check is using it.
    """

    def __init__(self):
        self._locks = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def get(self, listing_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(listing_id)
            if lock is None:
                lock = self._locks[listing_id] = threading.Lock()
            return lock

    def __len__(self):
        with self._guard:
            return len(self._locks)


listing_locks = ListingLocks()


@dataclass
class IngestResult:
    listing_id: int
    changed: bool
    previous_price: Decimal
    current_price: Decimal
    fired: List[Alert] = field(default_factory=list)


def _now():
    return datetime.now(timezone.utc)


def ingest_observation(db: Session, listing_id: int, observed_price, notifier: BaseNotifier) -> IngestResult:
    """Record an observed price for a listing and fire alerts on a change.

    The observation is rounded to cents before it is compared with the stored
    price, so a difference below one cent (100.004 against 100.00) counts as
    unchanged: no history entry is appended and alerts are not evaluated.
    Raises NotFound, ValidationError or StoreFailure.
    """
    price = to_price(observed_price)
    with listing_locks.get(listing_id):
        try:
            listing = crud.get_listing(db, listing_id)
            if listing is None:
                raise NotFound(f"listing {listing_id} not found")
            # re-read so a check that just finished under the lock is visible
            db.refresh(listing)
            previous = Decimal(listing.price)
            checked_at = _now()
            changed = price != previous
            if changed:
                crud.update_listing_price(db, listing_id, price, checked_at)
                crud.append_history(db, listing_id, price, checked_at)
            else:
                crud.touch_listing(db, listing_id, checked_at)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreFailure(f"failed to record price for listing {listing_id}: {e}") from e

        result = IngestResult(listing_id, changed, previous, price)
        if changed:
            logger.info("Listing %s price changed %s -> %s", listing_id, previous, price)
            result.fired = evaluate_alerts(db, listing_id, price, notifier)
        else:
            logger.debug("Listing %s price unchanged at %s", listing_id, price)
        return result


def _deliver(notifier: BaseNotifier, alert: Alert, current_price) -> None:
    try:
        ok = notifier.notify(alert, current_price)
    except Exception as e:
        raise NotifyFailure(f"notifier raised for alert {alert.id}: {e}") from e
    if not ok:
        raise NotifyFailure(f"notifier reported failure for alert {alert.id}")


def evaluate_alerts(db: Session, listing_id: int, current_price, notifier: BaseNotifier) -> List[Alert]:
    """Fire every active alert whose target is at or above `current_price`.

    A fired alert is deactivated even when delivery fails; notifications are
    at-most-once and never retried. Returns the fired alerts.
    """
    price = to_price(current_price)
    try:
        alerts = crud.get_active_alerts(db, listing_id)
    except SQLAlchemyError as e:
        raise StoreFailure(f"failed to load alerts for listing {listing_id}: {e}") from e

    fired = []
    for alert in alerts:
        if price > Decimal(alert.target_price):
            continue
        try:
            _deliver(notifier, alert, price)
        except NotifyFailure as e:
            logger.warning("%s", e)
        try:
            if crud.deactivate_alert(db, alert.id, _now()):
                db.commit()
                db.refresh(alert)
                fired.append(alert)
                logger.info("Alert %s fired for listing %s at %s (target %s)",
                            alert.id, listing_id, price, alert.target_price)
            else:
                db.rollback()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to deactivate alert %s: %s", alert.id, e)
    return fired
