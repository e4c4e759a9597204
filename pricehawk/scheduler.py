# pricehawk/scheduler.py
import os
import time
from dataclasses import dataclass, field
from typing import List, Optional
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from dotenv import load_dotenv
from . import crud
from .db import SessionLocal
from .errors import PriceHawkError
from .notifier import BaseNotifier, get_notifier
from .scrape import PriceSource, get_price_source
from .services import ingest_observation
from .utils import logger

load_dotenv()
CHECK_CRON = os.getenv("CHECK_CRON", "0 */6 * * *")
CHECK_DELAY_SECONDS = float(os.getenv("CHECK_DELAY_SECONDS", "2"))

scheduler: Optional[BackgroundScheduler] = None


@dataclass
class SweepReport:
    checked: int = 0
    changed: int = 0
    fired: int = 0
    failed: int = 0
    failed_listing_ids: List[int] = field(default_factory=list)


def sweep_active_listings(session_factory=SessionLocal, source: Optional[PriceSource] = None,
                          notifier: Optional[BaseNotifier] = None, delay: float = CHECK_DELAY_SECONDS,
                          sleep=time.sleep) -> SweepReport:
    """Check every active listing once, one after another.

    Waits `delay` seconds between listings. A failure on one listing is logged
    and the sweep carries on with the next.
    """
    source = source or get_price_source()
    notifier = notifier or get_notifier()
    report = SweepReport()
    db = session_factory()
    try:
        targets = [(l.id, l.url, l.price) for l in crud.list_active_listings(db)]
        logger.info("Sweep started over %d active listings", len(targets))
        for i, (listing_id, url, price) in enumerate(targets):
            if i and delay > 0:
                sleep(delay)
            try:
                observed = source.fetch_current_price(url, reference_price=price)
                result = ingest_observation(db, listing_id, observed, notifier)
            except PriceHawkError as e:
                report.failed += 1
                report.failed_listing_ids.append(listing_id)
                logger.warning("Check failed for listing %s (%s): %s", listing_id, type(e).__name__, e)
                continue
            except Exception as e:
                report.failed += 1
                report.failed_listing_ids.append(listing_id)
                db.rollback()
                logger.exception("Unexpected error checking listing %s: %s", listing_id, e)
                continue
            report.checked += 1
            report.changed += int(result.changed)
            report.fired += len(result.fired)
    finally:
        db.close()
    logger.info("Sweep finished: %s", report)
    return report


def start_scheduler(cron: str = CHECK_CRON) -> BackgroundScheduler:
    global scheduler
    if scheduler is not None and scheduler.running:
        return scheduler
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        sweep_active_listings,
        CronTrigger.from_crontab(cron),
        id="price_sweep",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Scheduler started (cron %r)", cron)
    return scheduler


def shutdown_scheduler() -> None:
    global scheduler
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shut down")
    scheduler = None
