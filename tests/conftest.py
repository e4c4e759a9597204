"""Test fixtures: in-memory store, fake notifier and fake price source."""

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pricehawk import crud
from pricehawk.db import Base
from pricehawk.errors import UpstreamFailure
from pricehawk.notifier import BaseNotifier
from pricehawk.scrape import PriceSource


class RecordingNotifier(BaseNotifier):
    """Remembers every notification; can be told to fail or raise."""

    def __init__(self, result=True, exc=None):
        self.result = result
        self.exc = exc
        self.sent = []

    def notify(self, alert, current_price):
        self.sent.append((alert.id, Decimal(current_price)))
        if self.exc is not None:
            raise self.exc
        return self.result


class FakePriceSource(PriceSource):
    def __init__(self, prices=None, failing=()):
        self.prices = dict(prices or {})
        self.failing = set(failing)
        self.fetched = []

    def fetch_current_price(self, url, reference_price=None):
        self.fetched.append(url)
        if url in self.failing or url not in self.prices:
            raise UpstreamFailure(f"unreachable: {url}")
        return self.prices[url]


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def make_listing(db):
    counter = {"n": 0}

    def _make(price=100, status="active", **extra):
        counter["n"] += 1
        data = {
            "url": f"https://marketplace.example.com/item/{counter['n']}",
            "title": f"Item {counter['n']}",
            "price": Decimal(str(price)),
            "location": "Manila",
            "category": "vehicles",
        }
        data.update(extra)
        listing = crud.create_listing(db, data)
        if status != "active":
            listing.status = status
            db.commit()
        return listing

    return _make


@pytest.fixture()
def make_alert(db):
    def _make(listing, target_price, email="buyer@example.com"):
        return crud.create_alert(db, {
            "listing_id": listing.id,
            "user_email": email,
            "target_price": Decimal(str(target_price)),
            "alert_type": "price_drop",
        })

    return _make
