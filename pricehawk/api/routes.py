# pricehawk/api/routes.py
from datetime import datetime, timezone
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional
from .. import crud, schemas
from ..db import get_db, get_session_factory
from ..errors import NotFound, StoreFailure, UpstreamFailure, ValidationError
from ..notifier import BaseNotifier, get_notifier
from ..scheduler import sweep_active_listings
from ..scrape import PriceSource, get_price_source
from ..services import ingest_observation
from ..utils import logger

VERSION = "1.0.0"

router = APIRouter()

@router.get("/")
def root():
    return {
        "status": "PriceHawk API is live!",
        "message": "Marketplace Price Tracker",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": VERSION,
    }

@router.get("/api/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Database health check failed: %s", e)
        return JSONResponse(
            status_code=500,
            content={"status": "unhealthy", "database": "disconnected", "error": str(e)},
        )
    return {
        "status": "healthy",
        "database": "connected",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

@router.get("/api/listings", response_model=List[schemas.ListingOut])
def listings(limit: int = Query(50, ge=1, le=500), skip: int = Query(0, ge=0), db: Session = Depends(get_db)):
    return crud.list_listings(db, skip=skip, limit=limit)

@router.get("/api/listings/{listing_id}", response_model=schemas.ListingDetail)
def get_listing(listing_id: int, db: Session = Depends(get_db)):
    obj = crud.get_listing(db, listing_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Listing not found")
    return {"listing": obj, "price_history": crud.get_price_history(db, listing_id)}

@router.post("/api/listings", response_model=schemas.ListingOut, status_code=201)
def create_listing(payload: schemas.ListingCreate, db: Session = Depends(get_db)):
    existing = crud.get_listing_by_url(db, payload.url)
    if existing:
        return JSONResponse(
            status_code=409,
            content={"detail": "Listing already exists", "listing_id": existing.id},
        )
    try:
        return crud.create_listing(db, payload.model_dump())
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Listing already exists")

@router.delete("/api/listings/{listing_id}")
def delete_listing(listing_id: int, db: Session = Depends(get_db)):
    ok = crud.delete_listing(db, listing_id)
    if not ok:
        raise HTTPException(status_code=404, detail="Listing not found")
    return {"status": "deleted"}

@router.post("/api/listings/{listing_id}/check", response_model=schemas.CheckResult)
def check_listing(
    listing_id: int,
    payload: Optional[schemas.CheckRequest] = Body(None),
    db: Session = Depends(get_db),
    source: PriceSource = Depends(get_price_source),
    notifier: BaseNotifier = Depends(get_notifier),
):
    obj = crud.get_listing(db, listing_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Listing not found")
    try:
        if payload is not None and payload.price is not None:
            observed = payload.price
        else:
            observed = source.fetch_current_price(obj.url, reference_price=obj.price)
        result = ingest_observation(db, listing_id, observed, notifier)
    except NotFound:
        raise HTTPException(status_code=404, detail="Listing not found")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamFailure as e:
        logger.warning("Manual check of listing %s failed: %s", listing_id, e)
        raise HTTPException(status_code=502, detail=str(e))
    except StoreFailure as e:
        logger.error("Manual check of listing %s failed: %s", listing_id, e)
        raise HTTPException(status_code=503, detail="Store unavailable")
    return {
        "listing_id": result.listing_id,
        "changed": result.changed,
        "previous_price": result.previous_price,
        "current_price": result.current_price,
        "fired_alert_ids": [a.id for a in result.fired],
    }

@router.post("/api/check", response_model=schemas.SweepOut)
def trigger_sweep(
    session_factory=Depends(get_session_factory),
    source: PriceSource = Depends(get_price_source),
    notifier: BaseNotifier = Depends(get_notifier),
):
    report = sweep_active_listings(session_factory, source, notifier, delay=0)
    return report.__dict__

@router.get("/api/alerts", response_model=List[schemas.AlertOut])
def alerts(db: Session = Depends(get_db)):
    return crud.list_alerts(db, active_only=True)

@router.post("/api/alerts", response_model=schemas.AlertOut, status_code=201)
def create_alert(payload: schemas.AlertCreate, db: Session = Depends(get_db)):
    if not crud.get_listing(db, payload.listing_id):
        raise HTTPException(status_code=404, detail="Listing not found")
    return crud.create_alert(db, payload.model_dump())

@router.get("/api/stats", response_model=schemas.StatsOut)
def stats(db: Session = Depends(get_db)):
    return crud.get_stats(db)
