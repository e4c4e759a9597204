# pricehawk/schemas.py
from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, field_validator
from typing import List, Optional, Union
from datetime import datetime
from decimal import Decimal

from .models import ALERT_PRICE_DROP
from .utils import MAX_PRICE

class ListingBase(BaseModel):
    url: str = Field(..., min_length=1)
    title: Optional[str] = None
    price: Decimal = Field(..., ge=0, le=MAX_PRICE)
    location: Optional[str] = None
    category: Optional[str] = None

    @field_validator("url")
    @classmethod
    def url_must_be_http(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return v

class ListingCreate(ListingBase):
    pass

class ListingOut(ListingBase):
    id: int
    status: str
    last_checked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)

class PriceHistoryOut(BaseModel):
    price: Decimal
    recorded_at: datetime
    model_config = ConfigDict(from_attributes=True)

class ListingDetail(BaseModel):
    listing: ListingOut
    price_history: List[PriceHistoryOut]

class CheckRequest(BaseModel):
    # explicit observation; when omitted the configured price source is asked
    price: Optional[Union[StrictInt, StrictFloat]] = None

class CheckResult(BaseModel):
    listing_id: int
    changed: bool
    previous_price: Decimal
    current_price: Decimal
    fired_alert_ids: List[int]

class SweepOut(BaseModel):
    checked: int
    changed: int
    fired: int
    failed: int
    failed_listing_ids: List[int]

class AlertCreate(BaseModel):
    user_email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    listing_id: int
    target_price: Decimal = Field(..., ge=0, le=MAX_PRICE)
    alert_type: str = ALERT_PRICE_DROP

    @field_validator("alert_type")
    @classmethod
    def only_price_drop(cls, v: str) -> str:
        if v != ALERT_PRICE_DROP:
            raise ValueError(f"unsupported alert_type {v!r}")
        return v

class AlertOut(BaseModel):
    id: int
    listing_id: int
    user_email: str
    target_price: Decimal
    alert_type: str
    is_active: bool
    triggered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    title: Optional[str] = None
    current_price: Optional[Decimal] = None
    model_config = ConfigDict(from_attributes=True)

class StatsOut(BaseModel):
    total_listings: int
    total_alerts: int
    average_price: str
