# pricehawk/utils.py
"""Shared utilities: logging setup, retry decorator and price validation."""
import os
import math
import logging
import time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from functools import wraps
from dotenv import load_dotenv

from .errors import ValidationError

load_dotenv()

_CENTS = Decimal("0.01")
# largest value a Numeric(12, 2) column holds
MAX_PRICE = Decimal("9999999999.99")

def get_logger(name=__name__):
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=getattr(logging, level, logging.INFO)
    )
    return logging.getLogger(name)

logger = get_logger("pricehawk")

def retry(exceptions, tries=3, delay=1, backoff=2, logger=logger):
    def deco_retry(f):
        @wraps(f)
        def f_retry(*args, **kwargs):
            mtries, mdelay = tries, delay
            while mtries > 1:
                try:
                    return f(*args, **kwargs)
                except exceptions as e:
                    logger.warning("Retryable error: %s, retrying in %s sec", e, mdelay)
                    time.sleep(mdelay)
                    mtries -= 1
                    mdelay *= backoff
            return f(*args, **kwargs)
        return f_retry
    return deco_retry

def to_price(value) -> Decimal:
    """Return `value` as a Decimal price rounded to cents.

    Only real numbers (int, float, Decimal) that are finite, non-negative and
    no larger than MAX_PRICE are accepted. Strings, bools and None raise
    ValidationError instead of being coerced.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValidationError(f"price must be a number, got {type(value).__name__}")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError("price must be finite")
    try:
        price = Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationError(f"invalid price {value!r}") from e
    if not price.is_finite():
        raise ValidationError("price must be finite")
    if price < 0:
        raise ValidationError("price must not be negative")
    try:
        price = price.quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValidationError(f"price {value!r} is too large") from e
    if price > MAX_PRICE:
        raise ValidationError(f"price must not exceed {MAX_PRICE}")
    return price
