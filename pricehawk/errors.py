# pricehawk/errors.py
"""Exceptions raised by the tracking workflow.

Routes translate these into HTTP errors; the scheduled sweep logs them per
listing and moves on.
"""


class PriceHawkError(Exception):
    """Base exception for price tracking errors."""


class NotFound(PriceHawkError):
    """Listing or alert does not exist."""


class ValidationError(PriceHawkError):
    """Missing or invalid URL, price or alert field."""


class UpstreamFailure(PriceHawkError):
    """The price source was unreachable or returned nothing usable."""


class StoreFailure(PriceHawkError):
    """A persistence operation failed."""


class NotifyFailure(PriceHawkError):
    """Alert delivery failed."""
