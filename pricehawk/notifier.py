# pricehawk/notifier.py
"""Alert delivery channels.

`notify` returns True on delivery and False otherwise. Delivery is best
effort: callers log a False result and never retry.
"""
import os
import smtplib
from abc import ABC, abstractmethod
from email.mime.text import MIMEText
from dotenv import load_dotenv

from .models import Alert
from .utils import logger

load_dotenv()

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM = os.getenv("SMTP_FROM", "") or SMTP_USER


class BaseNotifier(ABC):
    """Abstract base for notification channels."""

    @abstractmethod
    def notify(self, alert: Alert, current_price) -> bool:
        """Send a notification for a fired alert. Return True on success."""
        ...

    def format_message(self, alert: Alert, current_price):
        listing = alert.listing
        title = (listing.title if listing else None) or f"Listing #{alert.listing_id}"
        subject = f"[PriceHawk] Price drop: {title}"
        lines = [
            f"{title} dropped to {current_price}",
            f"Your target price: {alert.target_price}",
        ]
        if listing is not None:
            if listing.location:
                lines.append(f"Location: {listing.location}")
            lines.append(f"URL: {listing.url}")
        return subject, "\n".join(lines)


class LogNotifier(BaseNotifier):
    """Writes notifications to the application log."""

    def notify(self, alert: Alert, current_price) -> bool:
        subject, body = self.format_message(alert, current_price)
        logger.info("NOTIFICATION to %s: %s\n%s", alert.user_email, subject, body)
        return True


class EmailNotifier(BaseNotifier):
    def __init__(self, host=None, port=None, user=None, password=None, sender=None):
        self.host = host if host is not None else SMTP_HOST
        self.port = port if port is not None else SMTP_PORT
        self.user = user if user is not None else SMTP_USER
        self.password = password if password is not None else SMTP_PASSWORD
        self.sender = sender or SMTP_FROM or self.user

    def notify(self, alert: Alert, current_price) -> bool:
        if not (self.host and self.sender):
            logger.debug("SMTP not configured; skipping email for alert %s", alert.id)
            return False

        subject, body = self.format_message(alert, current_price)
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = alert.user_email
        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as server:
                server.starttls()
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.send_message(msg)
            logger.info("Alert email sent to %s", alert.user_email)
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("Failed to send alert email to %s: %s", alert.user_email, e)
            return False


def get_notifier() -> BaseNotifier:
    if SMTP_HOST:
        return EmailNotifier()
    return LogNotifier()
