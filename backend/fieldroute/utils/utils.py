from datetime import date, datetime
from typing import Final, Optional
from zoneinfo import ZoneInfo

from fieldroute.config import settings

US_PHONE_LENGTH: Final[int] = 10


def clean_us_number(number: str) -> str:
    """Normalize a US phone number to E.164 (``+1XXXXXXXXXX``)."""
    raw = "".join(ch for ch in number.strip() if ch.isdigit() or ch == "+")
    if raw.startswith("+"):
        raw = raw[1:]
    if len(raw) == US_PHONE_LENGTH + 1 and raw.startswith("1"):
        raw = raw[1:]
    if not raw.isdigit():
        raise ValueError("Phone number must contain digits only.")
    if len(raw) != US_PHONE_LENGTH:
        raise ValueError("Phone number must be exactly 10 digits after normalization.")
    return f"+1{raw}"


def is_email(recipient: Optional[str]) -> bool:
    return bool(recipient) and "@" in recipient


def business_today() -> date:
    """Current date in the configured business time zone."""
    return datetime.now(ZoneInfo(settings.business_timezone)).date()
