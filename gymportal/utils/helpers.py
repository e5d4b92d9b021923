import calendar
import secrets
from datetime import datetime, date
from typing import Optional

import bcrypt


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.
    Handles bcrypt's 72-byte limit by truncating if necessary.
    """
    password_bytes = password.encode("utf-8")[:72]
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a bcrypt hash.
    """
    password_bytes = plain_password.encode("utf-8")[:72]
    hashed_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(password_bytes, hashed_bytes)


def generate_secure_token(nbytes: int = 24) -> str:
    """
    Generate an unguessable URL-safe token.

    Args:
        nbytes: number of random bytes (the string is ~1.3x longer)

    Returns:
        Token string safe to embed in a QR code or URL path
    """
    return secrets.token_urlsafe(nbytes)


def add_months(value: datetime, months: int) -> datetime:
    """
    Add calendar months, clamping the day to the end of the target month
    (Jan 31 + 1 month -> Feb 28/29).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def to_iso(value) -> Optional[str]:
    """Format a date/datetime for JSON output, passing None through."""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def format_phone_number(phone: str) -> str:
    """
    Format phone number to international format (628xxx).
    Converts 08xxx to 628xxx.
    """
    phone = phone.strip().replace(" ", "").replace("-", "")

    if phone.startswith("08"):
        return "62" + phone[1:]
    elif phone.startswith("+62"):
        return phone[1:]
    return phone
