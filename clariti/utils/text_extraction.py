"""
Free-text helpers: email body decoding and date/time extraction
"""
import base64
import binascii
import html
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from dateutil import parser as date_parser

_MONTH = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?"
)
_MONTH_DAY = rf"{_MONTH}\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,?\s+\d{{4}})?"
_NUMERIC = r"\d{1,2}[/-]\d{1,2}(?:[/-]\d{2,4})?"

# Order matters: the most explicit phrasing wins
DUE_DATE_PATTERNS = [
    re.compile(rf"\bdue\s+(?:on\s+|by\s+)?({_MONTH_DAY})", re.IGNORECASE),
    re.compile(rf"\bdeadline[:\s]+({_NUMERIC})", re.IGNORECASE),
    re.compile(rf"\bsubmit\s+by\s+({_MONTH_DAY})", re.IGNORECASE),
    re.compile(rf"\bdue\s+date[:\s]+({_MONTH_DAY}|{_NUMERIC})", re.IGNORECASE),
    re.compile(rf"\bdue\s+(?:on\s+|by\s+)?({_NUMERIC})", re.IGNORECASE),
    re.compile(rf"\bby\s+({_MONTH_DAY}|{_NUMERIC})", re.IGNORECASE),
    re.compile(rf"\bon\s+({_NUMERIC}|{_MONTH_DAY})", re.IGNORECASE),
]

_TOMORROW_RE = re.compile(r"\b(?:tomorrow|tmrw)\b", re.IGNORECASE)
_TODAY_RE = re.compile(r"\b(?:today|tonight)\b", re.IGNORECASE)
_NEXT_WEEK_RE = re.compile(r"\bnext\s+week\b", re.IGNORECASE)

MEETING_TIME_PATTERNS = [
    re.compile(r"(?:\bat|@)\s*(\d{1,2}):?(\d{2})?\s*(am|pm)\b", re.IGNORECASE),
    re.compile(r"\b(\d{1,2}):(\d{2})\s*(am|pm)\b", re.IGNORECASE),
    re.compile(r"\b([01]?\d|2[0-3]):([0-5]\d)\b(?!\s*(?:am|pm))", re.IGNORECASE),
]

_TAG_RE = re.compile(r"<[^>]*>")
_BLOCK_RE = re.compile(r"<(script|style)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_WS_RE = re.compile(r"\s+")


def decode_base64url(data: str) -> str:
    """Decode Gmail's URL-safe base64 (padding optional)."""
    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""


def strip_html(markup: str) -> str:
    text = _BLOCK_RE.sub(" ", markup or "")
    text = _TAG_RE.sub(" ", text)
    return _WS_RE.sub(" ", html.unescape(text)).strip()


def extract_email_body(payload: Dict[str, Any]) -> str:
    """Plain-text body of a Gmail message payload.

    text/plain parts are preferred; HTML is stripped and used only when no
    plain part exists. Nested multipart payloads are walked depth-first.
    """
    plain: list[str] = []
    markup: list[str] = []

    def walk(part: Dict[str, Any]) -> None:
        mime = part.get("mimeType", "")
        data = (part.get("body") or {}).get("data")
        if data:
            if mime == "text/html":
                markup.append(decode_base64url(data))
            elif mime.startswith("text/") or not mime:
                plain.append(decode_base64url(data))
        for child in part.get("parts") or []:
            walk(child)

    walk(payload or {})
    if plain:
        return "\n".join(p for p in plain if p).strip()
    if markup:
        return strip_html(" ".join(markup))
    return ""


def _parse_numeric(value: str, base: datetime) -> datetime:
    parts = re.split(r"[/-]", value)
    month, day = int(parts[0]), int(parts[1])
    if len(parts) > 2:
        year = int(parts[2])
        if year < 100:
            year += 2000
        return datetime(year, month, day)
    candidate = datetime(base.year, month, day)
    if candidate.date() < base.date():
        candidate = candidate.replace(year=base.year + 1)
    return candidate


def _parse_month_day(value: str, base: datetime) -> datetime:
    parsed = date_parser.parse(value, default=datetime(base.year, 1, 1))
    if not re.search(r"\d{4}", value) and parsed.date() < base.date():
        parsed = parsed.replace(year=parsed.year + 1)
    return parsed.replace(hour=0, minute=0, second=0, microsecond=0)


def extract_due_date(text: str, base: datetime) -> Optional[datetime]:
    """Find a deadline in free text, relative to `base` (the receive time).

    Dates without a year take the base year, or the next one when that would
    put them in the past. Two-digit years are read as 20xx.
    """
    if not text:
        return None

    for pattern in DUE_DATE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        value = match.group(1).strip()
        try:
            if re.fullmatch(_NUMERIC, value):
                return _parse_numeric(value, base)
            return _parse_month_day(value, base)
        except (ValueError, OverflowError):
            continue

    midnight = base.replace(hour=0, minute=0, second=0, microsecond=0)
    if _TOMORROW_RE.search(text):
        return midnight + timedelta(days=1)
    if _TODAY_RE.search(text):
        return midnight
    if _NEXT_WEEK_RE.search(text):
        return midnight + timedelta(days=7)
    return None


def extract_meeting_time(text: str, day: datetime) -> Optional[datetime]:
    """Combine a time of day found in `text` ("3pm", "2:30 PM", "15:00") with `day`."""
    if not text or day is None:
        return None

    for pattern in MEETING_TIME_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        hours = int(match.group(1))
        minutes = int(match.group(2)) if match.group(2) else 0
        meridiem = match.group(3).lower() if pattern.groups >= 3 and match.group(3) else None

        if meridiem:
            if not 1 <= hours <= 12:
                continue
            if meridiem == "pm" and hours < 12:
                hours += 12
            if meridiem == "am" and hours == 12:
                hours = 0
        if hours > 23 or minutes > 59:
            continue
        return day.replace(hour=hours, minute=minutes, second=0, microsecond=0)

    return None
