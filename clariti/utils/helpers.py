"""
General helper utilities
"""
from datetime import datetime, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    """Current time as naive UTC (the store keeps naive UTC timestamps)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_timestamp(value: Union[str, int, float, None]) -> Optional[datetime]:
    """Parse an ISO-8601 string or epoch seconds into naive UTC.

    Returns None for empty or unparsable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc).replace(tzinfo=None)
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return to_naive_utc(parsed)


def truncate(text: Optional[str], limit: int) -> str:
    """Cut text to at most `limit` characters"""
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit]


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```)"""
    text = text.strip()
    if text.startswith("```"):
        newline = text.find("\n")
        text = text[newline + 1:] if newline != -1 else text[3:]
        if text.lower().startswith("json"):
            text = text[4:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()
