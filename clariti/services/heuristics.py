"""
Deterministic keyword heuristics.

These run when the classifier cannot be reached and as cheap pre-filters in
front of it, so their policy is kept in one place.
"""
import re
from typing import Iterable, Optional

from clariti.schemas import ClassificationResult
from clariti.utils.helpers import truncate

# Anything mentioning these is never important, with or without the model
EXCLUSION_KEYWORDS = (
    "birthday",
    "bday",
    "b-day",
    "attendance",
    "anniversary",
)

# Calendar events rejected before spending a model call on them
CALENDAR_EXCLUDE_KEYWORDS = (
    "birthday",
    "bday",
    "b-day",
    "anniversary",
    "party",
    "wedding",
    "celebration",
    "baby shower",
    "bridal shower",
    "holiday",
    "vacation",
    "out of office",
    "ooo",
    "happy hour",
    "dinner with",
    "brunch",
)

# Titles/descriptions of stored tasks removed by the cleanup utility
JUNK_PATTERNS = (
    "birthday",
    "bday",
    "b-day",
    "Failed production deployment",
    "Deployment failed",
    "Deployment succeeded",
    "Build failed",
    "Build succeeded",
    "Extraordinary General Meeting",
    "Annual General Meeting",
    "EGM",
    "AGM",
    "statement is available",
    "Your credit card statement",
    "FOLIO_DPID_CLID",
)

FALLBACK_TITLE_CHARS = 100
FALLBACK_DESCRIPTION_CHARS = 300


def _keyword_pattern(keywords: Iterable[str]) -> re.Pattern:
    alternatives = "|".join(re.escape(k) for k in keywords)
    return re.compile(rf"(?<![a-z0-9])(?:{alternatives})(?![a-z0-9])", re.IGNORECASE)


_EXCLUSION_RE = _keyword_pattern(EXCLUSION_KEYWORDS)
_CALENDAR_EXCLUDE_RE = _keyword_pattern(CALENDAR_EXCLUDE_KEYWORDS)


def matches_exclusion(text: Optional[str]) -> bool:
    return bool(text) and _EXCLUSION_RE.search(text) is not None


def calendar_exclusion_match(text: Optional[str]) -> Optional[str]:
    """Return the first excluded keyword found in a calendar event, if any."""
    if not text:
        return None
    match = _CALENDAR_EXCLUDE_RE.search(text)
    return match.group(0).lower() if match else None


def fallback_classification(excerpt: str, default_important: bool) -> ClassificationResult:
    """Keyword verdict used in place of the model.

    Exclusion keywords always win; otherwise the provider category's default
    decides, which is permissive for typically actionable sources.
    """
    text = (excerpt or "").strip()
    is_important = default_important and not matches_exclusion(text)
    return ClassificationResult(
        is_important=is_important,
        rewritten_title=truncate(text, FALLBACK_TITLE_CHARS) or None,
        rewritten_description=truncate(text, FALLBACK_DESCRIPTION_CHARS) or None,
        extracted_due_date=None,
        category=None,
        used_fallback=True,
    )
