"""
Google Calendar normalizer
"""
from typing import Any, Dict, List, Optional

from clariti.models.task import TaskCategory, TaskSource
from clariti.normalizers.base import Normalizer, apply_drop_policy, pick_description, pick_title, rejected
from clariti.providers.records import CalendarRawEvent
from clariti.schemas import CanonicalTask, ClassificationResult
from clariti.services.heuristics import calendar_exclusion_match
from clariti.services.prompts import CALENDAR_EVENT, ClassificationTemplate
from clariti.utils.helpers import parse_timestamp


def _title(raw: CalendarRawEvent) -> str:
    return (raw.data.get("summary") or "Untitled Event").strip()


class GoogleCalendarNormalizer(Normalizer):
    source = TaskSource.GOOGLE_CALENDAR

    def item_key(self, raw: CalendarRawEvent) -> str:
        return f"event_{raw.data.get('id')}"

    def prefilter(self, raw: CalendarRawEvent) -> Optional[str]:
        if not raw.data.get("id"):
            return "missing id"
        keyword = calendar_exclusion_match(f"{_title(raw)} {raw.data.get('description') or ''}")
        if keyword:
            return f"excluded keyword '{keyword}'"
        # All-day events only carry start.date
        if not (raw.data.get("start") or {}).get("dateTime"):
            return "all-day event"
        return None

    def template_for(self, raw: CalendarRawEvent) -> ClassificationTemplate:
        return CALENDAR_EVENT

    def excerpt(self, raw: CalendarRawEvent) -> str:
        return f"{_title(raw)}\n{raw.data.get('description') or ''}".strip()

    def context(self, raw: CalendarRawEvent) -> Dict[str, Any]:
        return {
            "start": (raw.data.get("start") or {}).get("dateTime"),
            "end": (raw.data.get("end") or {}).get("dateTime"),
            "location": raw.data.get("location"),
            "attendees": len(raw.data.get("attendees") or []),
        }

    def normalize(
        self,
        raw: CalendarRawEvent,
        classification: Optional[ClassificationResult] = None,
    ) -> List[CanonicalTask]:
        if rejected(classification):
            return []

        title = _title(raw)
        end = parse_timestamp((raw.data.get("end") or {}).get("dateTime"))
        task = CanonicalTask(
            source_id=self.item_key(raw),
            title=pick_title(classification, title),
            description=pick_description(classification, raw.data.get("description") or f"Calendar event: {title}"),
            due_date=parse_timestamp((raw.data.get("start") or {}).get("dateTime")),
            category=TaskCategory.MEETING,
            source_url=raw.data.get("htmlLink"),
            metadata={
                "location": raw.data.get("location"),
                "attendees": len(raw.data.get("attendees") or []),
                "endTime": end.isoformat() if end else None,
                "type": "calendar_event",
            },
        )
        return apply_drop_policy([task])
