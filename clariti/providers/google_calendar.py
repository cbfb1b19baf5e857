"""
Google Calendar client - upcoming events on the primary calendar
"""
import logging
from datetime import timedelta
from typing import List, Optional

from clariti.config import get_settings
from clariti.providers.base import BaseProviderClient
from clariti.providers.records import CalendarRawEvent
from clariti.utils.helpers import utcnow

settings = get_settings()
logger = logging.getLogger(__name__)


class GoogleCalendarClient(BaseProviderClient):
    provider = "google_calendar"

    def __init__(
        self,
        access_token: str,
        base_url: Optional[str] = None,
        lookahead_days: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(access_token, base_url or settings.GOOGLE_CALENDAR_API_URL, **kwargs)
        self.lookahead_days = lookahead_days or settings.CALENDAR_LOOKAHEAD_DAYS

    async def fetch_items(self) -> List[CalendarRawEvent]:
        now = utcnow()
        data = await self._get_json(
            "/calendars/primary/events",
            params={
                "timeMin": now.isoformat() + "Z",
                "timeMax": (now + timedelta(days=self.lookahead_days)).isoformat() + "Z",
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )
        events = [CalendarRawEvent(data=event) for event in data.get("items") or []]
        logger.info(f"Fetched {len(events)} calendar events")
        return events
