"""
Raw provider records.

Each record wraps the provider-native JSON (`data`) together with the few
fields the fetcher already knows (course, channel). The `kind` tag lets the
orchestrator route a record to its normalizer.
"""
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field

CanvasItemType = Literal["assignment", "announcement", "quiz", "discussion"]


class CanvasRawItem(BaseModel):
    kind: Literal["canvas"] = "canvas"
    item_type: CanvasItemType
    course_id: Optional[int] = None
    course_name: Optional[str] = None
    data: Dict[str, Any]


class GmailRawMessage(BaseModel):
    """A `users.messages.get?format=full` resource"""

    kind: Literal["gmail"] = "gmail"
    data: Dict[str, Any]

    @property
    def message_id(self) -> str:
        return str(self.data.get("id") or "")


class CalendarRawEvent(BaseModel):
    kind: Literal["google_calendar"] = "google_calendar"
    data: Dict[str, Any]


class SlackRawMessage(BaseModel):
    kind: Literal["slack_message"] = "slack_message"
    channel_id: str
    channel_name: Optional[str] = None
    data: Dict[str, Any]


class SlackRawStar(BaseModel):
    kind: Literal["slack_star"] = "slack_star"
    data: Dict[str, Any]


class SlackRawReminder(BaseModel):
    kind: Literal["slack_reminder"] = "slack_reminder"
    data: Dict[str, Any]


RawItem = Annotated[
    Union[
        CanvasRawItem,
        GmailRawMessage,
        CalendarRawEvent,
        SlackRawMessage,
        SlackRawStar,
        SlackRawReminder,
    ],
    Field(discriminator="kind"),
]
