"""
Gmail normalizer - turns actionable emails into tasks and meeting invitations
into an additional timed meeting task
"""
import re
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

from clariti.models.task import TaskCategory, TaskSource
from clariti.normalizers.base import Normalizer, apply_drop_policy, pick_description, pick_title, rejected
from clariti.providers.records import GmailRawMessage
from clariti.schemas import CanonicalTask, ClassificationResult
from clariti.services.prompts import GMAIL_MESSAGE, ClassificationTemplate
from clariti.utils.helpers import parse_timestamp, to_naive_utc, truncate, utcnow
from clariti.utils.text_extraction import extract_due_date, extract_email_body, extract_meeting_time

DEADLINE_RE = re.compile(r"deadline|due\s+(?:date|by|on)|submit\s+by|turn\s+in|hand\s+in", re.IGNORECASE)
ACTION_RE = re.compile(r"assignment|homework|project|quiz|exam|test|meeting|interview|presentation", re.IGNORECASE)
URGENCY_RE = re.compile(r"urgent|asap|important|action\s+required|reminder", re.IGNORECASE)

# Checked in order; the first match decides
CATEGORY_RULES = (
    (re.compile(r"meeting|interview|appointment", re.IGNORECASE), TaskCategory.MEETING),
    (re.compile(r"exam|quiz|test", re.IGNORECASE), TaskCategory.QUIZ),
    (re.compile(r"assignment|homework|project", re.IGNORECASE), TaskCategory.ASSIGNMENT),
)

SNIPPET_CHARS = 500
MAIL_URL = "https://mail.google.com/mail/u/0/#inbox/{message_id}"


def _header(raw: GmailRawMessage, name: str) -> Optional[str]:
    for header in (raw.data.get("payload") or {}).get("headers") or []:
        if header.get("name", "").lower() == name.lower():
            return header.get("value")
    return None


def received_at(raw: GmailRawMessage) -> datetime:
    date_header = _header(raw, "Date")
    if date_header:
        try:
            return to_naive_utc(parsedate_to_datetime(date_header))
        except (TypeError, ValueError):
            pass
    internal = raw.data.get("internalDate")
    if internal:
        return parse_timestamp(int(internal) / 1000)
    return utcnow()


def relevance_signals(text: str) -> Dict[str, bool]:
    return {
        "hasDeadline": DEADLINE_RE.search(text) is not None,
        "hasActionItem": ACTION_RE.search(text) is not None,
        "hasUrgency": URGENCY_RE.search(text) is not None,
    }


def infer_category(text: str) -> TaskCategory:
    for pattern, category in CATEGORY_RULES:
        if pattern.search(text):
            return category
    return TaskCategory.EMAIL


class GmailNormalizer(Normalizer):
    source = TaskSource.GMAIL

    def item_key(self, raw: GmailRawMessage) -> str:
        return f"email_{raw.message_id}"

    def prefilter(self, raw: GmailRawMessage) -> Optional[str]:
        if not raw.data.get("id"):
            return "missing id"
        return None

    def template_for(self, raw: GmailRawMessage) -> ClassificationTemplate:
        return GMAIL_MESSAGE

    def subject(self, raw: GmailRawMessage) -> str:
        return (_header(raw, "Subject") or "(no subject)").strip()

    def full_text(self, raw: GmailRawMessage) -> str:
        body = extract_email_body(raw.data.get("payload") or {})
        return f"{self.subject(raw)} {body}".strip()

    def excerpt(self, raw: GmailRawMessage) -> str:
        return self.full_text(raw)

    def context(self, raw: GmailRawMessage) -> Dict[str, Any]:
        return {
            "from": _header(raw, "From"),
            "subject": self.subject(raw),
            "received": received_at(raw).isoformat(),
        }

    def fallback_important(self, raw: GmailRawMessage) -> bool:
        return any(relevance_signals(self.full_text(raw)).values())

    def normalize(
        self,
        raw: GmailRawMessage,
        classification: Optional[ClassificationResult] = None,
    ) -> List[CanonicalTask]:
        text = self.full_text(raw)
        signals = relevance_signals(text)

        if classification is None and not any(signals.values()):
            return []
        if rejected(classification):
            return []

        received = received_at(raw)
        due_date = classification.extracted_due_date if classification else None
        if due_date is None:
            due_date = extract_due_date(text, received)

        category = classification.category if classification and classification.category else None
        if category is None:
            category = infer_category(text)

        subject = self.subject(raw)
        snippet = raw.data.get("snippet") or truncate(extract_email_body(raw.data.get("payload") or {}), SNIPPET_CHARS)
        url = MAIL_URL.format(message_id=raw.message_id)
        sender = _header(raw, "From")

        title = pick_title(classification, subject)
        tasks = [
            CanonicalTask(
                source_id=self.item_key(raw),
                title=f"📧 {title}",
                description=pick_description(classification, snippet),
                due_date=due_date,
                category=category,
                source_url=url,
                metadata={
                    "from": sender,
                    "receivedDate": received.isoformat(),
                    "hasDeadline": signals["hasDeadline"],
                    "type": "email",
                },
            )
        ]

        if category == TaskCategory.MEETING and due_date is not None:
            meeting_time = extract_meeting_time(text, due_date)
            if meeting_time is not None:
                tasks.append(CanonicalTask(
                    source_id=f"meeting_{raw.message_id}",
                    title=f"📅 {title}",
                    description=f"Meeting from email: {snippet}" if snippet else "Meeting from email",
                    due_date=meeting_time,
                    category=TaskCategory.MEETING,
                    source_url=url,
                    metadata={
                        "from": sender,
                        "linkedToEmail": raw.message_id,
                        "type": "meeting",
                    },
                ))

        return apply_drop_policy(tasks)
