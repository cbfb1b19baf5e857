"""
Slack normalizer - channel messages, saved items and reminders
"""
from typing import Any, Dict, List, Optional, Union

from clariti.models.task import TaskCategory, TaskSource
from clariti.normalizers.base import Normalizer, apply_drop_policy, pick_description, rejected
from clariti.providers.records import SlackRawMessage, SlackRawReminder, SlackRawStar
from clariti.schemas import CanonicalTask, ClassificationResult
from clariti.services.heuristics import FALLBACK_DESCRIPTION_CHARS, FALLBACK_TITLE_CHARS
from clariti.services.prompts import SLACK_MESSAGE, ClassificationTemplate
from clariti.utils.helpers import parse_timestamp, truncate, utcnow
from clariti.utils.text_extraction import extract_due_date

ORIGINAL_TEXT_CHARS = 200

SlackRecord = Union[SlackRawMessage, SlackRawStar, SlackRawReminder]


def _message_of(raw: SlackRecord) -> Dict[str, Any]:
    if isinstance(raw, SlackRawStar):
        return raw.data.get("message") or {}
    return raw.data


def _ts_datetime(ts: Any):
    try:
        return parse_timestamp(float(ts))
    except (TypeError, ValueError):
        return None


class SlackNormalizer(Normalizer):
    source = TaskSource.SLACK

    def item_key(self, raw: SlackRecord) -> str:
        if isinstance(raw, SlackRawReminder):
            return f"slack_reminder_{raw.data.get('id')}"
        if isinstance(raw, SlackRawStar):
            message = _message_of(raw)
            return f"slack_star_{message.get('ts') or raw.data.get('date_create')}"
        return f"slack_msg_{raw.data.get('ts')}_{raw.channel_id}"

    def prefilter(self, raw: SlackRecord) -> Optional[str]:
        if isinstance(raw, SlackRawReminder):
            if raw.data.get("complete_ts"):
                return "reminder complete"
            if not raw.data.get("time"):
                return "reminder without time"
            return None
        if not (_message_of(raw).get("text") or "").strip():
            return "empty message"
        return None

    def template_for(self, raw: SlackRecord) -> Optional[ClassificationTemplate]:
        # Reminders are explicit user intent
        if isinstance(raw, SlackRawReminder):
            return None
        return SLACK_MESSAGE

    def excerpt(self, raw: SlackRecord) -> str:
        if isinstance(raw, SlackRawReminder):
            return raw.data.get("text") or ""
        return (_message_of(raw).get("text") or "").strip()

    def context(self, raw: SlackRecord) -> Dict[str, Any]:
        message = _message_of(raw)
        sent = _ts_datetime(message.get("ts"))
        context = {
            "kind": "saved item" if isinstance(raw, SlackRawStar) else "channel message",
            "sent": sent.isoformat() if sent else None,
        }
        if isinstance(raw, SlackRawMessage):
            context["channel"] = raw.channel_name or raw.channel_id
        return context

    def _normalize_reminder(self, raw: SlackRawReminder) -> List[CanonicalTask]:
        text = (raw.data.get("text") or "Reminder").strip()
        due_date = _ts_datetime(raw.data.get("time"))
        if due_date is None:
            return []
        return [CanonicalTask(
            source_id=self.item_key(raw),
            title=f"🔔 {text}",
            description=text,
            due_date=due_date,
            category=TaskCategory.OTHER,
            metadata={
                "type": "reminder",
                "recurring": bool(raw.data.get("recurring")),
            },
        )]

    def normalize(
        self,
        raw: SlackRecord,
        classification: Optional[ClassificationResult] = None,
    ) -> List[CanonicalTask]:
        if isinstance(raw, SlackRawReminder):
            return self._normalize_reminder(raw)

        if rejected(classification):
            return []

        message = _message_of(raw)
        text = (message.get("text") or "").strip()
        sent = _ts_datetime(message.get("ts")) or utcnow()

        due_date = classification.extracted_due_date if classification else None
        if due_date is None:
            due_date = extract_due_date(text, sent)
        # Chat without a deadline is conversation, not a task
        if due_date is None:
            return []

        if classification and classification.rewritten_title:
            title = classification.rewritten_title
        else:
            title = truncate(text, FALLBACK_TITLE_CHARS)

        metadata: Dict[str, Any] = {
            "type": "starred" if isinstance(raw, SlackRawStar) else "message",
            "aiDetermined": bool(classification and not classification.used_fallback),
            "originalText": truncate(text, ORIGINAL_TEXT_CHARS),
        }
        if isinstance(raw, SlackRawMessage):
            metadata["channel"] = raw.channel_name or raw.channel_id
        else:
            metadata["channel"] = raw.data.get("channel")

        task = CanonicalTask(
            source_id=self.item_key(raw),
            title=title,
            description=pick_description(classification, truncate(text, FALLBACK_DESCRIPTION_CHARS)),
            due_date=due_date,
            category=TaskCategory.OTHER,
            source_url=message.get("permalink"),
            metadata=metadata,
        )
        return apply_drop_policy([task])
