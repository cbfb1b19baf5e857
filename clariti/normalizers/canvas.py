"""
Canvas normalizer - assignments, announcements, quizzes, discussions
"""
from datetime import timedelta
from typing import Any, Dict, List, Optional

from clariti.config import get_settings
from clariti.models.task import TaskCategory, TaskSource
from clariti.normalizers.base import Normalizer, apply_drop_policy, pick_description, pick_title, rejected
from clariti.providers.records import CanvasRawItem
from clariti.schemas import CanonicalTask, ClassificationResult
from clariti.services.prompts import CANVAS_ANNOUNCEMENT, CANVAS_GRADED_WORK, ClassificationTemplate
from clariti.utils.helpers import parse_timestamp, utcnow
from clariti.utils.text_extraction import strip_html

settings = get_settings()

TITLE_PREFIXES = {
    "assignment": "",
    "announcement": "📢 ",
    "quiz": "📝 ",
    "discussion": "💬 ",
}

SUBMITTED_STATES = {"submitted", "graded", "pending_review"}


def _raw_title(item: CanvasRawItem) -> str:
    data = item.data
    return (data.get("name") or data.get("title") or "Untitled").strip()


def _due_at(item: CanvasRawItem) -> Optional[Any]:
    if item.item_type == "discussion":
        return (item.data.get("assignment") or {}).get("due_at")
    if item.item_type == "announcement":
        return None
    return item.data.get("due_at")


def _is_completed(item: CanvasRawItem) -> bool:
    data = item.data
    if item.item_type == "assignment":
        if data.get("has_submitted_submissions"):
            return True
        submission = data.get("submission") or {}
        return submission.get("workflow_state") in SUBMITTED_STATES
    if item.item_type == "announcement":
        return data.get("read_state") == "read"
    return False


class CanvasNormalizer(Normalizer):
    source = TaskSource.CANVAS

    def __init__(self, announcement_max_age_days: Optional[int] = None):
        self.announcement_max_age_days = announcement_max_age_days or settings.ANNOUNCEMENT_MAX_AGE_DAYS

    def item_key(self, raw: CanvasRawItem) -> str:
        return f"{raw.item_type}_{raw.data.get('id')}"

    def prefilter(self, raw: CanvasRawItem) -> Optional[str]:
        if raw.data.get("id") is None:
            return "missing id"

        if raw.item_type == "discussion" and raw.data.get("is_announcement"):
            return "announcement listed as discussion"

        if raw.item_type == "announcement":
            posted = parse_timestamp(raw.data.get("posted_at") or raw.data.get("created_at"))
            cutoff = utcnow() - timedelta(days=self.announcement_max_age_days)
            if posted is None or posted < cutoff:
                return "announcement too old"
            return None

        # Graded work without a deadline never becomes a task
        if parse_timestamp(_due_at(raw)) is None:
            return "no due date"
        return None

    def template_for(self, raw: CanvasRawItem) -> ClassificationTemplate:
        if raw.item_type == "announcement":
            return CANVAS_ANNOUNCEMENT
        return CANVAS_GRADED_WORK

    def excerpt(self, raw: CanvasRawItem) -> str:
        body = raw.data.get("description") or raw.data.get("message") or ""
        return f"{_raw_title(raw)}\n{strip_html(body)}".strip()

    def context(self, raw: CanvasRawItem) -> Dict[str, Any]:
        data = raw.data
        return {
            "type": raw.item_type,
            "course": raw.course_name,
            "points": data.get("points_possible") or (data.get("assignment") or {}).get("points_possible"),
            "due": _due_at(raw),
        }

    def _metadata(self, raw: CanvasRawItem) -> Dict[str, Any]:
        data = raw.data
        metadata: Dict[str, Any] = {"type": raw.item_type, "courseId": raw.course_id}
        if raw.item_type == "assignment":
            metadata["points"] = data.get("points_possible")
            metadata["submissionTypes"] = data.get("submission_types")
        elif raw.item_type == "quiz":
            metadata["points"] = data.get("points_possible")
            metadata["timeLimit"] = data.get("time_limit")
            metadata["allowedAttempts"] = data.get("allowed_attempts")
        elif raw.item_type == "announcement":
            metadata["postedAt"] = data.get("posted_at")
        elif raw.item_type == "discussion":
            metadata["requiresInitialPost"] = data.get("require_initial_post")
        return metadata

    def _default_description(self, raw: CanvasRawItem) -> str:
        body = strip_html(raw.data.get("description") or raw.data.get("message") or "")
        if body:
            return body
        if raw.item_type == "announcement":
            return "Course announcement"
        if raw.item_type == "discussion":
            return "Discussion topic"
        return f"{raw.item_type.capitalize()} for {raw.course_name or 'course'}"

    def normalize(
        self,
        raw: CanvasRawItem,
        classification: Optional[ClassificationResult] = None,
    ) -> List[CanonicalTask]:
        if rejected(classification):
            return []

        prefixed = f"{TITLE_PREFIXES[raw.item_type]}{_raw_title(raw)}"
        task = CanonicalTask(
            source_id=self.item_key(raw),
            title=pick_title(classification, prefixed),
            description=pick_description(classification, self._default_description(raw)),
            due_date=parse_timestamp(_due_at(raw)),
            completed=_is_completed(raw),
            category=TaskCategory(raw.item_type),
            course=raw.course_name,
            source_url=raw.data.get("html_url"),
            metadata=self._metadata(raw),
        )
        return apply_drop_policy([task])
