"""
Content classifier - asks the model whether an item is worth a task and
rewrites it; never raises.
"""
import logging
from datetime import date
from typing import Any, Dict, Optional

from clariti.config import get_settings
from clariti.models.task import TaskCategory
from clariti.schemas import ClassificationResult
from clariti.services.classifier_service import ClassifierService, classifier_service
from clariti.services.heuristics import fallback_classification
from clariti.services.prompts import CLASSIFY_PROMPT, SYSTEM_PROMPT, ClassificationTemplate
from clariti.utils.helpers import parse_timestamp, truncate

settings = get_settings()
logger = logging.getLogger(__name__)


def _format_context(context: Dict[str, Any]) -> str:
    lines = [f"- {key}: {value}" for key, value in context.items() if value not in (None, "")]
    return "\n".join(lines) if lines else "- (none)"


def _clean_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


class ContentClassifier:
    def __init__(self, gateway: Optional[ClassifierService] = None, excerpt_chars: Optional[int] = None):
        self.gateway = gateway or classifier_service
        self.excerpt_chars = excerpt_chars or settings.CLASSIFIER_EXCERPT_CHARS

    def build_prompt(
        self,
        excerpt: str,
        template: ClassificationTemplate,
        context: Dict[str, Any],
        today: Optional[date] = None,
    ) -> str:
        category_hint = ""
        if template.categories:
            category_hint = f"Allowed categories: {', '.join(template.categories)}.\n"
        return CLASSIFY_PROMPT.format(
            today=(today or date.today()).isoformat(),
            instruction=template.instruction,
            context=_format_context(context),
            excerpt=truncate(excerpt, self.excerpt_chars),
            category_hint=category_hint,
        )

    async def classify(
        self,
        excerpt: str,
        template: ClassificationTemplate,
        context: Optional[Dict[str, Any]] = None,
        fallback_important: Optional[bool] = None,
    ) -> ClassificationResult:
        """Classify one excerpt.

        Any failure (no API key, network, timeout, malformed JSON) resolves to
        the keyword fallback; callers never see the error.
        """
        default_important = template.fallback_important if fallback_important is None else fallback_important
        excerpt = truncate(excerpt, self.excerpt_chars)

        try:
            prompt = self.build_prompt(excerpt, template, context or {})
            data = await self.gateway.generate_structured_response(
                prompt=prompt,
                system_prompt=SYSTEM_PROMPT,
            )
            return self._parse(data, template)
        except Exception as e:
            logger.warning(f"Classifier unavailable for {template.name}, using keyword fallback: {e}")
            return fallback_classification(excerpt, default_important)

    def _parse(self, data: Dict[str, Any], template: ClassificationTemplate) -> ClassificationResult:
        due_date = None
        raw_due = data.get("dueDate")
        if isinstance(raw_due, str):
            # An unparsable date is a valid "no deadline" answer
            due_date = parse_timestamp(raw_due)

        category = None
        raw_category = data.get("category")
        if isinstance(raw_category, str) and raw_category.lower() in template.categories:
            category = TaskCategory(raw_category.lower())

        return ClassificationResult(
            is_important=data.get("isImportant") is True,
            rewritten_title=_clean_text(data.get("title")),
            rewritten_description=_clean_text(data.get("description")),
            extracted_due_date=due_date,
            category=category,
        )
