"""
Shared normalizer interface and drop policy
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from clariti.models.task import DEADLINE_REQUIRED, TaskSource
from clariti.schemas import CanonicalTask, ClassificationResult
from clariti.services.prompts import ClassificationTemplate


def meets_deadline_policy(task: CanonicalTask) -> bool:
    """Assignments, quizzes, discussions and meetings are useless without a due date"""
    return task.category not in DEADLINE_REQUIRED or task.due_date is not None


def apply_drop_policy(tasks: List[CanonicalTask]) -> List[CanonicalTask]:
    return [task for task in tasks if meets_deadline_policy(task)]


class Normalizer(ABC):
    """
    Turns one raw provider record into zero or more canonical tasks.

    The orchestrator drives every normalizer the same way:
    prefilter -> item_key -> (classify with template_for) -> normalize.
    """

    source: TaskSource

    @abstractmethod
    def item_key(self, raw: Any) -> str:
        """Key for the per-sync in-memory duplicate set"""

    def prefilter(self, raw: Any) -> Optional[str]:
        """Reason to reject the record without a classifier call, or None"""
        return None

    def template_for(self, raw: Any) -> Optional[ClassificationTemplate]:
        """Classifier template, or None to skip classification"""
        return None

    def excerpt(self, raw: Any) -> str:
        return ""

    def context(self, raw: Any) -> Dict[str, Any]:
        return {}

    def fallback_important(self, raw: Any) -> Optional[bool]:
        """Override for the template's keyword-fallback default"""
        return None

    @abstractmethod
    def normalize(
        self,
        raw: Any,
        classification: Optional[ClassificationResult] = None,
    ) -> List[CanonicalTask]:
        """Canonical tasks for the record; an empty list drops it"""


def pick_title(classification: Optional[ClassificationResult], raw_title: str) -> str:
    """Model rewrite when there is one, otherwise the provider's own title"""
    if classification and not classification.used_fallback and classification.rewritten_title:
        return classification.rewritten_title
    return raw_title


def pick_description(classification: Optional[ClassificationResult], raw_description: Optional[str]) -> Optional[str]:
    if classification and not classification.used_fallback and classification.rewritten_description:
        return classification.rewritten_description
    return raw_description


def rejected(classification: Optional[ClassificationResult]) -> bool:
    return classification is not None and not classification.is_important
