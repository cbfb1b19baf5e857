"""
Pydantic schemas shared by the ingestion pipeline
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from clariti.models.task import TaskCategory


class ClassificationResult(BaseModel):
    is_important: bool
    rewritten_title: Optional[str] = None
    rewritten_description: Optional[str] = None
    extracted_due_date: Optional[datetime] = None
    category: Optional[TaskCategory] = None
    used_fallback: bool = False


class CanonicalTask(BaseModel):
    """Normalizer output, not yet bound to a user or a stored row"""

    source_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    # None when the provider reports no completion state
    completed: Optional[bool] = None
    category: TaskCategory = TaskCategory.OTHER
    course: Optional[str] = None
    source_url: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SyncState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    UPSERTING = "upserting"
    SUMMARIZING = "summarizing"
    DONE = "done"
    FAILED = "failed"


class SyncSummary(BaseModel):
    provider: str
    success: bool = True
    state: SyncState = SyncState.IDLE
    items_processed: int = 0
    created: int = 0
    updated: int = 0
    filtered: int = 0
    failed: int = 0
    purged: int = 0
    auth_expired: bool = False
    message: Optional[str] = None
    error: Optional[str] = None

    @property
    def item_count(self) -> int:
        return self.created + self.updated

    def to_response(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        data["item_count"] = self.item_count
        return data


class SyncAllResponse(BaseModel):
    success: bool
    message: str
    results: List[Dict[str, Any]] = Field(default_factory=list)
