"""
Task model - the canonical, provider-agnostic unit produced by every sync
"""
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Enum, JSON,
    UniqueConstraint,
)
from clariti.database import Base
from clariti.utils.helpers import utcnow
import enum


class TaskCategory(str, enum.Enum):
    ASSIGNMENT = "assignment"
    ANNOUNCEMENT = "announcement"
    QUIZ = "quiz"
    DISCUSSION = "discussion"
    MEETING = "meeting"
    EMAIL = "email"
    CALENDAR = "calendar"
    OTHER = "other"


class TaskSource(str, enum.Enum):
    CANVAS = "canvas"
    GMAIL = "gmail"
    GOOGLE_CALENDAR = "google_calendar"
    SLACK = "slack"


# Categories that are meaningless without a deadline
DEADLINE_REQUIRED = {
    TaskCategory.ASSIGNMENT,
    TaskCategory.QUIZ,
    TaskCategory.DISCUSSION,
    TaskCategory.MEETING,
}


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        UniqueConstraint("user_id", "source", "source_id", name="uq_task_user_source_item"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(DateTime, nullable=True)

    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)

    # Ranking signals, written by the prioritization pass
    priority = Column(Integer, nullable=False, default=5)  # 0-10
    urgency_score = Column(Integer, nullable=False, default=5)  # 1-10
    ai_summary = Column(Text, nullable=True)
    ai_processed = Column(Boolean, nullable=False, default=False)

    category = Column(Enum(TaskCategory, native_enum=False), nullable=False, default=TaskCategory.OTHER)
    course = Column(String, nullable=True)

    # Provenance
    source = Column(Enum(TaskSource, native_enum=False), nullable=False)
    source_id = Column(String, nullable=False)
    source_url = Column(String, nullable=True)

    # "metadata" is reserved on declarative classes
    task_metadata = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
