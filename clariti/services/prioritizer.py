"""
Prioritization pass - scores upcoming tasks with the model, falling back to
deadline proximity
"""
import logging
import math
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clariti.config import get_settings
from clariti.models.task import Task
from clariti.services.classifier_service import ClassifierService, classifier_service
from clariti.services.prompts import PRIORITY_PROMPT
from clariti.utils.helpers import utcnow

settings = get_settings()
logger = logging.getLogger(__name__)

PRIORITY_RE = re.compile(r"Priority:\s*(\d+)", re.IGNORECASE)
URGENCY_RE = re.compile(r"Urgency:\s*(\d+)", re.IGNORECASE)
REASONING_RE = re.compile(r"Reasoning:\s*(.+)", re.IGNORECASE | re.DOTALL)

NO_DUE_DATE_DAYS = 30


class PriorityScore(BaseModel):
    priority: int
    urgency_score: int
    reasoning: str


def days_until(due_date: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    if due_date is None:
        return None
    now = now or utcnow()
    return math.ceil((due_date - now).total_seconds() / 86400)


def deadline_score(due_date: Optional[datetime], now: Optional[datetime] = None) -> PriorityScore:
    """Score from deadline proximity alone"""
    days = days_until(due_date, now)
    if days is None:
        days = NO_DUE_DATE_DAYS

    if days <= 1:
        priority, urgency = 10, 10
    elif days <= 3:
        priority, urgency = 8, 9
    elif days <= 7:
        priority, urgency = 6, 7
    else:
        priority, urgency = 5, 5
    return PriorityScore(
        priority=priority,
        urgency_score=urgency,
        reasoning="Calculated based on deadline proximity",
    )


def parse_priority_reply(text: str) -> PriorityScore:
    priority_match = PRIORITY_RE.search(text)
    urgency_match = URGENCY_RE.search(text)
    reasoning_match = REASONING_RE.search(text)

    priority = min(10, max(0, int(priority_match.group(1)))) if priority_match else 5
    urgency = min(10, max(1, int(urgency_match.group(1)))) if urgency_match else 5
    reasoning = reasoning_match.group(1).strip() if reasoning_match else "No reasoning provided"
    return PriorityScore(priority=priority, urgency_score=urgency, reasoning=reasoning)


def build_priority_prompt(task: Task, now: Optional[datetime] = None) -> str:
    days = days_until(task.due_date, now)
    return PRIORITY_PROMPT.format(
        title=task.title,
        description_line=f"Description: {task.description}" if task.description else "",
        course_line=f"Course: {task.course}" if task.course else "",
        due_line=f"Days until due: {days}" if days is not None else "No due date",
        source=task.source.value if task.source is not None else "unknown",
    )


class Prioritizer:
    def __init__(self, db: AsyncSession, gateway: Optional[ClassifierService] = None):
        self.db = db
        self.gateway = gateway or classifier_service

    async def score(self, task: Task) -> PriorityScore:
        try:
            reply = await self.gateway.generate_response(
                prompt=build_priority_prompt(task),
                max_tokens=150,
            )
            return parse_priority_reply(reply)
        except Exception as e:
            logger.warning(f"Priority model unavailable for task {task.id}, using deadline score: {e}")
            return deadline_score(task.due_date)

    async def prioritize_user(self, user_id: int, window_days: Optional[int] = None) -> Dict[str, Any]:
        now = utcnow()
        horizon = now + timedelta(days=window_days or settings.PRIORITIZE_WINDOW_DAYS)
        result = await self.db.execute(
            select(Task)
            .where(
                Task.user_id == user_id,
                Task.completed.is_(False),
                Task.due_date >= now,
                Task.due_date <= horizon,
            )
            .order_by(Task.due_date.asc())
        )
        tasks = result.scalars().all()

        if not tasks:
            return {"success": True, "message": "No tasks to prioritize", "prioritized_count": 0, "total_tasks": 0}

        prioritized = 0
        for task in tasks:
            try:
                score = await self.score(task)
                task.priority = score.priority
                task.urgency_score = score.urgency_score
                task.ai_summary = score.reasoning
                task.ai_processed = True
                await self.db.flush()
                prioritized += 1
            except Exception as e:
                logger.error(f"Error prioritizing task {task.id}: {e}")

        await self.db.commit()
        return {
            "success": True,
            "message": f"Prioritized {prioritized} tasks",
            "prioritized_count": prioritized,
            "total_tasks": len(tasks),
        }
