"""
Task endpoints - the ready list and maintenance passes
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from clariti.api.deps import get_current_user
from clariti.database import get_db
from clariti.models.task import TaskCategory, TaskSource
from clariti.models.user import User
from clariti.services.prioritizer import Prioritizer
from clariti.services.task_store import cleanup_duplicates, cleanup_junk_tasks, list_ready_tasks

router = APIRouter()


class TaskResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    due_date: Optional[datetime]
    completed: bool
    priority: int
    urgency_score: int
    category: TaskCategory
    course: Optional[str]
    source: TaskSource
    source_id: str
    source_url: Optional[str]
    ai_summary: Optional[str]
    metadata: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


def _build_task_response(task) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        title=task.title,
        description=task.description,
        due_date=task.due_date,
        completed=task.completed,
        priority=task.priority,
        urgency_score=task.urgency_score,
        category=task.category,
        course=task.course,
        source=task.source,
        source_id=task.source_id,
        source_url=task.source_url,
        ai_summary=task.ai_summary,
        metadata=task.task_metadata,
    )


@router.get("/", response_model=List[TaskResponse])
async def list_tasks(
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Incomplete tasks ordered by priority, urgency, then due date"""
    tasks = await list_ready_tasks(db, current_user.id, limit=limit)
    return [_build_task_response(t) for t in tasks]


@router.post("/cleanup")
async def cleanup_tasks(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    deleted = await cleanup_junk_tasks(db, current_user.id)
    await db.commit()
    return {
        "success": True,
        "message": f"Cleaned up {deleted} junk tasks",
        "deleted_count": deleted,
    }


@router.post("/cleanup-duplicates")
async def cleanup_duplicate_tasks(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    removed = await cleanup_duplicates(db, current_user.id)
    await db.commit()
    return {
        "success": True,
        "message": f"Removed {removed} duplicate tasks",
        "removed_count": removed,
    }


@router.post("/prioritize")
async def prioritize_tasks(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await Prioritizer(db).prioritize_user(current_user.id)
