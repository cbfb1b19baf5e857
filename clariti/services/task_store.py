"""
Task store - idempotent upserts keyed by (user, source, source_id) and the
maintenance passes over stored tasks
"""
import enum
import logging
from typing import Iterable, List, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clariti.models.task import Task, TaskSource
from clariti.schemas import CanonicalTask
from clariti.services.heuristics import JUNK_PATTERNS
from clariti.utils.helpers import utcnow

logger = logging.getLogger(__name__)


class UpsertOutcome(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"


async def get_task(db: AsyncSession, user_id: int, source: TaskSource, source_id: str) -> Optional[Task]:
    result = await db.execute(
        select(Task).where(
            Task.user_id == user_id,
            Task.source == source,
            Task.source_id == source_id,
        )
    )
    return result.scalar_one_or_none()


async def upsert_task(db: AsyncSession, user_id: int, source: TaskSource, task: CanonicalTask) -> UpsertOutcome:
    """
    Insert the task, or overwrite the mutable fields of the stored row with
    the same (user, source, source_id). Ranking fields written by the
    prioritization pass are left alone on update, and completion only
    changes when the provider reports it.
    """
    existing = await get_task(db, user_id, source, task.source_id)
    now = utcnow()

    if existing is not None:
        existing.title = task.title
        existing.description = task.description
        existing.due_date = task.due_date
        if task.completed is not None:
            if task.completed and not existing.completed:
                existing.completed_at = now
            elif not task.completed:
                existing.completed_at = None
            existing.completed = task.completed
        existing.category = task.category
        existing.course = task.course
        existing.source_url = task.source_url
        existing.task_metadata = task.metadata
        existing.updated_at = now
        await db.flush()
        return UpsertOutcome.UPDATED

    db.add(Task(
        user_id=user_id,
        title=task.title,
        description=task.description,
        due_date=task.due_date,
        completed=bool(task.completed),
        completed_at=now if task.completed else None,
        category=task.category,
        course=task.course,
        source=source,
        source_id=task.source_id,
        source_url=task.source_url,
        task_metadata=task.metadata,
    ))
    # Make the row visible to later lookups in the same sync
    await db.flush()
    return UpsertOutcome.CREATED


async def purge_source(db: AsyncSession, user_id: int, source: TaskSource) -> int:
    result = await db.execute(
        delete(Task).where(Task.user_id == user_id, Task.source == source)
    )
    await db.flush()
    return result.rowcount or 0


async def cleanup_junk_tasks(db: AsyncSession, user_id: int, patterns: Iterable[str] = JUNK_PATTERNS) -> int:
    """Delete tasks whose title or description contains a junk pattern (case-insensitive)"""
    conditions = []
    for pattern in patterns:
        like = f"%{pattern.lower()}%"
        conditions.append(Task.title.ilike(like))
        conditions.append(Task.description.ilike(like))
    if not conditions:
        return 0

    result = await db.execute(select(Task).where(Task.user_id == user_id, or_(*conditions)))
    junk = result.scalars().all()
    for task in junk:
        await db.delete(task)
    await db.flush()

    if junk:
        logger.info(f"Removed {len(junk)} junk tasks for user {user_id}")
    return len(junk)


def normalize_source_id(task: Task) -> str:
    """Legacy ids were bare provider ids; current ids carry a `<category>_` prefix"""
    if "_" in task.source_id:
        return task.source_id
    category = task.category.value if task.category is not None else "other"
    return f"{category}_{task.source_id}"


async def cleanup_duplicates(db: AsyncSession, user_id: int, source: TaskSource = TaskSource.CANVAS) -> int:
    """
    Merge tasks that share a normalized source id. The oldest row survives
    (renamed to the normalized id when needed); the rest are deleted.
    """
    result = await db.execute(
        select(Task)
        .where(Task.user_id == user_id, Task.source == source)
        .order_by(Task.created_at.asc(), Task.id.asc())
    )
    tasks = result.scalars().all()

    keepers = {}
    duplicates: List[Task] = []
    for task in tasks:
        key = normalize_source_id(task)
        if key in keepers:
            duplicates.append(task)
        else:
            keepers[key] = task

    # Delete first so a rename never collides with a row still in the table
    for task in duplicates:
        await db.delete(task)
    await db.flush()

    for key, task in keepers.items():
        if task.source_id != key:
            task.source_id = key
    await db.flush()

    if duplicates:
        logger.info(f"Removed {len(duplicates)} duplicate {source.value} tasks for user {user_id}")
    return len(duplicates)


async def list_ready_tasks(db: AsyncSession, user_id: int, limit: int = 50) -> List[Task]:
    """Incomplete tasks, most pressing first"""
    result = await db.execute(
        select(Task)
        .where(Task.user_id == user_id, Task.completed.is_(False))
        .order_by(
            Task.priority.desc(),
            Task.urgency_score.desc(),
            Task.due_date.asc().nullslast(),
        )
        .limit(limit)
    )
    return list(result.scalars().all())
