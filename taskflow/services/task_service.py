import logging
from functools import wraps

from fastapi import Depends, Request
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession
from typing_extensions import Annotated

from taskflow.cache.decorators import async_cached, async_cached_expire
from taskflow.cache.layer import CacheLayer
from taskflow.core.config import Settings, SettingsDep
from taskflow.core.exceptions import NotFoundError, StoreError
from taskflow.database import Database, get_db
from taskflow.models import (
    DEFAULT_CATEGORY,
    GroupCount,
    LatestItem,
    Task,
    TaskCreate,
    TaskPriority,
    TaskRead,
    TaskStatus,
    TaskUpdate,
    get_utc_now,
)
from taskflow.services.samples import SAMPLE_TASKS, random_color

logger = logging.getLogger(__name__)

ALL = "all"
LATEST_ITEMS_LIMIT = 5


def store_operation(failure_message: str):
    """Translate driver failures into StoreError after rolling back."""

    def decorator(fn):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            try:
                return await fn(self, *args, **kwargs)
            except (SQLAlchemyError, OSError) as e:
                logger.exception(failure_message)
                try:
                    await self.db.rollback()
                except SQLAlchemyError:
                    logger.warning("Rollback failed", exc_info=True)
                raise StoreError(failure_message, details=str(e)) from e

        return wrapper

    return decorator


def _task_key(self, task_id, *_, **__):
    return f"task:{task_id}"


class TaskService:
    """CRUD, search, aggregates and seeding over the ``tasks`` table.

    One instance per request; ``task_id`` arguments are expected to be
    normalized already (see ``taskflow.models.parse_task_id``).
    """

    def __init__(
        self, db: AsyncSession, settings: Settings, cache: CacheLayer | None = None
    ):
        self.db = db
        self.settings = settings
        self.cache = cache

    def _to_read(self, task: Task) -> TaskRead:
        item = TaskRead.model_validate(task)
        if not self.settings.status_field:
            item.status = None
        if not self.settings.tracks_completion:
            item.completed_at = None
        return item

    async def _count(self) -> int:
        result = await self.db.exec(select(func.count()).select_from(Task))
        return result.one()

    async def _group_counts(self, column) -> list[GroupCount]:
        task_count = func.count().label("task_count")
        statement = (
            select(column, task_count)
            .where(col(column).is_not(None))
            .group_by(column)
            .order_by(task_count.desc(), column)
        )
        rows = (await self.db.exec(statement)).all()
        return [GroupCount(id=key, count=count) for key, count in rows]

    @store_operation("Failed to create task")
    async def create_task(self, task_data: TaskCreate) -> TaskRead:
        now = get_utc_now()
        task = Task(
            name=task_data.name,
            description=task_data.description or "",
            category=task_data.category or DEFAULT_CATEGORY,
            priority=(task_data.priority or TaskPriority.medium).value,
            color=task_data.color or random_color(),
            created_at=now,
            updated_at=now,
        )
        if self.settings.status_field:
            task.status = (task_data.status or TaskStatus.not_started).value
            if (
                self.settings.tracks_completion
                and task.status == TaskStatus.completed.value
            ):
                task.completed_at = now

        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)
        logger.info(f"Created task {task.id}")
        return self._to_read(task)

    @store_operation("Failed to fetch tasks")
    async def list_tasks(
        self,
        category: str | None = None,
        status: str | None = None,
        search: str | None = None,
    ) -> tuple[list[TaskRead], int]:
        """Filtered tasks, newest first, plus the unfiltered total."""
        query = select(Task)
        if category and category != ALL:
            query = query.where(Task.category == category)
        if self.settings.status_field and status and status != ALL:
            query = query.where(Task.status == status)
        if search:
            query = query.where(
                or_(
                    col(Task.name).icontains(search, autoescape=True),
                    col(Task.description).icontains(search, autoescape=True),
                )
            )
        query = query.order_by(col(Task.created_at).desc())

        tasks = (await self.db.exec(query)).all()
        total = await self._count()
        logger.debug(f"Retrieved {len(tasks)} tasks (Total: {total})")
        return [self._to_read(task) for task in tasks], total

    @async_cached(_task_key, model=TaskRead, l2_ttl=120)
    async def find_task(self, task_id: str) -> TaskRead | None:
        task = await self.db.get(Task, task_id)
        return self._to_read(task) if task else None

    @store_operation("Failed to fetch task")
    async def get_task(self, task_id: str) -> TaskRead:
        item = await self.find_task(task_id)
        if item is None:
            raise NotFoundError("Task not found")
        return item

    # write-through invalidation: the cached copy is dropped after commit
    @store_operation("Failed to update task")
    @async_cached_expire(_task_key)
    async def update_task(self, task_id: str, task_data: TaskUpdate) -> TaskRead:
        task = await self.db.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task not found")

        updates = task_data.model_dump(mode="json", exclude_unset=True, exclude_none=True)
        if not self.settings.status_field:
            updates.pop("status", None)
        task.sqlmodel_update(updates)

        now = get_utc_now()
        if self.settings.tracks_completion and "status" in updates:
            if updates["status"] == TaskStatus.completed.value:
                if task.completed_at is None:
                    task.completed_at = now
            else:
                task.completed_at = None
        task.updated_at = now

        self.db.add(task)
        await self.db.commit()
        await self.db.refresh(task)
        logger.info(f"Updated task {task_id}")
        return self._to_read(task)

    @store_operation("Failed to delete task")
    @async_cached_expire(_task_key)
    async def delete_task(self, task_id: str) -> None:
        task = await self.db.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task not found")
        await self.db.delete(task)
        await self.db.commit()
        logger.info(f"Deleted task {task_id}")

    @store_operation("Failed to fetch stats")
    async def get_stats(self) -> dict:
        total = await self._count()
        categories = await self._group_counts(Task.category)
        priority_stats = await self._group_counts(Task.priority)
        status_stats = None
        if self.settings.status_field:
            status_stats = await self._group_counts(Task.status)

        latest = await self.db.exec(
            select(Task).order_by(col(Task.created_at).desc()).limit(LATEST_ITEMS_LIMIT)
        )
        logger.debug("Stats requested")
        return {
            "total_items": total,
            "categories": categories,
            "priority_stats": priority_stats,
            "status_stats": status_stats,
            "latest_items": [LatestItem.model_validate(task) for task in latest.all()],
        }

    @store_operation("Failed to initialize database")
    async def initialize(self, database: Database) -> tuple[int, bool]:
        """Create the table if needed and seed it when empty.

        Returns the task count before seeding and whether the table existed.
        """
        table_exists = await database.table_exists(Task.__tablename__)
        if not table_exists:
            await database.create_tables()
            logger.info(f"Created '{Task.__tablename__}' table and indexes")

        count = await self._count()
        if count == 0:
            now = get_utc_now()
            for sample in SAMPLE_TASKS:
                task = Task(**sample, created_at=now, updated_at=now)
                if not self.settings.status_field:
                    task.status = None
                elif (
                    self.settings.tracks_completion
                    and task.status == TaskStatus.completed.value
                ):
                    task.completed_at = now
                self.db.add(task)
            await self.db.commit()
            logger.info(f"Added {len(SAMPLE_TASKS)} sample tasks")
        return count, table_exists


def get_task_service(
    request: Request,
    settings: SettingsDep,
    db: AsyncSession = Depends(get_db),
) -> TaskService:
    return TaskService(db, settings, request.app.state.cache)


TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]
