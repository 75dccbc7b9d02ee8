from datetime import datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field as PydanticField, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy import DateTime
from sqlmodel import Column, Field, SQLModel

from taskflow.core.exceptions import BadRequestError

# category is free text; the UI offers work, personal, shopping, health,
# learning, finance, home and other
DEFAULT_CATEGORY = "work"
TITLE_REQUIRED = "Task title is required"


def get_utc_now():
    """Helper function to get current UTC time with timezone"""
    return datetime.now(timezone.utc)


def new_task_id() -> str:
    return uuid4().hex


def parse_task_id(raw: str) -> str:
    """Normalize a path identifier, rejecting anything that is not a UUID."""
    try:
        return UUID(raw).hex
    except (ValueError, AttributeError, TypeError):
        raise BadRequestError("Invalid task ID")


class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class TaskStatus(str, Enum):
    not_started = "not-started"
    in_progress = "in-progress"
    completed = "completed"


class Task(SQLModel, table=True):
    """Database model"""

    __tablename__ = "tasks"

    id: str = Field(default_factory=new_task_id, primary_key=True, max_length=32)
    name: str = Field(min_length=1, index=True)
    description: str = Field(default="")
    category: str = Field(default=DEFAULT_CATEGORY, index=True)
    priority: str = Field(default=TaskPriority.medium.value, index=True)
    status: str | None = Field(default=None, index=True)
    color: str
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    updated_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    completed_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class TaskCreate(BaseModel):
    """Schema for creating a task. Only the name is required."""

    name: str | None = PydanticField(default=None, validate_default=True)
    description: str | None = None
    category: str | None = None
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    color: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str | None) -> str:
        if value is None or not value.strip():
            raise ValueError(TITLE_REQUIRED)
        return value.strip()

    @field_validator("category", "priority", "status", "color", mode="before")
    @classmethod
    def blank_means_default(cls, value):
        return _blank_to_none(value)


class TaskUpdate(BaseModel):
    """Schema for updating a task - all fields optional.

    Immutable fields (``id``, ``_id``, ``createdAt``) and unknown keys are
    dropped by pydantic's default ``extra="ignore"``.
    """

    name: str | None = None
    description: str | None = None
    category: str | None = None
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    color: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str | None) -> str:
        # only runs when the client sent the key, so null is rejected too
        if value is None or not value.strip():
            raise ValueError(TITLE_REQUIRED)
        return value.strip()

    @field_validator("category", "priority", "status", "color", mode="before")
    @classmethod
    def blank_means_default(cls, value):
        return _blank_to_none(value)


class APIModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TaskRead(APIModel):
    """Schema for task responses"""

    id: str
    name: str
    description: str
    category: str
    priority: str
    status: str | None = None
    color: str
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None

    @field_validator("created_at", "updated_at", "completed_at")
    @classmethod
    def timestamps_in_utc(cls, value):
        return _as_utc(value)


class ItemResponse(APIModel):
    item: TaskRead
    success: bool = True


class ItemMessageResponse(ItemResponse):
    message: str


class ItemListResponse(APIModel):
    items: list[TaskRead]
    count: int
    total: int
    success: bool = True


class MessageResponse(APIModel):
    message: str
    success: bool = True


class GroupCount(APIModel):
    id: str = PydanticField(alias="_id")
    count: int


class LatestItem(APIModel):
    id: str
    name: str
    category: str
    priority: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def created_in_utc(cls, value):
        return _as_utc(value)


class StatsResponse(APIModel):
    total_items: int
    categories: list[GroupCount]
    priority_stats: list[GroupCount]
    status_stats: list[GroupCount] | None = None
    latest_items: list[LatestItem] = []
    success: bool = True


class InitResponse(APIModel):
    message: str
    tasks_count: int
    collection_exists: bool
    success: bool = True
