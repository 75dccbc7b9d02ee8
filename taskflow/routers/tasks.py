from fastapi import APIRouter, status

from taskflow.models import (
    ItemListResponse,
    ItemMessageResponse,
    ItemResponse,
    MessageResponse,
    TaskCreate,
    TaskUpdate,
    parse_task_id,
)
from taskflow.services.task_service import TaskServiceDep

router = APIRouter(prefix="/api/items", tags=["tasks"])


@router.post(
    "",
    response_model=ItemMessageResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_task(task_data: TaskCreate, service: TaskServiceDep):
    """Create a new task"""
    item = await service.create_task(task_data)
    return ItemMessageResponse(message="Task created successfully", item=item)


@router.get("", response_model=ItemListResponse, response_model_exclude_none=True)
async def list_tasks(
    service: TaskServiceDep,
    category: str | None = None,
    status: str | None = None,
    search: str | None = None,
):
    """List tasks, newest first. ``all`` disables the category/status filter."""
    items, total = await service.list_tasks(category, status, search)
    return ItemListResponse(items=items, count=len(items), total=total)


@router.get("/{task_id}", response_model=ItemResponse, response_model_exclude_none=True)
async def get_task(task_id: str, service: TaskServiceDep):
    item = await service.get_task(parse_task_id(task_id))
    return ItemResponse(item=item)


@router.put(
    "/{task_id}", response_model=ItemMessageResponse, response_model_exclude_none=True
)
async def update_task(task_id: str, task_data: TaskUpdate, service: TaskServiceDep):
    """Partially update a task; ``id`` and ``createdAt`` cannot be changed."""
    item = await service.update_task(parse_task_id(task_id), task_data)
    return ItemMessageResponse(message="Task updated successfully", item=item)


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(task_id: str, service: TaskServiceDep):
    """Delete a task"""
    await service.delete_task(parse_task_id(task_id))
    return MessageResponse(message="Task deleted successfully")
