from fastapi import APIRouter, Depends

from taskflow.database import Database, get_database
from taskflow.models import InitResponse, StatsResponse
from taskflow.services.task_service import TaskServiceDep

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/stats", response_model=StatsResponse, response_model_exclude_none=True)
async def get_stats(service: TaskServiceDep):
    """Task counts in total and grouped by category, priority and status."""
    return StatsResponse(**await service.get_stats())


@router.post("/init", response_model=InitResponse)
async def initialize(
    service: TaskServiceDep, database: Database = Depends(get_database)
):
    """Seed the sample tasks when the table is empty."""
    count, collection_exists = await service.initialize(database)
    return InitResponse(
        message="Database initialized successfully",
        tasks_count=count,
        collection_exists=collection_exists,
    )
