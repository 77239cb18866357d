"""Job trigger endpoints, called by the external scheduler."""

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies.auth import require_service_token
from app.dependencies.services import get_task_registry
from app.scheduling import TaskRegistry, UnknownTaskError

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.get("")
async def list_jobs(
    _caller: str = Depends(require_service_token),
    registry: TaskRegistry = Depends(get_task_registry),
) -> list[dict]:
    """Registered jobs and their schedules."""
    return [
        {"name": task.name, "cron": task.cron, "timezone": task.timezone}
        for task in registry.all()
    ]


@router.post("/{name}")
async def run_job(
    name: str,
    _caller: str = Depends(require_service_token),
    registry: TaskRegistry = Depends(get_task_registry),
) -> dict:
    """Run a job now and return its result (None when it failed)."""
    try:
        result = await registry.run(name)
    except UnknownTaskError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown job: {name}"
        ) from e

    if hasattr(result, "model_dump"):
        result = result.model_dump()
    return {"name": name, "status": "failed" if result is None else "completed", "result": result}
