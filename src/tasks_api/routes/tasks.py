"""Task CRUD endpoints.

Each handler issues exactly one statement through the repository. Storage
errors are not caught here; they reach the ``TaskAPIError`` handler in
``tasks_api.errors`` together with not-found errors raised below.
"""

import logging

from fastapi import APIRouter, Response, status
from opentelemetry import metrics

from tasks_api import schemas
from tasks_api.dependencies import RepositoryDep, ShipperDep
from tasks_api.errors import TaskNotFoundError


logger = logging.getLogger(__name__)
meter = metrics.get_meter(__name__)

task_operations = meter.create_counter(
    name="tasks.operations",
    description="Task store operations by outcome",
    unit="{operation}",
)

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
    responses={500: {"model": schemas.ErrorResponse}},
)

_not_found = {404: {"model": schemas.ErrorResponse}}


def _not_found_error(task_id: str, operation: str) -> TaskNotFoundError:
    task_operations.add(1, {"operation": operation, "outcome": "not_found"})
    return TaskNotFoundError(task_id, operation)


@router.get("", response_model=list[schemas.Task])
async def list_tasks(repository: RepositoryDep) -> list[schemas.Task]:
    tasks = await repository.list_tasks()
    task_operations.add(1, {"operation": "list", "outcome": "ok"})
    return tasks


@router.get("/{task_id}", response_model=schemas.Task, responses=_not_found)
async def get_task(task_id: str, repository: RepositoryDep) -> schemas.Task:
    task = await repository.get_task(task_id)
    if task is None:
        raise _not_found_error(task_id, "get")
    task_operations.add(1, {"operation": "get", "outcome": "ok"})
    return task


@router.post("", response_model=schemas.Task, status_code=status.HTTP_201_CREATED)
async def create_task(
    repository: RepositoryDep,
    shipper: ShipperDep,
    payload: schemas.TaskCreate | None = None,
) -> schemas.Task:
    payload = payload or schemas.TaskCreate()
    task = await repository.create_task(payload.title, payload.description)

    task_operations.add(1, {"operation": "create", "outcome": "ok"})
    logger.info("Task created: ID %d", task.id)
    shipper.info("Task created", {"task": task.model_dump(mode="json")})
    return task


@router.put("/{task_id}", response_model=schemas.Task, responses=_not_found)
async def update_task(
    task_id: str,
    repository: RepositoryDep,
    shipper: ShipperDep,
    payload: schemas.TaskUpdate | None = None,
) -> schemas.Task:
    payload = payload or schemas.TaskUpdate()
    task = await repository.update_task(
        task_id, payload.title, payload.description, payload.completed
    )
    if task is None:
        raise _not_found_error(task_id, "update")

    task_operations.add(1, {"operation": "update", "outcome": "ok"})
    logger.info("Task updated: ID %d", task.id)
    shipper.info("Task updated", {"task": task.model_dump(mode="json")})
    return task


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=_not_found,
)
async def delete_task(task_id: str, repository: RepositoryDep, shipper: ShipperDep) -> Response:
    task = await repository.delete_task(task_id)
    if task is None:
        raise _not_found_error(task_id, "delete")

    task_operations.add(1, {"operation": "delete", "outcome": "ok"})
    logger.info("Task deleted: ID %d", task.id)
    shipper.info(f"Task deleted: ID {task.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
