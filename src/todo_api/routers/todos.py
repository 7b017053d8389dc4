from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ..errors import NotFoundError
from ..schemas import ApiResponse, TodoCreate, TodoOut, TodoUpdate
from ..service import TodoService, get_todo_service

router = APIRouter(
    prefix="/api/todos",
    tags=["todos"],
)


def _get_service(service: TodoService = Depends(get_todo_service)) -> TodoService:
    """
    Dependency wrapper for the service to keep signatures clean.
    """
    return service


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=ApiResponse[List[TodoOut]],
    response_model_exclude_none=True,
    summary="List Todos",
    description=(
        "List todos with optional filters, most recently updated first.\n\n"
        "Query parameters:\n"
        "- priority: only todos with this priority (1..5)\n"
        "- completed: filter by completion status\n\n"
        "Filters combine with AND; omitted filters match everything."
    ),
    responses={
        200: {"description": "List retrieved successfully"},
        400: {"description": "Invalid query parameters"},
    },
)
def list_todos(
    priority: Optional[int] = Query(None, description="Filter by priority"),
    completed: Optional[bool] = Query(None, description="Filter by completion status"),
    service: TodoService = Depends(_get_service),
) -> ApiResponse[List[TodoOut]]:
    """
    List todos with filters.
    """
    items = service.list_todos(priority=priority, completed=completed)
    return ApiResponse[List[TodoOut]](
        status_code=status.HTTP_200_OK,
        message="Tasks retrieved successfully",
        data=[TodoOut(**it) for it in items],  # type: ignore[arg-type]
    )


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ApiResponse[TodoOut],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    summary="Create Todo",
    description="Create a new Todo item and return the created resource.",
    responses={
        201: {"description": "Todo created successfully"},
        400: {"description": "Validation error"},
    },
)
def create_todo(payload: TodoCreate, service: TodoService = Depends(_get_service)) -> ApiResponse[TodoOut]:
    """
    Create a new Todo.
    """
    created = service.create(payload)
    return ApiResponse[TodoOut](
        status_code=status.HTTP_201_CREATED,
        message="Task created successfully",
        data=TodoOut(**created),  # type: ignore[arg-type]
    )


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}",
    response_model=ApiResponse[TodoOut],
    response_model_exclude_none=True,
    summary="Get Todo",
    description="Get a single Todo item by ID.",
    responses={
        200: {"description": "Todo found"},
        404: {"description": "Todo not found"},
    },
)
def get_todo(todo_id: int, service: TodoService = Depends(_get_service)) -> ApiResponse[TodoOut]:
    """
    Retrieve a single Todo item by its ID.
    """
    item = service.get_by_id(todo_id)
    if item is None:
        raise NotFoundError("Task not found")
    return ApiResponse[TodoOut](
        status_code=status.HTTP_200_OK,
        message="Task retrieved successfully",
        data=TodoOut(**item),  # type: ignore[arg-type]
    )


# PUBLIC_INTERFACE
@router.put(
    "/{todo_id}",
    response_model=ApiResponse[TodoOut],
    response_model_exclude_none=True,
    summary="Update Todo",
    description=(
        "Partially update a Todo item. Only supplied fields change; blank title/description "
        "and empty due_date are ignored. `completed` is applied as given."
    ),
    responses={
        200: {"description": "Todo updated"},
        400: {"description": "Invalid due date or priority"},
        404: {"description": "Todo not found"},
    },
)
def update_todo(
    todo_id: int, payload: TodoUpdate, service: TodoService = Depends(_get_service)
) -> ApiResponse[TodoOut]:
    """
    Partial update of a Todo item. NotFoundError/ValidationError are mapped by app handlers.
    """
    updated = service.update(todo_id, payload)
    return ApiResponse[TodoOut](
        status_code=status.HTTP_200_OK,
        message="Task updated successfully",
        data=TodoOut(**updated),  # type: ignore[arg-type]
    )


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete Todo",
    description="Delete a Todo item by ID. Deleting an unknown ID also returns 204.",
    responses={
        204: {"description": "Todo deleted"},
    },
)
def delete_todo(todo_id: int, service: TodoService = Depends(_get_service)) -> Response:
    """
    Delete a Todo. Always 204.
    """
    service.delete(todo_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
