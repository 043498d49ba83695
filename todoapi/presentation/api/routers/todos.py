from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from ....core.dependencies import get_todo_service
from ....domain.errors import EditConflictError, FailedValidationError, RecordNotFoundError
from ....domain.filters import Filters
from ....domain.models import TODOS_READ, TODOS_WRITE, Todo, User
from ....domain.validator import Validator, parse_record_id
from ....services.todo_service import TodoService
from ..dependencies import require_permission
from ..errors import EDIT_CONFLICT_MESSAGE, NOT_FOUND_MESSAGE
from ..json_body import json_body
from ..query import read_bool, read_int, read_string
from ..schemas.todo import CreateTodoPayload, UpdateTodoPayload

router = APIRouter(prefix="/v1/todos", tags=["todos"])


def serialize_todo(todo: Todo) -> Dict[str, Any]:
    return {
        "id": todo.id,
        "created_at": todo.created_at.isoformat(),
        "text": todo.text,
        "contexts": todo.contexts,
        "projects": todo.projects,
        "priority": todo.priority,
        "completed": todo.completed,
        "archived": todo.archived,
        "version": todo.version,
    }


def todo_id_param(todo_id: str) -> int:
    parsed = parse_record_id(todo_id)
    if parsed is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_MESSAGE)
    return parsed


@router.get("")
def list_todos(
    request: Request,
    user: User = Depends(require_permission(TODOS_READ)),
    todo_service: TodoService = Depends(get_todo_service),
) -> Dict[str, Any]:
    qs = request.query_params
    v = Validator()
    text = read_string(qs, "text", "")
    filters = Filters(
        page=read_int(qs, "page", 1, v),
        page_size=read_int(qs, "page_size", 20, v),
        sort=read_string(qs, "sort", "id"),
        include_archived=read_bool(qs, "include-archived", False, v),
        only_archived=read_bool(qs, "only-archived", False, v),
        done=read_bool(qs, "done", False, v),
        undone=read_bool(qs, "undone", False, v),
    )
    if not v.valid():
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=v.errors)

    try:
        todos, pagination = todo_service.list_todos(user.id, text, filters)
    except FailedValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.errors) from exc
    return {
        "todos": [serialize_todo(todo) for todo in todos],
        "paginationData": pagination.as_dict(),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_todo(
    response: Response,
    user: User = Depends(require_permission(TODOS_WRITE)),
    payload: CreateTodoPayload = Depends(json_body(CreateTodoPayload)),
    todo_service: TodoService = Depends(get_todo_service),
) -> Dict[str, Any]:
    try:
        todo = todo_service.create(
            user_id=user.id,
            text=payload.text or "",
            contexts=payload.contexts,
            projects=payload.projects,
            priority=payload.priority,
            completed=payload.completed,
            archived=bool(payload.archived),
        )
    except FailedValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.errors) from exc
    response.headers["Location"] = f"/v1/todos/{todo.id}"
    return {"todo": serialize_todo(todo)}


@router.get("/{todo_id}")
def get_todo(
    user: User = Depends(require_permission(TODOS_READ)),
    todo_id: int = Depends(todo_id_param),
    todo_service: TodoService = Depends(get_todo_service),
) -> Dict[str, Any]:
    try:
        todo = todo_service.get(todo_id, user.id)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_MESSAGE) from exc
    return {"todo": serialize_todo(todo)}


@router.patch("/{todo_id}")
def update_todo(
    user: User = Depends(require_permission(TODOS_WRITE)),
    todo_id: int = Depends(todo_id_param),
    payload: UpdateTodoPayload = Depends(json_body(UpdateTodoPayload)),
    todo_service: TodoService = Depends(get_todo_service),
) -> Dict[str, Any]:
    try:
        todo = todo_service.update(
            todo_id,
            user.id,
            payload.changes(),
            expected_version=payload.version,
        )
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_MESSAGE) from exc
    except FailedValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.errors) from exc
    except EditConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EDIT_CONFLICT_MESSAGE) from exc
    return {"todo": serialize_todo(todo)}


@router.delete("/{todo_id}")
def delete_todo(
    user: User = Depends(require_permission(TODOS_WRITE)),
    todo_id: int = Depends(todo_id_param),
    todo_service: TodoService = Depends(get_todo_service),
) -> Dict[str, Any]:
    try:
        todo_service.delete(todo_id, user.id)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_MESSAGE) from exc
    return {"message": "todo successfully deleted"}
