from fastapi import APIRouter, Depends, status

from ....core.dependencies import get_todo_service
from ....domain.models import TODOS_WRITE, User
from ....services.todo_service import TodoService
from ..dependencies import require_permission
from ..json_body import json_body
from ..responses import PrettyJSONResponse
from ..schemas.todo import BatchDeletePayload

router = APIRouter(prefix="/v1/batch", tags=["batch"])


@router.delete("/todos")
def delete_todos_batch(
    user: User = Depends(require_permission(TODOS_WRITE)),
    payload: BatchDeletePayload = Depends(json_body(BatchDeletePayload)),
    todo_service: TodoService = Depends(get_todo_service),
) -> PrettyJSONResponse:
    if not payload.ids:
        return PrettyJSONResponse(
            {"error": "no IDs provided", "success": False, "results": []},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    success, results = todo_service.batch_delete(payload.ids, user.id)
    return PrettyJSONResponse(
        {"success": success, "results": [result.as_dict() for result in results]},
        status_code=status.HTTP_200_OK if success else status.HTTP_400_BAD_REQUEST,
    )
