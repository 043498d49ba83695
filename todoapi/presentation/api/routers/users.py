from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from ....core.dependencies import get_user_service
from ....domain.errors import EditConflictError, FailedValidationError
from ....domain.models import User
from ....services.user_service import UserService
from ..errors import EDIT_CONFLICT_MESSAGE
from ..json_body import json_body
from ..schemas.user import ActivateUserPayload, RegisterUserPayload

router = APIRouter(prefix="/v1/users", tags=["users"])


def serialize_user(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "created_at": user.created_at.isoformat(),
        "name": user.name,
        "email": user.email,
        "activated": user.activated,
    }


@router.post("", status_code=status.HTTP_202_ACCEPTED)
def register_user(
    payload: RegisterUserPayload = Depends(json_body(RegisterUserPayload)),
    user_service: UserService = Depends(get_user_service),
) -> Dict[str, Any]:
    try:
        user = user_service.register(
            name=payload.name or "",
            email=payload.email or "",
            password=payload.password or "",
        )
    except FailedValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.errors) from exc
    return {"user": serialize_user(user)}


@router.put("/activation", status_code=status.HTTP_202_ACCEPTED)
def activate_user(
    payload: ActivateUserPayload = Depends(json_body(ActivateUserPayload)),
    user_service: UserService = Depends(get_user_service),
) -> Dict[str, Any]:
    try:
        user = user_service.activate(payload.token or "")
    except FailedValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.errors) from exc
    except EditConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EDIT_CONFLICT_MESSAGE) from exc
    return {"message": "user successfully activated", "user": serialize_user(user)}
