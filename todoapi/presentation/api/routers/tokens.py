from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from ....core.dependencies import get_user_service
from ....domain.errors import FailedValidationError
from ....services.user_service import UserService
from ..errors import INVALID_CREDENTIALS_MESSAGE
from ..json_body import json_body
from ..schemas.token import AuthenticationTokenPayload
from ..schemas.user import ActivationTokenRequestPayload

router = APIRouter(prefix="/v1/tokens", tags=["tokens"])


@router.post("/activation", status_code=status.HTTP_202_ACCEPTED)
def create_activation_token(
    payload: ActivationTokenRequestPayload = Depends(json_body(ActivationTokenRequestPayload)),
    user_service: UserService = Depends(get_user_service),
) -> Dict[str, Any]:
    try:
        message = user_service.request_activation_token(payload.email or "")
    except FailedValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.errors) from exc
    return {"message": message}


@router.post("/authentication", status_code=status.HTTP_201_CREATED)
def create_authentication_token(
    payload: AuthenticationTokenPayload = Depends(json_body(AuthenticationTokenPayload)),
    user_service: UserService = Depends(get_user_service),
) -> Dict[str, Any]:
    try:
        token = user_service.authenticate(payload.email or "", payload.password or "")
    except FailedValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.errors) from exc
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS_MESSAGE)
    return {
        "authentication_token": {
            "token": token.plaintext,
            "expiry": token.expiry.isoformat(),
        }
    }
