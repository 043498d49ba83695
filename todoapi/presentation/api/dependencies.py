from fastapi import Depends, HTTPException, Request, status

from ...core.dependencies import get_user_service
from ...domain.models import ANONYMOUS_USER, User
from ...services.user_service import UserService
from .errors import (
    ACTIVATION_REQUIRED_MESSAGE,
    AUTHENTICATION_REQUIRED_MESSAGE,
    PERMISSION_REQUIRED_MESSAGE,
)


def get_request_user(request: Request) -> User:
    return getattr(request.state, "user", ANONYMOUS_USER)


def require_authenticated_user(user: User = Depends(get_request_user)) -> User:
    if user.is_anonymous:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=AUTHENTICATION_REQUIRED_MESSAGE)
    return user


def require_activated_user(user: User = Depends(require_authenticated_user)) -> User:
    if not user.activated:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ACTIVATION_REQUIRED_MESSAGE)
    return user


def require_permission(code: str):
    """Build a dependency admitting activated users that hold ``code``."""

    def dependency(
        user: User = Depends(require_activated_user),
        user_service: UserService = Depends(get_user_service),
    ) -> User:
        if not user_service.get_permissions(user.id).includes(code):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=PERMISSION_REQUIRED_MESSAGE)
        return user

    return dependency
