"""Error envelopes shared by routers, dependencies and middleware."""

from typing import Any, Dict, Mapping, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .responses import PrettyJSONResponse

SERVER_ERROR_MESSAGE = "the server encountered a problem and could not process your request"
NOT_FOUND_MESSAGE = "the requested resource could not be found"
METHOD_NOT_ALLOWED_MESSAGE = "the %s method is not supported for this resource"
EDIT_CONFLICT_MESSAGE = "unable to update the record due to an edit conflict, please try again"
RATE_LIMIT_EXCEEDED_MESSAGE = "rate limit exceeded"
INVALID_CREDENTIALS_MESSAGE = "invalid authentication credentials"
INVALID_AUTHENTICATION_TOKEN_MESSAGE = "invalid or missing authentication token"
AUTHENTICATION_REQUIRED_MESSAGE = "you must be authenticated to access this resource"
ACTIVATION_REQUIRED_MESSAGE = "your user account must be activated to access this resource"
PERMISSION_REQUIRED_MESSAGE = "your user account doesn't have the necessary permissions to access this resource"


def error_response(
    status_code: int,
    message: Any,
    headers: Optional[Mapping[str, str]] = None,
) -> PrettyJSONResponse:
    return PrettyJSONResponse({"error": message}, status_code=status_code, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> PrettyJSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message: Any = NOT_FOUND_MESSAGE
    elif exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        message = METHOD_NOT_ALLOWED_MESSAGE % request.method
    else:
        message = exc.detail
    return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> PrettyJSONResponse:
    errors: Dict[str, str] = {}
    for error in exc.errors():
        key = str(error["loc"][-1]) if error.get("loc") else "request"
        errors.setdefault(key, error.get("msg", "is invalid"))
    return error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, errors)
