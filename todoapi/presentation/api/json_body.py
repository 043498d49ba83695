"""Strict JSON request-body decoding into pydantic payloads."""

import re
from typing import Any, Callable, Coroutine, Type, TypeVar

from fastapi import HTTPException, Request, status
from pydantic import BaseModel, ValidationError

from ...domain.errors import MalformedBodyError

MAX_BODY_BYTES = 1_048_576

PayloadT = TypeVar("PayloadT", bound=BaseModel)

_POSITION_RX = re.compile(r"line (\d+) column (\d+)")


def _field_name(error: Any) -> str:
    loc = error.get("loc") or ()
    return ".".join(str(part) for part in loc)


def _offset(body: bytes, reason: str) -> int:
    """Translate the parser's "line L column C" into a byte offset into ``body``."""
    match = _POSITION_RX.search(reason)
    if match is None:
        return 0
    line, column = int(match.group(1)), int(match.group(2))
    preceding = body.split(b"\n")[: line - 1]
    return sum(len(part) + 1 for part in preceding) + max(column - 1, 0)


def _malformed(body: bytes, error: Any) -> MalformedBodyError:
    kind = error["type"]
    if kind == "json_invalid":
        reason = str((error.get("ctx") or {}).get("error") or error.get("msg", ""))
        if "trailing characters" in reason:
            return MalformedBodyError("body must contain only a single JSON value")
        if "EOF while parsing" in reason:
            return MalformedBodyError("body contains badly-formed JSON")
        return MalformedBodyError(f"body contains badly-formed JSON (at character {_offset(body, reason)})")
    if not error.get("loc"):
        # The document itself is not an object.
        return MalformedBodyError("body contains incorrect JSON type")
    if kind == "extra_forbidden":
        return MalformedBodyError(f'body contains unknown field "{_field_name(error)}"')
    return MalformedBodyError(f'body contains JSON of incorrect type for field "{_field_name(error)}"')


async def read_json(request: Request, model: Type[PayloadT]) -> PayloadT:
    """
    Decode the request body into ``model``.

    Raises:
        MalformedBodyError: With a message naming the specific problem
    """
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > MAX_BODY_BYTES:
            raise MalformedBodyError(f"body must not exceed {MAX_BODY_BYTES} bytes")

    if not body.strip():
        raise MalformedBodyError("request body must not be empty")

    raw = bytes(body)
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        raise _malformed(raw, exc.errors()[0]) from exc


def json_body(model: Type[PayloadT]) -> Callable[[Request], Coroutine[Any, Any, PayloadT]]:
    """
    Build a dependency that reads the request body into ``model``.

    Decoding problems become 400 responses. Passing anything other than a
    pydantic model class is a programming error and fails immediately.
    """
    if not (isinstance(model, type) and issubclass(model, BaseModel)):
        raise TypeError(f"json_body() requires a pydantic model class, got {model!r}")

    async def dependency(request: Request) -> PayloadT:
        try:
            return await read_json(request, model)
        except MalformedBodyError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return dependency
