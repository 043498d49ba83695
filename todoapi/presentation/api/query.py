"""Query-string readers that record parse failures on a Validator."""

from starlette.datastructures import QueryParams

from ...domain.validator import Validator

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def read_string(qs: QueryParams, key: str, default: str) -> str:
    return qs.get(key) or default


def read_int(qs: QueryParams, key: str, default: int, v: Validator) -> int:
    raw = qs.get(key, "")
    if raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        v.add_error(key, "must be an integer value")
        return default


def read_bool(qs: QueryParams, key: str, default: bool, v: Validator) -> bool:
    raw = qs.get(key, "")
    if raw == "":
        return default
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    v.add_error(key, "must be a boolean value")
    return default
