from __future__ import annotations

import re
from typing import Dict, Hashable, Iterable, Optional, Sequence

from .errors import FailedValidationError

PRIORITY_RX = re.compile(r"^[A-Z]$")
_ID_RX = re.compile(r"\+?[0-9]+")

# Record ids are stored as signed 64-bit SQLite integers.
MAX_RECORD_ID = 2**63 - 1


class Validator:
    """Accumulates field-level validation errors.

    Only the first message recorded for a field is kept, so callers can run
    every check without worrying about later checks overwriting more specific
    ones.
    """

    def __init__(self) -> None:
        self.errors: Dict[str, str] = {}

    def valid(self) -> bool:
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        self.errors.setdefault(key, message)

    def check(self, ok: bool, key: str, message: str) -> None:
        if not ok:
            self.add_error(key, message)

    def raise_if_invalid(self) -> None:
        if self.errors:
            raise FailedValidationError(self.errors)


def permitted_value(value: Hashable, permitted: Sequence[Hashable]) -> bool:
    return value in permitted


def unique(values: Optional[Iterable[Hashable]]) -> bool:
    items = list(values or [])
    return len(set(items)) == len(items)


def parse_record_id(raw: str) -> Optional[int]:
    """Return ``raw`` as a record id, or None unless it is a decimal in 1..2**63-1."""
    if not _ID_RX.fullmatch(raw):
        return None
    value = int(raw)
    if value < 1 or value > MAX_RECORD_ID:
        return None
    return value
