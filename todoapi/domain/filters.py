from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from .validator import Validator, permitted_value

TODO_SORT_SAFELIST: Tuple[str, ...] = (
    "id",
    "text",
    "priority",
    "created_at",
    "-id",
    "-text",
    "-priority",
    "-created_at",
)

MAX_PAGE = 10_000_000
MAX_PAGE_SIZE = 100


@dataclass(slots=True)
class Filters:
    """Pagination, sorting and flag filters for listing todos.

    The default archive flags (both False) select unarchived todos only; the
    default completion flags (both False) select todos in either state.
    """

    page: int = 1
    page_size: int = 20
    sort: str = "id"
    sort_safelist: Tuple[str, ...] = field(default=TODO_SORT_SAFELIST)
    include_archived: bool = False
    only_archived: bool = False
    done: bool = False
    undone: bool = False

    def sort_column(self) -> str:
        # Column names are interpolated into SQL, so this must never pass an
        # unchecked key through.
        if self.sort not in self.sort_safelist:
            raise AssertionError(f"unsafe sort parameter: {self.sort}")
        return self.sort.lstrip("-")

    def sort_direction(self) -> str:
        return "DESC" if self.sort.startswith("-") else "ASC"

    def limit(self) -> int:
        return self.page_size

    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def validate_filters(v: Validator, f: Filters) -> None:
    v.check(f.page >= 1, "page", "must be at least 1")
    v.check(f.page <= MAX_PAGE, "page", "must be no more than 10,000,000")
    v.check(f.page_size >= 1, "page_size", "must be at least 1")
    v.check(f.page_size <= MAX_PAGE_SIZE, "page_size", "must be no more than 100")
    v.check(permitted_value(f.sort, f.sort_safelist), "sort", "invalid sorting key")

    if f.include_archived and f.only_archived:
        v.add_error("filters", "include-archived and only-archived are mutually exclusive")
    if f.done and f.undone:
        v.add_error("filters", "done and undone are mutually exclusive")


@dataclass(slots=True)
class PaginationData:
    current_page: int = 0
    page_size: int = 0
    first_page: int = 0
    last_page: int = 0
    total_records: int = 0

    @classmethod
    def calculate(cls, total_records: int, page: int, page_size: int) -> "PaginationData":
        if total_records == 0:
            return cls()
        return cls(
            current_page=page,
            page_size=page_size,
            first_page=1,
            last_page=(total_records + page_size - 1) // page_size,
            total_records=total_records,
        )

    def as_dict(self) -> Dict[str, Any]:
        # Zero values are omitted, so an empty result set serialises to {}.
        data = {
            "current_page": self.current_page,
            "page_size": self.page_size,
            "first_page": self.first_page,
            "last_page": self.last_page,
            "total_records": self.total_records,
        }
        return {key: value for key, value in data.items() if value}
