from typing import Iterable

TODOS_READ = "todos:read"
TODOS_WRITE = "todos:write"

ALL_PERMISSION_CODES = (TODOS_READ, TODOS_WRITE)


class Permissions(list):
    """Permission codes granted to a single user."""

    def __init__(self, codes: Iterable[str] = ()) -> None:
        super().__init__(codes)

    def includes(self, code: str) -> bool:
        return code in self
