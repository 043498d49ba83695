from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol, Tuple

from ..filters import Filters, PaginationData
from ..models import Permissions, Todo, Token, TokenScope, User


class UserRepository(Protocol):
    """Persistence functions related to user accounts."""

    def insert_user(self, name: str, email: str, password_hash: str, activated: bool) -> User:
        ...

    def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    def update_user(self, user: User) -> User:
        ...

    def get_user_for_token(self, scope: TokenScope, token_hash: bytes, now: datetime) -> Optional[User]:
        ...


class TokenRepository(Protocol):
    """Persistence functions related to hashed capability tokens."""

    def insert_token(self, token: Token) -> None:
        ...

    def delete_tokens_for_user(self, scope: TokenScope, user_id: int) -> int:
        ...


class PermissionRepository(Protocol):
    """Persistence functions related to permission grants."""

    def get_permissions_for_user(self, user_id: int) -> Permissions:
        ...

    def add_permissions_for_user(self, user_id: int, *codes: str) -> None:
        ...


class TodoRepository(Protocol):
    """Persistence functions related to todo items. Every call is owner-scoped."""

    def insert_todo(self, todo: Todo) -> Todo:
        ...

    def get_todo(self, todo_id: int, user_id: int) -> Optional[Todo]:
        ...

    def list_todos(self, text: str, user_id: int, filters: Filters) -> Tuple[List[Todo], PaginationData]:
        ...

    def update_todo(self, todo: Todo) -> Todo:
        ...

    def delete_todo(self, todo_id: int, user_id: int) -> bool:
        ...


class PersistenceGateway(
    UserRepository,
    TokenRepository,
    PermissionRepository,
    TodoRepository,
    Protocol,
):
    """Composite gateway combining every persistence concern used by the app."""

    def close(self) -> None:
        ...
