"""Domain models for the todo service."""

from .permission import ALL_PERMISSION_CODES, TODOS_READ, TODOS_WRITE, Permissions
from .todo import Todo
from .token import Token, TokenScope
from .user import ANONYMOUS_USER, User

__all__ = [
    "ALL_PERMISSION_CODES",
    "ANONYMOUS_USER",
    "Permissions",
    "TODOS_READ",
    "TODOS_WRITE",
    "Todo",
    "Token",
    "TokenScope",
    "User",
]
