import json
import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple

from ...domain.errors import DuplicateEmailError, EditConflictError, QueryTimeoutError
from ...domain.filters import Filters, PaginationData
from ...domain.models import ALL_PERMISSION_CODES, Permissions, Todo, Token, TokenScope, User
from ...domain.ports.persistence import PersistenceGateway

# Number of SQLite VM instructions between deadline checks.
_PROGRESS_STEP = 1000


class SQLitePersistence(PersistenceGateway):
    """SQLite-backed implementation of the persistence gateway."""

    def __init__(self, path: Path, query_timeout: float = 3.0) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self._query_timeout = query_timeout
        self._conn = sqlite3.connect(path, check_same_thread=False, timeout=query_timeout)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.Lock()
        self._initialize()

    def _initialize(self) -> None:
        with self._conn:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    created_at TEXT NOT NULL,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                    password_hash TEXT NOT NULL,
                    activated INTEGER NOT NULL DEFAULT 0,
                    version INTEGER NOT NULL DEFAULT 1
                );

                CREATE TABLE IF NOT EXISTS tokens (
                    hash BLOB PRIMARY KEY,
                    user_id INTEGER NOT NULL,
                    expiry TEXT NOT NULL,
                    scope TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_tokens_user_scope ON tokens(user_id, scope);

                CREATE TABLE IF NOT EXISTS permissions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    code TEXT NOT NULL UNIQUE
                );

                CREATE TABLE IF NOT EXISTS users_permissions (
                    user_id INTEGER NOT NULL,
                    permission_id INTEGER NOT NULL,
                    PRIMARY KEY(user_id, permission_id),
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
                    FOREIGN KEY(permission_id) REFERENCES permissions(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS todos (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    text TEXT NOT NULL,
                    contexts TEXT NOT NULL DEFAULT '[]',
                    projects TEXT NOT NULL DEFAULT '[]',
                    priority TEXT NOT NULL DEFAULT '',
                    completed INTEGER NOT NULL DEFAULT 0,
                    archived INTEGER NOT NULL DEFAULT 0,
                    version INTEGER NOT NULL DEFAULT 1,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_todos_user ON todos(user_id, id);
                """
            )
            self._conn.executemany(
                "INSERT OR IGNORE INTO permissions (code) VALUES (?)",
                [(code,) for code in ALL_PERMISSION_CODES],
            )

    def close(self) -> None:
        self._conn.close()

    # Statement helpers -----------------------------------------------------
    @contextmanager
    def _deadline(self) -> Iterator[None]:
        expires = time.monotonic() + self._query_timeout
        self._conn.set_progress_handler(lambda: int(time.monotonic() > expires), _PROGRESS_STEP)
        try:
            yield
        except sqlite3.OperationalError as exc:
            if "interrupted" in str(exc):
                raise QueryTimeoutError(
                    f"query exceeded the {self._query_timeout:g}s deadline"
                ) from exc
            raise
        finally:
            self._conn.set_progress_handler(None, 0)

    @contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        with self._lock, self._deadline():
            yield self._conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock, self._deadline():
            with self._conn:
                yield self._conn

    # UserRepository API ----------------------------------------------------
    def insert_user(self, name: str, email: str, password_hash: str, activated: bool) -> User:
        now = self._now()
        try:
            with self._transaction() as conn:
                cur = conn.execute(
                    """
                    INSERT INTO users (created_at, name, email, password_hash, activated)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (now, name, email, password_hash, int(activated)),
                )
                cur = conn.execute("SELECT * FROM users WHERE id = ?", (cur.lastrowid,))
                row = cur.fetchone()
        except sqlite3.IntegrityError as exc:
            if "users.email" in str(exc):
                raise DuplicateEmailError() from exc
            raise
        if not row:
            raise RuntimeError("Failed to persist user.")
        return self._row_to_user(row)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._read() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return self._row_to_user(row) if row else None

    def update_user(self, user: User) -> User:
        try:
            with self._transaction() as conn:
                cur = conn.execute(
                    """
                    UPDATE users
                    SET name = ?, email = ?, password_hash = ?, activated = ?, version = version + 1
                    WHERE id = ? AND version = ?
                    """,
                    (
                        user.name,
                        user.email,
                        user.password_hash,
                        int(user.activated),
                        user.id,
                        user.version,
                    ),
                )
                updated = cur.rowcount
        except sqlite3.IntegrityError as exc:
            if "users.email" in str(exc):
                raise DuplicateEmailError() from exc
            raise
        if updated == 0:
            raise EditConflictError()
        return replace(user, version=user.version + 1)

    def get_user_for_token(self, scope: TokenScope, token_hash: bytes, now: datetime) -> Optional[User]:
        with self._read() as conn:
            row = conn.execute(
                """
                SELECT users.* FROM users
                INNER JOIN tokens ON users.id = tokens.user_id
                WHERE tokens.hash = ? AND tokens.scope = ? AND tokens.expiry > ?
                """,
                (token_hash, scope.value, self._format_datetime(now)),
            ).fetchone()
        return self._row_to_user(row) if row else None

    # TokenRepository API ---------------------------------------------------
    def insert_token(self, token: Token) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO tokens (hash, user_id, expiry, scope) VALUES (?, ?, ?, ?)",
                (token.hash, token.user_id, self._format_datetime(token.expiry), token.scope.value),
            )

    def delete_tokens_for_user(self, scope: TokenScope, user_id: int) -> int:
        with self._transaction() as conn:
            cur = conn.execute(
                "DELETE FROM tokens WHERE scope = ? AND user_id = ?",
                (scope.value, user_id),
            )
            return cur.rowcount

    # PermissionRepository API ----------------------------------------------
    def get_permissions_for_user(self, user_id: int) -> Permissions:
        with self._read() as conn:
            rows = conn.execute(
                """
                SELECT permissions.code FROM permissions
                INNER JOIN users_permissions ON users_permissions.permission_id = permissions.id
                WHERE users_permissions.user_id = ?
                ORDER BY permissions.code
                """,
                (user_id,),
            ).fetchall()
        return Permissions(row["code"] for row in rows)

    def add_permissions_for_user(self, user_id: int, *codes: str) -> None:
        if not codes:
            return
        placeholders = ", ".join("?" for _ in codes)
        with self._transaction() as conn:
            conn.execute(
                f"""
                INSERT OR IGNORE INTO users_permissions (user_id, permission_id)
                SELECT ?, permissions.id FROM permissions WHERE permissions.code IN ({placeholders})
                """,
                (user_id, *codes),
            )

    # TodoRepository API ----------------------------------------------------
    def insert_todo(self, todo: Todo) -> Todo:
        now = self._now()
        with self._transaction() as conn:
            cur = conn.execute(
                """
                INSERT INTO todos (
                    user_id, created_at, text, contexts, projects, priority, completed, archived
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    todo.user_id,
                    now,
                    todo.text,
                    json.dumps(todo.contexts, ensure_ascii=False),
                    json.dumps(todo.projects, ensure_ascii=False),
                    todo.priority,
                    int(todo.completed),
                    int(todo.archived),
                ),
            )
            row = conn.execute("SELECT * FROM todos WHERE id = ?", (cur.lastrowid,)).fetchone()
        if not row:
            raise RuntimeError("Failed to persist todo.")
        return self._row_to_todo(row)

    def get_todo(self, todo_id: int, user_id: int) -> Optional[Todo]:
        if todo_id < 1:
            return None
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM todos WHERE id = ? AND user_id = ?",
                (todo_id, user_id),
            ).fetchone()
        return self._row_to_todo(row) if row else None

    def list_todos(self, text: str, user_id: int, filters: Filters) -> Tuple[List[Todo], PaginationData]:
        clauses = ["user_id = ?"]
        params: List[Any] = [user_id]
        if text:
            clauses.append("text LIKE ? ESCAPE '\\'")
            params.append(f"%{self._escape_like(text)}%")
        if filters.only_archived:
            clauses.append("archived = 1")
        elif not filters.include_archived:
            clauses.append("archived = 0")
        if filters.done:
            clauses.append("completed = 1")
        elif filters.undone:
            clauses.append("completed = 0")

        query = f"""
            SELECT count(*) OVER() AS total_records, * FROM todos
            WHERE {' AND '.join(clauses)}
            ORDER BY {filters.sort_column()} {filters.sort_direction()}, id ASC
            LIMIT ? OFFSET ?
        """
        params.extend([filters.limit(), filters.offset()])
        with self._read() as conn:
            rows = conn.execute(query, params).fetchall()

        total = rows[0]["total_records"] if rows else 0
        todos = [self._row_to_todo(row) for row in rows]
        return todos, PaginationData.calculate(total, filters.page, filters.page_size)

    def update_todo(self, todo: Todo) -> Todo:
        with self._transaction() as conn:
            cur = conn.execute(
                """
                UPDATE todos
                SET text = ?, contexts = ?, projects = ?, priority = ?, completed = ?,
                    archived = ?, version = version + 1
                WHERE id = ? AND user_id = ? AND version = ?
                """,
                (
                    todo.text,
                    json.dumps(todo.contexts, ensure_ascii=False),
                    json.dumps(todo.projects, ensure_ascii=False),
                    todo.priority,
                    int(todo.completed),
                    int(todo.archived),
                    todo.id,
                    todo.user_id,
                    todo.version,
                ),
            )
            updated = cur.rowcount
        # The caller has already confirmed the row exists, so a miss means the
        # version moved underneath it.
        if updated == 0:
            raise EditConflictError()
        return replace(todo, version=todo.version + 1)

    def delete_todo(self, todo_id: int, user_id: int) -> bool:
        if todo_id < 1:
            return False
        with self._transaction() as conn:
            cur = conn.execute(
                "DELETE FROM todos WHERE id = ? AND user_id = ?",
                (todo_id, user_id),
            )
            return cur.rowcount > 0

    # Helpers ----------------------------------------------------------------
    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).replace(microsecond=0).isoformat()

    @staticmethod
    def _format_datetime(value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")

    @staticmethod
    def _parse_datetime(value: str) -> datetime:
        result = datetime.fromisoformat(value)
        if result.tzinfo is None:
            return result.replace(tzinfo=timezone.utc)
        return result.astimezone(timezone.utc)

    @staticmethod
    def _escape_like(value: str) -> str:
        return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            password_hash=row["password_hash"],
            activated=bool(row["activated"]),
            created_at=self._parse_datetime(row["created_at"]),
            version=row["version"],
        )

    def _row_to_todo(self, row: sqlite3.Row) -> Todo:
        return Todo(
            id=row["id"],
            user_id=row["user_id"],
            text=row["text"],
            contexts=json.loads(row["contexts"]),
            projects=json.loads(row["projects"]),
            priority=row["priority"],
            completed=bool(row["completed"]),
            archived=bool(row["archived"]),
            created_at=self._parse_datetime(row["created_at"]),
            version=row["version"],
        )
