"""Service for owner-scoped todo management."""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..domain.errors import EditConflictError, RecordNotFoundError
from ..domain.filters import Filters, PaginationData, validate_filters
from ..domain.models import Todo
from ..domain.ports.persistence import TodoRepository
from ..domain.todotxt import parse_todo_text
from ..domain.validator import PRIORITY_RX, Validator, parse_record_id, unique

logger = logging.getLogger(__name__)

MAX_TEXT_BYTES = 500
MAX_TAGS = 5

UPDATABLE_FIELDS = ("text", "contexts", "projects", "priority", "completed", "archived")


def validate_todo(v: Validator, todo: Todo) -> None:
    v.check(todo.text != "", "text", "must be provided")
    v.check(len(todo.text.encode("utf-8")) < MAX_TEXT_BYTES, "text", "must be less than 500 bytes")

    v.check(len(todo.contexts) <= MAX_TAGS, "contexts", "must be no more than 5 contexts")
    v.check(unique(todo.contexts), "contexts", "must not contain duplicate values")

    v.check(len(todo.projects) <= MAX_TAGS, "projects", "must be no more than 5 projects")
    v.check(unique(todo.projects), "projects", "must not contain duplicate values")

    v.check(
        todo.priority == "" or bool(PRIORITY_RX.fullmatch(todo.priority)),
        "priority",
        "must be a capital letter (A to Z) or empty string",
    )


@dataclass(slots=True)
class BatchResult:
    id: str
    success: bool
    error: str = ""

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "success": self.success}
        if self.error:
            data["error"] = self.error
        return data


class TodoService:
    """Todo CRUD where every operation is scoped to the calling user."""

    def __init__(self, todo_repository: TodoRepository):
        self.todo_repository = todo_repository

    def create(
        self,
        user_id: int,
        text: str,
        contexts: Optional[List[str]] = None,
        projects: Optional[List[str]] = None,
        priority: Optional[str] = None,
        completed: Optional[bool] = None,
        archived: bool = False,
    ) -> Todo:
        """
        Create a todo for ``user_id``.

        Tags, priority and completion that are not supplied are read from
        todo.txt markers in the text. Explicit values always win.

        Raises:
            FailedValidationError: If the resulting todo is invalid
        """
        parsed = parse_todo_text(text)
        todo = Todo(
            id=0,
            user_id=user_id,
            text=text,
            contexts=list(contexts) if contexts is not None else parsed.contexts,
            projects=list(projects) if projects is not None else parsed.projects,
            priority=priority if priority is not None else parsed.priority,
            completed=completed if completed is not None else parsed.completed,
            archived=archived,
        )

        v = Validator()
        validate_todo(v, todo)
        v.raise_if_invalid()

        todo = self.todo_repository.insert_todo(todo)
        logger.debug("Created todo %s for user %s", todo.id, user_id)
        return todo

    def get(self, todo_id: int, user_id: int) -> Todo:
        """Raises RecordNotFoundError if the todo is absent or owned by someone else."""
        todo = self.todo_repository.get_todo(todo_id, user_id)
        if todo is None:
            raise RecordNotFoundError()
        return todo

    def list_todos(self, user_id: int, text: str, filters: Filters) -> Tuple[List[Todo], PaginationData]:
        v = Validator()
        validate_filters(v, filters)
        v.raise_if_invalid()
        return self.todo_repository.list_todos(text, user_id, filters)

    def update(
        self,
        todo_id: int,
        user_id: int,
        changes: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Todo:
        """
        Apply a partial update.

        Keys missing from ``changes``, or mapped to None, leave the field as it
        is. The merged todo is validated as a whole before it is written.

        Args:
            todo_id: Todo to update
            user_id: Caller; the todo must belong to them
            changes: Field name to new value
            expected_version: Version the caller last read. When omitted the
                version just fetched is used, so a concurrent writer landing in
                between still causes a conflict.

        Raises:
            RecordNotFoundError: If the todo is absent or owned by someone else
            FailedValidationError: If the merged todo is invalid
            EditConflictError: If the stored version does not match
        """
        todo = self.get(todo_id, user_id)
        if expected_version is not None and expected_version != todo.version:
            raise EditConflictError()

        updates = {key: changes[key] for key in UPDATABLE_FIELDS if changes.get(key) is not None}
        todo = replace(todo, **updates)

        v = Validator()
        validate_todo(v, todo)
        v.raise_if_invalid()

        return self.todo_repository.update_todo(todo)

    def delete(self, todo_id: int, user_id: int) -> None:
        if not self.todo_repository.delete_todo(todo_id, user_id):
            raise RecordNotFoundError()

    def batch_delete(self, raw_ids: Sequence[str], user_id: int) -> Tuple[bool, List[BatchResult]]:
        """
        Delete several todos, reporting an outcome per id in input order.

        Ids that do not parse as positive integers are reported as
        ``invalid ID`` and ids that match no todo of the caller as
        ``not found``. Each deletion stands on its own; one failure does not
        undo the others.

        Returns:
            Tuple of (all_succeeded, results)
        """
        results: List[BatchResult] = []
        for raw in raw_ids:
            todo_id = parse_record_id(raw)
            if todo_id is None:
                results.append(BatchResult(id=raw, success=False, error="invalid ID"))
            elif self.todo_repository.delete_todo(todo_id, user_id):
                results.append(BatchResult(id=raw, success=True))
            else:
                results.append(BatchResult(id=raw, success=False, error="not found"))

        success = all(result.success for result in results)
        if not success:
            logger.info("Batch delete for user %s partially failed", user_id)
        return success, results
