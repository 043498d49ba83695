"""Todo domain model."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List


@dataclass(slots=True)
class Todo:
    """
    A todo item owned by exactly one user.

    Attributes:
        id: Unique identifier (0 until persisted)
        user_id: Owner; taken from the authenticated identity, never from input
        text: Free text body, todo.txt style
        contexts: ``@context`` tags, unique, at most five
        projects: ``+project`` tags, unique, at most five
        priority: Single uppercase letter or empty
        completed: Done flag
        archived: Archived flag
        created_at: Creation timestamp
        version: Optimistic-concurrency counter, starts at 1
    """

    id: int
    user_id: int
    text: str
    contexts: List[str] = field(default_factory=list)
    projects: List[str] = field(default_factory=list)
    priority: str = ""
    completed: bool = False
    archived: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 1
