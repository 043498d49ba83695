from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)


class CreateTodoPayload(_Payload):
    text: Optional[str] = None
    contexts: Optional[List[str]] = None
    projects: Optional[List[str]] = None
    priority: Optional[str] = None
    completed: Optional[bool] = None
    archived: Optional[bool] = None


class UpdateTodoPayload(_Payload):
    """Partial update. Omitted or null fields keep their stored value."""

    text: Optional[str] = None
    contexts: Optional[List[str]] = None
    projects: Optional[List[str]] = None
    priority: Optional[str] = None
    completed: Optional[bool] = None
    archived: Optional[bool] = None
    version: Optional[int] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"version"}, exclude_none=True)


class BatchDeletePayload(_Payload):
    ids: Optional[List[str]] = None
