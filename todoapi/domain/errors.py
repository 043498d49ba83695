"""Domain-level failures raised by services and the persistence gateway."""

from typing import Dict


class RecordNotFoundError(Exception):
    """No row matched (also used when the row exists but belongs to someone else)."""

    def __init__(self, message: str = "record not found") -> None:
        super().__init__(message)


class EditConflictError(Exception):
    """The stored version no longer matches the version the caller last read."""

    def __init__(self, message: str = "edit conflict") -> None:
        super().__init__(message)


class DuplicateEmailError(Exception):
    def __init__(self, message: str = "duplicate email") -> None:
        super().__init__(message)


class QueryTimeoutError(Exception):
    """A statement ran past its deadline and was interrupted."""


class FailedValidationError(Exception):
    """User input failed one or more semantic checks."""

    def __init__(self, errors: Dict[str, str]) -> None:
        super().__init__("; ".join(f"{key}: {value}" for key, value in errors.items()))
        self.errors = dict(errors)


class MalformedBodyError(Exception):
    """The request body could not be decoded into the expected payload."""
