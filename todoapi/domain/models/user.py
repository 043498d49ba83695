"""User domain model for registration, activation and authentication."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(slots=True)
class User:
    """
    User entity.

    Attributes:
        id: Unique identifier (0 for the anonymous user)
        name: Display name
        email: Email address, unique regardless of case
        password_hash: bcrypt digest of the password, never the plaintext
        activated: Whether an activation token has been redeemed
        created_at: Registration timestamp
        version: Optimistic-concurrency counter, bumped on every update
    """

    id: int
    name: str
    email: str
    password_hash: str
    activated: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 1

    @property
    def is_anonymous(self) -> bool:
        return self is ANONYMOUS_USER

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} activated={self.activated}>"


ANONYMOUS_USER = User(id=0, name="", email="", password_hash="", activated=False)
