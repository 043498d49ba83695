"""Token domain model: a hashed, scoped, expiring capability grant."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class TokenScope(str, Enum):
    ACTIVATION = "activation"
    AUTHENTICATION = "authentication"


@dataclass(slots=True)
class Token:
    """
    Attributes:
        hash: SHA-256 digest of the plaintext, the only form that is stored
        user_id: Owning user
        expiry: Instant after which the token is no longer honoured
        scope: Operation class the token authorises
        plaintext: Only populated on the freshly generated instance
    """

    hash: bytes
    user_id: int
    expiry: datetime
    scope: TokenScope
    plaintext: Optional[str] = None
