"""Service for issuing and redeeming scoped capability tokens."""

import base64
import hashlib
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable

from ..domain.errors import RecordNotFoundError
from ..domain.models import Token, TokenScope, User
from ..domain.ports.persistence import TokenRepository, UserRepository
from ..domain.validator import Validator

TOKEN_LENGTH = 26
_TOKEN_RX = re.compile(r"^[A-Z2-7]{%d}$" % TOKEN_LENGTH)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_token(plaintext: str) -> bytes:
    return hashlib.sha256(plaintext.encode("utf-8")).digest()


def generate_token(user_id: int, ttl: timedelta, scope: TokenScope, now: datetime) -> Token:
    """
    Build a new token for a user.

    16 random bytes are base32-encoded without padding, giving a 26 character
    plaintext. Only the SHA-256 digest of the plaintext is meant to be stored.
    """
    plaintext = base64.b32encode(secrets.token_bytes(16)).decode("ascii").rstrip("=")
    return Token(
        hash=hash_token(plaintext),
        user_id=user_id,
        expiry=now + ttl,
        scope=scope,
        plaintext=plaintext,
    )


def validate_token_plaintext(v: Validator, plaintext: str) -> None:
    v.check(plaintext != "", "token", "must be provided")
    v.check(len(plaintext) == TOKEN_LENGTH, "token", f"must be {TOKEN_LENGTH} bytes long")
    v.check(bool(_TOKEN_RX.fullmatch(plaintext)), "token", "must be a valid token")


def token_plaintext_is_valid(plaintext: str) -> bool:
    v = Validator()
    validate_token_plaintext(v, plaintext)
    return v.valid()


class TokenService:
    """Issues tokens, resolves them back to users and revokes them."""

    def __init__(
        self,
        token_repository: TokenRepository,
        user_repository: UserRepository,
        clock: Clock = _utcnow,
    ) -> None:
        self.token_repository = token_repository
        self.user_repository = user_repository
        self.clock = clock

    def new(self, user_id: int, ttl: timedelta, scope: TokenScope) -> Token:
        """
        Generate and store a token.

        Returns:
            The Token with its plaintext populated. The plaintext cannot be
            recovered later, so it must be handed to the user now.
        """
        token = generate_token(user_id, ttl, scope, self.clock())
        self.token_repository.insert_token(token)
        return token

    def get_user_for_token(self, scope: TokenScope, plaintext: str) -> User:
        """
        Resolve a plaintext token to its owner.

        Raises:
            RecordNotFoundError: If the token is malformed, unknown, expired or
                issued for another scope. The cases are deliberately not
                distinguished.
        """
        if not token_plaintext_is_valid(plaintext):
            raise RecordNotFoundError("token not found")
        user = self.user_repository.get_user_for_token(scope, hash_token(plaintext), self.clock())
        if user is None:
            raise RecordNotFoundError("token not found")
        return user

    def delete_all_for_user(self, scope: TokenScope, user_id: int) -> int:
        return self.token_repository.delete_tokens_for_user(scope, user_id)
