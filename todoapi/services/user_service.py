"""Service for user registration, activation and authentication."""

import logging
from dataclasses import replace
from datetime import timedelta
from typing import Optional

import bcrypt
from email_validator import EmailNotValidError, validate_email

from ..core.background import BackgroundRunner
from ..domain.errors import DuplicateEmailError, FailedValidationError, RecordNotFoundError
from ..domain.models import TODOS_READ, TODOS_WRITE, Permissions, Token, TokenScope, User
from ..domain.ports.persistence import PermissionRepository, UserRepository
from ..domain.validator import Validator
from .email_service import EmailService
from .token_service import TokenService, validate_token_plaintext

logger = logging.getLogger(__name__)

ACTIVATION_TOKEN_TTL = timedelta(hours=72)
AUTHENTICATION_TOKEN_TTL = timedelta(days=14)
DEVELOPMENT_AUTHENTICATION_TOKEN_TTL = timedelta(days=28)

MAX_NAME_BYTES = 500
MIN_PASSWORD_BYTES = 8
MAX_PASSWORD_BYTES = 72

ACTIVATION_INSTRUCTIONS_MESSAGE = "an email will be sent to you containing activation instructions"


def email_is_valid(email: str) -> bool:
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def validate_email_address(v: Validator, email: str) -> None:
    v.check(email != "", "email", "must be provided")
    v.check(email_is_valid(email), "email", "must be a valid email address")


def validate_password_plaintext(v: Validator, password: str) -> None:
    size = len(password.encode("utf-8"))
    v.check(password != "", "password", "must be provided")
    v.check(size >= MIN_PASSWORD_BYTES, "password", "must be at least 8 bytes long")
    v.check(size <= MAX_PASSWORD_BYTES, "password", "must not be more than 72 bytes long")


def validate_user(v: Validator, name: str, email: str, password: Optional[str]) -> None:
    v.check(name != "", "name", "must be provided")
    v.check(len(name.encode("utf-8")) <= MAX_NAME_BYTES, "name", "must not be more than 500 bytes long")
    validate_email_address(v, email)
    if password is not None:
        validate_password_plaintext(v, password)


class UserService:
    """Service for managing the user account lifecycle."""

    def __init__(
        self,
        user_repository: UserRepository,
        permission_repository: PermissionRepository,
        token_service: TokenService,
        email_service: EmailService,
        background: BackgroundRunner,
        bcrypt_rounds: int = 12,
        authentication_ttl: timedelta = AUTHENTICATION_TOKEN_TTL,
    ):
        self.user_repository = user_repository
        self.permission_repository = permission_repository
        self.token_service = token_service
        self.email_service = email_service
        self.background = background
        self.bcrypt_rounds = bcrypt_rounds
        self.authentication_ttl = authentication_ttl

    def register(self, name: str, email: str, password: str) -> User:
        """
        Register a new, not yet activated, user.

        The account is granted ``todos:read`` straight away and a welcome email
        carrying a fresh activation token is dispatched in the background.

        Args:
            name: Display name
            email: Email address, unique regardless of case
            password: Plain text password

        Returns:
            The stored User

        Raises:
            FailedValidationError: If a field is invalid or the email is taken
        """
        v = Validator()
        validate_user(v, name, email, password)
        v.raise_if_invalid()

        try:
            user = self.user_repository.insert_user(
                name=name,
                email=email,
                password_hash=self._hash_password(password),
                activated=False,
            )
        except DuplicateEmailError as exc:
            raise FailedValidationError({"email": "a user with this email address already exists"}) from exc

        self.permission_repository.add_permissions_for_user(user.id, TODOS_READ)
        token = self.token_service.new(user.id, ACTIVATION_TOKEN_TTL, TokenScope.ACTIVATION)

        self.background.submit(
            self.email_service.send_welcome_email,
            user.email,
            user.name,
            user.id,
            token.plaintext,
        )
        logger.info("Registered user %s", user.id)
        return user

    def activate(self, token_plaintext: str) -> User:
        """
        Redeem an activation token.

        All of the user's activation tokens are revoked afterwards, so a token
        activates an account at most once.

        Raises:
            FailedValidationError: If the token is malformed, unknown or expired
            EditConflictError: If the user record changed concurrently
        """
        v = Validator()
        validate_token_plaintext(v, token_plaintext)
        v.raise_if_invalid()

        try:
            user = self.token_service.get_user_for_token(TokenScope.ACTIVATION, token_plaintext)
        except RecordNotFoundError as exc:
            raise FailedValidationError({"token": "invalid or expired token"}) from exc

        user = self.user_repository.update_user(replace(user, activated=True))
        self.token_service.delete_all_for_user(TokenScope.ACTIVATION, user.id)
        self.permission_repository.add_permissions_for_user(user.id, TODOS_WRITE)
        logger.info("Activated user %s", user.id)
        return user

    def request_activation_token(self, email: str) -> str:
        """
        Re-issue an activation token for a registered, not yet activated user.

        The returned message is the same whether or not the address belongs to
        such a user, so callers cannot use this to discover accounts.

        Raises:
            FailedValidationError: If the email is missing or malformed
        """
        v = Validator()
        validate_email_address(v, email)
        v.raise_if_invalid()

        user = self.user_repository.get_user_by_email(email)
        if user is not None and not user.activated:
            token = self.token_service.new(user.id, ACTIVATION_TOKEN_TTL, TokenScope.ACTIVATION)
            self.background.submit(self.email_service.send_activation_email, user.email, token.plaintext)
        return ACTIVATION_INSTRUCTIONS_MESSAGE

    def authenticate(self, email: str, password: str) -> Optional[Token]:
        """
        Exchange credentials for an authentication token.

        Returns:
            The new Token with its plaintext populated, or None when the
            credentials do not match a user

        Raises:
            FailedValidationError: If the email or password is malformed
        """
        v = Validator()
        validate_email_address(v, email)
        validate_password_plaintext(v, password)
        v.raise_if_invalid()

        user = self.user_repository.get_user_by_email(email)
        if user is None or not self._check_password(password, user.password_hash):
            return None

        return self.token_service.new(user.id, self.authentication_ttl, TokenScope.AUTHENTICATION)

    def get_user_for_authentication_token(self, token_plaintext: str) -> User:
        """Raises RecordNotFoundError for any token that does not resolve to a user."""
        return self.token_service.get_user_for_token(TokenScope.AUTHENTICATION, token_plaintext)

    def get_permissions(self, user_id: int) -> Permissions:
        return self.permission_repository.get_permissions_for_user(user_id)

    def _hash_password(self, password: str) -> str:
        return bcrypt.hashpw(
            password.encode("utf-8"), bcrypt.gensalt(rounds=self.bcrypt_rounds)
        ).decode("utf-8")

    @staticmethod
    def _check_password(password: str, password_hash: str) -> bool:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
