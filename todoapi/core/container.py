from dataclasses import dataclass

from .background import BackgroundRunner
from .config import Settings
from .metrics import Metrics
from ..domain.ports.persistence import PersistenceGateway
from ..services.email_service import EmailService
from ..services.rate_limiter import RateLimiter
from ..services.todo_service import TodoService
from ..services.token_service import TokenService
from ..services.user_service import UserService


@dataclass(slots=True)
class ApplicationContainer:
    """Dependency registry shared across the FastAPI application lifecycle."""

    settings: Settings
    persistence: PersistenceGateway
    metrics: Metrics
    rate_limiter: RateLimiter
    background: BackgroundRunner
    email_service: EmailService
    token_service: TokenService
    user_service: UserService
    todo_service: TodoService
