from typing import Dict, Iterator, List

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from todoapi.core.app_factory import create_application
from todoapi.core.config import Settings
from todoapi.services.email_service import EmailService

DEFAULT_PASSWORD = "pa55word123"


class RecordingEmailService(EmailService):
    """Keeps outgoing mail in memory instead of talking to SMTP."""

    def __init__(self) -> None:
        super().__init__()
        self.sent: List[Dict[str, object]] = []

    def send_welcome_email(self, to_email: str, name: str, user_id: int, activation_token: str) -> bool:
        self.sent.append({"kind": "welcome", "to": to_email, "user_id": user_id, "token": activation_token})
        return True

    def send_activation_email(self, to_email: str, activation_token: str) -> bool:
        self.sent.append({"kind": "activation", "to": to_email, "token": activation_token})
        return True

    def tokens_for(self, email: str) -> List[str]:
        return [str(item["token"]) for item in self.sent if item["to"] == email]


class Api:
    """Shortcuts for the register, activate and log-in dance."""

    def __init__(self, client: TestClient, app: FastAPI, mailer: RecordingEmailService) -> None:
        self.client = client
        self.app = app
        self.mailer = mailer

    def wait_for_mail(self) -> None:
        assert self.app.state.container.background.wait(timeout=5)

    def register(self, name: str = "Alice", email: str = "alice@example.com", password: str = DEFAULT_PASSWORD):
        return self.client.post("/v1/users", json={"name": name, "email": email, "password": password})

    def last_activation_token(self, email: str) -> str:
        self.wait_for_mail()
        tokens = self.mailer.tokens_for(email)
        assert tokens, f"no activation mail for {email}"
        return tokens[-1]

    def activate(self, email: str):
        token = self.last_activation_token(email)
        return self.client.put("/v1/users/activation", json={"token": token})

    def login(self, email: str, password: str = DEFAULT_PASSWORD) -> str:
        response = self.client.post("/v1/tokens/authentication", json={"email": email, "password": password})
        assert response.status_code == 201, response.text
        return response.json()["authentication_token"]["token"]

    def user_headers(
        self,
        email: str = "alice@example.com",
        name: str = "Alice",
        activated: bool = True,
    ) -> Dict[str, str]:
        assert self.register(name=name, email=email).status_code == 202
        if activated:
            assert self.activate(email).status_code == 202
        return {"Authorization": f"Bearer {self.login(email)}"}

    def create_todo(self, headers: Dict[str, str], text: str = "buy milk @home +shopping", **fields):
        response = self.client.post("/v1/todos", json={"text": text, **fields}, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()["todo"]


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "todos.db"))
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("LIMITER_ENABLED", "false")
    monkeypatch.setenv("CORS_TRUSTED_ORIGINS", "https://app.example.com")
    monkeypatch.setenv("SMTP_HOST", "")
    monkeypatch.setenv("SHUTDOWN_TIMEOUT", "5")
    return Settings()


@pytest.fixture
def mailer() -> RecordingEmailService:
    return RecordingEmailService()


@pytest.fixture
def app(settings: Settings, mailer: RecordingEmailService) -> FastAPI:
    return create_application(settings, email_service=mailer)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def api(client: TestClient, app: FastAPI, mailer: RecordingEmailService) -> Api:
    return Api(client, app, mailer)


@pytest.fixture
def user_headers(api: Api) -> Dict[str, str]:
    return api.user_headers()
