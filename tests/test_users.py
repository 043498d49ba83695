from datetime import datetime, timedelta, timezone

ACTIVATION_MESSAGE = "an email will be sent to you containing activation instructions"


def test_register_user(api, client, mailer):
    response = api.register(name="Alice", email="alice@example.com")

    assert response.status_code == 202
    user = response.json()["user"]
    assert user["name"] == "Alice"
    assert user["email"] == "alice@example.com"
    assert user["activated"] is False
    assert set(user) == {"id", "created_at", "name", "email", "activated"}

    api.wait_for_mail()
    assert mailer.sent[0]["kind"] == "welcome"
    assert mailer.sent[0]["user_id"] == user["id"]
    assert len(mailer.sent[0]["token"]) == 26


def test_register_validation_errors(client):
    response = client.post("/v1/users", json={"name": "", "email": "nope", "password": "short"})

    assert response.status_code == 422
    assert response.json() == {
        "error": {
            "name": "must be provided",
            "email": "must be a valid email address",
            "password": "must be at least 8 bytes long",
        }
    }


def test_register_duplicate_email_is_a_field_error(api):
    assert api.register(email="dup@example.com").status_code == 202

    response = api.register(email="DUP@example.com")

    assert response.status_code == 422
    assert response.json() == {"error": {"email": "a user with this email address already exists"}}


def test_unactivated_user_is_forbidden_from_todos(api, client):
    headers = api.user_headers(email="new@example.com", activated=False)

    read = client.get("/v1/todos", headers=headers)
    write = client.post("/v1/todos", json={"text": "hello"}, headers=headers)

    assert read.status_code == 403
    assert read.json() == {"error": "your user account must be activated to access this resource"}
    assert write.status_code == 403


def test_activation_succeeds_exactly_once(api, client):
    api.register(email="once@example.com")
    token = api.last_activation_token("once@example.com")

    first = client.put("/v1/users/activation", json={"token": token})
    second = client.put("/v1/users/activation", json={"token": token})

    assert first.status_code == 202
    assert first.json()["message"] == "user successfully activated"
    assert first.json()["user"]["activated"] is True
    assert second.status_code == 422
    assert second.json() == {"error": {"token": "invalid or expired token"}}


def test_activation_revokes_every_outstanding_activation_token(api, client):
    api.register(email="many@example.com")
    client.post("/v1/tokens/activation", json={"email": "many@example.com"})
    api.wait_for_mail()
    first, second = api.mailer.tokens_for("many@example.com")

    assert client.put("/v1/users/activation", json={"token": second}).status_code == 202
    assert client.put("/v1/users/activation", json={"token": first}).status_code == 422


def test_activation_rejects_malformed_token(client):
    response = client.put("/v1/users/activation", json={"token": "abc"})

    assert response.status_code == 422
    assert response.json() == {"error": {"token": "must be 26 bytes long"}}


def test_activation_rejects_expired_token(api, app, client):
    api.register(email="late@example.com")
    token = api.last_activation_token("late@example.com")
    token_service = app.state.container.token_service
    token_service.clock = lambda: datetime.now(timezone.utc) + timedelta(hours=73)

    response = client.put("/v1/users/activation", json={"token": token})

    assert response.status_code == 422
    assert response.json() == {"error": {"token": "invalid or expired token"}}


def test_activation_grants_write_permission(api, client):
    headers = api.user_headers(email="writer@example.com")

    assert client.post("/v1/todos", json={"text": "write something"}, headers=headers).status_code == 201


def test_reissue_activation_token_does_not_reveal_accounts(api, client, mailer):
    api.register(email="pending@example.com")
    api.user_headers(email="active@example.com")
    api.wait_for_mail()
    sent_before = len(mailer.sent)

    responses = [
        client.post("/v1/tokens/activation", json={"email": email})
        for email in ("pending@example.com", "active@example.com", "nobody@example.com")
    ]
    api.wait_for_mail()

    assert {r.status_code for r in responses} == {202}
    assert {r.text for r in responses} == {responses[0].text}
    assert responses[0].json() == {"message": ACTIVATION_MESSAGE}
    new_mail = mailer.sent[sent_before:]
    assert [(m["kind"], m["to"]) for m in new_mail] == [("activation", "pending@example.com")]


def test_reissue_activation_token_validates_email(client):
    response = client.post("/v1/tokens/activation", json={"email": "not-an-email"})

    assert response.status_code == 422
    assert response.json() == {"error": {"email": "must be a valid email address"}}


def test_authentication_token_lifecycle(api, client):
    api.register(email="login@example.com")

    response = client.post(
        "/v1/tokens/authentication",
        json={"email": "login@example.com", "password": "pa55word123"},
    )

    assert response.status_code == 201
    body = response.json()["authentication_token"]
    assert len(body["token"]) == 26
    expiry = datetime.fromisoformat(body["expiry"])
    remaining = expiry - datetime.now(timezone.utc)
    assert timedelta(days=27) < remaining <= timedelta(days=28)


def test_authentication_failures_look_the_same(api, client):
    api.register(email="secret@example.com")

    wrong_password = client.post(
        "/v1/tokens/authentication",
        json={"email": "secret@example.com", "password": "wrong-password"},
    )
    unknown_email = client.post(
        "/v1/tokens/authentication",
        json={"email": "ghost@example.com", "password": "pa55word123"},
    )

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"error": "invalid authentication credentials"}


def test_authentication_validates_input(client):
    response = client.post("/v1/tokens/authentication", json={"email": "", "password": ""})

    assert response.status_code == 422
    assert response.json()["error"] == {"email": "must be provided", "password": "must be provided"}


def test_authenticated_user_is_attached_to_request(api, client):
    headers = api.user_headers(email="me@example.com")

    assert client.get("/v1/todos", headers=headers).status_code == 200
    assert client.get("/v1/todos").status_code == 401
    assert client.get("/v1/todos").json() == {"error": "you must be authenticated to access this resource"}
