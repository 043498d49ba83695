import pytest


def test_create_and_fetch_round_trip(api, client, user_headers):
    response = client.post("/v1/todos", json={"text": "buy milk @home +shopping"}, headers=user_headers)

    assert response.status_code == 201
    created = response.json()["todo"]
    assert response.headers["location"] == f"/v1/todos/{created['id']}"

    fetched = client.get(f"/v1/todos/{created['id']}", headers=user_headers).json()["todo"]
    assert fetched["text"] == "buy milk @home +shopping"
    assert fetched["completed"] is False
    assert fetched["archived"] is False
    assert fetched["version"] == 1
    assert fetched["contexts"] == ["home"]
    assert fetched["projects"] == ["shopping"]


def test_explicit_fields_win_over_text_markers(api, user_headers):
    todo = api.create_todo(user_headers, text="(B) file taxes +admin", projects=[], priority="A")

    assert todo["priority"] == "A"
    assert todo["projects"] == []


def test_create_validation(client, user_headers):
    response = client.post(
        "/v1/todos",
        json={"text": "", "contexts": ["a", "a"], "priority": "lower"},
        headers=user_headers,
    )

    assert response.status_code == 422
    assert response.json() == {
        "error": {
            "text": "must be provided",
            "contexts": "must not contain duplicate values",
            "priority": "must be a capital letter (A to Z) or empty string",
        }
    }


def test_list_is_owner_scoped_and_paginated(api, client, user_headers):
    for i in range(3):
        api.create_todo(user_headers, text=f"task {i}")
    other = api.user_headers(email="other@example.com", name="Other")
    api.create_todo(other, text="not yours")

    response = client.get("/v1/todos?page_size=2&sort=-id", headers=user_headers)

    body = response.json()
    assert response.status_code == 200
    assert [todo["text"] for todo in body["todos"]] == ["task 2", "task 1"]
    assert body["paginationData"] == {
        "current_page": 1,
        "page_size": 2,
        "first_page": 1,
        "last_page": 2,
        "total_records": 3,
    }


def test_list_empty_result_has_empty_pagination(client, user_headers):
    body = client.get("/v1/todos", headers=user_headers).json()

    assert body == {"todos": [], "paginationData": {}}


def test_list_text_and_flag_filters(api, client, user_headers):
    milk = api.create_todo(user_headers, text="buy milk")
    api.create_todo(user_headers, text="buy 100% juice")
    api.create_todo(user_headers, text="walk dog")
    client.patch(f"/v1/todos/{milk['id']}", json={"completed": True}, headers=user_headers)
    archived = api.create_todo(user_headers, text="old thing")
    client.patch(f"/v1/todos/{archived['id']}", json={"archived": True}, headers=user_headers)

    def texts(query):
        response = client.get(f"/v1/todos?{query}", headers=user_headers)
        assert response.status_code == 200, response.text
        return sorted(todo["text"] for todo in response.json()["todos"])

    assert texts("text=buy") == ["buy 100% juice", "buy milk"]
    assert texts("text=100%25") == ["buy 100% juice"]
    assert texts("done=true") == ["buy milk"]
    assert texts("undone=true") == ["buy 100% juice", "walk dog"]
    assert texts("only-archived=true") == ["old thing"]
    assert "old thing" in texts("include-archived=true")
    assert "old thing" not in texts("")


@pytest.mark.parametrize(
    "query,errors",
    [
        ("page=abc", {"page": "must be an integer value"}),
        ("done=maybe", {"done": "must be a boolean value"}),
        ("page=0", {"page": "must be at least 1"}),
        ("page_size=101", {"page_size": "must be no more than 100"}),
        ("sort=password", {"sort": "invalid sorting key"}),
        ("done=true&undone=true", {"filters": "done and undone are mutually exclusive"}),
        (
            "include-archived=true&only-archived=true",
            {"filters": "include-archived and only-archived are mutually exclusive"},
        ),
    ],
)
def test_list_query_validation(client, user_headers, query, errors):
    response = client.get(f"/v1/todos?{query}", headers=user_headers)

    assert response.status_code == 422
    assert response.json() == {"error": errors}


def test_partial_update_bumps_version(api, client, user_headers):
    todo = api.create_todo(user_headers, text="draft @desk", priority="C")

    for expected_version in (2, 3, 4):
        response = client.patch(f"/v1/todos/{todo['id']}", json={"completed": True}, headers=user_headers)
        assert response.status_code == 200
        assert response.json()["todo"]["version"] == expected_version

    response = client.patch(
        f"/v1/todos/{todo['id']}",
        json={"text": "final @desk", "priority": None},
        headers=user_headers,
    )
    updated = response.json()["todo"]
    assert updated["text"] == "final @desk"
    assert updated["priority"] == "C"
    assert updated["contexts"] == ["desk"]
    assert updated["completed"] is True
    assert updated["version"] == 5


def test_stale_version_is_a_conflict(api, client, user_headers):
    todo = api.create_todo(user_headers)
    client.patch(f"/v1/todos/{todo['id']}", json={"completed": True, "version": 1}, headers=user_headers)

    stale = client.patch(f"/v1/todos/{todo['id']}", json={"archived": True, "version": 1}, headers=user_headers)

    assert stale.status_code == 409
    assert stale.json() == {"error": "unable to update the record due to an edit conflict, please try again"}
    current = client.get(f"/v1/todos/{todo['id']}", headers=user_headers).json()["todo"]
    assert current["version"] == 2
    assert current["archived"] is False


def test_update_revalidates_merged_record(api, client, user_headers):
    todo = api.create_todo(user_headers)

    response = client.patch(f"/v1/todos/{todo['id']}", json={"priority": "zz"}, headers=user_headers)

    assert response.status_code == 422
    assert response.json()["error"] == {"priority": "must be a capital letter (A to Z) or empty string"}


def test_other_users_todos_are_not_found(api, client, user_headers):
    todo = api.create_todo(user_headers)
    intruder = api.user_headers(email="intruder@example.com", name="Mallory")
    url = f"/v1/todos/{todo['id']}"
    not_found = {"error": "the requested resource could not be found"}

    for response in (
        client.get(url, headers=intruder),
        client.patch(url, json={"text": "mine now"}, headers=intruder),
        client.delete(url, headers=intruder),
    ):
        assert response.status_code == 404
        assert response.json() == not_found

    assert client.get(url, headers=user_headers).json()["todo"]["text"] == todo["text"]


@pytest.mark.parametrize(
    "todo_id",
    ["0", "-1", "abc", "999", "1_0", "9223372036854775808", "99999999999999999999"],
)
def test_bad_or_missing_id_is_not_found(client, user_headers, todo_id):
    response = client.get(f"/v1/todos/{todo_id}", headers=user_headers)

    assert response.status_code == 404
    assert response.json() == {"error": "the requested resource could not be found"}


@pytest.mark.parametrize("method", ["PATCH", "DELETE"])
def test_out_of_range_id_is_not_found_for_writes(client, user_headers, method):
    response = client.request(method, "/v1/todos/99999999999999999999", headers=user_headers, json={"text": "x"})

    assert response.status_code == 404


def test_delete_todo(api, client, user_headers):
    todo = api.create_todo(user_headers)

    response = client.delete(f"/v1/todos/{todo['id']}", headers=user_headers)

    assert response.status_code == 200
    assert response.json() == {"message": "todo successfully deleted"}
    assert client.delete(f"/v1/todos/{todo['id']}", headers=user_headers).status_code == 404


def test_unknown_route_and_method(client, user_headers):
    missing = client.get("/v1/nothing-here")
    wrong_method = client.put("/v1/healthcheck")

    assert missing.status_code == 404
    assert missing.json() == {"error": "the requested resource could not be found"}
    assert wrong_method.status_code == 405
    assert wrong_method.json() == {"error": "the PUT method is not supported for this resource"}


def test_responses_are_indented_json(client):
    response = client.get("/v1/healthcheck")

    assert response.text.endswith("}\n")
    assert '\n    "status": "available"' in response.text
    assert response.json() == {
        "status": "available",
        "system_info": {"environment": "development", "version": "1.0.0"},
    }
