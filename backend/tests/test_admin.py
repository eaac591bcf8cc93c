"""Tests for account management endpoints"""
from fastapi.testclient import TestClient

from conftest import PRIMARY_ADMIN, read_data_lines


def test_create_and_promote_user(client: TestClient, primary_headers: dict, settings):
    """A created user, once promoted, is listed as admin and leaves the users file"""
    response = client.post(
        "/api/admin/users",
        json={"username": "bob", "password": "StrongPass1!", "role": "user"},
        headers=primary_headers,
    )
    assert response.status_code == 201
    assert response.json()["user"] == {"username": "bob", "role": "user", "isActive": True}

    response = client.post("/api/admin/users/bob/promote", headers=primary_headers)
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "admin"

    users = client.get("/api/admin/users", headers=primary_headers).json()["users"]
    assert [(u["username"], u["role"]) for u in users] == [(PRIMARY_ADMIN, "primary_admin"), ("bob", "admin")]

    assert not any(line.startswith("bob:") for line in read_data_lines(settings, "users.txt"))
    assert any(line.startswith("bob:") for line in read_data_lines(settings, "admin_credentials.txt"))

    actions = [line.split(", ")[2] for line in read_data_lines(settings, "user_activity_log.txt")]
    assert "admin_create_user:bob:user" in actions
    assert "admin_promote_user:bob" in actions


def test_users_are_listed_by_role_then_name(client: TestClient, create_user, primary_headers: dict):
    create_user("zed")
    create_user("amy")
    create_user("max", role="admin")

    users = client.get("/api/admin/users", headers=primary_headers).json()["users"]
    assert [u["username"] for u in users] == [PRIMARY_ADMIN, "max", "amy", "zed"]


def test_primary_admin_cannot_be_deleted_or_updated(client: TestClient, primary_headers: dict):
    response = client.delete(f"/api/admin/users/{PRIMARY_ADMIN}", headers=primary_headers)
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "PRIMARY_ADMIN_PROTECTED"

    response = client.patch(f"/api/admin/users/{PRIMARY_ADMIN}", json={"isActive": False}, headers=primary_headers)
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "PRIMARY_ADMIN_PROTECTED"


def test_only_primary_admin_manages_accounts(client: TestClient, create_user, login):
    create_user("carol", role="admin")
    carol = login("carol", "StrongPass1!")

    # Admins can read the directory but not change it
    assert client.get("/api/admin/users", headers=carol).status_code == 200

    response = client.post("/api/admin/users", json={"username": "eve", "password": "StrongPass1!"}, headers=carol)
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"

    assert client.delete("/api/admin/users/carol", headers=carol).status_code == 403


def test_account_management_errors(client: TestClient, create_user, primary_headers: dict):
    create_user("bob")

    cases = [
        ("post", "/api/admin/users", {"username": "bob", "password": "StrongPass1!"}, 409, "USER_EXISTS"),
        ("post", "/api/admin/users", {"username": "x", "password": "StrongPass1!"}, 400, "INVALID_USERNAME"),
        ("post", "/api/admin/users", {"username": "new-user", "password": "short"}, 400, "WEAK_PASSWORD"),
        ("post", "/api/admin/users", {"username": "new-user", "password": "StrongPass1!", "role": "owner"}, 400,
         "INVALID_ROLE"),
        ("patch", "/api/admin/users/bob", {}, 400, "NO_UPDATES"),
        ("patch", "/api/admin/users/nobody", {"isActive": False}, 404, "USER_NOT_FOUND"),
        ("delete", "/api/admin/users/nobody", None, 404, "USER_NOT_FOUND"),
        ("post", "/api/admin/users/nobody/promote", None, 404, "USER_NOT_FOUND"),
    ]
    for method, url, body, status_code, code in cases:
        kwargs = {"headers": primary_headers}
        if body is not None:
            kwargs["json"] = body
        response = getattr(client, method)(url, **kwargs)
        assert response.status_code == status_code, (method, url, response.text)
        assert response.json()["error"]["code"] == code

    client.post("/api/admin/users/bob/promote", headers=primary_headers)
    response = client.post("/api/admin/users/bob/promote", headers=primary_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "ALREADY_ADMIN"


def test_password_reset_and_reactivation(client: TestClient, create_user, primary_headers: dict, login):
    create_user("bob")
    client.patch("/api/admin/users/bob", json={"isActive": False}, headers=primary_headers)

    response = client.post("/api/auth/login", json={"username": "bob", "password": "StrongPass1!"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"

    response = client.patch(
        "/api/admin/users/bob",
        json={"isActive": True, "password": "ResetPass12!"},
        headers=primary_headers,
    )
    assert response.status_code == 200
    assert response.json()["user"]["isActive"] is True

    assert client.get("/api/auth/me", headers=login("bob", "ResetPass12!")).status_code == 200


def test_primary_admin_resets_another_admins_two_factor(
    client: TestClient, create_user, login, enable_two_factor, primary_headers: dict, settings
):
    create_user("alice", role="admin")
    enable_two_factor(login("alice", "StrongPass1!"))

    response = client.post("/api/admin/2fa/reset/alice", headers=primary_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "disabled"

    # No code needed any more
    alice = login("alice", "StrongPass1!")
    response = client.post(f"/api/admin/2fa/reset/{PRIMARY_ADMIN}", headers=alice)
    assert response.status_code == 403

    response = client.post("/api/admin/2fa/reset/nobody", headers=primary_headers)
    assert response.status_code == 404

    actions = [line.split(", ")[2] for line in read_data_lines(settings, "user_activity_log.txt")]
    assert "admin_2fa_reset:alice" in actions
