from datetime import timedelta

from sqlalchemy import update

from costbook.core.security import create_token
from costbook.models.user import User


def _register(client, *, email: str, full_name: str = "Owner", password: str = "password123"):
    return client.post(
        "/auth/register",
        json={"email": email, "full_name": full_name, "password": password},
    )


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_register_login_and_me(test_context):
    client, _ = test_context

    register_res = _register(client, email="Owner@Example.com")
    assert register_res.status_code == 200, register_res.text
    assert register_res.json()["token_type"] == "bearer"

    duplicate_res = _register(client, email="owner@example.com")
    assert duplicate_res.status_code == 400
    assert duplicate_res.json()["error"]["message"] == "Email already registered"

    login_res = client.post("/auth/login", json={"email": "owner@example.com", "password": "password123"})
    assert login_res.status_code == 200, login_res.text
    token = login_res.json()["access_token"]

    form_res = client.post("/auth/token", data={"username": "OWNER@example.com", "password": "password123"})
    assert form_res.status_code == 200, form_res.text

    me_res = client.get("/auth/me", headers=_auth_headers(token))
    assert me_res.status_code == 200, me_res.text
    assert me_res.json()["email"] == "owner@example.com"
    assert me_res.json()["full_name"] == "Owner"
    assert len(me_res.json()["id"]) == 22


def test_register_validation(test_context):
    client, _ = test_context

    short_password = _register(client, email="owner@example.com", password="short")
    assert short_password.status_code == 422
    assert short_password.json()["error"]["code"] == "validation_error"

    bad_email = _register(client, email="not-an-email")
    assert bad_email.status_code == 422


def test_login_rejects_bad_credentials(test_context):
    client, _ = test_context
    _register(client, email="owner@example.com")

    wrong_password = client.post("/auth/login", json={"email": "owner@example.com", "password": "wrong-pass"})
    assert wrong_password.status_code == 401
    assert wrong_password.json()["error"]["code"] == "unauthorized"

    unknown_user = client.post("/auth/login", json={"email": "ghost@example.com", "password": "password123"})
    assert unknown_user.status_code == 401


def test_protected_routes_reject_bad_tokens(test_context):
    client, _ = test_context

    missing = client.get("/auth/me")
    assert missing.status_code == 401
    assert missing.json()["error"]["code"] == "unauthorized"

    garbage = client.get("/auth/me", headers=_auth_headers("not-a-jwt"))
    assert garbage.status_code == 401

    wrong_type = create_token("someone", timedelta(minutes=5), "refresh")
    wrong_type_res = client.get("/auth/me", headers=_auth_headers(wrong_type))
    assert wrong_type_res.status_code == 401


def test_inactive_user_is_forbidden(test_context):
    client, session_local = test_context
    token = _register(client, email="owner@example.com").json()["access_token"]

    db = session_local()
    try:
        db.execute(update(User).where(User.email == "owner@example.com").values(is_active=False))
        db.commit()
    finally:
        db.close()

    me_res = client.get("/auth/me", headers=_auth_headers(token))
    assert me_res.status_code == 403
    assert me_res.json()["error"]["code"] == "forbidden"

    login_res = client.post("/auth/login", json={"email": "owner@example.com", "password": "password123"})
    assert login_res.status_code == 403


def test_responses_carry_request_id(test_context):
    client, _ = test_context

    res = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert res.status_code == 200
    assert res.headers["X-Request-ID"] == "req-123"
    assert "X-API-Timeout-Hint-Ms" in res.headers
