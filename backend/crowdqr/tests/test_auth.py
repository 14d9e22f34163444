"""
Tests for authentication endpoints.
"""
from datetime import timedelta

from crowdqr.core.security import (
    create_access_token,
    create_user_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)


def test_audience_login_creates_user(client):
    """Test that an unknown username logs in as a new audience member."""
    response = client.post("/api/auth/login", json={"username": "alice"})
    assert response.status_code == 200
    data = response.json()
    assert data["user"]["username"] == "alice"
    assert data["user"]["role"] == "Audience"

    claims = decode_access_token(data["access_token"])
    assert claims["user_id"] == data["user"]["id"]
    assert claims["role"] == "Audience"


def test_audience_login_reuses_user(client):
    first = client.post("/api/auth/login", json={"username": "bob"}).json()
    second = client.post("/api/auth/login", json={"username": "bob"}).json()
    assert first["user"]["id"] == second["user"]["id"]


def test_register_and_login_dj(client):
    """Test DJ registration followed by password login."""
    response = client.post(
        "/api/auth/register-dj",
        json={
            "username": "dj_anna",
            "email": "anna@example.com",
            "password": "testpassword123"
        }
    )
    assert response.status_code == 201
    assert response.json()["role"] == "DJ"

    response = client.post(
        "/api/auth/login",
        json={"username": "anna@example.com", "password": "testpassword123"}
    )
    assert response.status_code == 200
    assert response.json()["user"]["username"] == "dj_anna"


def test_dj_login_requires_password(client, dj):
    response = client.post("/api/auth/login", json={"username": dj.username})
    assert response.status_code == 401


def test_login_invalid_credentials(client, dj):
    """Test login with invalid credentials."""
    response = client.post(
        "/api/auth/login",
        json={"username": dj.username, "password": "wrongpassword"}
    )
    assert response.status_code == 401


def test_register_duplicate_username(client, dj):
    response = client.post(
        "/api/auth/register-dj",
        json={"username": dj.username, "email": "other@example.com", "password": "testpassword123"}
    )
    assert response.status_code == 409
    assert response.json()["details"]["code"] == "USERNAME_TAKEN"


def test_me_requires_token(client):
    assert client.get("/api/users/me").status_code == 401


def test_me_returns_current_user(client, dj, auth_headers):
    response = client.get("/api/users/me", headers=auth_headers(dj))
    assert response.status_code == 200
    assert response.json()["id"] == dj.id


def test_password_hashing():
    hashed = get_password_hash("a" * 100)
    assert verify_password("a" * 100, hashed)
    assert not verify_password("a" * 99, hashed)
    assert not verify_password("anything", None)


def test_user_token_claims(dj):
    payload = decode_access_token(create_user_token(dj))
    assert payload["sub"] == dj.username
    assert payload["user_id"] == dj.id
    assert payload["role"] == "DJ"

    expired = create_access_token({"sub": dj.username}, expires_delta=timedelta(seconds=-1))
    assert decode_access_token(expired) is None
    assert decode_access_token("not-a-token") is None
