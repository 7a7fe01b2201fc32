from fastapi import status
from jose import jwt

from app.errors import StoreError


def test_login_success(client):
    response = client.post("/users/login", json={"username": "djshmarl", "password": "yahoo"})

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["id"] == "u1"
    assert body["username"] == "djshmarl"
    assert "hashed_password" not in body

    token = response.headers["authorization"]
    assert token
    claims = jwt.get_unverified_claims(token)
    assert claims["exp"] - claims["iat"] == 2_419_200
    assert claims["identity"] == "u1"


def test_login_token_opens_protected_routes(client):
    login = client.post("/users/login", json={"username": "djshmarl", "password": "yahoo"})
    token = login.headers["authorization"]

    response = client.get("/users/token", headers={"Authorization": token})
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"message": "token valid"}


def test_login_username_is_case_insensitive(client):
    response = client.post("/users/login", json={"username": "DJShmarl", "password": "yahoo"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["id"] == "u1"


def test_login_failures_are_indistinguishable(client):
    wrong_password = client.post("/users/login", json={"username": "djshmarl", "password": "google"})
    unknown_user = client.post("/users/login", json={"username": "nobody", "password": "yahoo"})

    assert wrong_password.status_code == status.HTTP_400_BAD_REQUEST
    assert unknown_user.status_code == status.HTTP_400_BAD_REQUEST
    assert wrong_password.json() == unknown_user.json() == {
        "detail": "username or password is incorrect"
    }
    assert "authorization" not in wrong_password.headers
    assert "authorization" not in unknown_user.headers


def test_login_with_corrupt_hash_is_generic_failure(client, repo, make_user):
    repo.users["u9"] = make_user("u9", "broken", "broken@example.com", hashed_password="garbage")

    response = client.post("/users/login", json={"username": "broken", "password": "yahoo"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"detail": "username or password is incorrect"}


def test_login_does_not_write(client, repo):
    client.post("/users/login", json={"username": "djshmarl", "password": "yahoo"})
    assert repo.calls == ["get_by_username"]


def test_login_store_fault_is_not_a_credential_failure(client, repo, monkeypatch):
    def _fail(username):
        raise StoreError(StoreError.LOOKUP_FAILED, "connection reset by table 'users'")

    monkeypatch.setattr(repo, "get_by_username", _fail)
    response = client.post("/users/login", json={"username": "djshmarl", "password": "yahoo"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"detail": "internal server error"}


def test_login_missing_fields(client):
    response = client.post("/users/login", json={"username": "djshmarl"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "invalid payload"
