from __future__ import annotations

import unicodedata

from fastapi.testclient import TestClient

from pethunt_identity.config import Settings
from pethunt_identity.domain.errors import StoreError, TransientStoreError
from pethunt_identity.main import create_app


def _register(client, email="a@x.com", password="secret123", username="alice", **extra):
    return client.post(
        "/auth/register",
        json={"email": email, "password": password, "username": username, **extra},
    )


def _login(client, email="a@x.com", password="secret123"):
    return client.post("/auth/login", json={"email": email, "password": password})


def test_register_then_login_round_trip(api_client, token_issuer):
    registered = _register(api_client, fullName="Alice Liddell", city="Lima", country="PE")
    assert registered.status_code == 201
    body = registered.json()
    assert body["token"]
    account = body["account"]
    assert account["email"] == "a@x.com"
    assert account["username"] == "alice"
    assert account["fullName"] == "Alice Liddell"
    assert account["role"] == "user"
    assert account["active"] is True
    assert "password" not in registered.text
    assert "argon2" not in registered.text

    claims = token_issuer.decode(body["token"])
    assert claims["userId"] == account["id"]
    assert claims["username"] == "alice"

    logged_in = _login(api_client)
    assert logged_in.status_code == 200
    assert logged_in.json()["account"]["id"] == account["id"]
    assert logged_in.json()["account"]["lastAuthenticatedAt"] is not None


def test_login_failures_are_indistinguishable(api_client):
    _register(api_client)

    wrong_password = _login(api_client, password="wrongpass")
    unknown_email = _login(api_client, email="nobody@x.com")

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"error": "invalid_credentials"}


def test_decomposed_unicode_email_can_log_in_after_registering(api_client):
    decomposed = unicodedata.normalize("NFD", "ünï@example.com")

    registered = _register(api_client, email=decomposed, username="uni")
    assert registered.status_code == 201

    logged_in = _login(api_client, email=decomposed)
    assert logged_in.status_code == 200
    assert logged_in.json()["account"]["id"] == registered.json()["account"]["id"]


def test_oversized_login_input_is_a_plain_credential_failure(api_client):
    _register(api_client)

    long_password = _login(api_client, password="x" * 5000)
    assert long_password.status_code == 401
    assert long_password.json() == {"error": "invalid_credentials"}

    long_email = _login(api_client, email="a" * 400 + "@x.com")
    assert long_email.status_code == 401
    assert long_email.json() == {"error": "invalid_credentials"}


def test_registration_conflicts_name_the_colliding_field(api_client):
    assert _register(api_client).status_code == 201

    duplicate_email = _register(api_client, password="other", username="bob")
    assert duplicate_email.status_code == 400
    assert duplicate_email.json() == {"error": "duplicate_email"}

    duplicate_username = _register(api_client, email="b@x.com", password="pw")
    assert duplicate_username.status_code == 400
    assert duplicate_username.json() == {"error": "duplicate_username"}


def test_malformed_registration_is_a_validation_error(api_client, repository):
    response = api_client.post("/auth/register", json={"email": "not-an-email", "password": "x", "username": "u"})
    assert response.status_code == 400
    assert response.json() == {"error": "validation_error"}

    missing = api_client.post("/auth/register", json={"email": "a@x.com"})
    assert missing.status_code == 400
    assert repository.accounts == {}


def test_profile_requires_a_valid_bearer_token(api_client):
    token = _register(api_client).json()["token"]

    profile = api_client.get("/users/profile", headers={"Authorization": f"Bearer {token}"})
    assert profile.status_code == 200
    assert profile.json()["username"] == "alice"

    missing = api_client.get("/users/profile")
    assert missing.status_code == 401
    assert missing.json() == {"error": "invalid_token"}

    forged = api_client.get("/users/profile", headers={"Authorization": "Bearer not.a.token"})
    assert forged.status_code == 401


def test_profile_of_unknown_account_is_not_found(api_client, token_issuer, repository):
    token = _register(api_client).json()["token"]
    repository.accounts.clear()

    response = api_client.get("/users/profile", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 404
    assert response.json() == {"error": "not_found"}


def test_get_user_by_id(api_client):
    account_id = _register(api_client).json()["account"]["id"]

    found = api_client.get(f"/users/{account_id}")
    assert found.status_code == 200
    assert found.json()["id"] == account_id

    missing = api_client.get("/users/00000000-0000-0000-0000-000000000000")
    assert missing.status_code == 404
    assert missing.json() == {"error": "not_found"}


def test_store_outage_during_login_is_unavailable_not_unauthorized(api_client, repository):
    _register(api_client)
    repository.fail_with = TransientStoreError("connection refused")

    response = _login(api_client)
    assert response.status_code == 503
    assert response.json() == {"error": "authentication_unavailable"}


def test_unexpected_store_failure_hides_internal_details(api_client, repository):
    repository.fail_with = StoreError('relation "accounts" does not exist')

    response = _register(api_client)
    assert response.status_code == 500
    assert response.json() == {"error": "unexpected_error"}
    assert "relation" not in response.text


def test_health_and_metrics_endpoints():
    client = TestClient(create_app(Settings()))

    assert client.get("/healthz").json() == {"status": "ok"}
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "identity_registrations_total" in metrics.text
