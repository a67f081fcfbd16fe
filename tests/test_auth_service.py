from datetime import timedelta

import jwt

from app.core.config import settings
from app.services import auth as auth_service


def test_token_round_trip(employee):
    token = auth_service.create_token_for_user(employee)
    payload = auth_service.decode_access_token(token)
    assert payload["sub"] == str(employee.id)
    assert payload["role"] == "EMPLOYEE"
    assert payload["type"] == "access"


def test_expired_token_is_flagged():
    token = auth_service.create_access_token({"sub": 1}, expires_delta=timedelta(minutes=-5))
    assert auth_service.decode_access_token(token) == {"error": "TOKEN_EXPIRED"}


def test_foreign_signature_is_rejected():
    token = jwt.encode({"sub": "1", "type": "access"}, "another-signing-secret-of-reasonable-length", algorithm=settings.jwt_algorithm)
    assert auth_service.decode_access_token(token) is None


def test_expired_token_rejected_by_api(client, employee):
    token = auth_service.create_access_token({"sub": employee.id}, expires_delta=timedelta(minutes=-5))
    response = client.get("/api/leaves/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["errors"][0]["msg"] == "TOKEN_EXPIRED"


def test_auth_failures_use_error_envelope(client):
    response = client.get("/api/salaries/me")
    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "errors": [{"msg": "Not authenticated", "code": "AUTH_FAILED"}],
    }

    response = client.get("/api/salaries/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["errors"][0] == {"msg": "Could not validate credentials", "code": "AUTH_FAILED"}
