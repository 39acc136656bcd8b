from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from earlypulse.core.config import (
    AppConfig,
    AuthConfig,
    LoggingConfig,
    SecurityConfig,
    StorageConfig,
)
from web_api import create_app


def _config(runtime_dir: Path) -> AppConfig:
    return AppConfig(
        auth=AuthConfig(
            access_token_secret="flow-access-secret",
            refresh_token_secret="flow-refresh-secret",
            access_token_ttl_seconds=900,
            refresh_token_ttl_seconds=3600,
            issuer="earlypulse-test",
        ),
        storage=StorageConfig(mongodb_uri="", mongodb_db="test", runtime_dir=str(runtime_dir)),
        logging=LoggingConfig(level="INFO"),
        security=SecurityConfig(
            cors_allowed_origins=["http://localhost:3000"],
            request_max_bytes=16 * 1024,
        ),
    )


@pytest.fixture
def client(tmp_path: Path) -> TestClient:
    return TestClient(create_app(_config(tmp_path), runtime_dir=tmp_path))


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _register(client: TestClient, collection: str, email: str, **extra: Any) -> dict[str, Any]:
    payload = {
        "name": email.split("@")[0].title(),
        "email": email,
        "phone_number": "+91 90000 00000",
        "address": "Park Street, Kolkata",
        "password": "secret1",
        **extra,
    }
    response = client.post(f"/api/v1/{collection}/register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["principal"]


def _login(client: TestClient, collection: str, email: str) -> dict[str, Any]:
    response = client.post(
        f"/api/v1/{collection}/login", json={"email": email, "password": "secret1"}
    )
    assert response.status_code == 200, response.text
    client.cookies.clear()
    return response.json()


def test_health_is_public(client: TestClient) -> None:
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_register_login_and_current_profile(client: TestClient) -> None:
    registered = _register(client, "users", "alice@example.com", emergency_contact_number="112")
    response = client.post(
        "/api/v1/users/login", json={"email": "ALICE@example.com", "password": "secret1"}
    )
    session = response.json()
    client.cookies.clear()

    current = client.get("/api/v1/users/current-user", headers=_bearer(session["access_token"]))

    assert "password_hash" not in registered
    assert session["token_type"] == "bearer"
    assert session["expires_in"] == 900
    assert session["principal"]["principal_id"] == registered["principal_id"]
    assert "accessToken" in response.headers.get("set-cookie", "")
    assert "HttpOnly" in response.headers.get("set-cookie", "")
    assert current.status_code == 200
    assert current.json()["principal"]["email"] == "alice@example.com"


def test_duplicate_registration_conflicts(client: TestClient) -> None:
    _register(client, "doctors", "house@example.com", specialization="Diagnostics")

    response = client.post(
        "/api/v1/doctors/register",
        json={
            "name": "Other",
            "email": "House@Example.com",
            "phone_number": "1",
            "address": "x",
            "password": "secret1",
            "specialization": "Surgery",
        },
    )

    assert response.status_code == 409
    assert response.json()["error_code"] == "PRINCIPAL_CONFLICT"


def test_login_failures_are_uniform(client: TestClient) -> None:
    _register(client, "users", "alice@example.com", emergency_contact_number="112")

    wrong_password = client.post(
        "/api/v1/users/login", json={"email": "alice@example.com", "password": "nope"}
    )
    unknown = client.post(
        "/api/v1/users/login", json={"email": "ghost@example.com", "password": "nope"}
    )
    wrong_type = client.post(
        "/api/v1/doctors/login", json={"email": "alice@example.com", "password": "secret1"}
    )

    assert wrong_password.status_code == unknown.status_code == wrong_type.status_code == 401
    assert wrong_password.json() == unknown.json() == wrong_type.json()


def test_refresh_rotation_rejects_replay(client: TestClient) -> None:
    _register(client, "users", "alice@example.com", emergency_contact_number="112")
    session = _login(client, "users", "alice@example.com")

    rotated = client.post(
        "/api/v1/users/refresh-token", json={"refresh_token": session["refresh_token"]}
    )
    client.cookies.clear()
    replay = client.post(
        "/api/v1/users/refresh-token", json={"refresh_token": session["refresh_token"]}
    )
    missing = client.post("/api/v1/users/refresh-token")

    assert rotated.status_code == 200
    assert rotated.json()["refresh_token"] != session["refresh_token"]
    assert replay.status_code == 401
    assert replay.json()["error_code"] == "AUTH_REFRESH_TOKEN_REUSED"
    assert missing.status_code == 401
    assert missing.json()["error_code"] == "AUTH_MISSING_TOKEN"


def test_logout_invalidates_refresh_token(client: TestClient) -> None:
    _register(client, "labs", "central@labs.local", tests_offered=["CBC"])
    session = _login(client, "labs", "central@labs.local")

    logout = client.post("/api/v1/labs/logout", headers=_bearer(session["access_token"]))
    refresh = client.post(
        "/api/v1/labs/refresh-token", json={"refresh_token": session["refresh_token"]}
    )

    assert logout.status_code == 200
    assert refresh.status_code == 401


def test_protected_route_requires_token(client: TestClient) -> None:
    missing = client.get("/api/v1/users/current-user")
    garbage = client.get("/api/v1/users/current-user", headers=_bearer("not-a-token"))

    assert missing.status_code == 401
    assert missing.json()["error_code"] == "AUTH_MISSING_TOKEN"
    assert garbage.status_code == 401
    assert garbage.json()["error_code"] == "AUTH_TOKEN_INVALID"


def test_token_is_scoped_to_principal_type(client: TestClient) -> None:
    _register(client, "doctors", "house@example.com", specialization="Diagnostics")
    session = _login(client, "doctors", "house@example.com")

    own = client.get("/api/v1/doctors/verify-token", headers=_bearer(session["access_token"]))
    other = client.get("/api/v1/users/verify-token", headers=_bearer(session["access_token"]))
    refresh_elsewhere = client.post(
        "/api/v1/users/refresh-token", json={"refresh_token": session["refresh_token"]}
    )

    assert own.status_code == 200
    assert own.json()["principal"]["principal_type"] == "Doctor"
    assert other.status_code == 403
    assert refresh_elsewhere.status_code == 401


def test_lab_inventory_and_public_directory(client: TestClient) -> None:
    _register(client, "labs", "central@labs.local", tests_offered=["CBC"])
    session = _login(client, "labs", "central@labs.local")
    headers = _bearer(session["access_token"])

    updated = client.patch(
        "/api/v1/labs/update-inventory",
        json={"blood_type": "O_Negative", "quantity": 2},
        headers=headers,
    )
    invalid = client.patch(
        "/api/v1/labs/update-inventory",
        json={"blood_type": "Q_Positive", "quantity": 2},
        headers=headers,
    )
    added = client.post("/api/v1/labs/add-test", json={"test_name": "Lipid Panel"}, headers=headers)
    removed = client.request(
        "DELETE", "/api/v1/labs/remove-test", json={"test_name": "CBC"}, headers=headers
    )
    by_blood = client.get("/api/v1/labs/blood-type/O_Negative")
    by_test = client.get("/api/v1/labs/test/lipid")
    by_location = client.get("/api/v1/labs/search", params={"location": "kolkata"})

    assert updated.json()["principal"]["blood_inventory"]["O_Negative"] == 2
    assert invalid.status_code == 400
    assert invalid.json()["error_code"] == "INVALID_BLOOD_TYPE"
    assert added.json()["principal"]["tests_offered"] == ["CBC", "Lipid Panel"]
    assert removed.json()["principal"]["tests_offered"] == ["Lipid Panel"]
    assert len(by_blood.json()["items"]) == 1
    assert len(by_test.json()["items"]) == 1
    assert len(by_location.json()["items"]) == 1


def test_pharmacy_workflow_with_roles(client: TestClient) -> None:
    _register(
        client,
        "users",
        "owner@example.com",
        emergency_contact_number="112",
        role="medicalOwner",
    )
    _register(client, "users", "alice@example.com", emergency_contact_number="112")
    owner = _bearer(_login(client, "users", "owner@example.com")["access_token"])
    alice = _bearer(_login(client, "users", "alice@example.com")["access_token"])
    medicine_payload = {
        "name": "Paracetamol",
        "description": "Fever and pain relief",
        "category": "painkiller",
        "manufacturer": "Acme Pharma",
        "price": 2.0,
        "stock_quantity": 12,
        "dosage_form": "tablet",
        "expiry_date": "2027-12-31",
    }

    forbidden = client.post("/api/v1/medicines/create", json=medicine_payload, headers=alice)
    created = client.post("/api/v1/medicines/create", json=medicine_payload, headers=owner)
    medicine_id = created.json()["medicine"]["medicine_id"]
    catalogue = client.get("/api/v1/medicines/all", params={"search": "fever"})
    order = client.post(
        "/api/v1/medicines/order",
        json={
            "items": [{"medicine_id": medicine_id, "quantity": 3}],
            "shipping_address": {
                "street": "12 Park Street",
                "city": "Kolkata",
                "state": "West Bengal",
                "zip_code": "700016",
            },
        },
        headers=alice,
    )
    order_id = order.json()["order"]["order_id"]
    peek = client.get(f"/api/v1/medicines/order/{order_id}", headers=owner)
    shipped = client.patch(
        f"/api/v1/medicines/order/{order_id}/status", json={"status": "shipped"}, headers=owner
    )
    mine = client.get("/api/v1/medicines/orders", headers=alice)
    stats = client.get("/api/v1/medicines/stats", headers=owner)

    assert forbidden.status_code == 403
    assert created.status_code == 201
    assert [item["name"] for item in catalogue.json()["items"]] == ["Paracetamol"]
    assert order.status_code == 201
    assert order.json()["order"]["total_amount"] == 6.0
    assert peek.status_code == 403
    assert shipped.json()["order"]["status"] == "shipped"
    assert [item["order_id"] for item in mine.json()["items"]] == [order_id]
    assert stats.json() == {
        "total_medicines": 1,
        "low_stock_medicines": 1,
        "total_orders": 1,
        "pending_orders": 0,
    }


def test_validation_errors_use_error_envelope(client: TestClient) -> None:
    response = client.post("/api/v1/users/login", json={"email": "a"})

    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_refresh_with_undecodable_token_is_unauthorized(client: TestClient) -> None:
    response = client.post(
        "/api/v1/users/refresh-token",
        content=b'{"refresh_token": "a.\\ud800.c"}',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 401
    assert response.json()["error_code"] == "AUTH_TOKEN_INVALID"
