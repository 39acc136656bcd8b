from __future__ import annotations

from pathlib import Path

import pytest

from earlypulse.api.errors import ApiError, ApiErrorCode
from earlypulse.core.security import verify_password
from earlypulse.principals.models import PrincipalType
from earlypulse.principals.repository import PrincipalRepository
from earlypulse.principals.service import PrincipalService


def _service(tmp_path: Path, principal_type: PrincipalType = PrincipalType.USER) -> PrincipalService:
    return PrincipalService(PrincipalRepository(principal_type, fallback_dir=tmp_path))


def _register_alice(service: PrincipalService) -> dict:
    return service.register(
        {
            "name": "Alice",
            "email": "Alice@Example.com",
            "phone_number": "+91 90000 00001",
            "address": "Kolkata",
            "emergency_contact_number": "+91 90000 00002",
            "password": "secret1",
        }
    )


def test_register_hashes_password_and_redacts(tmp_path: Path) -> None:
    service = _service(tmp_path)

    profile = _register_alice(service)
    stored = PrincipalRepository(PrincipalType.USER, fallback_dir=tmp_path).find_by_email(
        "alice@example.com"
    )

    assert profile["email"] == "alice@example.com"
    assert profile["role"] == "user"
    assert profile["principal_type"] == "User"
    assert "password" not in profile
    assert "password_hash" not in profile
    assert "refresh_token" not in profile
    assert stored is not None
    assert stored.password_hash != "secret1"
    assert verify_password("secret1", stored.password_hash)


def test_register_duplicate_email_conflicts(tmp_path: Path) -> None:
    service = _service(tmp_path)
    _register_alice(service)

    with pytest.raises(ApiError) as exc:
        _register_alice(service)

    assert exc.value.status_code == 409


def test_register_rejects_empty_password(tmp_path: Path) -> None:
    service = _service(tmp_path)

    with pytest.raises(ApiError) as exc:
        service.register({"name": "Bob", "email": "bob@example.com", "password": ""})

    assert exc.value.status_code == 400
    assert exc.value.error_code == ApiErrorCode.VALIDATION_ERROR


def test_register_doctor_keeps_specialization(tmp_path: Path) -> None:
    service = _service(tmp_path, PrincipalType.DOCTOR)

    profile = service.register(
        {
            "name": "Dr. House",
            "email": "house@example.com",
            "specialization": "Diagnostics",
            "password": "vicodin",
        }
    )

    assert profile["role"] == "doctor"
    assert profile["specialization"] == "Diagnostics"
    assert profile["principal_type"] == "Doctor"


def test_update_profile_only_touches_allowed_fields(tmp_path: Path) -> None:
    service = _service(tmp_path)
    profile = _register_alice(service)

    updated = service.update_profile(
        profile["principal_id"],
        {
            "name": "Alice Cooper",
            "role": "medicalOwner",
            "email": "evil@example.com",
            "password_hash": "x",
            "address": None,
        },
    )

    assert updated["name"] == "Alice Cooper"
    assert updated["role"] == "user"
    assert updated["email"] == "alice@example.com"
    assert updated["address"] == "Kolkata"


def test_update_profile_without_changes_returns_current(tmp_path: Path) -> None:
    service = _service(tmp_path)
    profile = _register_alice(service)

    assert service.update_profile(profile["principal_id"], {})["name"] == "Alice"


def test_change_password_requires_old_password(tmp_path: Path) -> None:
    service = _service(tmp_path)
    profile = _register_alice(service)

    with pytest.raises(ApiError) as exc:
        service.change_password(profile["principal_id"], "wrong", "newpass")

    assert exc.value.status_code == 400
    assert exc.value.error_code == ApiErrorCode.INVALID_OLD_PASSWORD


def test_change_password_replaces_hash(tmp_path: Path) -> None:
    service = _service(tmp_path)
    profile = _register_alice(service)

    service.change_password(profile["principal_id"], "secret1", "newpass")
    stored = PrincipalRepository(PrincipalType.USER, fallback_dir=tmp_path).find_by_id(
        profile["principal_id"]
    )

    assert verify_password("newpass", stored.password_hash)
    assert not verify_password("secret1", stored.password_hash)


def test_delete_and_missing_principal(tmp_path: Path) -> None:
    service = _service(tmp_path)
    profile = _register_alice(service)

    service.delete(profile["principal_id"])

    with pytest.raises(ApiError) as exc:
        service.get_current(profile["principal_id"])
    assert exc.value.status_code == 404
    with pytest.raises(ApiError):
        service.delete(profile["principal_id"])
    assert service.list_all() == []
