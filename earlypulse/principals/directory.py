"""Public doctor/lab directory queries and lab-owned inventory updates."""

from __future__ import annotations

import logging
from typing import Any

from earlypulse.api.errors import ApiErrorCode, bad_request, not_found
from earlypulse.principals.models import BloodType, PrincipalType
from earlypulse.principals.repository import PrincipalRepository

LOGGER = logging.getLogger(__name__)


class DoctorDirectory:
    def __init__(self, repo: PrincipalRepository) -> None:
        self._repo = repo

    def list_doctors(self) -> list[dict[str, Any]]:
        return [doctor.redacted() for doctor in self._repo.list_all()]

    def doctors_by_specialization(self, specialization: str) -> list[dict[str, Any]]:
        return [
            doctor.redacted()
            for doctor in self._repo.search("specialization", specialization, exact=True)
        ]


class LabDirectory:
    """Lab listings plus test catalogue and blood inventory maintenance."""

    def __init__(self, repo: PrincipalRepository) -> None:
        if repo.principal_type != PrincipalType.LAB:
            raise ValueError("LabDirectory requires the lab repository")
        self._repo = repo

    def list_labs(self) -> list[dict[str, Any]]:
        return [lab.redacted() for lab in self._repo.list_all()]

    def labs_by_test(self, test_name: str) -> list[dict[str, Any]]:
        return [lab.redacted() for lab in self._repo.search("tests_offered", test_name)]

    def labs_by_blood_type(self, blood_type: str) -> list[dict[str, Any]]:
        parsed = self._parse_blood_type(blood_type)
        return [
            lab.redacted()
            for lab in self._repo.find_with_positive(f"blood_inventory.{parsed}")
        ]

    def search_labs(self, location: str) -> list[dict[str, Any]]:
        return [lab.redacted() for lab in self._repo.search("address", location)]

    def add_test(self, lab_id: str, test_name: str) -> dict[str, Any]:
        lab = self._repo.add_to_set(lab_id, "tests_offered", test_name.strip())
        if lab is None:
            raise self._lab_not_found()
        return lab.redacted()

    def remove_test(self, lab_id: str, test_name: str) -> dict[str, Any]:
        lab = self._repo.pull(lab_id, "tests_offered", test_name.strip())
        if lab is None:
            raise self._lab_not_found()
        return lab.redacted()

    def update_blood_inventory(
        self, lab_id: str, blood_type: str, quantity: int
    ) -> dict[str, Any]:
        """Set stock for one blood type; negative quantities are stored as zero."""
        parsed = self._parse_blood_type(blood_type)
        lab = self._repo.find_by_id(lab_id)
        if lab is None:
            raise self._lab_not_found()
        inventory = dict(getattr(lab, "blood_inventory", {}))
        inventory[parsed] = max(0, int(quantity))
        updated = self._repo.update_fields(lab_id, {"blood_inventory": inventory})
        if updated is None:
            raise self._lab_not_found()
        LOGGER.info(
            "blood_inventory_updated %s=%s",
            parsed,
            inventory[parsed],
            extra={"principal_id": lab_id, "principal_type": str(PrincipalType.LAB)},
        )
        return updated.redacted()

    @staticmethod
    def _parse_blood_type(value: str) -> str:
        try:
            return BloodType(value).value
        except ValueError as exc:
            raise bad_request(ApiErrorCode.INVALID_BLOOD_TYPE, "Invalid blood type") from exc

    @staticmethod
    def _lab_not_found() -> Exception:
        return not_found(ApiErrorCode.PRINCIPAL_NOT_FOUND, "Lab not found")
