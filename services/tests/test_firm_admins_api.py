"""Tests for the firm administrators router."""

from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from secureplace.auth.roles import Role
from secureplace.errors import (
    IdentityCreationError,
    ProfileNotFoundError,
    ProfileWriteError,
    ProvisioningError,
    ProvisioningStage,
)
from secureplace.services.notifications import NotificationResult
from secureplace.services.provisioning import AccountInput, ProvisioningResult

from conftest import FIRM_A, FIRM_B, make_profile

ADMIN_ID = "66666666-6666-6666-6666-666666666666"


def _rows(*rows):
    result = MagicMock()
    result.all.return_value = list(rows)
    result.one_or_none.return_value = rows[0] if rows else None
    return result


def _admin_profile(**overrides):
    values = {
        "id": ADMIN_ID,
        "email": "lead@firm-b.example.com",
        "first_name": "Lee",
        "last_name": "Admin",
        "full_name": "Lee Admin",
        "role": Role.FIRM_ADMIN.value,
        "firm_id": FIRM_B,
    }
    values.update(overrides)
    return make_profile(**values)


class TestListFirmAdmins:
    def test_list(self, client: TestClient, login_as, super_admin, db_session):
        login_as(super_admin)
        db_session.execute.return_value = _rows((_admin_profile(), "Beta Builders"))

        response = client.get("/api/v1/firm-admins")

        assert response.status_code == 200
        data = response.json()
        assert data["has_more"] is False
        assert data["items"][0]["name"] == "Lee Admin"
        assert data["items"][0]["firm_name"] == "Beta Builders"

    def test_firm_admin_forbidden(self, client: TestClient, login_as, firm_admin):
        login_as(firm_admin)
        assert client.get("/api/v1/firm-admins").status_code == 403


class TestCreateFirmAdmin:
    def test_created(self, client: TestClient, login_as, super_admin, provisioning_service, db_session):
        login_as(super_admin)
        provisioning_service.provision_firm_admin.return_value = ProvisioningResult(
            identity_id=ADMIN_ID,
            email="lead@firm-b.example.com",
            firm_id=FIRM_B,
            notification=NotificationResult(success=True),
        )

        response = client.post(
            "/api/v1/firm-admins",
            json={"name": "Lee Admin", "email": "lead@firm-b.example.com", "firm_id": FIRM_B},
        )

        assert response.status_code == 201
        assert response.json()["id"] == ADMIN_ID
        request, requester = provisioning_service.provision_firm_admin.call_args.args
        assert request == AccountInput(
            name="Lee Admin", email="lead@firm-b.example.com", firm_id=FIRM_B
        )
        assert requester == super_admin
        audit_entry = db_session.add.call_args.args[0]
        assert audit_entry.action == "firm_admin_provisioned"

    def test_duplicate_email(self, client: TestClient, login_as, super_admin, provisioning_service):
        login_as(super_admin)
        provisioning_service.provision_firm_admin.side_effect = ProvisioningError(
            ProvisioningStage.IDENTITY,
            IdentityCreationError("Failed to create user: already registered", duplicate=True),
        )

        response = client.post(
            "/api/v1/firm-admins",
            json={"name": "Lee Admin", "email": "lead@firm-b.example.com", "firm_id": FIRM_B},
        )

        assert response.status_code == 409

    def test_profile_failure(self, client: TestClient, login_as, super_admin, provisioning_service):
        login_as(super_admin)
        provisioning_service.provision_firm_admin.side_effect = ProvisioningError(
            ProvisioningStage.PROFILE, ProfileWriteError("Failed to create profile: timeout")
        )

        response = client.post(
            "/api/v1/firm-admins",
            json={"name": "Lee Admin", "email": "lead@firm-b.example.com", "firm_id": FIRM_B},
        )

        assert response.status_code == 500
        assert response.json()["detail"]["stage"] == "profile"

    def test_firm_admin_forbidden(self, client: TestClient, login_as, firm_admin, provisioning_service):
        login_as(firm_admin)

        response = client.post(
            "/api/v1/firm-admins",
            json={"name": "Lee Admin", "email": "lead@firm-a.example.com", "firm_id": FIRM_A},
        )

        assert response.status_code == 403
        provisioning_service.provision_firm_admin.assert_not_called()


class TestSingleFirmAdmin:
    def test_get(self, client: TestClient, login_as, super_admin, db_session):
        login_as(super_admin)
        db_session.execute.return_value = _rows((_admin_profile(), "Beta Builders"))

        response = client.get(f"/api/v1/firm-admins/{ADMIN_ID}")

        assert response.status_code == 200
        assert response.json()["email"] == "lead@firm-b.example.com"

    def test_get_missing(self, client: TestClient, login_as, super_admin, db_session):
        login_as(super_admin)
        db_session.execute.return_value = _rows()

        assert client.get(f"/api/v1/firm-admins/{ADMIN_ID}").status_code == 404

    def test_move_to_another_firm(
        self, client: TestClient, login_as, super_admin, db_session, provisioning_service, principal_cache
    ):
        login_as(super_admin)
        db_session.execute.return_value = _rows((_admin_profile(firm_id=FIRM_A), "Acme Safety"))

        response = client.patch(f"/api/v1/firm-admins/{ADMIN_ID}", json={"firm_id": FIRM_A})

        assert response.status_code == 200
        assert response.json()["firm_id"] == FIRM_A
        provisioning_service.update_firm_admin.assert_awaited_once_with(
            ADMIN_ID, {"firm_id": FIRM_A}, super_admin
        )
        principal_cache.clear.assert_awaited_once_with(ADMIN_ID)

    def test_delete(self, client: TestClient, login_as, super_admin, provisioning_service, principal_cache):
        login_as(super_admin)

        response = client.delete(f"/api/v1/firm-admins/{ADMIN_ID}")

        assert response.status_code == 204
        provisioning_service.remove_firm_admin.assert_awaited_once_with(ADMIN_ID, super_admin)
        principal_cache.clear.assert_awaited_once_with(ADMIN_ID)

    def test_delete_missing(self, client: TestClient, login_as, super_admin, provisioning_service, principal_cache):
        login_as(super_admin)
        provisioning_service.remove_firm_admin.side_effect = ProfileNotFoundError(
            f"Firm admin {ADMIN_ID} not found"
        )

        assert client.delete(f"/api/v1/firm-admins/{ADMIN_ID}").status_code == 404
        principal_cache.clear.assert_not_called()
