"""Tests for the employees router."""

import base64
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from sqlalchemy.dialects import postgresql

from secureplace.errors import (
    AccessDeniedError,
    IdentityCreationError,
    ProfileNotFoundError,
    ProfileWriteError,
    ProvisioningError,
    ProvisioningStage,
    ValidationError,
)
from secureplace.services.notifications import NotificationResult
from secureplace.services.provisioning import AccountInput, ProvisioningResult

from conftest import FIRM_A, FIRM_B, make_profile

EMPLOYEE_ID = "44444444-4444-4444-4444-444444444444"

NEW_EMPLOYEE = {
    "name": "Jane van Doe",
    "email": "jane@firm-a.example.com",
    "employee_code": "E-100",
    "contact_number": "+44 20 7946 0000",
    "is_volunteer": False,
    "firm_id": FIRM_B,
}


def _rows(*rows):
    result = MagicMock()
    result.all.return_value = list(rows)
    result.one_or_none.return_value = rows[0] if rows else None
    return result


def _compiled_params(db_session) -> dict:
    stmt = db_session.execute.call_args.args[0]
    return stmt.compile(dialect=postgresql.dialect()).params


class TestListEmployees:
    def test_list(self, client: TestClient, login_as, super_admin, db_session):
        login_as(super_admin)
        db_session.execute.return_value = _rows(
            (make_profile(), "Acme Safety"),
            (make_profile(id="55555555-5555-5555-5555-555555555555", firm_id=FIRM_B), None),
        )

        response = client.get("/api/v1/employees")

        assert response.status_code == 200
        data = response.json()
        assert data["has_more"] is False
        assert data["next_cursor"] is None
        assert [e["firm_name"] for e in data["items"]] == ["Acme Safety", None]
        assert data["items"][0]["name"] == "Jane van Doe"
        assert data["items"][0]["contact_number"] == "+44 20 7946 0000"

    def test_pagination(self, client: TestClient, login_as, super_admin, db_session):
        login_as(super_admin)
        db_session.execute.return_value = _rows(
            (make_profile(id="a"), None), (make_profile(id="b"), None)
        )

        response = client.get("/api/v1/employees", params={"limit": 1})

        data = response.json()
        assert data["has_more"] is True
        assert len(data["items"]) == 1
        assert data["next_cursor"]

    def test_next_page_starts_after_cursor(self, client: TestClient, login_as, super_admin, db_session):
        login_as(super_admin)
        db_session.get.return_value = None
        db_session.execute.return_value = _rows()
        cursor = base64.urlsafe_b64encode(EMPLOYEE_ID.encode()).decode()

        response = client.get("/api/v1/employees", params={"cursor": cursor})

        assert response.status_code == 200
        assert db_session.get.call_args.args[1] == EMPLOYEE_ID

    def test_malformed_cursor(self, client: TestClient, login_as, super_admin, db_session):
        login_as(super_admin)

        for cursor in ("not base64!", base64.urlsafe_b64encode(b"\xff\xfe").decode(), "YWJj"):
            response = client.get("/api/v1/employees", params={"cursor": cursor})
            assert response.status_code == 400
            assert response.json()["detail"] == "Invalid cursor"
        db_session.execute.assert_not_called()

    def test_firm_admin_sees_only_own_firm(self, client: TestClient, login_as, firm_admin, db_session):
        login_as(firm_admin)
        db_session.execute.return_value = _rows()

        response = client.get("/api/v1/employees", params={"firm_id": FIRM_B})

        assert response.status_code == 200
        params = _compiled_params(db_session)
        assert FIRM_A in params.values()
        assert FIRM_B not in params.values()

    def test_employee_forbidden(self, client: TestClient, login_as, employee_principal):
        login_as(employee_principal)
        assert client.get("/api/v1/employees").status_code == 403


class TestCreateEmployee:
    def test_created(self, client: TestClient, login_as, firm_admin, provisioning_service, db_session):
        login_as(firm_admin)
        provisioning_service.provision_employee.return_value = ProvisioningResult(
            identity_id=EMPLOYEE_ID,
            email="jane@firm-a.example.com",
            firm_id=FIRM_A,
            notification=NotificationResult(success=True, message_id="<m@example.com>"),
        )

        response = client.post("/api/v1/employees", json=NEW_EMPLOYEE)

        assert response.status_code == 201
        data = response.json()
        assert data == {
            "id": EMPLOYEE_ID,
            "email": "jane@firm-a.example.com",
            "firm_id": FIRM_A,
            "email_sent": True,
            "warnings": [],
        }
        request, requester = provisioning_service.provision_employee.call_args.args
        assert isinstance(request, AccountInput)
        assert requester == firm_admin
        db_session.add.assert_called_once()

    def test_created_without_email(self, client: TestClient, login_as, super_admin, provisioning_service):
        login_as(super_admin)
        provisioning_service.provision_employee.return_value = ProvisioningResult(
            identity_id=EMPLOYEE_ID,
            email="jane@firm-a.example.com",
            firm_id=FIRM_B,
            notification=NotificationResult(success=False, error="SMTP authentication failed."),
            warnings=["Welcome email not sent: SMTP authentication failed."],
        )

        response = client.post("/api/v1/employees", json=NEW_EMPLOYEE)

        assert response.status_code == 201
        assert response.json()["email_sent"] is False
        assert response.json()["warnings"] == ["Welcome email not sent: SMTP authentication failed."]

    def test_validation_failure(self, client: TestClient, login_as, super_admin, provisioning_service):
        login_as(super_admin)
        provisioning_service.provision_employee.side_effect = ValidationError("Name and email are required")

        response = client.post("/api/v1/employees", json={**NEW_EMPLOYEE, "name": ""})

        assert response.status_code == 422
        assert response.json()["detail"] == {
            "message": "Name and email are required",
            "stage": "validation",
        }

    def test_duplicate_email(self, client: TestClient, login_as, super_admin, provisioning_service):
        login_as(super_admin)
        cause = IdentityCreationError(
            "Failed to create user: A user with this email address has already been registered",
            status_code=422,
            duplicate=True,
        )
        provisioning_service.provision_employee.side_effect = ProvisioningError(
            ProvisioningStage.IDENTITY, cause
        )

        response = client.post("/api/v1/employees", json=NEW_EMPLOYEE)

        assert response.status_code == 409
        assert response.json()["detail"]["stage"] == "identity"
        assert "already been registered" in response.json()["detail"]["message"]

    def test_identity_service_failure(self, client: TestClient, login_as, super_admin, provisioning_service):
        login_as(super_admin)
        provisioning_service.provision_employee.side_effect = ProvisioningError(
            ProvisioningStage.IDENTITY, IdentityCreationError("Identity service unreachable: timeout")
        )

        response = client.post("/api/v1/employees", json=NEW_EMPLOYEE)

        assert response.status_code == 502

    def test_profile_failure_message_verbatim(
        self, client: TestClient, login_as, super_admin, provisioning_service, db_session
    ):
        login_as(super_admin)
        provisioning_service.provision_employee.side_effect = ProvisioningError(
            ProvisioningStage.PROFILE,
            ProfileWriteError("Failed to create profile: permission denied for table user_profiles"),
        )

        response = client.post("/api/v1/employees", json=NEW_EMPLOYEE)

        assert response.status_code == 500
        assert response.json()["detail"] == {
            "message": "Failed to create profile: permission denied for table user_profiles",
            "stage": "profile",
        }
        # The failure is audited
        audit_entry = db_session.add.call_args.args[0]
        assert audit_entry.success is False
        db_session.commit.assert_awaited()


class TestSingleEmployee:
    def test_get(self, client: TestClient, login_as, firm_admin, db_session):
        login_as(firm_admin)
        db_session.execute.return_value = _rows((make_profile(), "Acme Safety"))

        response = client.get(f"/api/v1/employees/{EMPLOYEE_ID}")

        assert response.status_code == 200
        assert response.json()["firm_name"] == "Acme Safety"

    def test_get_other_firm_is_hidden(self, client: TestClient, login_as, firm_admin, db_session):
        login_as(firm_admin)
        db_session.execute.return_value = _rows((make_profile(firm_id=FIRM_B), None))

        assert client.get(f"/api/v1/employees/{EMPLOYEE_ID}").status_code == 404

    def test_get_missing(self, client: TestClient, login_as, super_admin, db_session):
        login_as(super_admin)
        db_session.execute.return_value = _rows()

        assert client.get(f"/api/v1/employees/{EMPLOYEE_ID}").status_code == 404

    def test_update(
        self, client: TestClient, login_as, super_admin, db_session, provisioning_service, principal_cache
    ):
        login_as(super_admin)
        db_session.execute.return_value = _rows((make_profile(employee_code="E-200"), "Acme Safety"))

        response = client.patch(f"/api/v1/employees/{EMPLOYEE_ID}", json={"employee_code": "E-200"})

        assert response.status_code == 200
        assert response.json()["employee_code"] == "E-200"
        provisioning_service.update_employee.assert_awaited_once_with(
            EMPLOYEE_ID, {"employee_code": "E-200"}, super_admin
        )
        principal_cache.clear.assert_awaited_once_with(EMPLOYEE_ID)

    def test_update_outside_tenant(self, client: TestClient, login_as, firm_admin, provisioning_service):
        login_as(firm_admin)
        provisioning_service.update_employee.side_effect = AccessDeniedError(
            "Insufficient permissions for this firm"
        )

        response = client.patch(f"/api/v1/employees/{EMPLOYEE_ID}", json={"name": "X Y"})

        assert response.status_code == 403

    def test_delete(self, client: TestClient, login_as, super_admin, provisioning_service, principal_cache):
        login_as(super_admin)

        response = client.delete(f"/api/v1/employees/{EMPLOYEE_ID}")

        assert response.status_code == 204
        provisioning_service.remove_employee.assert_awaited_once_with(EMPLOYEE_ID, super_admin)
        principal_cache.clear.assert_awaited_once_with(EMPLOYEE_ID)

    def test_delete_missing(self, client: TestClient, login_as, super_admin, provisioning_service):
        login_as(super_admin)
        provisioning_service.remove_employee.side_effect = ProfileNotFoundError("Employee x not found")

        assert client.delete(f"/api/v1/employees/{EMPLOYEE_ID}").status_code == 404

    def test_reset_password(self, client: TestClient, login_as, super_admin, provisioning_service):
        login_as(super_admin)
        provisioning_service.reset_password.return_value = ProvisioningResult(
            identity_id=EMPLOYEE_ID,
            email="jane@firm-a.example.com",
            firm_id=FIRM_A,
            notification=NotificationResult(success=True),
        )

        response = client.post(f"/api/v1/employees/{EMPLOYEE_ID}/reset-password")

        assert response.status_code == 200
        assert response.json()["email_sent"] is True
