"""
Tests for the access gate (nexus.platform.rbac).

Checks the decision rule exhaustively over every role and permission, the
dual-role switch, and that denials raise rather than pass silently.
"""

import logging

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from nexus.api.errors import register_exception_handlers
from nexus.constants.permissions import Permission, Role, get_permissions_for_role
from nexus.platform.errors import AuthorizationError
from nexus.platform.identity_context import (
    DualRoleIdentity,
    SingleRoleIdentity,
    get_identity,
)
from nexus.platform.rbac import (
    check_access,
    get_effective_permissions,
    has_permission,
    require_access,
    require_permission,
)


def _single(role: Role) -> SingleRoleIdentity:
    return SingleRoleIdentity(user_id=f"user_{role.value}", role=role, company_id="c1")


def _dual(primary: Role, active: Role) -> DualRoleIdentity:
    return DualRoleIdentity(user_id="user_dual", primary_role=primary, active_role=active, company_id="c1")


class TestDecisionRule:

    @pytest.mark.parametrize("role", [Role.PROFESSIONAL, Role.HR_PARTNER])
    def test_non_admin_allowed_iff_in_catalog(self, role):
        identity = _single(role)
        granted = get_permissions_for_role(role)
        for permission in Permission:
            assert check_access(identity, permission).allowed == (permission in granted), permission

    def test_admin_allowed_everything(self):
        identity = _single(Role.ADMIN)
        for permission in Permission:
            decision = check_access(identity, permission)
            assert decision.allowed
            assert decision.effective_role is Role.ADMIN

    @pytest.mark.parametrize("primary", [Role.PROFESSIONAL, Role.HR_PARTNER])
    @pytest.mark.parametrize("active", [Role.PROFESSIONAL, Role.HR_PARTNER])
    def test_dual_role_uses_active_role_only(self, primary, active):
        identity = _dual(primary, active)
        allowed = {p for p in Permission if has_permission(identity, p)}
        assert allowed == get_permissions_for_role(active)

    def test_switch_gives_exactly_the_other_set(self):
        as_hr = _dual(Role.HR_PARTNER, Role.HR_PARTNER)
        as_professional = as_hr.with_active_role(Role.PROFESSIONAL)

        assert get_effective_permissions(as_hr) == get_permissions_for_role(Role.HR_PARTNER)
        assert get_effective_permissions(as_professional) == get_permissions_for_role(Role.PROFESSIONAL)
        assert not (get_effective_permissions(as_hr) & get_effective_permissions(as_professional))

    def test_dual_hr_acting_as_professional_cannot_send(self):
        identity = _dual(Role.HR_PARTNER, Role.PROFESSIONAL)

        decision = check_access(identity, Permission.SEND_INTRODUCTION_REQUESTS)

        assert not decision
        assert decision.effective_role is Role.PROFESSIONAL
        assert decision.permission is Permission.SEND_INTRODUCTION_REQUESTS


class TestRequireAccess:

    def test_allowed_returns_none(self):
        assert require_access(_single(Role.HR_PARTNER), Permission.SEND_INTRODUCTION_REQUESTS) is None

    def test_denial_raises_with_diagnostics(self, caplog):
        identity = _single(Role.PROFESSIONAL)

        with caplog.at_level(logging.WARNING, logger="nexus.platform.rbac"):
            with pytest.raises(AuthorizationError) as exc_info:
                require_access(identity, Permission.SEND_INTRODUCTION_REQUESTS)

        error = exc_info.value
        assert error.effective_role == "professional"
        assert error.permission == "send_introduction_requests"
        assert error.http_status == 401
        assert "Permission denied" in caplog.text

    def test_denial_body_does_not_leak_role(self):
        error = AuthorizationError(effective_role="professional", permission="manage_team")
        body = error.to_dict()
        assert body["error"] == "not_permitted"
        assert "professional" not in str(body)


class TestRequirePermissionDependency:

    @pytest.fixture
    def client(self):
        app = FastAPI()
        register_exception_handlers(app)

        @app.get("/send")
        def send(identity=Depends(require_permission(Permission.SEND_INTRODUCTION_REQUESTS))):
            return {"user_id": identity.user_id}

        holder = {}
        app.dependency_overrides[get_identity] = lambda: holder["identity"]
        return TestClient(app), holder

    def test_allowed(self, client):
        test_client, holder = client
        holder["identity"] = _single(Role.HR_PARTNER)

        response = test_client.get("/send")

        assert response.status_code == 200
        assert response.json() == {"user_id": "user_hr_partner"}

    def test_denied_is_401(self, client):
        test_client, holder = client
        holder["identity"] = _dual(Role.HR_PARTNER, Role.PROFESSIONAL)

        response = test_client.get("/send")

        assert response.status_code == 401
        assert response.json()["permission"] == "send_introduction_requests"
