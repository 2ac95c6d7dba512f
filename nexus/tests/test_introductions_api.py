"""
HTTP tests for the subscription, introduction, identity and admin routes.

Identity, database session and clock are injected through FastAPI
dependency overrides.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from main import app
from nexus.api.dependencies.services import get_clock
from nexus.auth.identity_provider import get_identity_provider
from nexus.config.settings import get_settings
from nexus.constants.permissions import Role
from nexus.database.session import get_db_session
from nexus.platform.identity_context import SingleRoleIdentity, get_identity
from nexus.tests.conftest import (
    VALID_MESSAGE,
    admin_identity,
    dual_identity,
    hr_identity,
    professional_identity,
)
from nexus.tests.test_identity_provider import RecordingProvider


@pytest.fixture
def caller():
    """Mutable holder for the identity the next request is made as."""
    return {}


@pytest.fixture
def provider():
    return RecordingProvider()


@pytest.fixture
def client(db_session, clock, caller, provider):
    def _db():
        yield db_session

    app.dependency_overrides[get_db_session] = _db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_identity] = lambda: caller["identity"]
    app.dependency_overrides[get_identity_provider] = lambda: provider
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def world(make_company, make_job_role, make_professional):
    company = make_company(credits=1, tier="PROFESSIONAL")
    job_role = make_job_role(company)
    pro = make_professional(user_id="user_pro_api")
    other = make_professional(user_id="user_pro_other")
    return company, job_role, pro, other


def _create_body(job_role, pro):
    return {
        "professional_id": pro.id,
        "job_role_id": job_role.id,
        "personalized_message": VALID_MESSAGE,
    }


# =============================================================================
# Subscription status
# =============================================================================

class TestSubscriptionStatus:

    def test_hr_company_status(self, client, caller, world, clock, db_session):
        company, _, _, _ = world
        company.subscription_expires_at = clock.now + timedelta(days=30)
        db_session.commit()
        caller["identity"] = hr_identity(company)

        response = client.get("/v1/subscription/status")

        assert response.status_code == 200
        body = response.json()
        assert body["tier"] == "PROFESSIONAL"
        assert body["isActive"] is True
        assert body["hasAiFeatures"] is True
        assert body["creditsRemaining"] == 1
        assert body["expiresAt"].startswith("2025-04-09")

    def test_professional_gets_default(self, client, caller, world):
        _, _, pro, _ = world
        caller["identity"] = professional_identity(pro)

        response = client.get("/v1/subscription/status")

        assert response.json() == {
            "tier": "TRIAL",
            "isActive": True,
            "expiresAt": None,
            "hasAiFeatures": False,
            "creditsRemaining": 0,
        }

    def test_unknown_company(self, client, caller):
        caller["identity"] = SingleRoleIdentity(user_id="u", role=Role.HR_PARTNER, company_id="gone")

        response = client.get("/v1/subscription/status")

        assert response.status_code == 404


# =============================================================================
# Introductions
# =============================================================================

class TestIntroductionRoutes:

    def test_create_then_out_of_credits(self, client, caller, world, make_professional):
        company, job_role, pro, _ = world
        caller["identity"] = hr_identity(company)

        created = client.post("/v1/introductions", json=_create_body(job_role, pro))
        assert created.status_code == 201
        assert created.json()["status"] == "PENDING"

        third = make_professional()
        rejected = client.post("/v1/introductions", json=_create_body(job_role, third))
        assert rejected.status_code == 409
        assert rejected.json()["error"] == "insufficient_credits"

    def test_professional_cannot_create(self, client, caller, world):
        _, job_role, pro, other = world
        caller["identity"] = professional_identity(other)

        response = client.post("/v1/introductions", json=_create_body(job_role, pro))

        assert response.status_code == 401
        assert response.json()["error"] == "not_permitted"

    def test_dual_role_in_professional_mode_cannot_create(self, client, caller, world):
        company, job_role, pro, _ = world
        caller["identity"] = dual_identity(company, active_role=Role.PROFESSIONAL)

        response = client.post("/v1/introductions", json=_create_body(job_role, pro))

        assert response.status_code == 401

    def test_short_message_rejected(self, client, caller, world):
        company, job_role, pro, _ = world
        caller["identity"] = hr_identity(company)
        body = _create_body(job_role, pro)
        body["personalized_message"] = "Hi"

        response = client.post("/v1/introductions", json=body)

        assert response.status_code == 422

    def test_expired_subscription_is_402(self, client, caller, world, clock, db_session):
        company, job_role, pro, _ = world
        company.subscription_expires_at = clock.now
        db_session.commit()
        caller["identity"] = hr_identity(company)

        response = client.post("/v1/introductions", json=_create_body(job_role, pro))

        assert response.status_code == 402
        assert response.json()["error"] == "upgrade_required"

    def test_accept_flow(self, client, caller, world):
        company, job_role, pro, _ = world
        caller["identity"] = hr_identity(company)
        request_id = client.post("/v1/introductions", json=_create_body(job_role, pro)).json()["id"]

        caller["identity"] = professional_identity(pro)
        accepted = client.post(
            f"/v1/introductions/{request_id}/accept",
            json={"response_message": "Let's talk"},
        )
        assert accepted.status_code == 200
        assert accepted.json()["status"] == "ACCEPTED"
        assert accepted.json()["professional_response"] == "Let's talk"

        again = client.post(f"/v1/introductions/{request_id}/decline")
        assert again.status_code == 409
        assert again.json()["current_status"] == "ACCEPTED"

    def test_decline_without_body(self, client, caller, world):
        company, job_role, pro, _ = world
        caller["identity"] = hr_identity(company)
        request_id = client.post("/v1/introductions", json=_create_body(job_role, pro)).json()["id"]

        caller["identity"] = professional_identity(pro)
        response = client.post(f"/v1/introductions/{request_id}/decline")

        assert response.status_code == 200
        assert response.json()["status"] == "DECLINED"

    def test_withdraw_twice(self, client, caller, world):
        company, job_role, pro, _ = world
        caller["identity"] = hr_identity(company)
        request_id = client.post("/v1/introductions", json=_create_body(job_role, pro)).json()["id"]

        first = client.post(f"/v1/introductions/{request_id}/withdraw")
        second = client.post(f"/v1/introductions/{request_id}/withdraw")

        assert first.status_code == 200
        assert first.json()["status"] == "WITHDRAWN"
        assert second.status_code == 409
        assert client.get("/v1/subscription/status").json()["creditsRemaining"] == 1

    def test_unknown_request_is_404(self, client, caller, world):
        _, _, pro, _ = world
        caller["identity"] = professional_identity(pro)

        response = client.post("/v1/introductions/nope/accept")

        assert response.status_code == 404

    def test_other_professional_gets_404(self, client, caller, world):
        company, job_role, pro, other = world
        caller["identity"] = hr_identity(company)
        request_id = client.post("/v1/introductions", json=_create_body(job_role, pro)).json()["id"]

        caller["identity"] = professional_identity(other)

        assert client.post(f"/v1/introductions/{request_id}/accept").status_code == 404
        assert client.get(f"/v1/introductions/{request_id}").status_code == 404

    def test_lists_and_stats(self, client, caller, world):
        company, job_role, pro, _ = world
        caller["identity"] = hr_identity(company)
        client.post("/v1/introductions", json=_create_body(job_role, pro))

        sent = client.get("/v1/introductions/sent", params={"status": "PENDING"})
        assert sent.status_code == 200
        assert sent.json()["total"] == 1
        assert sent.json()["total_pages"] == 1

        stats = client.get("/v1/introductions/stats")
        assert stats.status_code == 200
        assert stats.json()["pending"] == 1

        caller["identity"] = professional_identity(pro)
        received = client.get("/v1/introductions/received")
        assert received.json()["total"] == 1

    def test_limit_is_bounded(self, client, caller, world):
        company, _, _, _ = world
        caller["identity"] = hr_identity(company)

        assert client.get("/v1/introductions/sent", params={"limit": 101}).status_code == 422


# =============================================================================
# Admin credits
# =============================================================================

class TestGrantCreditsRoute:

    def test_admin_grant(self, client, caller, world):
        company, _, _, _ = world
        caller["identity"] = admin_identity()

        response = client.post(f"/v1/admin/companies/{company.id}/credits", json={"amount": 4})

        assert response.status_code == 200
        assert response.json() == {"company_id": company.id, "introduction_credits": 5}

    def test_hr_partner_denied(self, client, caller, world):
        company, _, _, _ = world
        caller["identity"] = hr_identity(company)

        response = client.post(f"/v1/admin/companies/{company.id}/credits", json={"amount": 4})

        assert response.status_code == 401

    def test_amount_must_be_positive(self, client, caller, world):
        company, _, _, _ = world
        caller["identity"] = admin_identity()

        response = client.post(f"/v1/admin/companies/{company.id}/credits", json={"amount": 0})

        assert response.status_code == 422


# =============================================================================
# Identity
# =============================================================================

class TestIdentityRoutes:

    def test_me_reports_effective_permissions(self, client, caller, world):
        company, _, _, _ = world
        caller["identity"] = dual_identity(company, active_role=Role.PROFESSIONAL)

        body = client.get("/v1/identity/me").json()

        assert body["role"] == "hr_partner"
        assert body["effective_role"] == "professional"
        assert body["has_dual_role"] is True
        assert "accept_introductions" in body["permissions"]
        assert "send_introduction_requests" not in body["permissions"]

    def test_switch_active_role(self, client, caller, world, provider):
        company, _, _, _ = world
        caller["identity"] = dual_identity(company, active_role=Role.HR_PARTNER)

        response = client.post("/v1/identity/active-role", json={"active_role": "professional"})

        assert response.status_code == 200
        assert response.json()["effective_role"] == "professional"
        assert provider.calls == [("user_dual_1", Role.PROFESSIONAL)]

    def test_single_role_switch_rejected(self, client, caller, world, provider):
        company, _, _, _ = world
        caller["identity"] = hr_identity(company)

        response = client.post("/v1/identity/active-role", json={"active_role": "professional"})

        assert response.status_code == 401
        assert response.json()["error"] == "not_dual_role"
        assert provider.calls == []

    def test_single_role_rejected_before_clerk_client_is_built(
        self, client, caller, world, monkeypatch
    ):
        company, _, _, _ = world
        caller["identity"] = hr_identity(company)
        monkeypatch.delenv("CLERK_SECRET_KEY", raising=False)
        get_settings.cache_clear()
        del app.dependency_overrides[get_identity_provider]

        try:
            response = client.post("/v1/identity/active-role", json={"active_role": "professional"})
        finally:
            get_settings.cache_clear()

        assert response.status_code == 401
        assert response.json()["error"] == "not_dual_role"

    def test_dual_role_without_clerk_secret_is_502(self, client, caller, world, monkeypatch):
        company, _, _, _ = world
        caller["identity"] = dual_identity(company)
        monkeypatch.delenv("CLERK_SECRET_KEY", raising=False)
        get_settings.cache_clear()
        del app.dependency_overrides[get_identity_provider]

        try:
            response = client.post("/v1/identity/active-role", json={"active_role": "professional"})
        finally:
            get_settings.cache_clear()

        assert response.status_code == 502
        assert response.json()["error"] == "identity_provider_not_configured"


class TestAuthentication:

    def test_missing_token_is_401(self, db_session):
        def _db():
            yield db_session

        app.dependency_overrides[get_db_session] = _db
        try:
            response = TestClient(app).get("/v1/subscription/status")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 401
        assert response.json()["error"] == "authentication_required"


class TestRequireAiFeatures:

    @pytest.fixture
    def ai_client(self, db_session, clock, caller):
        from fastapi import Depends, FastAPI

        from nexus.api.dependencies.entitlements import require_ai_features
        from nexus.api.errors import register_exception_handlers

        ai_app = FastAPI()
        register_exception_handlers(ai_app)

        @ai_app.get("/match")
        def match(entitlements=Depends(require_ai_features)):
            return {"tier": entitlements.tier.value}

        def _db():
            yield db_session

        ai_app.dependency_overrides[get_db_session] = _db
        ai_app.dependency_overrides[get_clock] = lambda: clock
        ai_app.dependency_overrides[get_identity] = lambda: caller["identity"]
        return TestClient(ai_app)

    def test_professional_tier_allowed(self, ai_client, caller, make_company):
        caller["identity"] = hr_identity(make_company(tier="PROFESSIONAL"))

        response = ai_client.get("/match")

        assert response.status_code == 200
        assert response.json() == {"tier": "PROFESSIONAL"}

    def test_basic_tier_needs_upgrade(self, ai_client, caller, make_company):
        caller["identity"] = hr_identity(make_company(tier="BASIC"))

        response = ai_client.get("/match")

        assert response.status_code == 402
        assert response.json()["feature"] == "ai_features"


# =============================================================================
# Dual-role privacy
# =============================================================================

class TestPrivacyStatus:

    def test_dual_role_own_company_always_blocked(self, client, caller, world, make_professional):
        company, _, _, _ = world
        profile = make_professional(user_id="user_dual_1", hidden_company_ids=["company-x"])
        caller["identity"] = dual_identity(company, active_role=Role.PROFESSIONAL)

        response = client.get("/v1/dual-role/privacy-status")

        assert response.status_code == 200
        assert response.json() == {
            "professional_id": profile.id,
            "blocked_companies_count": 2,
            "hidden_from_own_company": True,
            "own_company_id": company.id,
        }

    def test_single_role_professional(self, client, caller, world):
        _, _, pro, _ = world
        caller["identity"] = professional_identity(pro)

        body = client.get("/v1/dual-role/privacy-status").json()

        assert body["blocked_companies_count"] == 0
        assert body["hidden_from_own_company"] is False

    def test_no_professional_profile(self, client, caller, world):
        company, _, _, _ = world
        caller["identity"] = hr_identity(company)

        response = client.get("/v1/dual-role/privacy-status")

        assert response.status_code == 404

    def test_self_introduction_rejected_over_http(self, client, caller, world, make_professional):
        company, job_role, _, _ = world
        own_profile = make_professional(user_id="user_dual_1")
        caller["identity"] = dual_identity(company, active_role=Role.HR_PARTNER)

        response = client.post("/v1/introductions", json=_create_body(job_role, own_profile))

        assert response.status_code == 403
        assert response.json()["error"] == "professional_unavailable"
        assert client.get("/v1/subscription/status").json()["creditsRemaining"] == 1
