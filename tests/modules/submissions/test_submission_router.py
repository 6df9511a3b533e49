"""
HTTP tests for the submissions routers.

The application is exercised through FastAPI's TestClient with the
database session, rate limiter and notification dispatcher replaced by
test doubles, and the repository replaced by an in-memory store.

These tests cover:
- Success responses carrying the submission id and trace id
- Flat error bodies {code, message, traceId, ...} for every failure
- Retry-After on rate-limit denials
- Admin endpoints behind bearer authentication
"""

import uuid
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from transfer_intake.core.auth import get_current_admin_user
from transfer_intake.core.database import get_db
from transfer_intake.core.rate_limit import get_rate_limiter
from transfer_intake.main import app
from transfer_intake.modules.rate_limits.limiter import BUCKET_IP, RateLimitResult
from transfer_intake.modules.submissions.router import get_notification_dispatcher

REPOSITORY = "transfer_intake.modules.submissions.service.repository"
BASE = "/api/v1/submissions"
ADMIN_BASE = "/api/v1/admin/submissions"

PARTIAL_BODY = {
    "mode": "partial",
    "fullName": "Amara Jalloh",
    "email": "amara@example.com",
    "phone": "+23276123456",
}


def denied(now: datetime) -> RateLimitResult:
    return RateLimitResult(allowed=False, remaining=0, reset_at=now + timedelta(minutes=10))


@pytest.fixture
def api_client(mock_db, mock_rate_limiter, mock_dispatcher, memory_repository):
    async def override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limiter] = lambda: mock_rate_limiter
    app.dependency_overrides[get_notification_dispatcher] = lambda: mock_dispatcher

    with patch(REPOSITORY, memory_repository):
        yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(api_client):
    app.dependency_overrides[get_current_admin_user] = lambda: SimpleNamespace(
        id=uuid.uuid4(), email="staff@example.com", active=True
    )
    return api_client


def assert_error_body(response, code):
    body = response.json()
    assert body["code"] == code
    assert body["message"]
    assert body["traceId"] == response.headers["X-Trace-Id"]
    return body


class TestCreateEndpoint:
    """Tests for POST /submissions and POST /submissions/initial."""

    def test_create_returns_id_and_trace_id(self, api_client, memory_repository):
        response = api_client.post(BASE, json=PARTIAL_BODY)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["traceId"] == response.headers["X-Trace-Id"]
        assert uuid.UUID(body["id"]) in memory_repository.rows

    def test_trace_ids_differ_per_request(self, api_client):
        first = api_client.post(BASE, json=PARTIAL_BODY)
        second = api_client.post(BASE, json=PARTIAL_BODY)

        assert first.headers["X-Trace-Id"] != second.headers["X-Trace-Id"]

    def test_forwarded_ip_is_rate_limited(self, api_client, mock_rate_limiter):
        api_client.post(
            BASE,
            json=PARTIAL_BODY,
            headers={"X-Forwarded-For": "198.51.100.9, 10.0.0.1"},
        )

        assert mock_rate_limiter.check.await_args_list[0].args == ("198.51.100.9", BUCKET_IP)

    def test_initial_endpoint_forces_mode(self, api_client, memory_repository):
        response = api_client.post(
            f"{BASE}/initial",
            json={
                "mode": "full",
                "fullName": "Amara Jalloh",
                "phone": "+23276123456",
                "email": "amara@example.com",
                "studyLevel": "Undergraduate",
                "currentCollege": "Fourah Bay College",
                "intendedMajor": "Computer Science",
                "transferTime": "fall-2026",
            },
        )

        assert response.status_code == 201
        stored = memory_repository.rows[uuid.UUID(response.json()["id"])]
        assert stored.form_mode.value == "initial"

    def test_missing_fields_returns_422(self, api_client):
        response = api_client.post(
            BASE, json={"mode": "full", "fullName": "Amara Jalloh", "phone": "+23276123456"}
        )

        assert response.status_code == 422
        body = assert_error_body(response, "VALIDATION_ERROR")
        assert body["errors"] == [{"field": "address", "message": "This field is required"}]

    def test_malformed_field_returns_422(self, api_client):
        response = api_client.post(BASE, json={**PARTIAL_BODY, "email": "not-an-email"})

        assert response.status_code == 422
        body = assert_error_body(response, "VALIDATION_ERROR")
        assert [error["field"] for error in body["errors"]] == ["email"]

    def test_rate_limited_returns_429(self, api_client, mock_rate_limiter, memory_repository):
        reset_at = datetime.now(UTC) + timedelta(minutes=10)
        mock_rate_limiter.check = AsyncMock(
            return_value=RateLimitResult(allowed=False, remaining=0, reset_at=reset_at)
        )

        response = api_client.post(BASE, json=PARTIAL_BODY)

        assert response.status_code == 429
        body = assert_error_body(response, "RATE_LIMIT_EXCEEDED")
        assert body["retryAfter"] == reset_at.isoformat()
        assert 1 <= int(response.headers["Retry-After"]) <= 600
        assert memory_repository.rows == {}

    def test_rate_limited_malformed_body_returns_429(self, api_client, mock_rate_limiter):
        mock_rate_limiter.check = AsyncMock(return_value=denied(datetime.now(UTC)))

        response = api_client.post(BASE, json={**PARTIAL_BODY, "email": "not-an-email"})

        assert response.status_code == 429
        assert_error_body(response, "RATE_LIMIT_EXCEEDED")
        assert mock_rate_limiter.check.await_count == 2

    def test_unexpected_error_returns_500(self, api_client):
        with patch(
            "transfer_intake.modules.submissions.service.create_submission",
            new=AsyncMock(side_effect=RuntimeError("boom")),
        ):
            response = api_client.post(BASE, json=PARTIAL_BODY)

        assert response.status_code == 500
        assert_error_body(response, "INTERNAL_ERROR")


class TestPatchEndpoint:
    """Tests for PATCH /submissions/{id}."""

    def test_patch_merges_fields(self, api_client, memory_repository):
        created = api_client.post(BASE, json=PARTIAL_BODY).json()

        response = api_client.patch(f"{BASE}/{created['id']}", json={"major": "Economics"})

        assert response.status_code == 200
        assert response.json()["id"] == created["id"]
        stored = memory_repository.rows[uuid.UUID(created["id"])]
        assert stored.major == "Economics"
        assert stored.full_name == "Amara Jalloh"

    def test_patch_unknown_id_returns_404(self, api_client):
        response = api_client.patch(f"{BASE}/{uuid.uuid4()}", json={"major": "Economics"})

        assert response.status_code == 404
        assert_error_body(response, "NOT_FOUND")

    def test_patch_malformed_field_returns_422(self, api_client, mock_rate_limiter):
        response = api_client.patch(f"{BASE}/{uuid.uuid4()}", json={"phone": "1"})

        assert response.status_code == 422
        body = assert_error_body(response, "VALIDATION_ERROR")
        assert [error["field"] for error in body["errors"]] == ["phone"]
        mock_rate_limiter.check.assert_awaited_once()

    def test_patch_rate_limited_malformed_body_returns_429(self, api_client, mock_rate_limiter):
        mock_rate_limiter.check = AsyncMock(return_value=denied(datetime.now(UTC)))

        response = api_client.patch(f"{BASE}/{uuid.uuid4()}", json={"phone": "1"})

        assert response.status_code == 429
        assert_error_body(response, "RATE_LIMIT_EXCEEDED")
        assert "Retry-After" in response.headers

    def test_patch_null_consent_accepted(self, api_client, memory_repository):
        created = api_client.post(BASE, json={**PARTIAL_BODY, "consent": True}).json()

        response = api_client.patch(f"{BASE}/{created['id']}", json={"consent": None})

        assert response.status_code == 200
        assert memory_repository.rows[uuid.UUID(created["id"])].consent is True

    def test_patch_invalid_id_returns_422(self, api_client):
        response = api_client.patch(f"{BASE}/not-a-uuid", json={"major": "Economics"})

        assert response.status_code == 422
        assert_error_body(response, "VALIDATION_ERROR")


class TestAdminEndpoints:
    """Tests for /admin/submissions."""

    def test_requires_token(self, api_client):
        response = api_client.get(ADMIN_BASE)

        assert response.status_code == 401
        assert_error_body(response, "NOT_AUTHENTICATED")

    def test_rejects_invalid_token(self, api_client):
        response = api_client.get(ADMIN_BASE, headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 401
        assert_error_body(response, "INVALID_TOKEN")

    def test_detail_reports_completeness(self, admin_client):
        created = admin_client.post(
            BASE,
            json={
                "mode": "full",
                "fullName": "Amara Jalloh",
                "phone": "+23276123456",
                "address": "12 Main Street, Freetown",
            },
        ).json()

        response = admin_client.get(f"{ADMIN_BASE}/{created['id']}")

        assert response.status_code == 200
        body = response.json()
        assert body["formMode"] == "full"
        assert body["fullName"] == "Amara Jalloh"
        assert body["isComplete"] is False
        assert "previousGPA" in body["missingFields"]
        assert "ipHash" not in body
        assert "ip_hash" not in body

    def test_detail_unknown_returns_404(self, admin_client):
        response = admin_client.get(f"{ADMIN_BASE}/{uuid.uuid4()}")

        assert response.status_code == 404
        assert_error_body(response, "NOT_FOUND")

    def test_list_returns_pagination(
        self, admin_client, memory_repository, sample_submission_model
    ):
        memory_repository.list_for_admin = AsyncMock(return_value=([sample_submission_model], 41))
        memory_repository.page_count = MagicMock(return_value=3)

        response = admin_client.get(ADMIN_BASE, params={"page": 1, "limit": 20})

        assert response.status_code == 200
        body = response.json()
        assert body["pagination"] == {"page": 1, "limit": 20, "total": 41, "pages": 3}
        assert body["submissions"][0]["fullName"] == "Amara Jalloh"
        assert body["submissions"][0]["formMode"] == "partial"

    def test_list_rejects_oversized_limit(self, admin_client):
        response = admin_client.get(ADMIN_BASE, params={"limit": 101})

        assert response.status_code == 422
        assert_error_body(response, "VALIDATION_ERROR")

    def test_delete(self, admin_client, memory_repository):
        created = admin_client.post(BASE, json=PARTIAL_BODY).json()
        memory_repository.delete = AsyncMock(return_value=True)

        response = admin_client.delete(f"{ADMIN_BASE}/{created['id']}")

        assert response.status_code == 204
