"""
Fixtures for submissions tests.
"""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from transfer_intake.modules.rate_limits.limiter import RateLimitResult
from transfer_intake.modules.submissions.helpers import ClientContext
from transfer_intake.modules.submissions.models import (
    FormMode,
    StudyLevel,
    Submission,
    TermSeason,
)

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


def allowed_result(remaining: int = 19) -> RateLimitResult:
    return RateLimitResult(allowed=True, remaining=remaining, reset_at=NOW + timedelta(minutes=10))


class InMemorySubmissionRepository:
    """Stand-in for the submissions repository module, keyed by id."""

    def __init__(self) -> None:
        self.rows: dict[uuid.UUID, Submission] = {}

    async def create(self, db, values, mode, *, ip_hash=None, user_agent=None):
        submission = Submission(
            id=uuid.uuid4(),
            form_mode=mode,
            ip_hash=ip_hash,
            user_agent=user_agent,
            consent=values.pop("consent", False),
            created_at=NOW,
            updated_at=NOW,
            **values,
        )
        self.rows[submission.id] = submission
        return submission

    async def apply_patch(self, db, id, values):
        submission = self.rows.get(id)
        if submission is None:
            return False
        for name, value in values.items():
            setattr(submission, name, value)
        submission.updated_at = datetime.now(UTC)
        return True

    async def get_by_id(self, db, id):
        return self.rows.get(id)


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.refresh = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def mock_rate_limiter():
    """Rate limiter that allows everything unless told otherwise."""
    limiter = MagicMock()
    limiter.check = AsyncMock(return_value=allowed_result())
    limiter.key_for = MagicMock(return_value="a" * 64)
    return limiter


@pytest.fixture
def mock_dispatcher():
    dispatcher = MagicMock()
    dispatcher.submission_created = MagicMock()
    return dispatcher


@pytest.fixture
def client_context():
    return ClientContext(ip="203.0.113.7", user_agent="pytest-agent/1.0")


@pytest.fixture
def memory_repository():
    return InMemorySubmissionRepository()


@pytest.fixture
def sample_partial_create():
    """First step of the partial form."""
    return {
        "mode": "partial",
        "fullName": "Amara Jalloh",
        "email": "Amara.Jalloh@Example.com",
        "phone": "+23276123456",
    }


@pytest.fixture
def sample_full_create():
    """First step of the full form."""
    return {
        "mode": "full",
        "fullName": "Amara Jalloh",
        "phone": "+23276123456",
        "address": "12 Main Street, Freetown",
        "consent": True,
    }


@pytest.fixture
def sample_submission_model():
    """A stored partial-form submission."""
    return Submission(
        id=uuid.uuid4(),
        form_mode=FormMode.PARTIAL,
        full_name="Amara Jalloh",
        email="amara.jalloh@example.com",
        phone="+23276123456",
        consent=False,
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture
def sample_initial_model():
    """A stored initial-form submission with every initial field."""
    return Submission(
        id=uuid.uuid4(),
        form_mode=FormMode.INITIAL,
        full_name="Amara Jalloh",
        email="amara.jalloh@example.com",
        phone="+23276123456",
        consent=True,
        study_level=StudyLevel.UNDERGRADUATE,
        current_college="Fourah Bay College",
        major="Computer Science",
        term_season=TermSeason.FALL,
        created_at=NOW,
        updated_at=NOW,
    )
