"""
Unit tests for submissions repository layer.

These tests focus on the statements issued for merge-patches and on the
found / not-found contract of the write helpers.
"""

import uuid
from unittest.mock import MagicMock

import pytest
from sqlalchemy.dialects import postgresql

from transfer_intake.modules.submissions import repository
from transfer_intake.modules.submissions.models import FormMode


def scalar_result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def set_clause(stmt) -> str:
    sql = str(stmt.compile(dialect=postgresql.dialect()))
    return sql.split(" SET ", 1)[1].split(" WHERE ", 1)[0]


class TestApplyPatch:
    """Tests for apply_patch."""

    @pytest.mark.asyncio
    async def test_updates_only_supplied_columns(self, mock_db):
        submission_id = uuid.uuid4()
        mock_db.execute.return_value = scalar_result(submission_id)

        found = await repository.apply_patch(mock_db, submission_id, {"major": "Economics"})

        assert found is True
        clause = set_clause(mock_db.execute.call_args.args[0])
        assert "major" in clause
        assert "updated_at" in clause
        assert "full_name" not in clause
        assert "email" not in clause
        mock_db.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_missing_submission(self, mock_db):
        mock_db.execute.return_value = scalar_result(None)

        found = await repository.apply_patch(mock_db, uuid.uuid4(), {"major": "Economics"})

        assert found is False

    @pytest.mark.asyncio
    async def test_empty_patch_touches_updated_at_only(self, mock_db):
        submission_id = uuid.uuid4()
        mock_db.execute.return_value = scalar_result(submission_id)

        assert await repository.apply_patch(mock_db, submission_id, {}) is True
        assert set_clause(mock_db.execute.call_args.args[0]).strip() == "updated_at=now()"


class TestCreate:
    """Tests for create."""

    @pytest.mark.asyncio
    async def test_create_stores_mode_and_client_data(self, mock_db):
        submission = await repository.create(
            mock_db,
            {"full_name": "Amara Jalloh", "phone": "+23276123456"},
            FormMode.PARTIAL,
            ip_hash="b" * 64,
            user_agent="pytest-agent/1.0",
        )

        mock_db.add.assert_called_once_with(submission)
        mock_db.commit.assert_called_once()
        mock_db.refresh.assert_called_once_with(submission)
        assert submission.form_mode == FormMode.PARTIAL
        assert submission.ip_hash == "b" * 64
        assert submission.full_name == "Amara Jalloh"


class TestDelete:
    """Tests for delete."""

    @pytest.mark.asyncio
    async def test_delete_reports_found(self, mock_db):
        mock_db.execute.return_value = scalar_result(uuid.uuid4())

        assert await repository.delete(mock_db, uuid.uuid4()) is True
        mock_db.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_delete_missing(self, mock_db):
        mock_db.execute.return_value = scalar_result(None)
        assert await repository.delete(mock_db, uuid.uuid4()) is False


class TestPageCount:
    """Tests for page_count."""

    @pytest.mark.parametrize(
        ("total", "limit", "expected"),
        [(0, 20, 0), (1, 20, 1), (20, 20, 1), (41, 20, 3)],
    )
    def test_page_count(self, total, limit, expected):
        assert repository.page_count(total, limit) == expected
