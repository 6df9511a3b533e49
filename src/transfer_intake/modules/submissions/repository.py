"""
Submissions Repository

Database operations for submissions. Data access only, no business rules.

Patches are applied with a single UPDATE naming only the supplied columns,
so two patches that touch different fields never overwrite each other.
"""

import math
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete as sa_delete
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from transfer_intake.modules.submissions.models import FormMode, Submission, TermSeason


async def create(
    db: AsyncSession,
    values: dict[str, Any],
    mode: FormMode,
    *,
    ip_hash: str | None = None,
    user_agent: str | None = None,
) -> Submission:
    """Insert a new submission with the supplied first-step values."""
    submission = Submission(
        form_mode=mode,
        ip_hash=ip_hash,
        user_agent=user_agent,
        **values,
    )

    db.add(submission)
    await db.commit()
    await db.refresh(submission)

    return submission


async def get_by_id(db: AsyncSession, id: UUID) -> Submission | None:
    """Get submission by ID."""
    return await db.get(Submission, id)


async def apply_patch(db: AsyncSession, id: UUID, values: dict[str, Any]) -> bool:
    """
    Write the supplied columns of one submission.

    Args:
        db: Database session
        id: Submission ID
        values: Column values keyed by attribute name (may be empty)

    Returns:
        True if the submission exists and was updated, False if not found
    """
    stmt = (
        update(Submission)
        .where(Submission.id == id)
        .values(**values, updated_at=func.now())
        .returning(Submission.id)
    )

    result = await db.execute(stmt)
    updated_id = result.scalar_one_or_none()
    await db.commit()

    return updated_id is not None


async def delete(db: AsyncSession, id: UUID) -> bool:
    """Delete a submission. Returns False if it did not exist."""
    result = await db.execute(
        sa_delete(Submission).where(Submission.id == id).returning(Submission.id)
    )
    deleted_id = result.scalar_one_or_none()
    await db.commit()

    return deleted_id is not None


async def list_for_admin(
    db: AsyncSession,
    *,
    search: str | None = None,
    form_mode: FormMode | None = None,
    term_season: TermSeason | None = None,
    term_year: int | None = None,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Submission], int]:
    """
    Get submissions with filters and pagination for the admin dashboard.

    Newest submissions come first.

    Args:
        db: Database session
        search: Case-insensitive match on full name, email or phone
        form_mode: Only submissions created by this form
        term_season: Only this intended term season
        term_year: Only this intended term year
        created_from: Created at or after this time
        created_to: Created at or before this time
        page: 1-based page number
        limit: Page size

    Returns:
        Tuple of (submissions on the page, total count matching filters)
    """
    query = select(Submission)

    if search:
        search_pattern = f"%{search}%"
        query = query.where(
            or_(
                Submission.full_name.ilike(search_pattern),
                Submission.email.ilike(search_pattern),
                Submission.phone.ilike(search_pattern),
            )
        )

    if form_mode:
        query = query.where(Submission.form_mode == form_mode)

    if term_season:
        query = query.where(Submission.term_season == term_season)

    if term_year is not None:
        query = query.where(Submission.term_year == term_year)

    if created_from:
        query = query.where(Submission.created_at >= created_from)

    if created_to:
        query = query.where(Submission.created_at <= created_to)

    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = (
        query.order_by(Submission.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    result = await db.execute(query)
    submissions = list(result.scalars().all())

    return submissions, total


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
