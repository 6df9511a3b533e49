"""
Submissions Service Layer

Business logic for progressive transfer intake submissions.

This module implements:
1. Creation (first step of any form):
   - IP bucket and, when an email is supplied, email bucket rate-limit
     checks, run concurrently
   - Required-field check for the form's first step
   - Insert with the hashed client IP and user agent
   - Staff / applicant notifications handed to the background runner

2. Progress saves (every later step):
   - IP bucket rate-limit check only; the email is never re-checked
   - Merge-patch: only fields present in the body are written
   - No completeness check (PROGRESSIVE_SAVE_POLICY = DEFER_COMPLETENESS)

3. Admin review:
   - Filtered, paginated listing
   - Detail view with a completeness report
   - Deletion

Rate limiting runs on the raw request body, before any field is parsed, so
a throttled client is refused whatever its body contains.

Lifecycle of a submission:
    Unstarted --create--> Created --patch*--> Complete (implicit)

Security considerations:
- Raw IP addresses are never stored or logged; only the salted hash is kept
- Rate limiting precedes any write in the same request
- A rate-limit store outage lets requests through (fail-open) instead of
  taking the forms down
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, TypeVar
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from transfer_intake.modules.rate_limits.limiter import (
    BUCKET_EMAIL,
    BUCKET_IP,
    RateLimiter,
    RateLimitResult,
)
from transfer_intake.modules.submissions import repository
from transfer_intake.modules.submissions.helpers import (
    ClientContext,
    build_summary,
    normalize_email,
)
from transfer_intake.modules.submissions.models import FormMode, Submission, TermSeason
from transfer_intake.modules.submissions.notifications import NotificationDispatcher
from transfer_intake.modules.submissions.schemas import (
    FieldError,
    SubmissionCreate,
    SubmissionInput,
    SubmissionPatch,
)
from transfer_intake.modules.submissions.validation import (
    CompletenessReport,
    evaluate_completeness,
    validate_step,
)

logger = logging.getLogger(__name__)

# Errors from the submission store that are reported as INTERNAL_ERROR.
# OSError covers connection failures and timeouts raised below SQLAlchemy.
STORE_ERRORS = (SQLAlchemyError, OSError)

SubmissionInputT = TypeVar("SubmissionInputT", bound=SubmissionInput)


class SubmissionServiceError(Exception):
    """Base exception for submission service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class RateLimitExceededError(SubmissionServiceError):
    """Raised when a rate-limit bucket denies the request."""

    def __init__(
        self,
        retry_after: datetime,
        message: str = "Too many requests. Please try again later.",
    ):
        self.retry_after = retry_after
        super().__init__(
            message=message,
            error_code="RATE_LIMIT_EXCEEDED",
            status_code=429,
        )


class SubmissionValidationError(SubmissionServiceError):
    """Raised when a step is missing required fields or carries malformed ones."""

    def __init__(self, errors: list[FieldError], message: str = "Missing required fields"):
        self.errors = errors
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=422,
        )


class SubmissionNotFoundError(SubmissionServiceError):
    """Raised when a submission is not found."""

    def __init__(self, submission_id: UUID | None = None):
        message = (
            f"Submission {submission_id} not found" if submission_id else "Submission not found"
        )
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=404,
        )


class SubmissionStoreError(SubmissionServiceError):
    """Raised when the submission store fails during a write."""

    def __init__(self, message: str = "Failed to process submission. Please try again."):
        super().__init__(
            message=message,
            error_code="INTERNAL_ERROR",
            status_code=500,
        )


# ============================================
# Rate limiting
# ============================================


async def _check_create_limits(
    rate_limiter: RateLimiter,
    client: ClientContext,
    email: str | None,
) -> None:
    """
    Run the IP check and (when an email is supplied) the email check together.

    Raises:
        RateLimitExceededError: If either bucket denies the request
    """
    checks = [rate_limiter.check(client.ip, BUCKET_IP)]
    if email:
        checks.append(rate_limiter.check(email, BUCKET_EMAIL))

    results: list[RateLimitResult] = await asyncio.gather(*checks)

    ip_result = results[0]
    if not ip_result.allowed:
        logger.warning("IP rate limit exceeded on submission create")
        raise RateLimitExceededError(ip_result.reset_at)

    if email and not results[1].allowed:
        logger.warning(f"Email rate limit exceeded for {email}")
        raise RateLimitExceededError(
            results[1].reset_at,
            message="Too many submissions from this email. Please try again later.",
        )


async def _check_patch_limit(rate_limiter: RateLimiter, client: ClientContext) -> None:
    result = await rate_limiter.check(client.ip, BUCKET_IP)
    if not result.allowed:
        logger.warning("IP rate limit exceeded on submission patch")
        raise RateLimitExceededError(result.reset_at)


def _raw_email(body: Any) -> str | None:
    """Email identifier taken from an unparsed body, if it carries one."""
    if not isinstance(body, dict):
        return None
    email = body.get("email")
    if not isinstance(email, str) or not email.strip():
        return None
    return normalize_email(email)


def parse_body(schema: type[SubmissionInputT], body: Any) -> SubmissionInputT:
    """
    Validate a raw request body against an input schema.

    Raises:
        SubmissionValidationError: With one entry per malformed field
    """
    try:
        return schema.model_validate(body)
    except ValidationError as e:
        errors = [
            FieldError(
                field=".".join(str(part) for part in error["loc"]) or "body",
                message=error["msg"],
            )
            for error in e.errors()
        ]
        raise SubmissionValidationError(errors, message="Invalid request data") from e


# ============================================
# Public flow
# ============================================


async def create_submission(
    db: AsyncSession,
    body: Any,
    client: ClientContext,
    rate_limiter: RateLimiter,
    dispatcher: NotificationDispatcher,
    schema: type[SubmissionCreate] = SubmissionCreate,
) -> Submission:
    """
    Create a submission from the first step of a form.

    Args:
        db: Database session
        body: Unparsed JSON body with the first-step fields and the form mode
        client: Requesting client's IP and user agent
        rate_limiter: Application rate limiter
        dispatcher: Notification dispatcher for new-submission emails
        schema: Input schema the body is parsed with once the limits pass

    Returns:
        The created Submission

    Raises:
        RateLimitExceededError: If the IP or email bucket is exhausted
        SubmissionValidationError: If a field is malformed or a first-step field is missing
        SubmissionStoreError: If the insert fails
    """
    await _check_create_limits(rate_limiter, client, _raw_email(body))

    payload = parse_body(schema, body)
    values = payload.submission_values()
    errors = validate_step(payload.mode, values)
    if errors:
        logger.info(
            f"Rejected {payload.mode.value} submission, missing: "
            f"{', '.join(error.field for error in errors)}"
        )
        raise SubmissionValidationError(errors)

    try:
        submission = await repository.create(
            db,
            values,
            payload.mode,
            ip_hash=rate_limiter.key_for(client.ip, BUCKET_IP),
            user_agent=client.user_agent,
        )
    except STORE_ERRORS as e:
        logger.error(f"Failed to create {payload.mode.value} submission: {e}", exc_info=True)
        raise SubmissionStoreError() from e

    logger.info(f"Submission created: id={submission.id}, form_mode={payload.mode.value}")

    try:
        dispatcher.submission_created(build_summary(submission))
    except Exception as e:
        logger.error(f"Failed to schedule notifications for submission {submission.id}: {e}")

    return submission


async def patch_submission(
    db: AsyncSession,
    submission_id: UUID,
    body: Any,
    client: ClientContext,
    rate_limiter: RateLimiter,
) -> None:
    """
    Save progress on an existing submission.

    Only fields explicitly present in the body are written. Completeness
    is not checked.

    Raises:
        RateLimitExceededError: If the IP bucket is exhausted
        SubmissionValidationError: If a supplied field is malformed
        SubmissionNotFoundError: If the submission does not exist
        SubmissionStoreError: If the update fails
    """
    await _check_patch_limit(rate_limiter, client)

    values = parse_body(SubmissionPatch, body).submission_values()

    try:
        found = await repository.apply_patch(db, submission_id, values)
    except STORE_ERRORS as e:
        logger.error(f"Failed to patch submission {submission_id}: {e}", exc_info=True)
        raise SubmissionStoreError() from e

    if not found:
        logger.warning(f"Patch for unknown submission: {submission_id}")
        raise SubmissionNotFoundError(submission_id)

    logger.info(f"Submission {submission_id} updated: fields={sorted(values)}")


# ============================================
# Admin
# ============================================


async def admin_list_submissions(
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
) -> dict:
    """
    Get a page of submissions for the admin dashboard.

    Returns:
        Dict with submissions, total, page, limit and pages
    """
    # Validate and cap paging
    page = max(1, page)
    limit = min(max(1, limit), 100)

    submissions, total = await repository.list_for_admin(
        db,
        search=search,
        form_mode=form_mode,
        term_season=term_season,
        term_year=term_year,
        created_from=created_from,
        created_to=created_to,
        page=page,
        limit=limit,
    )

    logger.info(f"Found {total} submissions, returning {len(submissions)}")

    return {
        "submissions": submissions,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": repository.page_count(total, limit),
    }


async def admin_get_submission_detail(
    db: AsyncSession,
    submission_id: UUID,
) -> tuple[Submission, CompletenessReport]:
    """
    Get a submission and its completeness report.

    Raises:
        SubmissionNotFoundError: If the submission doesn't exist
    """
    submission = await repository.get_by_id(db, submission_id)

    if not submission:
        logger.warning(f"Submission not found: {submission_id}")
        raise SubmissionNotFoundError(submission_id)

    return submission, evaluate_completeness(submission)


async def admin_delete_submission(db: AsyncSession, submission_id: UUID) -> None:
    """
    Delete a submission.

    Raises:
        SubmissionNotFoundError: If the submission doesn't exist
        SubmissionStoreError: If the delete fails
    """
    try:
        deleted = await repository.delete(db, submission_id)
    except STORE_ERRORS as e:
        logger.error(f"Failed to delete submission {submission_id}: {e}", exc_info=True)
        raise SubmissionStoreError("Failed to delete submission.") from e

    if not deleted:
        raise SubmissionNotFoundError(submission_id)

    logger.info(f"Submission deleted: {submission_id}")
