"""
Submissions Router

Public API endpoints for the transfer intake forms.
These endpoints require no authentication: applicants fill the forms
anonymously.

Endpoints:
- POST /submissions - First step of a form (creates the submission)
- POST /submissions/initial - First step of the initial form (mode forced to "initial")
- PATCH /submissions/{id} - Every later step (merge-patch of supplied fields)

Security:
- IP and email rate limiting on create, IP rate limiting on patch
- Rate limits checked before the body is parsed
- Input validation via Pydantic schemas
- Client IPs are stored only as salted hashes
"""

import logging
import math
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from transfer_intake.core.database import get_db
from transfer_intake.core.logging import get_trace_id
from transfer_intake.core.rate_limit import get_rate_limiter
from transfer_intake.modules.rate_limits.limiter import RateLimiter
from transfer_intake.modules.submissions import service
from transfer_intake.modules.submissions.helpers import ClientContext, get_client_context
from transfer_intake.modules.submissions.notifications import NotificationDispatcher
from transfer_intake.modules.submissions.schemas import (
    InitialSubmissionCreate,
    SubmissionAcceptedResponse,
    SubmissionCreate,
)
from transfer_intake.modules.submissions.service import (
    RateLimitExceededError,
    SubmissionServiceError,
    SubmissionValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_notification_dispatcher(request: Request) -> NotificationDispatcher:
    """FastAPI dependency returning the dispatcher created in the lifespan."""
    return request.app.state.notification_dispatcher


# ============================================
# Helper Functions
# ============================================


def service_error_to_http(e: SubmissionServiceError) -> HTTPException:
    """Convert a service error to an HTTPException with a structured detail."""
    detail: dict = {
        "code": e.error_code,
        "message": e.message,
    }
    headers = None

    if isinstance(e, RateLimitExceededError):
        detail["retryAfter"] = e.retry_after.isoformat()
        seconds = math.ceil((e.retry_after - datetime.now(UTC)).total_seconds())
        headers = {"Retry-After": str(max(1, seconds))}
    elif isinstance(e, SubmissionValidationError):
        detail["errors"] = [error.model_dump() for error in e.errors]

    return HTTPException(status_code=e.status_code, detail=detail, headers=headers)


def _internal_error(e: Exception, action: str) -> HTTPException:
    logger.exception(f"Unexpected error {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "code": "INTERNAL_ERROR",
            "message": "Failed to process submission. Please try again.",
        },
    )


async def _create(
    body: Any,
    schema: type[SubmissionCreate],
    db: AsyncSession,
    client: ClientContext,
    rate_limiter: RateLimiter,
    dispatcher: NotificationDispatcher,
) -> SubmissionAcceptedResponse:
    try:
        submission = await service.create_submission(
            db, body, client, rate_limiter, dispatcher, schema=schema
        )
    except SubmissionServiceError as e:
        raise service_error_to_http(e) from e
    except Exception as e:
        raise _internal_error(e, "creating submission") from e

    return SubmissionAcceptedResponse(id=submission.id, trace_id=get_trace_id())


# ============================================
# Endpoints
# ============================================


_ERROR_RESPONSES = {
    422: {"description": "Validation error - missing or malformed fields"},
    429: {
        "description": "Rate limit exceeded",
        "content": {
            "application/json": {
                "example": {
                    "code": "RATE_LIMIT_EXCEEDED",
                    "message": "Too many requests. Please try again later.",
                    "traceId": "1767225600000-k3j9x2m1q8w4z",
                    "retryAfter": "2026-01-01T00:10:00+00:00",
                }
            }
        },
    },
    500: {"description": "Internal error"},
}


@router.post(
    "",
    response_model=SubmissionAcceptedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Submission",
    description="""
Save the first step of a form and create its submission.

The body declares the form `mode` (`initial`, `partial` or `full`) and the
fields of the first step. Required first-step fields:
- initial: fullName, phone, email, studyLevel, currentCollege, major, termSeason
- partial: fullName, email, phone
- full: fullName, phone, address

Every later step of the same form must PATCH the returned `id`.
""",
    responses={201: {"model": SubmissionAcceptedResponse}, **_ERROR_RESPONSES},
)
async def create_submission(
    body: Any = Body(...),
    db: AsyncSession = Depends(get_db),
    client: ClientContext = Depends(get_client_context),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> SubmissionAcceptedResponse:
    """Create a submission from the first step of any form."""
    return await _create(body, SubmissionCreate, db, client, rate_limiter, dispatcher)


@router.post(
    "/initial",
    response_model=SubmissionAcceptedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Initial-Form Submission",
    description="""
Save the initial interest form. The mode is always `initial`.

Accepts `intendedMajor` for `major` and `transferTime` (e.g. `fall-2026`),
from which `termSeason` is derived when not sent. Consent is implied.
The applicant is emailed a link to the full transfer form.
""",
    responses={201: {"model": SubmissionAcceptedResponse}, **_ERROR_RESPONSES},
)
async def create_initial_submission(
    body: Any = Body(...),
    db: AsyncSession = Depends(get_db),
    client: ClientContext = Depends(get_client_context),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> SubmissionAcceptedResponse:
    """Create a submission from the initial interest form."""
    return await _create(body, InitialSubmissionCreate, db, client, rate_limiter, dispatcher)


@router.patch(
    "/{submission_id}",
    response_model=SubmissionAcceptedResponse,
    summary="Save Submission Progress",
    description="""
Save a later step of a form.

Only fields present in the body are written; absent fields keep their stored
values. Completeness is not checked, so a form can be left and resumed.
`mode`, `id` and `createdAt` cannot be changed and are ignored.
""",
    responses={404: {"description": "Submission not found"}, **_ERROR_RESPONSES},
)
async def patch_submission(
    submission_id: UUID,
    body: Any = Body(...),
    db: AsyncSession = Depends(get_db),
    client: ClientContext = Depends(get_client_context),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> SubmissionAcceptedResponse:
    """Merge-patch the supplied fields into an existing submission."""
    try:
        await service.patch_submission(db, submission_id, body, client, rate_limiter)
    except SubmissionServiceError as e:
        raise service_error_to_http(e) from e
    except Exception as e:
        raise _internal_error(e, f"patching submission {submission_id}") from e

    return SubmissionAcceptedResponse(id=submission_id, trace_id=get_trace_id())
