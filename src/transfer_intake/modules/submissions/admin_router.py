"""
Submissions Admin Router

API endpoints for staff to review transfer intake submissions.
All endpoints require a valid admin access token.

Endpoints:
- GET /admin/submissions - List submissions with filters and pagination
- GET /admin/submissions/{id} - Submission detail with completeness report
- DELETE /admin/submissions/{id} - Delete a submission
"""

import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from transfer_intake.core.auth import get_current_admin_user
from transfer_intake.core.database import get_db
from transfer_intake.modules.admins.models import AdminUser
from transfer_intake.modules.submissions import service
from transfer_intake.modules.submissions.models import FormMode, TermSeason
from transfer_intake.modules.submissions.router import service_error_to_http
from transfer_intake.modules.submissions.schemas import (
    Pagination,
    SubmissionDetailResponse,
    SubmissionFields,
    SubmissionListItem,
    SubmissionListResponse,
)
from transfer_intake.modules.submissions.service import SubmissionServiceError

logger = logging.getLogger(__name__)

router = APIRouter()


def _internal_error(e: Exception, action: str) -> HTTPException:
    logger.exception(f"Error {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )


@router.get(
    "",
    response_model=SubmissionListResponse,
    summary="List Submissions",
    description="""
Get a paginated list of submissions, newest first.

**Filters:**
- `search`: Case-insensitive match on full name, email or phone
- `formMode`: initial, partial or full
- `termSeason`, `termYear`: Intended transfer term
- `from`, `to`: Creation time range (inclusive)

**Pagination:**
- `page`: 1-based page number. Default: 1
- `limit`: Records per page (1-100). Default: 20

**Access:** Admin only
""",
    responses={
        401: {"description": "Unauthorized - invalid or missing token"},
        403: {"description": "Forbidden - admin account inactive"},
    },
)
async def list_submissions(
    search: str | None = Query(None, min_length=1, max_length=100),
    form_mode: FormMode | None = Query(None, alias="formMode"),
    term_season: TermSeason | None = Query(None, alias="termSeason"),
    term_year: int | None = Query(None, alias="termYear"),
    created_from: datetime | None = Query(None, alias="from"),
    created_to: datetime | None = Query(None, alias="to"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin_user),
) -> SubmissionListResponse:
    """List submissions with filters and pagination."""
    try:
        result = await service.admin_list_submissions(
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
    except SubmissionServiceError as e:
        raise service_error_to_http(e) from e
    except Exception as e:
        raise _internal_error(e, "listing submissions") from e

    logger.info(
        f"Admin {admin.id} listed submissions: "
        f"total={result['total']}, returned={len(result['submissions'])}"
    )

    return SubmissionListResponse(
        submissions=[SubmissionListItem.model_validate(s) for s in result["submissions"]],
        pagination=Pagination(
            page=result["page"],
            limit=result["limit"],
            total=result["total"],
            pages=result["pages"],
        ),
    )


@router.get(
    "/{submission_id}",
    response_model=SubmissionDetailResponse,
    summary="Get Submission Detail",
    description="""
Get every field of a submission together with its completeness report.

`isComplete` is false while fields the form collects are still missing;
`missingFields` lists them by wire name.

**Access:** Admin only
""",
    responses={404: {"description": "Submission not found"}},
)
async def get_submission(
    submission_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin_user),
) -> SubmissionDetailResponse:
    """Get a submission for review."""
    try:
        submission, report = await service.admin_get_submission_detail(db, submission_id)
    except SubmissionServiceError as e:
        raise service_error_to_http(e) from e
    except Exception as e:
        raise _internal_error(e, f"getting submission {submission_id}") from e

    logger.info(f"Admin {admin.id} viewed submission {submission_id}")

    fields = {name: getattr(submission, name) for name in SubmissionFields.model_fields}
    return SubmissionDetailResponse(
        **fields,
        id=submission.id,
        form_mode=submission.form_mode,
        created_at=submission.created_at,
        updated_at=submission.updated_at,
        is_complete=report.is_complete,
        missing_fields=report.missing_fields,
    )


@router.delete(
    "/{submission_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Submission",
    responses={404: {"description": "Submission not found"}},
)
async def delete_submission(
    submission_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin_user),
) -> Response:
    """Delete a submission."""
    try:
        await service.admin_delete_submission(db, submission_id)
    except SubmissionServiceError as e:
        raise service_error_to_http(e) from e
    except Exception as e:
        raise _internal_error(e, f"deleting submission {submission_id}") from e

    logger.info(f"Admin {admin.id} deleted submission {submission_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
