"""
Submissions Shared Helpers

Request-derived context and small conversions shared by the routers and the
service layer.
"""

from dataclasses import dataclass

from fastapi import Request

from transfer_intake.core.email import SubmissionSummary
from transfer_intake.core.rate_limit import get_client_ip
from transfer_intake.modules.submissions.models import Submission

USER_AGENT_MAX_LENGTH = 512


@dataclass(frozen=True)
class ClientContext:
    """Who sent the request, as far as rate limiting and auditing care."""

    ip: str
    user_agent: str | None = None


def get_client_context(request: Request) -> ClientContext:
    """FastAPI dependency building the ClientContext of a request."""
    user_agent = request.headers.get("user-agent")
    return ClientContext(
        ip=get_client_ip(request),
        user_agent=user_agent[:USER_AGENT_MAX_LENGTH] if user_agent else None,
    )


def normalize_email(email: str) -> str:
    """Canonical form of an email used as a rate-limit identifier."""
    return email.strip().lower()


def build_summary(submission: Submission) -> SubmissionSummary:
    """Minimal view of a submission for notification emails."""
    return SubmissionSummary(
        id=str(submission.id),
        full_name=submission.full_name,
        email=submission.email,
        form_mode=submission.form_mode.value,
    )
