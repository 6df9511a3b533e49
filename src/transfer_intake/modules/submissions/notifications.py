"""
Submission Notifications

Emails triggered by a newly created submission. Delivery runs on the
background runner: the request that created the submission never waits for
it and never sees its failures.
"""

import logging
from collections.abc import Awaitable, Callable

from transfer_intake.core.background import BackgroundTaskRunner
from transfer_intake.core.email import (
    SubmissionSummary,
    send_admin_notification,
    send_transfer_invitation,
)
from transfer_intake.modules.submissions.models import FormMode

logger = logging.getLogger(__name__)

AdminSender = Callable[[SubmissionSummary], Awaitable[bool]]
InvitationSender = Callable[[str, str | None], Awaitable[bool]]


class NotificationDispatcher:
    """
    Fire-and-forget delivery of new-submission emails.

    - Staff are notified of every new submission.
    - Applicants from the initial form are invited to complete the full form.
    """

    def __init__(
        self,
        runner: BackgroundTaskRunner,
        admin_sender: AdminSender = send_admin_notification,
        invitation_sender: InvitationSender = send_transfer_invitation,
    ) -> None:
        self._runner = runner
        self._admin_sender = admin_sender
        self._invitation_sender = invitation_sender

    def submission_created(self, summary: SubmissionSummary) -> None:
        """Schedule delivery for a new submission and return immediately."""
        self._runner.submit(
            self.deliver(summary),
            description=f"notifications for submission {summary.id}",
        )

    async def deliver(self, summary: SubmissionSummary) -> None:
        """Send every email due for the submission. Never raises."""
        await self._send(
            "admin notification",
            summary.id,
            lambda: self._admin_sender(summary),
        )

        if summary.form_mode == FormMode.INITIAL.value and summary.email:
            await self._send(
                "transfer invitation",
                summary.id,
                lambda: self._invitation_sender(summary.email, summary.full_name),
            )

    async def _send(
        self,
        kind: str,
        submission_id: str,
        send: Callable[[], Awaitable[bool]],
    ) -> None:
        try:
            sent = await send()
        except Exception as e:
            logger.error(f"Failed to send {kind} for submission {submission_id}: {e}", exc_info=True)
            return

        if not sent:
            logger.error(f"Failed to send {kind} for submission {submission_id}")
