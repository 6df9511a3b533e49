"""
Submission Step Validation

Field requirements per form mode, as two tables:

- CREATE_STEP_REQUIRED_FIELDS: what the first step of each form must supply.
  Enforced when a submission is created.
- COMPLETION_REQUIRED_FIELDS: what a finished submission holds once every
  step of its form has been saved, plus conditional rules for the full form.

Patches are never checked against COMPLETION_REQUIRED_FIELDS. Applicants save
partial progress and resume later, so a record may be incomplete until its
last step. Completeness is reported to staff instead (see
evaluate_completeness), which is the DEFER_COMPLETENESS policy.

Field names in both tables are wire names (camelCase).
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from transfer_intake.modules.submissions.models import FormMode
from transfer_intake.modules.submissions.schemas import WIRE_TO_ATTRIBUTE, FieldError

DEFER_COMPLETENESS = "defer_completeness"
PROGRESSIVE_SAVE_POLICY = DEFER_COMPLETENESS

REQUIRED_MESSAGE = "This field is required"

CREATE_STEP_REQUIRED_FIELDS: dict[FormMode, tuple[str, ...]] = {
    FormMode.INITIAL: (
        "fullName",
        "phone",
        "email",
        "studyLevel",
        "currentCollege",
        "major",
        "termSeason",
    ),
    FormMode.PARTIAL: ("fullName", "email", "phone"),
    FormMode.FULL: ("fullName", "phone", "address"),
}

COMPLETION_REQUIRED_FIELDS: dict[FormMode, tuple[str, ...]] = {
    FormMode.INITIAL: CREATE_STEP_REQUIRED_FIELDS[FormMode.INITIAL],
    FormMode.PARTIAL: ("fullName", "email", "phone"),
    FormMode.FULL: (
        "fullName",
        "phone",
        "dateOfBirth",
        "address",
        "studyLevel",
        "previousCollege",
        "currentCollege",
        "currentCreditHours",
        "plannedCreditHours",
        "termYear",
        "termSeason",
        "major",
        "switchingMajor",
        "previousGPA",
        "expectedGPA",
        "currentTuition",
        "hasScholarship",
        "payingPerSemester",
        "transferReason",
        "institutionReason",
        "immigrationStatus",
        "specialCircumstances",
        "preferredChannelLink",
        "preferredChannel",
    ),
}


@dataclass
class CompletenessReport:
    """Whether a stored submission holds everything its form collects."""

    is_complete: bool
    missing_fields: list[str] = field(default_factory=list)


def is_present(value: Any) -> bool:
    """A value counts as supplied unless it is None or a blank string."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def validate_step(mode: FormMode, values: dict[str, Any]) -> list[FieldError]:
    """
    Check a create step against CREATE_STEP_REQUIRED_FIELDS.

    Args:
        mode: Form mode declared by the request
        values: Supplied values keyed by Submission attribute name

    Returns:
        One FieldError per missing field (empty when the step is valid)
    """
    return [
        FieldError(field=wire, message=REQUIRED_MESSAGE)
        for wire in CREATE_STEP_REQUIRED_FIELDS[mode]
        if not is_present(values.get(WIRE_TO_ATTRIBUTE[wire]))
    ]


def _conditional_missing(submission: Any) -> list[str]:
    missing = []

    if submission.switching_major and not is_present(submission.switch_major_details):
        missing.append("switchMajorDetails")

    if submission.has_scholarship:
        amount = submission.scholarship_amount
        if amount is None or Decimal(amount) <= 0:
            missing.append("scholarshipAmount")

    return missing


def evaluate_completeness(submission: Any) -> CompletenessReport:
    """
    Report which completion fields a stored submission still lacks.

    Args:
        submission: A Submission (or any object with the same attributes)

    Returns:
        CompletenessReport listing missing wire field names in table order,
        followed by any unmet conditional rules
    """
    mode = FormMode(submission.form_mode)

    missing = [
        wire
        for wire in COMPLETION_REQUIRED_FIELDS[mode]
        if not is_present(getattr(submission, WIRE_TO_ATTRIBUTE[wire]))
    ]

    if mode == FormMode.FULL:
        missing.extend(_conditional_missing(submission))

    return CompletenessReport(is_complete=not missing, missing_fields=missing)
