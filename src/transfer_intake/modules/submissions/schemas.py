"""
Submission Schemas

Pydantic schemas for request validation and response serialization.

Wire names are camelCase (the public forms post camelCase JSON); every field
also accepts its snake_case name. Input schemas check each supplied field's
type and format only. Which fields a step must supply is decided separately
in validation.py, because it depends on the form mode.
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

# Re-use enums from models (they work with Pydantic too!)
from transfer_intake.modules.submissions.models import (
    CommunicationChannel,
    FormMode,
    StudyLevel,
    TermSeason,
)

MINIMUM_APPLICANT_AGE_YEARS = 15
MAX_TERM_YEARS_AHEAD = 3

URL_PATTERN = r"^https?://.+"


class SubmissionFields(BaseModel):
    """Every applicant-writable submission field, all optional."""

    model_config = ConfigDict(populate_by_name=True)

    # Personal identity & contact
    full_name: str | None = Field(None, alias="fullName", min_length=2, max_length=256)
    email: EmailStr | None = None
    phone: str | None = Field(None, min_length=10, max_length=20)
    date_of_birth: date | None = Field(None, alias="dateOfBirth")
    country_of_birth: str | None = Field(None, alias="countryOfBirth", max_length=128)
    consent: bool | None = None

    # Address
    address: str | None = Field(None, max_length=1024)

    # Study level & prior education
    study_level: StudyLevel | None = Field(None, alias="studyLevel")
    previous_college: str | None = Field(None, alias="previousCollege", max_length=256)
    previous_credit_hours: int | None = Field(None, alias="previousCreditHours", ge=0, le=200)

    # Current enrollment
    current_college: str | None = Field(None, alias="currentCollege", max_length=256)
    current_credit_hours: int | None = Field(None, alias="currentCreditHours", ge=0, le=200)

    # Transfer destination & timing
    intended_college: str | None = Field(None, alias="intendedCollege", max_length=256)
    planned_credit_hours: int | None = Field(None, alias="plannedCreditHours", ge=0, le=200)
    term_year: int | None = Field(None, alias="termYear")
    term_season: TermSeason | None = Field(None, alias="termSeason")

    # Major plan
    major: str | None = Field(
        None,
        alias="major",
        validation_alias=AliasChoices("major", "intendedMajor"),
        max_length=256,
    )
    switching_major: bool | None = Field(None, alias="switchingMajor")
    switch_major_details: str | None = Field(None, alias="switchMajorDetails", max_length=1024)

    # Academics, tuition & scholarships
    previous_gpa: Decimal | None = Field(None, alias="previousGPA", ge=0, le=4)
    expected_gpa: Decimal | None = Field(None, alias="expectedGPA", ge=0, le=4)
    previous_tuition: Decimal | None = Field(None, alias="previousTuition", ge=0)
    current_tuition: Decimal | None = Field(None, alias="currentTuition", ge=0)
    has_scholarship: bool | None = Field(None, alias="hasScholarship")
    scholarship_amount: Decimal | None = Field(None, alias="scholarshipAmount", ge=0)
    paying_per_semester: Decimal | None = Field(None, alias="payingPerSemester", ge=0)

    # Motivation & profile
    transfer_reason: str | None = Field(None, alias="transferReason", max_length=2048)
    institution_reason: str | None = Field(None, alias="institutionReason", max_length=2048)
    extracurriculars: str | None = Field(None, max_length=2048)

    # Immigration & special circumstances
    immigration_status: str | None = Field(None, alias="immigrationStatus", max_length=256)
    special_circumstances: str | None = Field(
        None, alias="specialCircumstances", max_length=2048
    )

    # Referral & communication
    referred_by: str | None = Field(None, alias="referredBy", max_length=256)
    how_did_you_know: str | None = Field(None, alias="howDidYouKnow", max_length=256)
    preferred_channel_link: str | None = Field(
        None, alias="preferredChannelLink", max_length=512, pattern=URL_PATTERN
    )
    preferred_channel: CommunicationChannel | None = Field(None, alias="preferredChannel")


def wire_name(attribute: str) -> str:
    """camelCase wire name for a Submission attribute."""
    field = SubmissionFields.model_fields.get(attribute)
    if field is None or field.alias is None:
        return attribute
    return field.alias


WIRE_TO_ATTRIBUTE: dict[str, str] = {
    wire_name(name): name for name in SubmissionFields.model_fields
}


class SubmissionInput(SubmissionFields):
    """Common input rules for create and patch bodies."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        return value.lower() if value else value

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, value: date | None) -> date | None:
        if value is None:
            return value
        today = datetime.now(UTC).date()
        age_days = (today - value).days
        if age_days < MINIMUM_APPLICANT_AGE_YEARS * 365.25:
            raise ValueError(f"Must be at least {MINIMUM_APPLICANT_AGE_YEARS} years old")
        return value

    @field_validator("term_year")
    @classmethod
    def validate_term_year(cls, value: int | None) -> int | None:
        if value is None:
            return value
        current_year = datetime.now(UTC).year
        if value < current_year:
            raise ValueError(f"Year must be {current_year} or later")
        if value > current_year + MAX_TERM_YEARS_AHEAD:
            raise ValueError(
                f"Year cannot be more than {MAX_TERM_YEARS_AHEAD} years in the future"
            )
        return value

    def _column_values(self, exclude: set[str] | None = None) -> dict:
        values = self.model_dump(exclude_unset=True, exclude=exclude)
        # consent is NOT NULL; a null leaves the stored answer alone
        if "consent" in values and values["consent"] is None:
            del values["consent"]
        return values


def term_season_from_transfer_time(transfer_time: str) -> TermSeason:
    """Derive a term season from the initial form's transferTime ("fall-2026")."""
    lowered = transfer_time.lower()
    if "fall" in lowered:
        return TermSeason.FALL
    if "spring" in lowered:
        return TermSeason.SPRING
    return TermSeason.OTHER


class SubmissionCreate(SubmissionInput):
    """Request body for POST /submissions (the first step of any form)."""

    mode: FormMode = Field(..., validation_alias=AliasChoices("mode", "formMode"))

    # Initial form only: a term choice such as "fall-2026"
    transfer_time: str | None = Field(None, alias="transferTime", max_length=64)

    @model_validator(mode="after")
    def apply_initial_form_rules(self) -> "SubmissionCreate":
        """Initial-form submissions imply consent and may carry transferTime."""
        if self.mode != FormMode.INITIAL:
            return self

        self.consent = True
        if self.term_season is None and self.transfer_time:
            self.term_season = term_season_from_transfer_time(self.transfer_time)

        return self

    def submission_values(self) -> dict:
        """Explicitly supplied Submission column values, keyed by attribute."""
        return self._column_values(exclude={"mode", "transfer_time"})


class InitialSubmissionCreate(SubmissionCreate):
    """Request body for POST /submissions/initial. The mode is always "initial"."""

    mode: FormMode = Field(FormMode.INITIAL, validation_alias=AliasChoices("mode", "formMode"))

    @model_validator(mode="before")
    @classmethod
    def force_initial_mode(cls, data):
        if isinstance(data, dict):
            data = {key: value for key, value in data.items() if key not in ("mode", "formMode")}
            data["mode"] = FormMode.INITIAL.value
        return data


class SubmissionPatch(SubmissionInput):
    """
    Request body for PATCH /submissions/{id}.

    Only fields present in the body are written. `mode`, `id`, `createdAt`
    and other non-field keys are ignored.
    """

    def submission_values(self) -> dict:
        """Explicitly supplied Submission column values, keyed by attribute."""
        return self._column_values()


# ============================================
# Responses
# ============================================


class SubmissionAcceptedResponse(BaseModel):
    """Response after a create or patch step is saved."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    id: UUID
    trace_id: str = Field(..., alias="traceId")


class FieldError(BaseModel):
    """A single field-level validation problem."""

    field: str
    message: str


class SubmissionListItem(BaseModel):
    """Row of the admin submissions list."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    form_mode: FormMode = Field(..., alias="formMode")
    full_name: str | None = Field(None, alias="fullName")
    email: str | None = None
    phone: str | None = None
    study_level: StudyLevel | None = Field(None, alias="studyLevel")
    term_season: TermSeason | None = Field(None, alias="termSeason")
    term_year: int | None = Field(None, alias="termYear")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class SubmissionListResponse(BaseModel):
    """Response for GET /admin/submissions."""

    submissions: list[SubmissionListItem]
    pagination: Pagination


class SubmissionDetailResponse(SubmissionFields):
    """
    Full submission for admin review, with its completeness report.

    The privacy-derived ip_hash and user_agent columns are never exposed.
    """

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    form_mode: FormMode = Field(..., alias="formMode")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")
    is_complete: bool = Field(..., alias="isComplete")
    missing_fields: list[str] = Field(default_factory=list, alias="missingFields")
