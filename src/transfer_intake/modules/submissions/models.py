"""
Submission Models

One row per applicant flow. The row is created by the first step of a form
and patched in place by every later step, so most business columns stay
NULL until the step that collects them is saved.
"""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from transfer_intake.core.database import Base


class FormMode(str, enum.Enum):
    """Which public form created the submission."""

    INITIAL = "initial"
    PARTIAL = "partial"
    FULL = "full"


class StudyLevel(str, enum.Enum):
    UNDERGRADUATE = "Undergraduate"
    GRADUATE = "Graduate"
    ASSOCIATE = "Associate"
    CERTIFICATE = "Certificate"
    OTHER = "Other"


class TermSeason(str, enum.Enum):
    SPRING = "Spring"
    SUMMER = "Summer"
    FALL = "Fall"
    OTHER = "Other"


class CommunicationChannel(str, enum.Enum):
    FACEBOOK = "Facebook"
    LINKEDIN = "LinkedIn"
    WHATSAPP = "Whatsapp"
    INSTAGRAM = "Instagram"
    TWITTER = "Twitter"
    EMAIL = "Email"
    PHONE = "Phone"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    # Store the wire values ("Fall"), not the member names ("FALL")
    return [member.value for member in enum_cls]


class Submission(Base):
    """
    Transfer intake submission.

    `form_mode`, `ip_hash` and `user_agent` are written once at creation.
    Every other business column may be replaced by a later patch.
    """

    __tablename__ = "submissions"

    # Identity
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    form_mode: Mapped[FormMode] = mapped_column(
        Enum(FormMode, name="form_mode", values_callable=_enum_values), nullable=False
    )

    # Personal identity & contact
    full_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    email: Mapped[str | None] = mapped_column(String(256), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    country_of_birth: Mapped[str | None] = mapped_column(String(128), nullable=True)
    consent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Address
    address: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    # Study level & prior education
    study_level: Mapped[StudyLevel | None] = mapped_column(
        Enum(StudyLevel, name="study_level", values_callable=_enum_values), nullable=True
    )
    previous_college: Mapped[str | None] = mapped_column(String(256), nullable=True)
    previous_credit_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Current enrollment
    current_college: Mapped[str | None] = mapped_column(String(256), nullable=True)
    current_credit_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Transfer destination & timing
    intended_college: Mapped[str | None] = mapped_column(String(256), nullable=True)
    planned_credit_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)
    term_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    term_season: Mapped[TermSeason | None] = mapped_column(
        Enum(TermSeason, name="term_season", values_callable=_enum_values), nullable=True
    )

    # Major plan
    major: Mapped[str | None] = mapped_column(String(256), nullable=True)
    switching_major: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    switch_major_details: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    # Academics, tuition & scholarships
    previous_gpa: Mapped[Decimal | None] = mapped_column(Numeric(3, 2), nullable=True)
    expected_gpa: Mapped[Decimal | None] = mapped_column(Numeric(3, 2), nullable=True)
    previous_tuition: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    current_tuition: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    has_scholarship: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    scholarship_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    paying_per_semester: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    # Motivation & profile
    transfer_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    institution_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    extracurriculars: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Immigration & special circumstances
    immigration_status: Mapped[str | None] = mapped_column(String(256), nullable=True)
    special_circumstances: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Referral & communication
    referred_by: Mapped[str | None] = mapped_column(String(256), nullable=True)
    how_did_you_know: Mapped[str | None] = mapped_column(String(256), nullable=True)
    preferred_channel_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    preferred_channel: Mapped[CommunicationChannel | None] = mapped_column(
        Enum(CommunicationChannel, name="communication_channel", values_callable=_enum_values),
        nullable=True,
    )

    # Privacy-derived, set at creation only
    ip_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_submissions_created_at", "created_at"),
        Index("ix_submissions_email", "email"),
        Index("ix_submissions_form_mode", "form_mode"),
        Index("ix_submissions_term", "term_year", "term_season"),
    )
