"""
Rate Limit Models

Durable fixed-window counters, one row per hashed identifier.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from transfer_intake.core.database import Base


class RateLimit(Base):
    """
    Request counter for one hashed identifier.

    `key` is already a salted hash of (bucket type, raw identifier), so the
    table never holds a raw IP address or email.
    """

    __tablename__ = "rate_limits"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (Index("ix_rate_limits_window_start", "window_start"),)
