from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    DateTime,
    func,
    JSON,
    Text,
    Float,
    Integer,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any


# ============ Audit Enums ============ #
class AttemptStatus(str, PyEnum):
    """Outcome of one public application attempt."""

    RECEIVED = "received"
    DUPLICATE = "duplicate"
    RATE_LIMITED = "rate_limited"
    CAPTCHA_FAILED = "captcha_failed"
    JOB_CLOSED = "job_closed"
    INVALID = "invalid"
    ERROR = "error"


# ==================== Models ===================== #
class PublicApplicationLog(Base):
    """
    Append-only log of every public application attempt, successful or not.

    `job_id` deliberately has no foreign key: attempts against ids that never
    existed (or were deleted) are still recorded. Rows are matched to
    applications by (job_id, lower(email)) at report time.
    """

    __tablename__ = "public_application_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    job_id: Mapped[int | None] = mapped_column(Integer)
    candidate_email: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[AttemptStatus] = mapped_column(
        SQLEnum(
            AttemptStatus,
            native_enum=False,
            length=32,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
    )
    error_message: Mapped[str | None] = mapped_column(Text)
    ip: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    captcha_score: Mapped[float | None] = mapped_column(Float)
    source: Mapped[str | None] = mapped_column(String(100))
    source_details: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=now,
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("idx_public_application_logs_job_email", "job_id", "candidate_email"),
        Index("idx_public_application_logs_status_created", "status", "created_at"),
    )
