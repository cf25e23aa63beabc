"""
Job postings.

Only `open` jobs of active companies accept public applications; the intake
route locks the job row while it writes to the application ledger.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    Numeric,
    Text,
    func,
    Enum as SQLEnum,
    Index,
)
from database.engine import Base
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum

if TYPE_CHECKING:
    from database.models.organizations import Company
    from database.models.applications import Application


class JobStatus(str, PyEnum):
    """Publication state of a job."""

    DRAFT = "draft"
    OPEN = "open"
    PAUSED = "paused"
    CLOSED = "closed"


class EmploymentType(str, PyEnum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACT = "contract"
    INTERNSHIP = "internship"
    TEMPORARY = "temporary"


class WorkModality(str, PyEnum):
    ONSITE = "onsite"
    REMOTE = "remote"
    HYBRID = "hybrid"


def _values(enum):
    return [member.value for member in enum]


class Job(Base):
    """A position published by a company."""

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    department: Mapped[str | None] = mapped_column(String(120))
    employment_type: Mapped[EmploymentType] = mapped_column(
        SQLEnum(EmploymentType, native_enum=False, length=32, values_callable=_values),
        default=EmploymentType.FULL_TIME,
        nullable=False,
    )
    work_modality: Mapped[WorkModality] = mapped_column(
        SQLEnum(WorkModality, native_enum=False, length=32, values_callable=_values),
        default=WorkModality.ONSITE,
        nullable=False,
    )
    location: Mapped[str | None] = mapped_column(String(160))
    salary_min: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False))
    salary_max: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False))
    currency: Mapped[str | None] = mapped_column(String(3))
    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus, native_enum=False, length=32, values_callable=_values),
        default=JobStatus.DRAFT,
        nullable=False,
    )
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    closes_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=now,
        server_default=func.now(),
        onupdate=now,
        nullable=False,
    )

    company: Mapped["Company"] = relationship(back_populates="jobs")
    applications: Mapped[list["Application"]] = relationship(back_populates="job")

    __table_args__ = (
        Index("idx_jobs_company_status", "company_id", "status"),
        Index("idx_jobs_published", "published_at"),
    )
