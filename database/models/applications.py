"""
Application Models

The application ledger: one application per (job, candidate) pair, the
append-only stage history of its status transitions, and free-form notes.
Stage history rows are never updated or deleted; every time-to-stage metric
is computed from them.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    Numeric,
    func,
    Text,
    JSON,
    Enum as SQLEnum,
    Index,
    UniqueConstraint,
)
from database.engine import Base
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.candidates import Candidate
    from database.models.jobs import Job


# ==================== Application Enums ===================== #
class ApplicationStatus(str, PyEnum):
    """Pipeline status of an application.

    Presented as a funnel (Nuevo -> En revisión -> Entrevista -> Oferta ->
    Contratado) with Rechazado reachable from anywhere. Any transition is
    allowed at the data layer.
    """

    NEW = "Nuevo"
    IN_REVIEW = "En revisión"
    INTERVIEW = "Entrevista"
    OFFER = "Oferta"
    HIRED = "Contratado"
    REJECTED = "Rechazado"


class NoteCategory(str, PyEnum):
    GENERAL = "general"
    INTERVIEW = "entrevista"
    PUBLIC_PORTAL = "portal_publico"


def application_status_column(**kwargs) -> Any:
    return mapped_column(
        SQLEnum(
            ApplicationStatus,
            name="application_status",
            native_enum=False,
            length=32,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        **kwargs,
    )


# ==================== Application Model ===================== #
class Application(Base):
    """One candidate's pipeline state for one job."""

    __tablename__ = "applications"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    candidate_id: Mapped[int] = mapped_column(
        ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True
    )

    status: Mapped[ApplicationStatus] = application_status_column(
        default=ApplicationStatus.NEW, nullable=False
    )

    # Attribution
    source: Mapped[str | None] = mapped_column(String(100))
    source_details: Mapped[dict[str, Any] | None] = mapped_column(JSON)

    expected_salary: Mapped[float | None] = mapped_column(
        Numeric(12, 2, asdecimal=False)
    )
    currency: Mapped[str | None] = mapped_column(String(3))

    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=now,
        server_default=func.now(),
        onupdate=now,
        nullable=False,
    )

    # Relationships
    job: Mapped["Job"] = relationship(back_populates="applications")
    candidate: Mapped["Candidate"] = relationship(back_populates="applications")
    stage_history: Mapped[list["ApplicationStageHistory"]] = relationship(
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="ApplicationStageHistory.changed_at",
    )
    notes: Mapped[list["ApplicationNote"]] = relationship(
        back_populates="application", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("job_id", "candidate_id", name="uq_applications_job_candidate"),
        Index("idx_applications_status", "status"),
    )


class ApplicationStageHistory(Base):
    """Append-only record of a status transition."""

    __tablename__ = "application_stage_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    application_id: Mapped[int] = mapped_column(
        ForeignKey("applications.id", ondelete="CASCADE"), nullable=False
    )
    # NULL only on the creation row
    previous_status: Mapped[ApplicationStatus | None] = application_status_column(
        nullable=True
    )
    new_status: Mapped[ApplicationStatus] = application_status_column(nullable=False)
    comment: Mapped[str | None] = mapped_column(Text)
    # NULL for anonymous (public portal) transitions
    changed_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, server_default=func.now(), nullable=False
    )

    application: Mapped["Application"] = relationship(back_populates="stage_history")

    __table_args__ = (
        Index("idx_stage_history_application_changed", "application_id", "changed_at"),
    )


class ApplicationNote(Base):
    """Note attached to an application by a recruiter or the public portal."""

    __tablename__ = "application_notes"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    application_id: Mapped[int] = mapped_column(
        ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    category: Mapped[str] = mapped_column(
        String(50), default=NoteCategory.GENERAL.value, nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, server_default=func.now(), nullable=False
    )

    application: Mapped["Application"] = relationship(back_populates="notes")
