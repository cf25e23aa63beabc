"""
Candidate Models

Candidates are job seekers who can have multiple applications across different jobs.
A single candidate profile (bound by lower-cased email) is shared by every company
the person applies to; contact fields are merged on each submission.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, DateTime, func, Text
from database.engine import Base
from core.utils.datetime import now
from datetime import datetime

if TYPE_CHECKING:
    from database.models.applications import Application


class Candidate(Base):
    """Global candidate identity, unique by email."""

    __tablename__ = "candidates"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    full_name: Mapped[str] = mapped_column(String(160), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(60))
    resume_url: Mapped[str | None] = mapped_column(Text)
    linkedin_url: Mapped[str | None] = mapped_column(Text)
    city: Mapped[str | None] = mapped_column(String(120))
    country: Mapped[str | None] = mapped_column(String(120))
    source: Mapped[str | None] = mapped_column(
        String(100), comment="Acquisition channel of the first or latest known submission"
    )

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

    applications: Mapped[list["Application"]] = relationship(back_populates="candidate")
