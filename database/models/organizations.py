"""
Company (tenant) model.

Every job, user and, through jobs, every application belongs to exactly one
company. Public catalog endpoints only ever show active companies.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Boolean, DateTime, func, Index
from database.engine import Base
from core.utils.datetime import now
from datetime import datetime

if TYPE_CHECKING:
    from database.models.jobs import Job
    from database.models.users import User


class Company(Base):
    """An isolated customer organization."""

    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Timestamps
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

    # Relationships
    jobs: Mapped[list["Job"]] = relationship(back_populates="company")
    users: Mapped[list["User"]] = relationship(back_populates="company")

    __table_args__ = (Index("idx_companies_active_name", "is_active", "name"),)
