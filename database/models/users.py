"""
Platform users and their invitation ledger.

Users are invited into a company with a role; `user_invitation_events` keeps
one row per invitation email sent (or re-sent), which is what the invitation
acceptance report aggregates.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    DateTime,
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


class UserRole(str, PyEnum):
    """Role of a user inside their company."""

    ADMIN = "admin"
    HR_ADMIN = "hr_admin"
    RECRUITER = "recruiter"
    VIEWER = "viewer"


REPORT_VIEWER_ROLES = frozenset({UserRole.ADMIN, UserRole.HR_ADMIN})


class User(Base):
    """A platform user scoped to one company (super admins may have none)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(
            UserRole,
            native_enum=False,
            length=32,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        default=UserRole.VIEWER,
        nullable=False,
    )
    company_id: Mapped[int | None] = mapped_column(
        ForeignKey("companies.id", ondelete="SET NULL"), index=True
    )
    is_super_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Invitation state
    invitation_accepted: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    invitation_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    invitation_accepted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
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

    company: Mapped["Company | None"] = relationship(back_populates="users")

    @property
    def can_view_reports(self) -> bool:
        return self.is_super_admin or self.role in REPORT_VIEWER_ROLES


class UserInvitationEvent(Base):
    """One invitation email sent to a user."""

    __tablename__ = "user_invitation_events"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    accept_url: Mapped[str | None] = mapped_column(Text)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    reused_existing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_delivery_attempted: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    email_delivery_success: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    email_delivery_message: Mapped[str | None] = mapped_column(Text)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=now, server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("idx_invitation_events_sent_at", "sent_at"),)
