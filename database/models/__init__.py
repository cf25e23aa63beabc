"""Import every model so `Base.metadata` knows all tables."""

from database.models.organizations import Company
from database.models.users import User, UserRole, UserInvitationEvent
from database.models.jobs import Job, JobStatus, EmploymentType, WorkModality
from database.models.candidates import Candidate
from database.models.applications import (
    Application,
    ApplicationStatus,
    ApplicationStageHistory,
    ApplicationNote,
    NoteCategory,
)
from database.models.audit import PublicApplicationLog, AttemptStatus

__all__ = [
    "Company",
    "User",
    "UserRole",
    "UserInvitationEvent",
    "Job",
    "JobStatus",
    "EmploymentType",
    "WorkModality",
    "Candidate",
    "Application",
    "ApplicationStatus",
    "ApplicationStageHistory",
    "ApplicationNote",
    "NoteCategory",
    "PublicApplicationLog",
    "AttemptStatus",
]
