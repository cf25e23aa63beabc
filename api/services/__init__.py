"""
API Services Layer.

Database operations behind the API endpoints: candidate identity, the
application ledger, abuse control, the attempt log, notifications and
reports.
"""

from api.services.candidates import (
    CandidateInput,
    upsert_candidate,
    get_candidate_by_email,
)

from api.services.applications import (
    ApplicationUpsertResult,
    create_or_update_application,
    update_application_status,
    list_job_applications,
    list_stage_history,
    list_notes,
    add_note,
)

from api.services.abuse_control import (
    AbuseCheck,
    AbuseControl,
)

from api.services.attempt_log import (
    log_public_application_attempt,
)

from api.services.jobs import (
    list_public_companies,
    list_public_jobs,
    get_public_job,
    lock_job_for_application,
)

from api.services.notifications import (
    get_notification_recipients,
    dispatch_public_application_notification,
)

from api.services.reports import (
    ReportRange,
    public_applications_summary,
    conversion_report,
    response_time_report,
    sources_report,
    invitations_report,
)

__all__ = [
    # Candidates
    "CandidateInput",
    "upsert_candidate",
    "get_candidate_by_email",
    # Applications
    "ApplicationUpsertResult",
    "create_or_update_application",
    "update_application_status",
    "list_job_applications",
    "list_stage_history",
    "list_notes",
    "add_note",
    # Abuse control
    "AbuseCheck",
    "AbuseControl",
    # Attempt log
    "log_public_application_attempt",
    # Public catalog
    "list_public_companies",
    "list_public_jobs",
    "get_public_job",
    "lock_job_for_application",
    # Notifications
    "get_notification_recipients",
    "dispatch_public_application_notification",
    # Reports
    "ReportRange",
    "public_applications_summary",
    "conversion_report",
    "response_time_report",
    "sources_report",
    "invitations_report",
]
