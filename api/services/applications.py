"""
Application ledger service functions.

One application per (job, candidate) pair plus its append-only stage history.
These functions run inside the caller's transaction: the caller owns
BEGIN/COMMIT/ROLLBACK and any job-level locking.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.candidates import CandidateInput, upsert_candidate
from core.exceptions import ApplicationLedgerError
from core.utils.datetime import now
from database.models.applications import (
    Application,
    ApplicationNote,
    ApplicationStageHistory,
    ApplicationStatus,
    NoteCategory,
)
from database.models.candidates import Candidate
from database.models.jobs import Job
from database.models.users import User

logger = logging.getLogger(__name__)

FOREIGN_KEY_VIOLATION = "23503"
UNIQUE_VIOLATION = "23505"


@dataclass
class ApplicationUpsertResult:
    """Result of `create_or_update_application`."""
    application: Application
    candidate: Candidate
    was_existing: bool
    previous_status: Optional[ApplicationStatus]


def integrity_error_kind(exc: IntegrityError) -> Optional[str]:
    """
    Classify an integrity error as `foreign_key` or `unique`.

    Uses the SQLSTATE when the driver exposes one, else the message text.
    """
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == FOREIGN_KEY_VIOLATION:
        return "foreign_key"
    if code == UNIQUE_VIOLATION:
        return "unique"

    text = str(orig if orig is not None else exc).upper()
    if "FOREIGN KEY" in text:
        return "foreign_key"
    if "UNIQUE" in text or "DUPLICATE KEY" in text:
        return "unique"
    return None


def _normalize_currency(currency: Optional[str]) -> Optional[str]:
    if not currency:
        return None
    return currency.strip().upper() or None


async def _get_existing_application(
    session: AsyncSession, job_id: int, candidate_id: int
) -> Optional[Application]:
    result = await session.execute(
        select(Application)
        .where(Application.job_id == job_id, Application.candidate_id == candidate_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _insert_application(
    session: AsyncSession,
    job_id: int,
    candidate_id: int,
    status: ApplicationStatus,
    source: Optional[str],
    source_details: Optional[Dict[str, Any]],
    expected_salary: Optional[float],
    currency: Optional[str],
    changed_by: Optional[int],
    comment: Optional[str],
) -> Application:
    """Insert the application and its creation history row inside a SAVEPOINT."""
    async with session.begin_nested():
        application = Application(
            job_id=job_id,
            candidate_id=candidate_id,
            status=status,
            source=source,
            source_details=source_details,
            expected_salary=expected_salary,
            currency=currency,
        )
        session.add(application)
        await session.flush()

        session.add(
            ApplicationStageHistory(
                application_id=application.id,
                previous_status=None,
                new_status=status,
                comment=comment,
                changed_by=changed_by,
            )
        )
        await session.flush()
    return application


async def _apply_update(
    session: AsyncSession,
    application: Application,
    status: ApplicationStatus,
    source: Optional[str],
    source_details: Optional[Dict[str, Any]],
    expected_salary: Optional[float],
    currency: Optional[str],
    changed_by: Optional[int],
    comment: Optional[str],
) -> ApplicationStatus:
    previous_status = application.status

    application.status = status
    if source is not None:
        application.source = source
    if source_details is not None:
        application.source_details = source_details
    if expected_salary is not None:
        application.expected_salary = expected_salary
    if currency is not None:
        application.currency = currency
    application.updated_at = now()

    if previous_status != status:
        session.add(
            ApplicationStageHistory(
                application_id=application.id,
                previous_status=previous_status,
                new_status=status,
                comment=comment,
                changed_by=changed_by,
            )
        )
    await session.flush()
    return previous_status


async def create_or_update_application(
    session: AsyncSession,
    job_id: int,
    candidate: CandidateInput,
    status: ApplicationStatus = ApplicationStatus.NEW,
    source: Optional[str] = None,
    source_details: Optional[Dict[str, Any]] = None,
    expected_salary: Optional[float] = None,
    currency: Optional[str] = None,
    changed_by: Optional[int] = None,
    comment: Optional[str] = None,
) -> ApplicationUpsertResult:
    """
    Create the application for (job, candidate) or update the existing one.

    A stage history row is written on creation (previous status NULL) and on
    update only when the status actually changes. Two concurrent inserts for
    the same pair are resolved by retrying the loser as an update.

    Args:
        session: Database session (caller owns the transaction)
        job_id: Job being applied to
        candidate: Candidate profile, merged into the global candidate
        status: Desired status
        source: Attribution source, kept when None
        source_details: Attribution payload, kept when None
        expected_salary: Expected salary, kept when None
        currency: ISO currency code, upper-cased, kept when None
        changed_by: Acting user id, None for anonymous transitions
        comment: Comment for the history row

    Returns:
        The application, the candidate, whether it existed and its prior status

    Raises:
        ApplicationLedgerError: `invalid_reference` when the job or candidate
            does not exist, `conflict` when the pair cannot be resolved
    """
    currency = _normalize_currency(currency)

    try:
        candidate_row = await upsert_candidate(session, candidate)
    except IntegrityError as exc:
        raise ApplicationLedgerError(
            ApplicationLedgerError.CONFLICT, "Candidate could not be stored"
        ) from exc

    existing = await _get_existing_application(session, job_id, candidate_row.id)

    if existing is None:
        try:
            application = await _insert_application(
                session,
                job_id,
                candidate_row.id,
                status,
                source,
                source_details,
                expected_salary,
                currency,
                changed_by,
                comment,
            )
            logger.info(
                f"Application {application.id} created for job {job_id} "
                f"(candidate {candidate_row.id}, status {status.value})"
            )
            return ApplicationUpsertResult(application, candidate_row, False, None)
        except IntegrityError as exc:
            kind = integrity_error_kind(exc)
            if kind == "foreign_key":
                raise ApplicationLedgerError(
                    ApplicationLedgerError.INVALID_REFERENCE,
                    "Invalid reference: job or candidate does not exist",
                ) from exc
            if kind != "unique":
                raise

            existing = await _get_existing_application(session, job_id, candidate_row.id)
            if existing is None:
                raise ApplicationLedgerError(
                    ApplicationLedgerError.CONFLICT, "Application already exists"
                ) from exc
            logger.info(
                f"Concurrent application insert for job {job_id}, "
                f"candidate {candidate_row.id}; continuing as update"
            )

    previous_status = await _apply_update(
        session,
        existing,
        status,
        source,
        source_details,
        expected_salary,
        currency,
        changed_by,
        comment,
    )
    return ApplicationUpsertResult(existing, candidate_row, True, previous_status)


async def update_application_status(
    session: AsyncSession,
    application_id: int,
    status: ApplicationStatus,
    changed_by: Optional[int] = None,
    comment: Optional[str] = None,
) -> Optional[tuple[Application, ApplicationStatus]]:
    """
    Move an application to a new status.

    The row is locked for the rest of the caller's transaction. A history row
    is appended only when the status changes.

    Returns:
        (application, previous_status), or None if the application does not exist
    """
    result = await session.execute(
        select(Application)
        .where(Application.id == application_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    application = result.scalar_one_or_none()
    if application is None:
        return None

    previous_status = await _apply_update(
        session, application, status, None, None, None, None, changed_by, comment
    )
    if previous_status != status:
        logger.info(
            f"Application {application_id} moved {previous_status.value} -> {status.value}"
        )
    return application, previous_status


async def get_application_company_id(
    session: AsyncSession, application_id: int
) -> Optional[int]:
    """Company owning the application (through its job), or None if missing."""
    result = await session.execute(
        select(Job.company_id)
        .join(Application, Application.job_id == Job.id)
        .where(Application.id == application_id)
    )
    return result.scalar_one_or_none()


async def list_job_applications(
    session: AsyncSession,
    job_id: int,
    status: Optional[ApplicationStatus] = None,
) -> List[Dict[str, Any]]:
    """
    List applications for a job with candidate data, newest first.

    Args:
        session: Database session
        job_id: The job ID
        status: Optional status filter

    Returns:
        List of application dicts
    """
    query = (
        select(Application, Candidate, Job.title)
        .join(Candidate, Candidate.id == Application.candidate_id)
        .join(Job, Job.id == Application.job_id)
        .where(Application.job_id == job_id)
        .order_by(Application.applied_at.desc(), Application.id.desc())
    )
    if status is not None:
        query = query.where(Application.status == status)

    rows = (await session.execute(query)).all()
    items = []
    for application, candidate, job_title in rows:
        item = serialize_application(application)
        item["job_title"] = job_title
        item["candidate"] = serialize_candidate(candidate)
        items.append(item)
    return items


async def list_stage_history(
    session: AsyncSession, application_id: int
) -> List[Dict[str, Any]]:
    """Stage history of an application, newest first, with actor name/email."""
    result = await session.execute(
        select(ApplicationStageHistory, User.name, User.email)
        .outerjoin(User, User.id == ApplicationStageHistory.changed_by)
        .where(ApplicationStageHistory.application_id == application_id)
        .order_by(ApplicationStageHistory.changed_at.desc(), ApplicationStageHistory.id.desc())
    )
    return [
        {
            "id": entry.id,
            "previous_status": entry.previous_status.value if entry.previous_status else None,
            "new_status": entry.new_status.value,
            "comment": entry.comment,
            "changed_by": entry.changed_by,
            "changed_by_name": name,
            "changed_by_email": email,
            "changed_at": entry.changed_at,
        }
        for entry, name, email in result.all()
    ]


async def list_notes(session: AsyncSession, application_id: int) -> List[Dict[str, Any]]:
    """Notes of an application, newest first, with author name/email."""
    result = await session.execute(
        select(ApplicationNote, User.name, User.email)
        .outerjoin(User, User.id == ApplicationNote.author_id)
        .where(ApplicationNote.application_id == application_id)
        .order_by(ApplicationNote.created_at.desc(), ApplicationNote.id.desc())
    )
    return [
        serialize_note(note, author_name=name, author_email=email)
        for note, name, email in result.all()
    ]


async def add_note(
    session: AsyncSession,
    application_id: int,
    content: str,
    category: str = NoteCategory.GENERAL.value,
    author_id: Optional[int] = None,
) -> ApplicationNote:
    """Attach a note to an application (caller commits)."""
    note = ApplicationNote(
        application_id=application_id,
        author_id=author_id,
        content=content.strip(),
        category=(category or NoteCategory.GENERAL.value).strip(),
    )
    session.add(note)
    await session.flush()
    return note


def serialize_application(application: Application) -> Dict[str, Any]:
    return {
        "id": application.id,
        "job_id": application.job_id,
        "candidate_id": application.candidate_id,
        "status": application.status.value,
        "source": application.source,
        "source_details": application.source_details,
        "expected_salary": application.expected_salary,
        "currency": application.currency,
        "applied_at": application.applied_at,
        "updated_at": application.updated_at,
    }


def serialize_candidate(candidate: Candidate) -> Dict[str, Any]:
    return {
        "id": candidate.id,
        "full_name": candidate.full_name,
        "email": candidate.email,
        "phone": candidate.phone,
        "resume_url": candidate.resume_url,
        "linkedin_url": candidate.linkedin_url,
        "city": candidate.city,
        "country": candidate.country,
        "source": candidate.source,
    }


def serialize_note(
    note: ApplicationNote,
    author_name: Optional[str] = None,
    author_email: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "id": note.id,
        "content": note.content,
        "category": note.category,
        "author_id": note.author_id,
        "author_name": author_name,
        "author_email": author_email,
        "created_at": note.created_at,
    }
