"""
Public portal endpoints.

Unauthenticated job catalog plus the public application intake. Every
submission to the intake is recorded in the attempt log exactly once, on
every exit path; the log write and the notification email run as background
tasks after the response is produced.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging
import re

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Path, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_abuse_control
from api.schemas.public import PublicApplicationRequest
from api.services import jobs as job_service
from api.services.abuse_control import AbuseControl
from api.services.applications import add_note, create_or_update_application, serialize_application
from api.services.attempt_log import log_public_application_attempt
from api.services.candidates import CandidateInput
from api.services.notifications import (
    dispatch_public_application_notification,
    get_notification_recipients,
)
from core.config import settings
from core.exceptions import ApplicationLedgerError, CaptchaRejected
from core.integrations.captcha import CaptchaUnavailable
from core.middleware.error_handling import build_error_response, classify_exception
from core.middleware.rate_limiting import (
    RateLimitExceeded,
    add_rate_limit_headers,
    get_client_ip,
)
from database.engine import get_db
from database.models.applications import ApplicationStatus, NoteCategory
from database.models.audit import AttemptStatus
from database.models.jobs import EmploymentType, WorkModality

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public", tags=["public"])

PUBLIC_SOURCE = "portal_publico"
COMMENT_WITH_MESSAGE = "Postulación enviada desde portal público"
COMMENT_WITHOUT_MESSAGE = "Portal público"
# jobs.id is a 32-bit integer column
MAX_JOB_ID = 2**31 - 1
JOB_ID_PATTERN = re.compile(r"[0-9]{1,10}")

_APPLY_OPENAPI = {
    "requestBody": {
        "required": True,
        "content": {"application/json": {"schema": PublicApplicationRequest.model_json_schema()}},
    }
}


@dataclass
class _Attempt:
    """Context of one intake submission, recorded once to the attempt log."""
    background_tasks: BackgroundTasks
    ip: str
    user_agent: Optional[str]
    job_id: Optional[int] = None
    email: Optional[str] = None
    source_details: Optional[Dict[str, Any]] = None
    captcha_score: Optional[float] = None
    recorded: bool = False

    def record(self, status: AttemptStatus, error: Optional[str] = None) -> None:
        if self.recorded:
            logger.warning(f"Attempt already recorded, ignoring {status.value}")
            return
        self.recorded = True
        self.background_tasks.add_task(
            log_public_application_attempt,
            status=status,
            job_id=self.job_id,
            email=self.email,
            ip=self.ip,
            user_agent=self.user_agent,
            source=PUBLIC_SOURCE,
            source_details=self.source_details,
            error=error,
            captcha_score=self.captcha_score,
        )


def _error_response(request: Request, exc: Exception) -> JSONResponse:
    info = classify_exception(exc, request.method, request.url.path, settings.debug)
    return build_error_response(
        info, request.url.path, request.method, getattr(request.state, "request_id", None)
    )


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


def _parse_job_id(raw: str) -> Optional[int]:
    if not JOB_ID_PATTERN.fullmatch(raw or ""):
        return None
    value = int(raw)
    return value if 0 < value <= MAX_JOB_ID else None


def _submitted_email(payload: Any) -> Optional[str]:
    if isinstance(payload, dict) and isinstance(payload.get("email"), str):
        return payload["email"].strip().lower()[:255] or None
    return None


def _validation_summary(exc: ValidationError) -> str:
    fields = sorted({".".join(str(loc) for loc in error["loc"]) or "body" for error in exc.errors()})
    return "invalid_fields: " + ", ".join(fields)


def _source_details(body: PublicApplicationRequest, ip: str, user_agent: Optional[str]) -> Dict[str, Any]:
    details: Dict[str, Any] = {
        "channel": body.channel or PUBLIC_SOURCE,
        "ip": ip,
        "user_agent": user_agent,
    }
    if body.campaign:
        details["campaign"] = body.campaign
    return details


@router.get(
    "/companies",
    summary="List Companies",
    description="Active companies, for the portal filters.",
)
async def list_companies(
    search: Optional[str] = Query(None, max_length=120, description="Search by name or slug"),
    limit: int = Query(50, ge=1, le=100),
):
    return {"items": await job_service.list_public_companies(search=search, limit=limit)}


@router.get(
    "/jobs",
    summary="List Public Jobs",
    description="Open jobs of active companies, paginated.",
)
async def list_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    search: Optional[str] = Query(None, max_length=120, description="Search title and description"),
    company_id: Optional[int] = Query(None, gt=0),
    company_slug: Optional[str] = Query(None, max_length=120),
    employment_type: Optional[EmploymentType] = Query(None),
    modality: Optional[WorkModality] = Query(None),
    location: Optional[str] = Query(None, max_length=120),
    department: Optional[str] = Query(None, max_length=120),
):
    return await job_service.list_public_jobs(
        page=page,
        limit=limit,
        search=search,
        company_id=company_id,
        company_slug=company_slug,
        employment_type=employment_type,
        modality=modality,
        location=location,
        department=department,
    )


@router.get(
    "/jobs/{job_id}",
    summary="Get Public Job",
)
async def get_job(job_id: int = Path(..., gt=0, description="Job ID")):
    job = await job_service.get_public_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.post(
    "/jobs/{job_id}/apply",
    summary="Apply to Job",
    description=(
        "Submit a public application. Answers 201 for a new application and "
        "200 when the candidate had already applied to this job."
    ),
    openapi_extra=_APPLY_OPENAPI,
)
async def apply_to_job(
    request: Request,
    background_tasks: BackgroundTasks,
    job_id: str = Path(..., description="Job ID"),
    db: AsyncSession = Depends(get_db),
    abuse_control: AbuseControl = Depends(get_abuse_control),
):
    """Run a public submission through abuse control into the application ledger."""
    if not settings.public_applications_enabled:
        return _error_response(
            request, HTTPException(status_code=404, detail="Public applications are disabled")
        )

    user_agent = request.headers.get("user-agent")
    attempt = _Attempt(background_tasks, ip=get_client_ip(request), user_agent=user_agent)

    payload = await _read_json(request)
    attempt.email = _submitted_email(payload)
    attempt.job_id = _parse_job_id(job_id)
    attempt.source_details = {"channel": PUBLIC_SOURCE, "ip": attempt.ip, "user_agent": user_agent}

    if attempt.job_id is None:
        attempt.record(AttemptStatus.INVALID, error="invalid_job_id")
        return _error_response(request, HTTPException(status_code=400, detail="Invalid job id"))

    try:
        body = PublicApplicationRequest.model_validate(payload)
    except ValidationError as e:
        attempt.record(AttemptStatus.INVALID, error=_validation_summary(e))
        return _error_response(request, RequestValidationError(e.errors()))

    attempt.email = body.email.lower()
    attempt.source_details = _source_details(body, attempt.ip, user_agent)

    try:
        check = await abuse_control.enforce(attempt.ip, body.recaptcha_token)
    except RateLimitExceeded as e:
        attempt.record(AttemptStatus.RATE_LIMITED, error="rate_limited")
        return _error_response(request, e)
    except CaptchaRejected as e:
        attempt.captcha_score = e.score
        attempt.record(AttemptStatus.CAPTCHA_FAILED, error=e.reason)
        return _error_response(request, e)
    except CaptchaUnavailable as e:
        attempt.record(AttemptStatus.ERROR, error=str(e))
        return _error_response(request, e)

    attempt.captcha_score = check.captcha_score

    candidate = CandidateInput(
        full_name=body.nombre_completo,
        email=body.email,
        phone=body.telefono,
        resume_url=str(body.resumen_url) if body.resumen_url else None,
        linkedin_url=str(body.linkedin_url) if body.linkedin_url else None,
        city=body.ciudad,
        country=body.pais,
        source=PUBLIC_SOURCE,
    )

    try:
        locked = await job_service.lock_job_for_application(db, attempt.job_id)
        if locked is None:
            await db.rollback()
            attempt.record(AttemptStatus.INVALID, error="job_not_found")
            return _error_response(request, HTTPException(status_code=404, detail="Job not found"))

        job, company = locked
        if not job_service.accepts_applications(job, company):
            await db.rollback()
            attempt.record(AttemptStatus.JOB_CLOSED, error=f"job_status_{job.status.value}")
            return _error_response(
                request,
                HTTPException(status_code=409, detail="Job is not accepting applications"),
            )

        result = await create_or_update_application(
            db,
            job.id,
            candidate,
            status=ApplicationStatus.NEW,
            source=PUBLIC_SOURCE,
            source_details=attempt.source_details,
            expected_salary=body.salario_expectativa,
            currency=body.moneda,
            changed_by=None,
            comment=COMMENT_WITH_MESSAGE if body.mensaje else COMMENT_WITHOUT_MESSAGE,
        )

        if body.mensaje:
            await add_note(
                db,
                result.application.id,
                body.mensaje,
                category=NoteCategory.PUBLIC_PORTAL.value,
                author_id=None,
            )

        recipients = await get_notification_recipients(db, company.id)
        job_title = job.title
        company_name = company.name
        await db.commit()
    except ApplicationLedgerError as e:
        await db.rollback()
        status = (
            AttemptStatus.INVALID
            if e.code == ApplicationLedgerError.INVALID_REFERENCE
            else AttemptStatus.ERROR
        )
        attempt.record(status, error=e.message)
        return _error_response(request, e)
    except Exception as e:
        await db.rollback()
        logger.error(f"Public application to job {attempt.job_id} failed: {e}", exc_info=True)
        attempt.record(AttemptStatus.ERROR, error=str(e))
        return _error_response(request, e)

    if result.was_existing:
        attempt.record(AttemptStatus.DUPLICATE)
        status_code = 200
    else:
        attempt.record(AttemptStatus.RECEIVED)
        status_code = 201
        if recipients:
            background_tasks.add_task(
                dispatch_public_application_notification,
                recipients=recipients,
                job_title=job_title,
                company_name=company_name,
                candidate_name=result.candidate.full_name,
                candidate_email=result.candidate.email,
                candidate_phone=result.candidate.phone,
                message=body.mensaje,
                job_url=f"{settings.public_portal_url.rstrip('/')}/portal/vacantes",
            )

    logger.info(
        f"Public application {result.application.id} to job {attempt.job_id}: "
        f"{'duplicate' if result.was_existing else 'received'}"
    )
    response = JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            {
                "status": "duplicate" if result.was_existing else "received",
                "application": serialize_application(result.application),
            }
        ),
    )
    add_rate_limit_headers(response, check.rate_limit)
    return response
