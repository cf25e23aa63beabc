"""
Application pipeline endpoints.

Admin-side access to the application ledger: manual creation, status
changes, stage history and notes. Every endpoint is scoped to the caller's
company.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_user, require_company_scope
from api.schemas.applications import (
    ApplicationCreate,
    ApplicationStatusUpdate,
    NoteCreate,
)
from api.services import applications as application_service
from api.services.candidates import CandidateInput
from database.engine import get_db
from database.models.applications import ApplicationStatus
from database.models.jobs import Job
from database.models.users import User

router = APIRouter(tags=["applications"])


async def _ensure_job_in_company(db: AsyncSession, job_id: int, company_id: int) -> Job:
    job = await db.get(Job, job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    if job.company_id != company_id:
        raise HTTPException(status_code=403, detail="Job belongs to another company")
    return job


async def _ensure_application_in_company(
    db: AsyncSession, application_id: int, company_id: int
) -> None:
    owner = await application_service.get_application_company_id(db, application_id)
    if owner is None:
        raise HTTPException(status_code=404, detail="Application not found")
    if owner != company_id:
        raise HTTPException(status_code=403, detail="Application belongs to another company")


@router.post(
    "/applications",
    status_code=201,
    summary="Create Application",
    description="Register an application on behalf of a candidate.",
)
async def create_application(
    body: ApplicationCreate,
    current_user: User = Depends(get_current_user),
    company_id: int = Depends(require_company_scope),
    db: AsyncSession = Depends(get_db),
):
    """Create the application, or update it if the candidate already applied."""
    await _ensure_job_in_company(db, body.job_id, company_id)

    candidate = CandidateInput(
        full_name=body.candidato.nombre_completo,
        email=body.candidato.email,
        phone=body.candidato.telefono,
        resume_url=str(body.candidato.resumen_url) if body.candidato.resumen_url else None,
        linkedin_url=str(body.candidato.linkedin_url) if body.candidato.linkedin_url else None,
        city=body.candidato.ciudad,
        country=body.candidato.pais,
        source=body.candidato.fuente,
    )

    try:
        result = await application_service.create_or_update_application(
            db,
            body.job_id,
            candidate,
            status=body.estado,
            source=body.source,
            source_details=body.source_details,
            expected_salary=body.salario_expectativa,
            currency=body.moneda,
            changed_by=current_user.id,
            comment=body.comentario,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return {
        "application": application_service.serialize_application(result.application),
        "was_existing": result.was_existing,
    }


@router.get(
    "/jobs/{job_id}/applications",
    summary="List Job Applications",
)
async def list_job_applications(
    job_id: int = Path(..., gt=0, description="Job ID"),
    estado: Optional[ApplicationStatus] = Query(None, description="Filter by status"),
    company_id: int = Depends(require_company_scope),
    db: AsyncSession = Depends(get_db),
):
    """Applications for a job with candidate data, newest first."""
    await _ensure_job_in_company(db, job_id, company_id)
    items = await application_service.list_job_applications(db, job_id, status=estado)
    return {"items": items}


@router.put(
    "/applications/{application_id}",
    summary="Update Application Status",
)
async def update_application_status(
    body: ApplicationStatusUpdate,
    application_id: int = Path(..., gt=0, description="Application ID"),
    current_user: User = Depends(get_current_user),
    company_id: int = Depends(require_company_scope),
    db: AsyncSession = Depends(get_db),
):
    """Move the application; a history row is written only if the status changes."""
    await _ensure_application_in_company(db, application_id, company_id)

    try:
        updated = await application_service.update_application_status(
            db,
            application_id,
            body.estado,
            changed_by=current_user.id,
            comment=body.comentario,
        )
        if updated is None:
            await db.rollback()
            raise HTTPException(status_code=404, detail="Application not found")
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    application, previous_status = updated
    return {
        "application": application_service.serialize_application(application),
        "previous_status": previous_status.value,
    }


@router.get(
    "/applications/{application_id}/stage-history",
    summary="Get Stage History",
)
async def get_stage_history(
    application_id: int = Path(..., gt=0, description="Application ID"),
    company_id: int = Depends(require_company_scope),
    db: AsyncSession = Depends(get_db),
):
    await _ensure_application_in_company(db, application_id, company_id)
    return {"items": await application_service.list_stage_history(db, application_id)}


@router.get(
    "/applications/{application_id}/notes",
    summary="List Notes",
)
async def list_notes(
    application_id: int = Path(..., gt=0, description="Application ID"),
    company_id: int = Depends(require_company_scope),
    db: AsyncSession = Depends(get_db),
):
    await _ensure_application_in_company(db, application_id, company_id)
    return {"items": await application_service.list_notes(db, application_id)}


@router.post(
    "/applications/{application_id}/notes",
    status_code=201,
    summary="Add Note",
)
async def create_note(
    body: NoteCreate,
    application_id: int = Path(..., gt=0, description="Application ID"),
    current_user: User = Depends(get_current_user),
    company_id: int = Depends(require_company_scope),
    db: AsyncSession = Depends(get_db),
):
    """Attach a note authored by the caller."""
    await _ensure_application_in_company(db, application_id, company_id)

    note = await application_service.add_note(
        db,
        application_id,
        body.contenido,
        category=body.categoria,
        author_id=current_user.id,
    )
    await db.commit()
    return {
        "note": application_service.serialize_note(
            note, author_name=current_user.name, author_email=current_user.email
        )
    }
