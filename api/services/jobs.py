"""Public job catalog service functions."""

from typing import Any, Dict, List, Optional, Tuple
import math
import logging

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from database.engine import AsyncSessionLocal
from database.models.jobs import Job, JobStatus
from database.models.organizations import Company

logger = logging.getLogger(__name__)


def _public_jobs_query():
    return (
        select(Job, Company)
        .join(Company, Company.id == Job.company_id)
        .where(Job.status == JobStatus.OPEN, Company.is_active.is_(True))
    )


def serialize_public_job(job: Job, company: Company) -> Dict[str, Any]:
    return {
        "id": job.id,
        "title": job.title,
        "description": job.description,
        "department": job.department,
        "employment_type": job.employment_type.value,
        "modality": job.work_modality.value,
        "location": job.location,
        "salary_min": job.salary_min,
        "salary_max": job.salary_max,
        "currency": job.currency,
        "published_at": job.published_at,
        "closes_at": job.closes_at,
        "company": {"id": company.id, "name": company.name, "slug": company.slug},
    }


async def list_public_companies(search: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
    """Active companies, optionally filtered by name or slug."""
    async with AsyncSessionLocal() as session:
        query = select(Company).where(Company.is_active.is_(True))
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.where(
                or_(func.lower(Company.name).like(pattern), Company.slug.like(pattern))
            )
        query = query.order_by(Company.name.asc()).limit(limit)

        companies = (await session.execute(query)).scalars().all()
        return [{"id": c.id, "name": c.name, "slug": c.slug} for c in companies]


async def list_public_jobs(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    company_id: Optional[int] = None,
    company_slug: Optional[str] = None,
    employment_type: Optional[str] = None,
    modality: Optional[str] = None,
    location: Optional[str] = None,
    department: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Open jobs of active companies, paginated.

    The requested page is clamped to the last page.
    """
    filters = []
    if company_id is not None:
        filters.append(Job.company_id == company_id)
    if company_slug:
        filters.append(Company.slug == company_slug.strip().lower())
    if employment_type:
        filters.append(Job.employment_type == employment_type)
    if modality:
        filters.append(Job.work_modality == modality)
    if location:
        filters.append(func.lower(Job.location).like(f"%{location.strip().lower()}%"))
    if department:
        filters.append(func.lower(Job.department).like(f"%{department.strip().lower()}%"))
    if search:
        pattern = f"%{search.strip().lower()}%"
        filters.append(
            or_(func.lower(Job.title).like(pattern), func.lower(Job.description).like(pattern))
        )

    async with AsyncSessionLocal() as session:
        count_query = (
            select(func.count())
            .select_from(Job)
            .join(Company, Company.id == Job.company_id)
            .where(Job.status == JobStatus.OPEN, Company.is_active.is_(True), *filters)
        )
        total = (await session.execute(count_query)).scalar() or 0

        pages = max(1, math.ceil(total / limit))
        page = min(max(page, 1), pages)

        query = (
            _public_jobs_query()
            .where(*filters)
            .order_by(
                Job.published_at.desc().nulls_last(),
                Job.created_at.desc(),
                Job.id.desc(),
            )
            .offset((page - 1) * limit)
            .limit(limit)
        )
        rows = (await session.execute(query)).all()

        return {
            "items": [serialize_public_job(job, company) for job, company in rows],
            "total": total,
            "page": page,
            "pages": pages,
            "limit": limit,
        }


async def get_public_job(job_id: int) -> Optional[Dict[str, Any]]:
    """An open job of an active company, or None."""
    async with AsyncSessionLocal() as session:
        row = (await session.execute(_public_jobs_query().where(Job.id == job_id))).first()
        if row is None:
            return None
        job, company = row
        return serialize_public_job(job, company)


async def lock_job_for_application(
    session: AsyncSession, job_id: int
) -> Optional[Tuple[Job, Company]]:
    """
    Load a job with its company and lock the job row.

    The lock holds until the caller's transaction ends.

    Returns:
        (job, company) or None if the job does not exist
    """
    result = await session.execute(
        select(Job, Company)
        .join(Company, Company.id == Job.company_id)
        .where(Job.id == job_id)
        .with_for_update(of=Job)
    )
    row = result.first()
    if row is None:
        return None
    return row[0], row[1]


def accepts_applications(job: Job, company: Company) -> bool:
    return job.status == JobStatus.OPEN and company.is_active
