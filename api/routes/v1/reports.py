"""
Reporting endpoints.

Public application funnel, channel attribution and invitation metrics.
Restricted to admins, HR admins and super admins; super admins may report on
any company or on the whole platform.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_report_scope
from api.services import reports as report_service
from database.engine import get_db
from database.models.audit import AttemptStatus

router = APIRouter(prefix="/reports", tags=["reports"])


def report_range(
    start: Optional[str] = Query(None, description="First day, YYYY-MM-DD (UTC)"),
    end: Optional[str] = Query(None, description="Last day, YYYY-MM-DD (UTC), inclusive"),
    company_id: Optional[int] = Depends(get_report_scope),
) -> report_service.ReportRange:
    try:
        return report_service.ReportRange.parse(start, end, company_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get(
    "/public-applications",
    summary="Public Applications by Day",
    description="Attempt counts per day and outcome, newest day first.",
)
async def public_applications(
    status: Optional[AttemptStatus] = Query(None, description="Only this outcome"),
    range_: report_service.ReportRange = Depends(report_range),
    db: AsyncSession = Depends(get_db),
):
    return await report_service.public_applications_summary(db, range_, status=status)


@router.get(
    "/public-applications/conversion",
    summary="Public Application Conversion",
)
async def conversion(
    range_: report_service.ReportRange = Depends(report_range),
    db: AsyncSession = Depends(get_db),
):
    """Attempts that became applications and reached interview, offer or hire."""
    return await report_service.conversion_report(db, range_)


@router.get(
    "/public-applications/response-time",
    summary="Time to First Response",
)
async def response_time(
    range_: report_service.ReportRange = Depends(report_range),
    db: AsyncSession = Depends(get_db),
):
    """Hours from first attempt to first stage change: mean, P50, P90."""
    return await report_service.response_time_report(db, range_)


@router.get(
    "/public-applications/sources",
    summary="Channels and Platforms",
)
async def sources(
    range_: report_service.ReportRange = Depends(report_range),
    db: AsyncSession = Depends(get_db),
):
    return await report_service.sources_report(db, range_)


@router.get(
    "/invitations",
    summary="Invitation Metrics",
)
async def invitations(
    range_: report_service.ReportRange = Depends(report_range),
    db: AsyncSession = Depends(get_db),
):
    """Invitation emails sent, reused and delivered, and acceptance times."""
    return await report_service.invitations_report(db, range_)
