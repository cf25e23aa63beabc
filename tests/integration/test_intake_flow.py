"""
Integration test for the public intake flow.

A candidate applies through the portal, resubmits, is moved along the
pipeline by a recruiter and shows up in the company's reports.
"""

from unittest.mock import patch

import pytest
from sqlalchemy import select

from core.integrations.email import EmailDeliveryResult
from core.utils.datetime import ensure_utc
from database.engine import AsyncSessionLocal
from database.models import (
    ApplicationStageHistory,
    ApplicationStatus,
    AttemptStatus,
    PublicApplicationLog,
    UserRole,
)
from tests.factories import application_payload, auth_headers, create_company, create_job, create_user

MOBILE = {"User-Agent": "Mozilla/5.0 (Linux; Android 14; Mobile)"}


@pytest.mark.asyncio
async def test_portal_application_to_reports(client, session):
    company = await create_company(session, name="Acme", slug="acme")
    job = await create_job(session, company, title="Backend Engineer")
    hr_admin = await create_user(session, company, UserRole.HR_ADMIN, email="hr@acme.com")
    recruiter = await create_user(session, company, UserRole.RECRUITER)

    # The job is listed in the portal
    catalog = await client.get("/public/jobs", params={"company_slug": "acme"})
    assert [item["id"] for item in catalog.json()["items"]] == [job.id]

    # First submission creates the application and notifies HR
    payload = application_payload(campaign="spring", mensaje="Hola, adjunto mi CV")
    with patch("core.integrations.email.EmailService.send_email") as send_email:
        send_email.return_value = EmailDeliveryResult(True, True, "Email sent")
        first = await client.post(f"/public/jobs/{job.id}/apply", json=payload, headers=MOBILE)

    assert first.status_code == 201
    application_id = first.json()["application"]["id"]
    send_email.assert_called_once()
    assert send_email.call_args.kwargs["to_email"] == ["hr@acme.com"]

    # Resubmission is acknowledged as a duplicate of the same application
    second = await client.post(f"/public/jobs/{job.id}/apply", json=payload, headers=MOBILE)
    assert second.status_code == 200
    assert second.json()["application"]["id"] == application_id

    # Anonymous submissions are visible to the recruiter with the candidate's note
    listed = await client.get(f"/api/jobs/{job.id}/applications", headers=auth_headers(recruiter))
    [item] = listed.json()["items"]
    assert item["candidate"]["email"] == "a@x.com"
    notes = await client.get(
        f"/api/applications/{application_id}/notes", headers=auth_headers(recruiter)
    )
    assert notes.json()["items"][0]["content"] == "Hola, adjunto mi CV"

    # Recruiter moves the candidate to interview
    moved = await client.put(
        f"/api/applications/{application_id}",
        json={"estado": "Entrevista"},
        headers=auth_headers(recruiter),
    )
    assert moved.json()["previous_status"] == "Nuevo"

    # Both attempts were logged once each
    async with AsyncSessionLocal() as check:
        logs = (
            await check.execute(select(PublicApplicationLog).order_by(PublicApplicationLog.id))
        ).scalars().all()
        interview = (
            await check.execute(
                select(ApplicationStageHistory).where(
                    ApplicationStageHistory.application_id == application_id,
                    ApplicationStageHistory.new_status == ApplicationStatus.INTERVIEW,
                )
            )
        ).scalar_one()
    assert [log.status for log in logs] == [AttemptStatus.RECEIVED, AttemptStatus.DUPLICATE]

    # Reports reflect the flow
    headers = auth_headers(hr_admin)
    summary = await client.get("/api/reports/public-applications", headers=headers)
    assert {row["status"]: row["total"] for row in summary.json()["totals"]} == {
        "received": 1,
        "duplicate": 1,
    }

    conversion = await client.get("/api/reports/public-applications/conversion", headers=headers)
    assert conversion.json()["summary"] == {
        "total_logs": 2,
        "matched": 1,
        "interviews": 1,
        "offers": 0,
        "hires": 0,
    }
    assert conversion.json()["status"] == [{"status": "Entrevista", "total": 1}]

    response_time = await client.get(
        "/api/reports/public-applications/response-time", headers=headers
    )
    expected_hours = (
        ensure_utc(interview.changed_at) - ensure_utc(logs[0].created_at)
    ).total_seconds() / 3600
    assert response_time.json()["samples"] == 1
    assert response_time.json()["avg_hours"] == pytest.approx(expected_hours)
    assert response_time.json()["median_hours"] == pytest.approx(expected_hours)

    sources = await client.get("/api/reports/public-applications/sources", headers=headers)
    assert sources.json()["channels"]["totals"] == [{"channel": "spring", "total": 2}]
    assert sources.json()["platforms"]["totals"] == [{"platform": "mobile", "total": 2}]

    # Recruiters cannot read reports
    forbidden = await client.get("/api/reports/public-applications", headers=auth_headers(recruiter))
    assert forbidden.status_code == 403
