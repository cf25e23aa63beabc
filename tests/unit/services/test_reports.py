"""
Tests for the analytics aggregator.

Attempts are matched to applications by (job, lower(email)); funnel and
response time count distinct applications, attribution counts attempt rows.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from api.services.applications import create_or_update_application
from api.services.candidates import CandidateInput
from api.services.reports import (
    MatchedAttempt,
    ReportRange,
    classify_platform,
    conversion_report,
    invitations_report,
    mean,
    percentile,
    public_applications_summary,
    resolve_channel,
    response_time_report,
    sources_report,
)
from database.models import (
    ApplicationStageHistory,
    ApplicationStatus,
    AttemptStatus,
    UserInvitationEvent,
)
from tests.factories import create_attempt, create_company, create_job, create_user

BASE = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
MARCH = ReportRange.parse("2026-03-01", "2026-03-31")


async def apply(session, job, email, at=BASE, status=AttemptStatus.RECEIVED, **log_fields):
    """A matched attempt: ledger application plus its attempt log row."""
    result = await create_or_update_application(
        session, job.id, CandidateInput(full_name="Candidate", email=email)
    )
    await session.commit()
    await create_attempt(session, job.id, email, status, created_at=at, **log_fields)
    return result.application


async def move(session, application, status, at):
    """Record a stage change at a fixed time."""
    session.add(
        ApplicationStageHistory(
            application_id=application.id,
            previous_status=application.status,
            new_status=status,
            changed_at=at,
        )
    )
    application.status = status
    await session.commit()


@pytest.fixture
async def company(session):
    return await create_company(session, name="Acme")


@pytest.fixture
async def job(session, company):
    return await create_job(session, company)


class TestStatistics:

    def test_percentiles_interpolate(self):
        values = [10, 1, 4, 2, 3]

        assert percentile(values, 0.5) == 3.0
        assert percentile(values, 0.9) == pytest.approx(7.6)
        assert mean(values) == 4.0

    def test_single_sample(self):
        assert percentile([5.0], 0.9) == 5.0

    def test_empty_sample(self):
        assert percentile([], 0.5) is None
        assert mean([]) is None

    @pytest.mark.parametrize("user_agent,platform", [
        (None, "desconocido"),
        ("   ", "desconocido"),
        ("Googlebot/2.1", "bot"),
        ("SomeCrawler", "bot"),
        ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0)", "mobile"),
        ("Mozilla/5.0 (Linux; Android 14)", "mobile"),
        ("Mozilla/5.0 (Windows NT 10.0; Win64; x64)", "desktop"),
    ])
    def test_classify_platform(self, user_agent, platform):
        assert classify_platform(user_agent) == platform

    def test_channel_precedence(self):
        attempt = MatchedAttempt(
            log_id=1,
            created_at=BASE,
            status=AttemptStatus.RECEIVED,
            user_agent=None,
            source="portal_publico",
            source_details={"channel": "linkedin", "campaign": "spring"},
            application_source="referral",
            application_source_details={"channel": "  ", "campaign": None},
        )

        assert resolve_channel(attempt) == "spring"

        attempt.source_details = {"channel": "linkedin"}
        assert resolve_channel(attempt) == "linkedin"

        attempt.source_details = None
        assert resolve_channel(attempt) == "referral"

        attempt.application_source = None
        attempt.source = None
        assert resolve_channel(attempt) == "desconocido"


class TestReportRange:

    def test_parse(self):
        report_range = ReportRange.parse("2026-03-01", "2026-03-31", company_id=4)

        assert report_range.start == date(2026, 3, 1)
        assert report_range.end == date(2026, 3, 31)
        assert report_range.company_id == 4

    def test_open_ended(self):
        assert ReportRange.parse(None, "") == ReportRange()

    @pytest.mark.parametrize("start,end", [
        ("2026-13-01", None),
        ("01/03/2026", None),
        ("2026-03-10", "2026-03-01"),
    ])
    def test_invalid(self, start, end):
        with pytest.raises(ValueError):
            ReportRange.parse(start, end)


class TestPublicApplicationsSummary:

    async def test_counts_per_day_and_status(self, session, job):
        await create_attempt(session, job.id, "a@x.com", AttemptStatus.RECEIVED, created_at=BASE)
        await create_attempt(session, job.id, "a@x.com", AttemptStatus.DUPLICATE, created_at=BASE)
        await create_attempt(session, job.id, "b@x.com", AttemptStatus.RECEIVED, created_at=BASE)
        await create_attempt(
            session, job.id, None, AttemptStatus.RATE_LIMITED, created_at=BASE + timedelta(days=1)
        )
        # Last instant of the range is included, the next day is not
        await create_attempt(
            session,
            job.id,
            "c@x.com",
            AttemptStatus.RECEIVED,
            created_at=datetime(2026, 3, 31, 23, 59, 59, tzinfo=timezone.utc),
        )
        await create_attempt(
            session,
            job.id,
            "d@x.com",
            AttemptStatus.RECEIVED,
            created_at=datetime(2026, 4, 1, 0, 0, tzinfo=timezone.utc),
        )

        report = await public_applications_summary(session, MARCH)

        assert report["items"] == [
            {"day": "2026-03-31", "status": "received", "total": 1},
            {"day": "2026-03-03", "status": "rate_limited", "total": 1},
            {"day": "2026-03-02", "status": "duplicate", "total": 1},
            {"day": "2026-03-02", "status": "received", "total": 2},
        ]
        assert report["totals"] == [
            {"status": "received", "total": 3},
            {"status": "duplicate", "total": 1},
            {"status": "rate_limited", "total": 1},
        ]

    async def test_status_filter(self, session, job):
        await create_attempt(session, job.id, "a@x.com", AttemptStatus.RECEIVED, created_at=BASE)
        await create_attempt(session, job.id, "a@x.com", AttemptStatus.CAPTCHA_FAILED, created_at=BASE)

        report = await public_applications_summary(session, MARCH, AttemptStatus.CAPTCHA_FAILED)

        assert report["totals"] == [{"status": "captcha_failed", "total": 1}]

    async def test_company_scope(self, session, company, job):
        other_company = await create_company(session)
        other_job = await create_job(session, other_company)
        await create_attempt(session, job.id, "a@x.com", created_at=BASE)
        await create_attempt(session, other_job.id, "b@x.com", created_at=BASE)
        await create_attempt(session, None, None, AttemptStatus.INVALID, created_at=BASE)
        await create_attempt(session, 999_999, "c@x.com", AttemptStatus.INVALID, created_at=BASE)

        scoped = await public_applications_summary(session, ReportRange.parse(company_id=company.id))
        platform = await public_applications_summary(session, ReportRange())

        assert scoped["totals"] == [{"status": "received", "total": 1}]
        assert platform["totals"] == [
            {"status": "invalid", "total": 2},
            {"status": "received", "total": 2},
        ]

    async def test_empty(self, session):
        assert await public_applications_summary(session, MARCH) == {"items": [], "totals": []}


class TestConversion:

    async def test_funnel_counts_distinct_applications(self, session, job):
        hired = await apply(session, job, "hired@x.com")
        await create_attempt(
            session, job.id, "HIRED@X.com", AttemptStatus.DUPLICATE, created_at=BASE + timedelta(hours=1)
        )
        await move(session, hired, ApplicationStatus.INTERVIEW, BASE + timedelta(days=1))
        await move(session, hired, ApplicationStatus.OFFER, BASE + timedelta(days=2))
        await move(session, hired, ApplicationStatus.HIRED, BASE + timedelta(days=3))

        interviewed = await apply(session, job, "interviewed@x.com")
        await move(session, interviewed, ApplicationStatus.INTERVIEW, BASE + timedelta(days=1))
        await move(session, interviewed, ApplicationStatus.REJECTED, BASE + timedelta(days=2))

        await apply(session, job, "new@x.com")
        await create_attempt(session, job.id, "nobody@x.com", AttemptStatus.CAPTCHA_FAILED, created_at=BASE)

        report = await conversion_report(session, MARCH)

        assert report["summary"] == {
            "total_logs": 5,
            "matched": 3,
            "interviews": 2,
            "offers": 1,
            "hires": 1,
        }
        assert report["status"] == [
            {"status": "Nuevo", "total": 1},
            {"status": "Contratado", "total": 1},
            {"status": "Rechazado", "total": 1},
        ]

    async def test_empty(self, session):
        report = await conversion_report(session, MARCH)

        assert report["summary"]["total_logs"] == 0
        assert report["summary"]["matched"] == 0
        assert report["status"] == []


class TestResponseTime:

    async def test_hours_to_first_stage_change(self, session, job):
        for i, hours in enumerate([1, 2, 3, 4, 10]):
            application = await apply(session, job, f"c{i}@x.com")
            await move(session, application, ApplicationStatus.IN_REVIEW, BASE + timedelta(hours=hours))
            await move(
                session, application, ApplicationStatus.INTERVIEW, BASE + timedelta(hours=hours + 50)
            )

        report = await response_time_report(session, MARCH)

        assert report["samples"] == 5
        assert report["avg_hours"] == pytest.approx(4.0)
        assert report["median_hours"] == pytest.approx(3.0)
        assert report["p90_hours"] == pytest.approx(7.6)

    async def test_anchor_is_first_attempt(self, session, job):
        application = await apply(session, job, "a@x.com", at=BASE)
        await create_attempt(
            session, job.id, "a@x.com", AttemptStatus.DUPLICATE, created_at=BASE + timedelta(hours=5)
        )
        await move(session, application, ApplicationStatus.IN_REVIEW, BASE + timedelta(hours=6))

        report = await response_time_report(session, MARCH)

        assert report["samples"] == 1
        assert report["avg_hours"] == pytest.approx(6.0)

    async def test_changes_before_attempt_ignored(self, session, job):
        application = await apply(session, job, "a@x.com", at=BASE)
        await move(session, application, ApplicationStatus.IN_REVIEW, BASE - timedelta(hours=2))

        report = await response_time_report(session, MARCH)

        assert report == {"samples": 0, "avg_hours": None, "median_hours": None, "p90_hours": None}


class TestSources:

    async def test_channels_and_platforms(self, session, job):
        await apply(
            session,
            job,
            "a@x.com",
            source="portal_publico",
            source_details={"channel": "linkedin"},
            user_agent="Mozilla/5.0 (iPhone)",
        )
        await create_attempt(
            session,
            job.id,
            "b@x.com",
            AttemptStatus.RATE_LIMITED,
            created_at=BASE,
            source="portal_publico",
            source_details={"channel": "linkedin", "campaign": "spring"},
            user_agent="Mozilla/5.0 (Windows NT 10.0)",
        )
        await create_attempt(
            session,
            job.id,
            "c@x.com",
            AttemptStatus.INVALID,
            created_at=BASE,
            source="portal_publico",
        )

        report = await sources_report(session, MARCH)

        assert report["channels"]["totals"] == [
            {"channel": "linkedin", "total": 1},
            {"channel": "portal_publico", "total": 1},
            {"channel": "spring", "total": 1},
        ]
        assert report["platforms"]["totals"] == [
            {"platform": "desconocido", "total": 1},
            {"platform": "desktop", "total": 1},
            {"platform": "mobile", "total": 1},
        ]
        assert report["channels"]["breakdown"][0]["day"] == "2026-03-02"

    async def test_application_tags_win(self, session, job):
        application = await apply(
            session, job, "a@x.com", source="portal_publico", source_details={"channel": "linkedin"}
        )
        application.source_details = {"campaign": "referidos"}
        await session.commit()

        report = await sources_report(session, MARCH)

        assert report["channels"]["totals"] == [{"channel": "referidos", "total": 1}]


class TestInvitations:

    async def test_events_and_acceptance(self, session, company):
        other_company = await create_company(session)
        accepted = await create_user(
            session,
            company,
            invitation_sent_at=BASE,
            invitation_accepted_at=BASE + timedelta(hours=6),
        )
        pending = await create_user(
            session, company, invitation_accepted=False, invitation_sent_at=BASE + timedelta(days=1)
        )
        outsider = await create_user(
            session,
            other_company,
            invitation_sent_at=BASE,
            invitation_accepted_at=BASE + timedelta(hours=1),
        )
        for user, sent_at, reused, delivered in [
            (accepted, BASE, False, True),
            (pending, BASE + timedelta(days=1), False, False),
            (pending, BASE + timedelta(days=1), True, True),
            (outsider, BASE, False, True),
        ]:
            session.add(
                UserInvitationEvent(
                    user_id=user.id,
                    token_hash="hash",
                    sent_at=sent_at,
                    reused_existing=reused,
                    email_delivery_attempted=True,
                    email_delivery_success=delivered,
                )
            )
        await session.commit()

        scoped = await invitations_report(
            session, ReportRange.parse("2026-03-01", "2026-03-31", company.id)
        )

        assert scoped["events"] == [
            {"day": "2026-03-03", "sent": 2, "reused": 1, "delivered": 1},
            {"day": "2026-03-02", "sent": 1, "reused": 0, "delivered": 1},
        ]
        assert scoped["acceptance"] == {
            "invited_users": 2,
            "accepted_users": 1,
            "avg_hours_to_accept": pytest.approx(6.0),
        }
        assert scoped["accepted_timeline"] == [{"day": "2026-03-02", "accepted": 1}]

        platform = await invitations_report(session, MARCH)
        assert platform["acceptance"]["invited_users"] == 3
        assert platform["acceptance"]["avg_hours_to_accept"] == pytest.approx(3.5)

    async def test_empty(self, session):
        report = await invitations_report(session, MARCH)

        assert report == {
            "events": [],
            "acceptance": {"invited_users": 0, "accepted_users": 0, "avg_hours_to_accept": None},
            "accepted_timeline": [],
        }
