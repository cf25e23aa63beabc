"""
Analytics over the public application log, the application ledger and the
invitation ledger.

Every report takes a `ReportRange` (inclusive UTC day bounds plus an optional
company scope, None meaning platform-wide) and returns plain dicts. Rows are
selected with portable queries and aggregated here, so an empty range simply
yields empty lists and null averages.

Attempts are matched to applications by (job_id, lower(email)); an attempt
without a matching application is a normal, unmatched row.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence
import math
import logging

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.utils.datetime import (
    ensure_utc,
    hours_between,
    parse_iso_date,
    start_of_day,
    start_of_next_day,
)
from database.models.applications import (
    Application,
    ApplicationStageHistory,
    ApplicationStatus,
)
from database.models.audit import AttemptStatus, PublicApplicationLog
from database.models.candidates import Candidate
from database.models.jobs import Job
from database.models.users import User, UserInvitationEvent

logger = logging.getLogger(__name__)

MAX_DAILY_ROWS = 365
UNKNOWN = "desconocido"
_IN_CHUNK = 500

STATUS_ORDER = list(ApplicationStatus)
FUNNEL_STAGES = {
    "interviews": ApplicationStatus.INTERVIEW,
    "offers": ApplicationStatus.OFFER,
    "hires": ApplicationStatus.HIRED,
}


@dataclass(frozen=True)
class ReportRange:
    """Inclusive day range and tenant scope of a report."""
    start: Optional[date] = None
    end: Optional[date] = None
    company_id: Optional[int] = None

    @classmethod
    def parse(
        cls,
        start: Optional[str] = None,
        end: Optional[str] = None,
        company_id: Optional[int] = None,
    ) -> "ReportRange":
        """
        Build a range from ISO date strings.

        Raises:
            ValueError: On malformed dates or a start after the end
        """
        start_date = parse_iso_date(start)
        end_date = parse_iso_date(end)
        if start_date and end_date and start_date > end_date:
            raise ValueError("start must not be after end")
        return cls(start_date, end_date, company_id)

    def bounds(self, column) -> List[Any]:
        conditions = []
        if self.start is not None:
            conditions.append(column >= start_of_day(self.start))
        if self.end is not None:
            conditions.append(column < start_of_next_day(self.end))
        return conditions


@dataclass
class MatchedAttempt:
    """One attempt log row with its best-effort application match."""
    log_id: int
    created_at: datetime
    status: AttemptStatus
    user_agent: Optional[str]
    source: Optional[str]
    source_details: Optional[Dict[str, Any]]
    application_id: Optional[int] = None
    application_status: Optional[ApplicationStatus] = None
    application_source: Optional[str] = None
    application_source_details: Optional[Dict[str, Any]] = None


def percentile(values: Sequence[float], q: float) -> Optional[float]:
    """
    Continuous percentile with linear interpolation between closest ranks.

    Args:
        values: Samples, in any order
        q: Fraction between 0 and 1

    Returns:
        Interpolated value, or None for an empty sample
    """
    if not values:
        return None
    ordered = sorted(values)
    position = (len(ordered) - 1) * q
    lower = math.floor(position)
    upper = math.ceil(position)
    if lower == upper:
        return float(ordered[lower])
    return ordered[lower] + (ordered[upper] - ordered[lower]) * (position - lower)


def mean(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def classify_platform(user_agent: Optional[str]) -> str:
    """Coarse platform of a user agent: bot, mobile, desktop or desconocido."""
    if not user_agent or not user_agent.strip():
        return UNKNOWN
    ua = user_agent.lower()
    if "bot" in ua or "crawl" in ua:
        return "bot"
    if any(marker in ua for marker in ("mobile", "android", "iphone", "ipad")):
        return "mobile"
    return "desktop"


def _tag(details: Optional[Dict[str, Any]], key: str) -> Optional[str]:
    if not isinstance(details, dict):
        return None
    value = details.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def resolve_channel(attempt: MatchedAttempt) -> str:
    """Attribution channel of an attempt, most specific tag first."""
    candidates = (
        _tag(attempt.application_source_details, "campaign"),
        _tag(attempt.application_source_details, "channel"),
        _tag(attempt.source_details, "campaign"),
        _tag(attempt.source_details, "channel"),
        attempt.application_source,
        attempt.source,
    )
    for value in candidates:
        if value and value.strip():
            return value.strip()
    return UNKNOWN


def _day(value: datetime) -> date:
    return ensure_utc(value).date()


def _chunks(items: List[int], size: int = _IN_CHUNK) -> Iterable[List[int]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _daily_rows(counter: Counter, key_name: str) -> List[Dict[str, Any]]:
    """Newest day first, then key; capped to MAX_DAILY_ROWS."""
    ordered = sorted(counter.items(), key=lambda item: (-item[0][0].toordinal(), item[0][1]))
    return [
        {"day": day.isoformat(), key_name: key, "total": total}
        for (day, key), total in ordered[:MAX_DAILY_ROWS]
    ]


def _totals(counter: Counter, key_name: str) -> List[Dict[str, Any]]:
    ordered = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return [{key_name: key, "total": total} for key, total in ordered]


def _log_conditions(report_range: ReportRange) -> List[Any]:
    conditions = report_range.bounds(PublicApplicationLog.created_at)
    if report_range.company_id is not None:
        conditions.append(
            PublicApplicationLog.job_id.in_(
                select(Job.id).where(Job.company_id == report_range.company_id)
            )
        )
    return conditions


async def load_matched_attempts(
    session: AsyncSession, report_range: ReportRange
) -> List[MatchedAttempt]:
    """Attempt rows in range, each joined to its application when one exists."""
    query = (
        select(
            PublicApplicationLog,
            Application.id,
            Application.status,
            Application.source,
            Application.source_details,
        )
        .outerjoin(
            Candidate,
            func.lower(Candidate.email) == func.lower(PublicApplicationLog.candidate_email),
        )
        .outerjoin(
            Application,
            and_(
                Application.job_id == PublicApplicationLog.job_id,
                Application.candidate_id == Candidate.id,
            ),
        )
        .where(*_log_conditions(report_range))
        .order_by(PublicApplicationLog.created_at.asc(), PublicApplicationLog.id.asc())
    )
    rows = (await session.execute(query)).all()
    return [
        MatchedAttempt(
            log_id=log.id,
            created_at=ensure_utc(log.created_at),
            status=log.status,
            user_agent=log.user_agent,
            source=log.source,
            source_details=log.source_details,
            application_id=app_id,
            application_status=app_status,
            application_source=app_source,
            application_source_details=app_details,
        )
        for log, app_id, app_status, app_source, app_details in rows
    ]


async def _load_history(
    session: AsyncSession, application_ids: List[int]
) -> Dict[int, List[ApplicationStageHistory]]:
    """Stage history per application, oldest first."""
    history: Dict[int, List[ApplicationStageHistory]] = defaultdict(list)
    for chunk in _chunks(application_ids):
        result = await session.execute(
            select(ApplicationStageHistory)
            .where(ApplicationStageHistory.application_id.in_(chunk))
            .order_by(ApplicationStageHistory.changed_at.asc(), ApplicationStageHistory.id.asc())
        )
        for entry in result.scalars().all():
            history[entry.application_id].append(entry)
    return history


def _first_attempt_per_application(attempts: List[MatchedAttempt]) -> Dict[int, MatchedAttempt]:
    first: Dict[int, MatchedAttempt] = {}
    for attempt in attempts:
        if attempt.application_id is None:
            continue
        current = first.get(attempt.application_id)
        if current is None or attempt.created_at < current.created_at:
            first[attempt.application_id] = attempt
    return first


async def public_applications_summary(
    session: AsyncSession,
    report_range: ReportRange,
    status: Optional[AttemptStatus] = None,
) -> Dict[str, Any]:
    """
    Attempt counts per day and status, plus per-status totals.

    Returns:
        {"items": [{day, status, total}], "totals": [{status, total}]}
    """
    conditions = _log_conditions(report_range)
    if status is not None:
        conditions.append(PublicApplicationLog.status == status)

    result = await session.execute(
        select(PublicApplicationLog.created_at, PublicApplicationLog.status).where(*conditions)
    )

    per_day: Counter = Counter()
    totals: Counter = Counter()
    for created_at, attempt_status in result.all():
        per_day[(_day(created_at), attempt_status.value)] += 1
        totals[attempt_status.value] += 1

    return {"items": _daily_rows(per_day, "status"), "totals": _totals(totals, "status")}


async def conversion_report(session: AsyncSession, report_range: ReportRange) -> Dict[str, Any]:
    """
    Funnel from public attempts to interview, offer and hire.

    Returns:
        {"summary": {total_logs, matched, interviews, offers, hires},
         "status": [{status, total}]} where status counts matched
        applications by their current status.
    """
    attempts = await load_matched_attempts(session, report_range)
    first_attempts = _first_attempt_per_application(attempts)
    history = await _load_history(session, list(first_attempts))

    summary = {
        "total_logs": len(attempts),
        "matched": len(first_attempts),
        "interviews": 0,
        "offers": 0,
        "hires": 0,
    }
    current_status: Counter = Counter()

    for application_id, attempt in first_attempts.items():
        reached = {entry.new_status for entry in history.get(application_id, [])}
        for key, stage in FUNNEL_STAGES.items():
            if stage in reached:
                summary[key] += 1
        if attempt.application_status is not None:
            current_status[attempt.application_status] += 1

    status_rows = [
        {"status": stage.value, "total": current_status[stage]}
        for stage in STATUS_ORDER
        if current_status[stage]
    ]
    return {"summary": summary, "status": status_rows}


async def response_time_report(session: AsyncSession, report_range: ReportRange) -> Dict[str, Any]:
    """
    Hours from a candidate's first attempt to the first stage change.

    The anchor is the earliest matching attempt in range; the first stage
    change is the earliest history row with a previous status at or after it.

    Returns:
        {"samples", "avg_hours", "median_hours", "p90_hours"}
    """
    attempts = await load_matched_attempts(session, report_range)
    first_attempts = _first_attempt_per_application(attempts)
    history = await _load_history(session, list(first_attempts))

    samples: List[float] = []
    for application_id, attempt in first_attempts.items():
        for entry in history.get(application_id, []):
            if entry.previous_status is None:
                continue
            changed_at = ensure_utc(entry.changed_at)
            if changed_at < attempt.created_at:
                continue
            samples.append(hours_between(attempt.created_at, changed_at))
            break

    return {
        "samples": len(samples),
        "avg_hours": mean(samples),
        "median_hours": percentile(samples, 0.5),
        "p90_hours": percentile(samples, 0.9),
    }


async def sources_report(session: AsyncSession, report_range: ReportRange) -> Dict[str, Any]:
    """
    Attempts by attribution channel and by client platform.

    Returns:
        {"channels": {"breakdown", "totals"}, "platforms": {"breakdown", "totals"}}
    """
    attempts = await load_matched_attempts(session, report_range)

    channel_days: Counter = Counter()
    channel_totals: Counter = Counter()
    platform_days: Counter = Counter()
    platform_totals: Counter = Counter()

    for attempt in attempts:
        day = _day(attempt.created_at)
        channel = resolve_channel(attempt)
        platform = classify_platform(attempt.user_agent)
        channel_days[(day, channel)] += 1
        channel_totals[channel] += 1
        platform_days[(day, platform)] += 1
        platform_totals[platform] += 1

    return {
        "channels": {
            "breakdown": _daily_rows(channel_days, "channel"),
            "totals": _totals(channel_totals, "channel"),
        },
        "platforms": {
            "breakdown": _daily_rows(platform_days, "platform"),
            "totals": _totals(platform_totals, "platform"),
        },
    }


async def invitations_report(session: AsyncSession, report_range: ReportRange) -> Dict[str, Any]:
    """
    Invitation delivery and acceptance metrics.

    Returns:
        {"events": [{day, sent, reused, delivered}],
         "acceptance": {invited_users, accepted_users, avg_hours_to_accept},
         "accepted_timeline": [{day, accepted}]}
    """
    event_query = (
        select(
            UserInvitationEvent.sent_at,
            UserInvitationEvent.reused_existing,
            UserInvitationEvent.email_delivery_success,
        )
        .join(User, User.id == UserInvitationEvent.user_id)
        .where(*report_range.bounds(UserInvitationEvent.sent_at))
    )
    user_scope = []
    if report_range.company_id is not None:
        user_scope.append(User.company_id == report_range.company_id)
        event_query = event_query.where(*user_scope)

    events: Dict[date, Dict[str, int]] = defaultdict(lambda: {"sent": 0, "reused": 0, "delivered": 0})
    for sent_at, reused, delivered in (await session.execute(event_query)).all():
        bucket = events[_day(sent_at)]
        bucket["sent"] += 1
        if reused:
            bucket["reused"] += 1
        if delivered:
            bucket["delivered"] += 1

    invited = await session.execute(
        select(User.invitation_accepted, User.invitation_sent_at, User.invitation_accepted_at).where(
            User.invitation_sent_at.is_not(None),
            *report_range.bounds(User.invitation_sent_at),
            *user_scope,
        )
    )
    invited_users = 0
    accepted_users = 0
    hours_to_accept: List[float] = []
    for accepted, sent_at, accepted_at in invited.all():
        invited_users += 1
        if not accepted:
            continue
        accepted_users += 1
        if accepted_at is not None:
            hours_to_accept.append(hours_between(sent_at, accepted_at))

    accepted_rows = await session.execute(
        select(User.invitation_accepted_at).where(
            User.invitation_accepted.is_(True),
            User.invitation_accepted_at.is_not(None),
            *report_range.bounds(User.invitation_accepted_at),
            *user_scope,
        )
    )
    timeline: Counter = Counter(_day(accepted_at) for (accepted_at,) in accepted_rows.all())

    return {
        "events": [
            {"day": day.isoformat(), **counts}
            for day, counts in sorted(events.items(), key=lambda item: item[0], reverse=True)[:MAX_DAILY_ROWS]
        ],
        "acceptance": {
            "invited_users": invited_users,
            "accepted_users": accepted_users,
            "avg_hours_to_accept": mean(hours_to_accept),
        },
        "accepted_timeline": [
            {"day": day.isoformat(), "accepted": total}
            for day, total in sorted(timeline.items(), reverse=True)[:MAX_DAILY_ROWS]
        ],
    }
