"""
Candidate identity resolution.

Candidates are global (unique by lower-cased email across all companies).
Every submission merges into the existing profile: the display name always
takes the latest value, other fields only change when a new value is given.
"""

from dataclasses import dataclass, fields
from typing import Optional
import logging

from sqlalchemy import select, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from core.utils.datetime import now
from database.models.candidates import Candidate

logger = logging.getLogger(__name__)

MERGED_FIELDS = ("phone", "resume_url", "linkedin_url", "city", "country", "source")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass
class CandidateInput:
    """Candidate profile as submitted."""
    full_name: str
    email: str
    phone: Optional[str] = None
    resume_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    source: Optional[str] = None

    def normalized(self) -> "CandidateInput":
        """Trim every field, blank to None, email lower-cased."""
        values = {f.name: _clean(getattr(self, f.name)) for f in fields(self)}
        if not values["email"]:
            raise ValueError("Candidate email is required")
        if not values["full_name"]:
            raise ValueError("Candidate full name is required")
        values["email"] = values["email"].lower()
        return CandidateInput(**values)


def _dialect_insert(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    return None


async def upsert_candidate(session: AsyncSession, candidate: CandidateInput) -> Candidate:
    """
    Insert or merge a candidate keyed by email.

    Runs inside the caller's transaction.

    Args:
        session: Database session
        candidate: Submitted profile

    Returns:
        The stored candidate, reflecting the merge
    """
    data = candidate.normalized()
    timestamp = now()
    insert = _dialect_insert(session)

    if insert is not None:
        stmt = insert(Candidate).values(
            full_name=data.full_name,
            email=data.email,
            phone=data.phone,
            resume_url=data.resume_url,
            linkedin_url=data.linkedin_url,
            city=data.city,
            country=data.country,
            source=data.source,
            created_at=timestamp,
            updated_at=timestamp,
        )
        merge = {
            name: func.coalesce(stmt.excluded[name], getattr(Candidate, name))
            for name in MERGED_FIELDS
        }
        stmt = stmt.on_conflict_do_update(
            index_elements=[Candidate.email],
            set_={"full_name": stmt.excluded.full_name, "updated_at": timestamp, **merge},
        ).returning(Candidate.id)
        candidate_id = (await session.execute(stmt)).scalar_one()

        result = await session.execute(
            select(Candidate)
            .where(Candidate.id == candidate_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    # Generic backends: read-then-write under the caller's transaction
    result = await session.execute(
        select(Candidate).where(Candidate.email == data.email).with_for_update()
    )
    existing = result.scalar_one_or_none()
    if existing is None:
        existing = Candidate(full_name=data.full_name, email=data.email)
        session.add(existing)
    else:
        existing.full_name = data.full_name
    for name in MERGED_FIELDS:
        value = getattr(data, name)
        if value is not None:
            setattr(existing, name, value)
    existing.updated_at = timestamp
    await session.flush()
    return existing


async def get_candidate_by_email(session: AsyncSession, email: str) -> Optional[Candidate]:
    """Look up a candidate by (case-insensitive) email."""
    result = await session.execute(
        select(Candidate).where(Candidate.email == email.strip().lower())
    )
    return result.scalar_one_or_none()
