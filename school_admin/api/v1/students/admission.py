"""
Admission number allocation: ADM-<year>-<4 digit sequence>.

The per-year counter row is read FOR UPDATE and bumped inside the caller's
transaction, and students.admission_number is unique. Two concurrent
creations therefore serialize on the counter row, and a collision that slips
through (first-of-year insert race on SQLite, which has no row locks) surfaces
as IntegrityError for the caller to retry.
"""

import re
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.core.models import AdmissionSequence, Student

ADMISSION_PREFIX = "ADM"
_SEQUENCE_RE = re.compile(r"^ADM-(\d{4})-(\d+)$")


def format_admission_number(year: int, sequence: int) -> str:
    return f"{ADMISSION_PREFIX}-{year}-{sequence:04d}"


def parse_admission_sequence(admission_number: Optional[str]) -> Optional[int]:
    """Numeric suffix of an admission number, or None if it is not in ADM-YYYY-NNNN form."""
    if not admission_number:
        return None
    match = _SEQUENCE_RE.match(admission_number.strip())
    return int(match.group(2)) if match else None


async def _highest_existing_sequence(db: AsyncSession, year: int) -> int:
    """Seed for a year's counter from students already numbered under that year's prefix."""
    prefix = f"{ADMISSION_PREFIX}-{year}-"
    result = await db.execute(
        select(Student.admission_number).where(Student.admission_number.like(f"{prefix}%"))
    )
    sequences = [parse_admission_sequence(n) for n in result.scalars().all()]
    return max((s for s in sequences if s is not None), default=0)


def is_admission_number_collision(exc: IntegrityError) -> bool:
    """True when the unique admission number or the counter's primary key was violated."""
    detail = str(getattr(exc, "orig", None) or exc).lower()
    return "admission_number" in detail or "admission_sequences" in detail


async def allocate_admission_number(db: AsyncSession, year: int, resync: bool = False) -> str:
    """
    Reserve the next admission number for year. Does not commit; caller must commit.
    With resync, an existing counter is first raised to the highest number already issued.
    """
    counter = await db.get(AdmissionSequence, year, with_for_update=True, populate_existing=True)
    if counter is None:
        counter = AdmissionSequence(year=year, last_value=await _highest_existing_sequence(db, year))
        db.add(counter)
    elif resync:
        counter.last_value = max(counter.last_value, await _highest_existing_sequence(db, year))
    counter.last_value += 1
    await db.flush()
    return format_admission_number(year, counter.last_value)
