"""Student registry service: listing, CRUD, admission numbering and statistics."""

import logging
from datetime import date
from typing import Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_admin.core.exceptions import ConflictError, NotFoundError
from school_admin.core.models import Fee, Student
from school_admin.core.pagination import paginate
from school_admin.core.schemas import PaginatedResponse, column_values

from .admission import allocate_admission_number, is_admission_number_collision
from .schemas import (
    ClassCount,
    GenderCount,
    StudentCreate,
    StudentDetail,
    StudentResponse,
    StudentStatistics,
    StudentUpdate,
)

logger = logging.getLogger(__name__)

ADMISSION_NUMBER_ATTEMPTS = 3
STUDENT_NOT_FOUND = "Student not found"


def _escape_like(term: str) -> str:
    """Make % and _ in a search term match literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _to_response(student: Student) -> StudentResponse:
    return StudentResponse.model_validate(student)


async def _get_student_row(db: AsyncSession, student_id: int, with_fees: bool = False) -> Student:
    stmt = select(Student).where(Student.id == student_id)
    if with_fees:
        stmt = stmt.options(selectinload(Student.fees)).execution_options(populate_existing=True)
    student = (await db.execute(stmt)).scalar_one_or_none()
    if not student:
        raise NotFoundError(STUDENT_NOT_FOUND)
    return student


async def list_students(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    class_name: Optional[str] = None,
    section: Optional[str] = None,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> PaginatedResponse[StudentResponse]:
    stmt = select(Student)
    if class_name:
        stmt = stmt.where(Student.class_name == class_name)
    if section:
        stmt = stmt.where(Student.section == section)
    if is_active is not None:
        stmt = stmt.where(Student.is_active.is_(is_active))
    term = (search or "").strip()
    if term:
        pattern = f"%{_escape_like(term)}%"
        stmt = stmt.where(
            or_(
                Student.first_name.ilike(pattern, escape="\\"),
                Student.last_name.ilike(pattern, escape="\\"),
                Student.admission_number.ilike(pattern, escape="\\"),
                Student.parent_name.ilike(pattern, escape="\\"),
            )
        )
    stmt = stmt.order_by(Student.created_at.desc(), Student.id.desc())

    rows, total, total_pages = await paginate(db, stmt, page, limit)
    return PaginatedResponse[StudentResponse](
        count=total,
        total_pages=total_pages,
        current_page=page,
        data=[_to_response(s) for s in rows],
    )


async def get_student(db: AsyncSession, student_id: int) -> StudentDetail:
    student = await _get_student_row(db, student_id, with_fees=True)
    return StudentDetail.model_validate(student)


async def create_student(
    db: AsyncSession,
    payload: StudentCreate,
    today: Optional[date] = None,
) -> StudentResponse:
    """Create a student with the next admission number for the current calendar year."""
    today = today or date.today()
    fields = column_values(payload.model_dump(exclude_none=True))
    if fields.get("admission_date") is None:
        fields["admission_date"] = today

    for attempt in range(1, ADMISSION_NUMBER_ATTEMPTS + 1):
        try:
            # after a collision the rolled-back counter is resynced from existing numbers
            admission_number = await allocate_admission_number(db, today.year, resync=attempt > 1)
            student = Student(admission_number=admission_number, **fields)
            db.add(student)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            if not is_admission_number_collision(e):
                raise
            logger.warning("Admission number collision (attempt %s/%s)", attempt, ADMISSION_NUMBER_ATTEMPTS)
            continue
        await db.refresh(student)
        logger.info("Created student id=%s admission_number=%s", student.id, student.admission_number)
        return _to_response(student)

    raise ConflictError("Could not allocate a unique admission number, please retry")


async def update_student(
    db: AsyncSession,
    student_id: int,
    payload: StudentUpdate,
) -> StudentResponse:
    student = await _get_student_row(db, student_id)
    for field, value in column_values(payload.model_dump(exclude_unset=True)).items():
        setattr(student, field, value)
    await db.commit()
    await db.refresh(student)
    return _to_response(student)


async def delete_student(db: AsyncSession, student_id: int) -> None:
    """Hard delete. The student's fee rows go with it."""
    student = await _get_student_row(db, student_id, with_fees=True)
    fee_count = len(student.fees)
    await db.delete(student)
    await db.commit()
    logger.info("Deleted student id=%s with %s fee record(s)", student_id, fee_count)


async def get_student_statistics(db: AsyncSession) -> StudentStatistics:
    total = (await db.execute(select(func.count(Student.id)))).scalar() or 0
    active = (
        await db.execute(select(func.count(Student.id)).where(Student.is_active.is_(True)))
    ).scalar() or 0

    by_class_rows = (
        await db.execute(
            select(Student.class_name, func.count(Student.id))
            .group_by(Student.class_name)
            .order_by(Student.class_name)
        )
    ).all()
    by_gender_rows = (
        await db.execute(
            select(Student.gender, func.count(Student.id))
            .group_by(Student.gender)
            .order_by(Student.gender)
        )
    ).all()

    return StudentStatistics(
        total_students=total,
        active_students=active,
        inactive_students=total - active,
        by_class=[ClassCount(class_name=c, count=n) for c, n in by_class_rows],
        by_gender=[GenderCount(gender=g, count=n) for g, n in by_gender_rows],
    )


def parse_status_filter(status: Optional[str]) -> Tuple[bool, Optional[bool]]:
    """
    Map the ?status= query value to an is_active filter.
    Returns (valid, value); an empty value means no filter.
    """
    if not status:
        return True, None
    normalized = status.strip().lower()
    if normalized == "active":
        return True, True
    if normalized == "inactive":
        return True, False
    return False, None
