"""Fees service: ledger CRUD, duplicate-period guard, statistics and per-student summary.

All aggregates sum the gross amount column. Discount and fine stay on the row
and only show up in each fee's netAmount.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_admin.core.enums import FeeType, Month, PaymentStatus
from school_admin.core.exceptions import ConflictError, NotFoundError, ServiceError, ValidationError
from school_admin.core.models import Fee, Student
from school_admin.core.money import sum_money, to_money
from school_admin.core.pagination import paginate
from school_admin.core.schemas import PaginatedResponse, column_values

from .schemas import (
    MUTABLE_FEE_FIELDS,
    FeeCreate,
    FeeImportFailure,
    FeeImportResult,
    FeeResponse,
    FeeStatistics,
    FeeTotals,
    FeeTypeTotal,
    FeeUpdate,
    MonthlyTotal,
    StudentFeeSummary,
    SummaryStudent,
)
from .spreadsheet import parse_fee_workbook

logger = logging.getLogger(__name__)

FEE_NOT_FOUND = "Fee record not found"
STUDENT_NOT_FOUND = "Student not found"

# Nullable-in-payload fields that are skipped rather than cleared when sent as null
_SKIP_WHEN_NULL = {"payment_status", "paid_date", "payment_method", "transaction_id", "discount", "fine"}

_MONTH_ORDER = {m.value: i for i, m in enumerate(Month)}


def _to_response(fee: Fee) -> FeeResponse:
    return FeeResponse.model_validate(fee)


def _fees_query(
    student_id: Optional[int] = None,
    fee_type: Optional[FeeType] = None,
    payment_status: Optional[PaymentStatus] = None,
    month: Optional[Month] = None,
    academic_year: Optional[str] = None,
):
    """Filtered fee select with the student summary loaded, newest due date first."""
    stmt = select(Fee).options(selectinload(Fee.student))
    if student_id is not None:
        stmt = stmt.where(Fee.student_id == student_id)
    if fee_type is not None:
        stmt = stmt.where(Fee.fee_type == fee_type.value)
    if payment_status is not None:
        stmt = stmt.where(Fee.payment_status == payment_status.value)
    if month is not None:
        stmt = stmt.where(Fee.month == month.value)
    if academic_year:
        stmt = stmt.where(Fee.academic_year == academic_year.strip())
    return stmt.order_by(Fee.due_date.desc(), Fee.id.desc())


async def _get_fee_row(db: AsyncSession, fee_id: int) -> Fee:
    fee = (
        await db.execute(
            select(Fee)
            .options(selectinload(Fee.student))
            .where(Fee.id == fee_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not fee:
        raise NotFoundError(FEE_NOT_FOUND)
    return fee


async def list_fees(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    student_id: Optional[int] = None,
    fee_type: Optional[FeeType] = None,
    payment_status: Optional[PaymentStatus] = None,
    month: Optional[Month] = None,
    academic_year: Optional[str] = None,
) -> PaginatedResponse[FeeResponse]:
    stmt = _fees_query(student_id, fee_type, payment_status, month, academic_year)
    rows, total, total_pages = await paginate(db, stmt, page, limit)
    return PaginatedResponse[FeeResponse](
        count=total,
        total_pages=total_pages,
        current_page=page,
        data=[_to_response(f) for f in rows],
    )


async def list_all_fees(
    db: AsyncSession,
    student_id: Optional[int] = None,
    fee_type: Optional[FeeType] = None,
    payment_status: Optional[PaymentStatus] = None,
    month: Optional[Month] = None,
    academic_year: Optional[str] = None,
) -> List[Fee]:
    """Unpaginated variant of list_fees for exports."""
    stmt = _fees_query(student_id, fee_type, payment_status, month, academic_year)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_fee(db: AsyncSession, fee_id: int) -> FeeResponse:
    return _to_response(await _get_fee_row(db, fee_id))


async def _has_fee_for_period(db: AsyncSession, payload: FeeCreate) -> bool:
    result = await db.execute(
        select(Fee.id).where(
            Fee.student_id == payload.student_id,
            Fee.fee_type == payload.fee_type.value,
            Fee.month == payload.month.value,
            Fee.academic_year == payload.academic_year,
        )
    )
    return result.first() is not None


async def create_fee(
    db: AsyncSession,
    payload: FeeCreate,
    actor_id: Optional[int],
) -> FeeResponse:
    """Record a new charge as Unpaid. Recurring fees may exist only once per student, type, month and year."""
    student = await db.get(Student, payload.student_id)
    if not student:
        raise NotFoundError(STUDENT_NOT_FOUND)

    duplicate_message = (
        f"Fee record already exists for {payload.fee_type.value} in "
        f"{payload.month.value if payload.month else ''} {payload.academic_year}"
    )
    checks_period = payload.fee_type != FeeType.ADMISSION and payload.month and payload.academic_year
    if checks_period and await _has_fee_for_period(db, payload):
        logger.info("Rejected duplicate fee for student id=%s: %s", payload.student_id, duplicate_message)
        raise ConflictError(duplicate_message)

    fee = Fee(
        **column_values(payload.model_dump()),
        payment_status=PaymentStatus.UNPAID.value,
        created_by=actor_id,
    )
    db.add(fee)
    try:
        await db.commit()
    except IntegrityError as e:
        # Unique period index caught a concurrent insert
        await db.rollback()
        raise ConflictError(duplicate_message) from e
    logger.info("Created fee id=%s for student id=%s by user id=%s", fee.id, fee.student_id, actor_id)
    return await get_fee(db, fee.id)


async def update_fee(
    db: AsyncSession,
    fee_id: int,
    payload: FeeUpdate,
    today: Optional[date] = None,
) -> FeeResponse:
    fee = await _get_fee_row(db, fee_id)
    changes = column_values(payload.model_dump(exclude_unset=True, include=set(MUTABLE_FEE_FIELDS)))
    for field, value in changes.items():
        if value is None and field in _SKIP_WHEN_NULL:
            continue
        setattr(fee, field, value)

    if fee.payment_status == PaymentStatus.PAID.value and fee.paid_date is None:
        fee.paid_date = today or date.today()

    await db.commit()
    return await get_fee(db, fee_id)


async def delete_fee(db: AsyncSession, fee_id: int) -> None:
    fee = await _get_fee_row(db, fee_id)
    await db.delete(fee)
    await db.commit()
    logger.info("Deleted fee id=%s", fee_id)


async def _sum_amount(db: AsyncSession, *criteria) -> Decimal:
    stmt = select(func.sum(Fee.amount))
    if criteria:
        stmt = stmt.where(*criteria)
    return to_money((await db.execute(stmt)).scalar())


async def get_fee_statistics(db: AsyncSession, today: Optional[date] = None) -> FeeStatistics:
    today = today or date.today()
    year = str(today.year)
    current_month = Month.from_number(today.month).value
    paid_this_year = (Fee.academic_year == year, Fee.payment_status == PaymentStatus.PAID.value)

    total_fees = await _sum_amount(db)
    current_month_fees = await _sum_amount(db, Fee.month == current_month, *paid_this_year)
    pending_fees = await _sum_amount(db, Fee.payment_status != PaymentStatus.PAID.value)

    monthly_rows = (
        await db.execute(
            select(Fee.month, func.sum(Fee.amount)).where(*paid_this_year).group_by(Fee.month)
        )
    ).all()
    # Calendar order; fees without a month (exam, admission) last
    monthly_rows = sorted(monthly_rows, key=lambda r: _MONTH_ORDER.get(r[0], len(_MONTH_ORDER)))

    type_rows = (
        await db.execute(
            select(Fee.fee_type, func.sum(Fee.amount))
            .where(*paid_this_year)
            .group_by(Fee.fee_type)
            .order_by(Fee.fee_type)
        )
    ).all()

    return FeeStatistics(
        total_fees=total_fees,
        current_month_fees=current_month_fees,
        pending_fees=pending_fees,
        monthly_fees=[MonthlyTotal(month=m, total_amount=to_money(t)) for m, t in monthly_rows],
        fees_by_type=[FeeTypeTotal(fee_type=ft, total_amount=to_money(t)) for ft, t in type_rows],
    )


async def get_student_fee_summary(db: AsyncSession, student_id: int) -> StudentFeeSummary:
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError(STUDENT_NOT_FOUND)

    fees = await list_all_fees(db, student_id=student_id)
    paid = [f for f in fees if f.payment_status == PaymentStatus.PAID.value]
    pending = [f for f in fees if f.payment_status != PaymentStatus.PAID.value]

    return StudentFeeSummary(
        student=SummaryStudent(
            id=student.id,
            name=f"{student.first_name} {student.last_name}",
            class_name=student.class_name,
            section=student.section,
            admission_number=student.admission_number,
        ),
        summary=FeeTotals(
            total_fees=sum_money(f.amount for f in fees),
            total_paid=sum_money(f.amount for f in paid),
            total_pending=sum_money(f.amount for f in pending),
            pending_fees_count=len(pending),
        ),
        pending_fees=[_to_response(f) for f in pending],
    )


# --- Spreadsheet import ---
def _validation_reason(e: PydanticValidationError) -> str:
    parts = []
    for err in e.errors():
        field = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{field}: {err.get('msg')}" if field else err.get("msg", ""))
    return "; ".join(parts)


async def _student_id_by_admission_number(db: AsyncSession, admission_number: Any) -> Optional[int]:
    result = await db.execute(
        select(Student.id).where(Student.admission_number == str(admission_number).strip())
    )
    return result.scalar_one_or_none()


async def import_fees(
    db: AsyncSession,
    content: bytes,
    actor_id: Optional[int],
) -> FeeImportResult:
    """Create one fee per worksheet row. Valid rows are kept even when others fail."""
    try:
        rows = parse_fee_workbook(content)
    except ValueError as e:
        raise ValidationError(str(e))
    if not rows:
        raise ValidationError("Excel file has no data rows")

    created = 0
    failed: List[FeeImportFailure] = []
    for row_num, values in rows:
        admission_number = values.get("admission_number")
        if not admission_number:
            failed.append(FeeImportFailure(row=row_num, reason="admission_number is required"))
            continue
        student_id = await _student_id_by_admission_number(db, admission_number)
        if student_id is None:
            failed.append(FeeImportFailure(row=row_num, reason=f"Student not found: {admission_number}"))
            continue

        data = {k: v for k, v in values.items() if k != "admission_number" and v is not None}
        if isinstance(data.get("month"), str):
            data["month"] = data["month"].capitalize()
        try:
            payload = FeeCreate(student_id=student_id, **data)
        except PydanticValidationError as e:
            failed.append(FeeImportFailure(row=row_num, reason=_validation_reason(e)))
            continue

        try:
            await create_fee(db, payload, actor_id)
        except ServiceError as e:
            failed.append(FeeImportFailure(row=row_num, reason=e.message))
            continue
        created += 1

    logger.info("Fee import by user id=%s: %s created, %s failed", actor_id, created, len(failed))
    return FeeImportResult(created=created, failed=failed)
