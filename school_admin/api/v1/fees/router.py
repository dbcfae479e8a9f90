"""Fees router: ledger CRUD, statistics, per-student summary and spreadsheet export/import."""

from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.rbac import Permission, check_permission
from school_admin.auth.schemas import CurrentUser
from school_admin.core.config import settings
from school_admin.core.enums import FeeType, Month, PaymentStatus
from school_admin.core.exceptions import ServiceError
from school_admin.core.schemas import DataResponse, MessageResponse, PaginatedResponse
from school_admin.db.session import get_db

from .schemas import (
    FeeCreate,
    FeeImportResult,
    FeeResponse,
    FeeStatistics,
    FeeUpdate,
    StudentFeeSummary,
)
from .spreadsheet import XLSX_MEDIA_TYPE, build_fee_workbook
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


@router.get(
    "",
    response_model=PaginatedResponse[FeeResponse],
    dependencies=[Depends(check_permission(Permission.FEE_READ))],
)
async def list_fees(
    student_id: Optional[int] = Query(None, alias="studentId"),
    fee_type: Optional[FeeType] = Query(None, alias="feeType"),
    payment_status: Optional[PaymentStatus] = Query(None, alias="paymentStatus"),
    month: Optional[Month] = Query(None),
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: AsyncSession = Depends(get_db),
) -> PaginatedResponse[FeeResponse]:
    return await service.list_fees(
        db,
        page=page,
        limit=limit,
        student_id=student_id,
        fee_type=fee_type,
        payment_status=payment_status,
        month=month,
        academic_year=academic_year,
    )


@router.post(
    "",
    response_model=DataResponse[FeeResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_fee(
    payload: FeeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(check_permission(Permission.FEE_WRITE)),
) -> DataResponse[FeeResponse]:
    try:
        return DataResponse[FeeResponse](data=await service.create_fee(db, payload, current_user.id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/statistics",
    response_model=DataResponse[FeeStatistics],
    dependencies=[Depends(check_permission(Permission.FEE_READ))],
)
async def fee_statistics(
    db: AsyncSession = Depends(get_db),
) -> DataResponse[FeeStatistics]:
    return DataResponse[FeeStatistics](data=await service.get_fee_statistics(db))


@router.get(
    "/export",
    dependencies=[Depends(check_permission(Permission.FEE_READ))],
)
async def export_fees(
    student_id: Optional[int] = Query(None, alias="studentId"),
    fee_type: Optional[FeeType] = Query(None, alias="feeType"),
    payment_status: Optional[PaymentStatus] = Query(None, alias="paymentStatus"),
    month: Optional[Month] = Query(None),
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Download the filtered fee ledger as an .xlsx workbook."""
    fees = await service.list_all_fees(
        db,
        student_id=student_id,
        fee_type=fee_type,
        payment_status=payment_status,
        month=month,
        academic_year=academic_year,
    )
    return Response(
        content=build_fee_workbook(fees),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=fees.xlsx"},
    )


@router.post("/import", response_model=FeeImportResult)
async def import_fees(
    file: UploadFile = File(
        ...,
        description="Excel with columns: admission_number, fee_type, amount, due_date, academic_year, month, description",
    ),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(check_permission(Permission.FEE_WRITE)),
) -> FeeImportResult:
    """
    Bulk create fees from Excel. Each row goes through the same checks as POST /fees.
    Valid rows are created; failed rows come back with their row number and reason.
    """
    if not file.filename or not file.filename.lower().endswith(".xlsx"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an Excel file (.xlsx)")
    content = await file.read()
    try:
        return await service.import_fees(db, content, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/student/{student_id}/summary",
    response_model=DataResponse[StudentFeeSummary],
    dependencies=[Depends(check_permission(Permission.FEE_READ))],
)
async def student_fee_summary(
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> DataResponse[StudentFeeSummary]:
    try:
        return DataResponse[StudentFeeSummary](data=await service.get_student_fee_summary(db, student_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{fee_id}",
    response_model=DataResponse[FeeResponse],
    dependencies=[Depends(check_permission(Permission.FEE_READ))],
)
async def get_fee(
    fee_id: int,
    db: AsyncSession = Depends(get_db),
) -> DataResponse[FeeResponse]:
    try:
        return DataResponse[FeeResponse](data=await service.get_fee(db, fee_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{fee_id}",
    response_model=DataResponse[FeeResponse],
    dependencies=[Depends(check_permission(Permission.FEE_WRITE))],
)
async def update_fee(
    fee_id: int,
    payload: FeeUpdate,
    db: AsyncSession = Depends(get_db),
) -> DataResponse[FeeResponse]:
    try:
        return DataResponse[FeeResponse](data=await service.update_fee(db, fee_id, payload))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{fee_id}",
    response_model=MessageResponse,
    dependencies=[Depends(check_permission(Permission.FEE_DELETE))],
)
async def delete_fee(
    fee_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_fee(db, fee_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Fee record deleted successfully")
