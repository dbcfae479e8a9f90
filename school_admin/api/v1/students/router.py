"""Students router: registry CRUD and statistics."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.rbac import Permission, check_permission
from school_admin.core.config import settings
from school_admin.core.exceptions import ServiceError
from school_admin.core.schemas import DataResponse, MessageResponse, PaginatedResponse
from school_admin.db.session import get_db

from .schemas import (
    StudentCreate,
    StudentDetail,
    StudentResponse,
    StudentStatistics,
    StudentUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.get(
    "",
    response_model=PaginatedResponse[StudentResponse],
    dependencies=[Depends(check_permission(Permission.STUDENT_READ))],
)
async def list_students(
    class_name: Optional[str] = Query(None, alias="class"),
    section: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Matches first/last name, admission number or parent name"),
    student_status: Optional[str] = Query(None, alias="status", description="active or inactive"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: AsyncSession = Depends(get_db),
) -> PaginatedResponse[StudentResponse]:
    valid, is_active = service.parse_status_filter(student_status)
    if not valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="status must be 'active' or 'inactive'",
        )
    return await service.list_students(
        db,
        page=page,
        limit=limit,
        class_name=class_name,
        section=section,
        search=search,
        is_active=is_active,
    )


@router.post(
    "",
    response_model=DataResponse[StudentResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission(Permission.STUDENT_WRITE))],
)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
) -> DataResponse[StudentResponse]:
    try:
        return DataResponse[StudentResponse](data=await service.create_student(db, payload))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/statistics",
    response_model=DataResponse[StudentStatistics],
    dependencies=[Depends(check_permission(Permission.STUDENT_READ))],
)
async def student_statistics(
    db: AsyncSession = Depends(get_db),
) -> DataResponse[StudentStatistics]:
    return DataResponse[StudentStatistics](data=await service.get_student_statistics(db))


@router.get(
    "/{student_id}",
    response_model=DataResponse[StudentDetail],
    dependencies=[Depends(check_permission(Permission.STUDENT_READ))],
)
async def get_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> DataResponse[StudentDetail]:
    try:
        return DataResponse[StudentDetail](data=await service.get_student(db, student_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put(
    "/{student_id}",
    response_model=DataResponse[StudentResponse],
    dependencies=[Depends(check_permission(Permission.STUDENT_WRITE))],
)
async def update_student(
    student_id: int,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
) -> DataResponse[StudentResponse]:
    try:
        return DataResponse[StudentResponse](data=await service.update_student(db, student_id, payload))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{student_id}",
    response_model=MessageResponse,
    dependencies=[Depends(check_permission(Permission.STUDENT_DELETE))],
)
async def delete_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_student(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Student deleted successfully")
