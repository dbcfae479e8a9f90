"""Student registry schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import EmailStr, Field, model_validator

from school_admin.core.enums import FeeType, Gender, PaymentStatus
from school_admin.core.schemas import CamelModel

# Columns that may never be blank, on create or update
REQUIRED_STUDENT_FIELDS = (
    "first_name",
    "last_name",
    "date_of_birth",
    "gender",
    "admission_date",
    "class_name",
    "parent_name",
    "parent_phone",
)


class StudentBase(CamelModel):
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    section: Optional[str] = Field(None, max_length=20)
    roll_number: Optional[int] = Field(None, ge=0)
    parent_email: Optional[EmailStr] = None
    parent_occupation: Optional[str] = Field(None, max_length=100)


class StudentCreate(StudentBase):
    """Do NOT send admission_number; it is generated in the backend."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: date
    gender: Gender
    admission_date: Optional[date] = None  # defaults to today
    class_name: str = Field(..., alias="class", min_length=1, max_length=50)
    parent_name: str = Field(..., min_length=1, max_length=255)
    parent_phone: str = Field(..., min_length=1, max_length=50)
    is_active: bool = True


class StudentUpdate(StudentBase):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    admission_date: Optional[date] = None
    class_name: Optional[str] = Field(None, alias="class", min_length=1, max_length=50)
    parent_name: Optional[str] = Field(None, min_length=1, max_length=255)
    parent_phone: Optional[str] = Field(None, min_length=1, max_length=50)
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def reject_null_required(self) -> "StudentUpdate":
        cleared = [
            name for name in REQUIRED_STUDENT_FIELDS + ("is_active",)
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class StudentResponse(StudentBase):
    id: int
    admission_number: str
    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    admission_date: date
    class_name: str = Field(..., alias="class")
    parent_name: str
    parent_phone: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class StudentFeeItem(CamelModel):
    """Fee columns shown on the student detail page."""

    id: int
    amount: Decimal
    fee_type: FeeType
    due_date: date
    paid_date: Optional[date] = None
    payment_status: PaymentStatus


class StudentDetail(StudentResponse):
    fees: List[StudentFeeItem] = Field(default_factory=list)


class ClassCount(CamelModel):
    class_name: str = Field(..., alias="class")
    count: int


class GenderCount(CamelModel):
    gender: Gender
    count: int


class StudentStatistics(CamelModel):
    total_students: int
    active_students: int
    inactive_students: int
    by_class: List[ClassCount]
    by_gender: List[GenderCount]
