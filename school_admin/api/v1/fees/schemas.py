"""Fees schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, computed_field, field_validator

from school_admin.core.enums import FeeType, Month, PaymentMethod, PaymentStatus
from school_admin.core.money import to_money
from school_admin.core.schemas import CamelModel

# Columns FeeUpdate may touch; everything else is fixed once the fee is recorded
MUTABLE_FEE_FIELDS = (
    "payment_status",
    "paid_date",
    "payment_method",
    "transaction_id",
    "discount",
    "fine",
    "description",
)


class FeeCreate(CamelModel):
    student_id: int
    amount: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    fee_type: FeeType = FeeType.TUITION
    due_date: date
    academic_year: str = Field(..., min_length=1, max_length=20)
    month: Optional[Month] = None
    discount: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    fine: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None

    @field_validator("academic_year", mode="before")
    @classmethod
    def academic_year_as_text(cls, v):
        # Clients send 2024 as often as "2024"
        return str(v).strip() if v is not None else v


class FeeUpdate(CamelModel):
    """Payment details only. Unknown keys (studentId, amount, feeType, ...) are dropped by pydantic."""

    payment_status: Optional[PaymentStatus] = None
    paid_date: Optional[date] = None
    payment_method: Optional[PaymentMethod] = None
    transaction_id: Optional[str] = Field(None, max_length=100)
    discount: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    fine: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None


class FeeStudentSummary(CamelModel):
    id: int
    admission_number: str
    first_name: str
    last_name: str
    class_name: str = Field(..., alias="class")
    section: Optional[str] = None


class FeeResponse(CamelModel):
    id: int
    student_id: int
    amount: Decimal
    fee_type: FeeType
    due_date: date
    paid_date: Optional[date] = None
    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod] = None
    transaction_id: Optional[str] = None
    discount: Decimal
    fine: Decimal
    description: Optional[str] = None
    academic_year: str
    month: Optional[Month] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    student: Optional[FeeStudentSummary] = None

    @computed_field(alias="netAmount")
    @property
    def net_amount(self) -> Decimal:
        """What the family owes on this row: amount less discount plus fine."""
        return to_money(self.amount) - to_money(self.discount) + to_money(self.fine)


# --- Statistics ---
class MonthlyTotal(CamelModel):
    month: Optional[Month] = None
    total_amount: Decimal


class FeeTypeTotal(CamelModel):
    fee_type: FeeType
    total_amount: Decimal


class FeeStatistics(CamelModel):
    """All totals are gross (sum of amount); discount and fine are not netted."""

    total_fees: Decimal
    current_month_fees: Decimal
    pending_fees: Decimal
    monthly_fees: List[MonthlyTotal]
    fees_by_type: List[FeeTypeTotal]


# --- Per-student summary ---
class SummaryStudent(CamelModel):
    id: int
    name: str
    class_name: str = Field(..., alias="class")
    section: Optional[str] = None
    admission_number: str


class FeeTotals(CamelModel):
    total_fees: Decimal
    total_paid: Decimal
    total_pending: Decimal
    pending_fees_count: int


class StudentFeeSummary(CamelModel):
    student: SummaryStudent
    summary: FeeTotals
    pending_fees: List[FeeResponse]


# --- Spreadsheet import ---
class FeeImportFailure(CamelModel):
    row: int = Field(..., description="1-based worksheet row number")
    reason: str


class FeeImportResult(CamelModel):
    success: bool = True
    created: int
    failed: List[FeeImportFailure] = Field(default_factory=list)
