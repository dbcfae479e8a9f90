"""Fee record: one charge against a student for a fee type and (optionally) a billing month."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import relationship

from school_admin.core.enums import FeeType, PaymentStatus
from school_admin.db.session import Base


class Fee(Base):
    """
    Ledger row. amount, fee_type, due_date, academic_year and month are fixed after creation;
    only payment details, discount, fine and description change.
    """

    __tablename__ = "fees"
    __table_args__ = (
        # A recurring fee is billed once per student per period; admission fees are exempt
        Index(
            "uq_fee_student_type_period",
            "student_id",
            "fee_type",
            "month",
            "academic_year",
            unique=True,
            postgresql_where=text("fee_type <> 'Admission'"),
            sqlite_where=text("fee_type <> 'Admission'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    fee_type = Column(String(20), nullable=False, default=FeeType.TUITION.value)
    due_date = Column(Date, nullable=False)
    paid_date = Column(Date, nullable=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.UNPAID.value)
    payment_method = Column(String(30), nullable=True)  # Cash, Cheque, Bank Transfer, Online Payment, Other
    transaction_id = Column(String(100), nullable=True)
    discount = Column(Numeric(10, 2), nullable=False, default=0)
    fine = Column(Numeric(10, 2), nullable=False, default=0)
    description = Column(Text, nullable=True)
    academic_year = Column(String(20), nullable=False)
    month = Column(String(20), nullable=True)  # January..December, recurring tuition only
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student", back_populates="fees")
    creator = relationship("User", back_populates="fee_records", foreign_keys=[created_by])
