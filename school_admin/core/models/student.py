"""Student record: one row per admitted student, identified publicly by admission_number."""

from datetime import date, datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from school_admin.db.session import Base


class Student(Base):
    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("admission_number", name="uq_student_admission_number"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    # ADM-<year>-<4 digit sequence>; system generated, see admission_sequence.py
    admission_number = Column(String(30), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String(10), nullable=False)  # Male, Female, Other
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True, default="India")
    postal_code = Column(String(20), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    admission_date = Column(Date, nullable=False, default=date.today)
    class_name = Column("class", String(50), nullable=False)
    section = Column(String(20), nullable=True)
    roll_number = Column(Integer, nullable=True)
    parent_name = Column(String(255), nullable=False)
    parent_phone = Column(String(50), nullable=False)
    parent_email = Column(String(255), nullable=True)
    parent_occupation = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    fees = relationship("Fee", back_populates="student", cascade="all, delete-orphan", passive_deletes=True)
