"""Per-year admission number counter. Row is locked and bumped in the student-insert transaction."""

from sqlalchemy import Column, Integer

from school_admin.db.session import Base


class AdmissionSequence(Base):
    __tablename__ = "admission_sequences"

    year = Column(Integer, primary_key=True, autoincrement=False)
    last_value = Column(Integer, nullable=False, default=0)
