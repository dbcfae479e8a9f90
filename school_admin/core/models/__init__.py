from school_admin.core.models.admission_sequence import AdmissionSequence
from school_admin.core.models.fee import Fee
from school_admin.core.models.student import Student

__all__ = [
    "AdmissionSequence",
    "Fee",
    "Student",
]
