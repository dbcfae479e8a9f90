from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    HEAD_TEACHER = "head_teacher"
    TEACHER = "teacher"
    ACCOUNTANT = "accountant"
    STUDENT = "student"
    PARENT = "parent"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class FeeType(str, Enum):
    TUITION = "Tuition"
    ADMISSION = "Admission"
    EXAM = "Exam"
    TRANSPORT = "Transport"
    LIBRARY = "Library"
    OTHER = "Other"


class PaymentStatus(str, Enum):
    PAID = "Paid"
    UNPAID = "Unpaid"
    PARTIAL = "Partial"
    OVERDUE = "Overdue"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    CHEQUE = "Cheque"
    BANK_TRANSFER = "Bank Transfer"
    ONLINE_PAYMENT = "Online Payment"
    OTHER = "Other"


class Month(str, Enum):
    JANUARY = "January"
    FEBRUARY = "February"
    MARCH = "March"
    APRIL = "April"
    MAY = "May"
    JUNE = "June"
    JULY = "July"
    AUGUST = "August"
    SEPTEMBER = "September"
    OCTOBER = "October"
    NOVEMBER = "November"
    DECEMBER = "December"

    @classmethod
    def from_number(cls, month_number: int) -> "Month":
        """1-based calendar month to its name (1 -> January)."""
        return list(cls)[month_number - 1]
