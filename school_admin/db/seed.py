"""
Seed script: bootstrap admin and, optionally, demo data.

Run once tables exist (the API creates them on startup):
  ADMIN_EMAIL=admin@yourschool.edu ADMIN_PASSWORD=YourSecurePassword python -m school_admin.db.seed
  python -m school_admin.db.seed --demo

Creates:
- users: one admin (updated in place if the email already exists)
- with --demo: one head teacher, two teachers and an accountant, 30 students,
  and per student one Admission fee, twelve monthly Tuition fees for the
  current year and one Exam fee
"""
import argparse
import asyncio
import random
from datetime import date
from decimal import Decimal
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.api.v1.students.schemas import StudentCreate
from school_admin.api.v1.students.service import create_student
from school_admin.auth.models import User
from school_admin.auth.security import hash_password
from school_admin.core.config import settings
from school_admin.core.enums import FeeType, Gender, Month, PaymentMethod, PaymentStatus, UserRole
from school_admin.core.models import Fee
from school_admin.db.init_db import create_tables
from school_admin.db.session import AsyncSessionLocal, engine

# Used when ADMIN_EMAIL / ADMIN_PASSWORD are not set
DEFAULT_ADMIN_EMAIL = "admin@school.edu"
DEFAULT_ADMIN_PASSWORD = "admin123"
DEFAULT_ADMIN_FULL_NAME = "System Administrator"

DEMO_PASSWORD = "admin123"
DEMO_STAFF = [
    ("headmaster", "headmaster@school.edu", UserRole.HEAD_TEACHER, "John Headmaster", "0987654321"),
    ("teacher1", "teacher1@school.edu", UserRole.TEACHER, "Sarah Johnson", "1122334455"),
    ("teacher2", "teacher2@school.edu", UserRole.TEACHER, "Michael Brown", "2233445566"),
    ("accountant", "accountant@school.edu", UserRole.ACCOUNTANT, "Lisa Williams", "3344556677"),
]
DEMO_STUDENT_COUNT = 30
CLASSES = ["Nursery", "LKG", "UKG", "1", "2", "3", "4", "5", "6", "7", "8", "9", "10"]
SECTIONS = ["A", "B", "C"]
FIRST_NAMES = ["Emma", "Noah", "Olivia", "Liam", "Ava", "William", "Sophia", "Mason", "Isabella", "James"]
LAST_NAMES = ["Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis", "Rodriguez", "Martinez"]
OCCUPATIONS = ["Business", "Service", "Doctor", "Engineer", "Teacher", "Farmer"]
PAID_METHODS = [PaymentMethod.CASH, PaymentMethod.BANK_TRANSFER, PaymentMethod.CHEQUE, PaymentMethod.ONLINE_PAYMENT]


async def seed_admin(db: AsyncSession) -> User:
    email = (settings.admin_email or DEFAULT_ADMIN_EMAIL).lower()
    password = settings.admin_password or DEFAULT_ADMIN_PASSWORD

    admin = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if not admin:
        admin = User(
            username="admin",
            email=email,
            password_hash=hash_password(password),
            role=UserRole.ADMIN.value,
            full_name=DEFAULT_ADMIN_FULL_NAME,
            is_active=True,
        )
        db.add(admin)
        print("Created admin user:", email)
    else:
        admin.role = UserRole.ADMIN.value
        admin.password_hash = hash_password(password)
        admin.is_active = True
        print("Updated existing user to admin:", email)
    await db.commit()
    return admin


async def seed_staff(db: AsyncSession) -> List[User]:
    staff = []
    for username, email, role, full_name, phone in DEMO_STAFF:
        user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
        if user:
            print("Staff user already exists:", email)
        else:
            user = User(
                username=username,
                email=email,
                password_hash=hash_password(DEMO_PASSWORD),
                role=role.value,
                full_name=full_name,
                phone=phone,
                is_active=True,
            )
            db.add(user)
            print("Created %s user: %s" % (role.value, email))
        staff.append(user)
    await db.commit()
    return staff


def _paid_fields(rng: random.Random, paid_on: date) -> dict:
    return {
        "payment_status": PaymentStatus.PAID.value,
        "paid_date": paid_on,
        "payment_method": rng.choice(PAID_METHODS).value,
        "transaction_id": f"TXN{rng.randint(100000, 999999)}",
    }


async def seed_demo_data(db: AsyncSession, creator_ids: List[int], rng: random.Random) -> None:
    today = date.today()
    year = today.year

    for _ in range(DEMO_STUDENT_COUNT):
        first_name = rng.choice(FIRST_NAMES)
        last_name = rng.choice(LAST_NAMES)
        student = await create_student(
            db,
            StudentCreate(
                first_name=first_name,
                last_name=last_name,
                date_of_birth=date(rng.randint(2010, 2019), rng.randint(1, 12), rng.randint(1, 28)),
                gender=rng.choice([Gender.MALE, Gender.FEMALE]),
                address=f"{rng.randint(1, 100)} Main St, City",
                city="Sample City",
                state="Sample State",
                country="India",
                postal_code="123456",
                phone=f"9{rng.randint(100000000, 999999999)}",
                email=f"{first_name.lower()}.{last_name.lower()}@mail.school.edu",
                admission_date=date(rng.randint(year - 4, year - 1), rng.randint(1, 12), rng.randint(1, 28)),
                class_name=rng.choice(CLASSES),
                section=rng.choice(SECTIONS),
                roll_number=rng.randint(1, 50),
                parent_name=f"Mr. & Mrs. {last_name}",
                parent_phone=f"8{rng.randint(100000000, 999999999)}",
                parent_email=f"parent.{last_name.lower()}@mail.school.edu",
                parent_occupation=rng.choice(OCCUPATIONS),
                is_active=rng.random() > 0.1,
            ),
        )

        # One-time admission fee, paid on the admission date
        db.add(Fee(
            student_id=student.id,
            amount=Decimal(rng.randint(5000, 9999)),
            fee_type=FeeType.ADMISSION.value,
            due_date=student.admission_date,
            discount=Decimal(rng.randint(0, 999)) if rng.random() > 0.8 else Decimal("0"),
            description="One-time admission fee",
            academic_year=str(year),
            created_by=rng.choice(creator_ids),
            **_paid_fields(rng, student.admission_date),
        ))

        for number in range(1, 13):
            month = Month.from_number(number)
            due = date(year, number, 10)
            fields = {}
            if rng.random() > 0.3:
                fields = _paid_fields(rng, date(year, number, rng.randint(1, 15)))
            else:
                fields["payment_status"] = (PaymentStatus.OVERDUE if due < today else PaymentStatus.UNPAID).value
                if due < today:
                    fields["fine"] = Decimal(rng.randint(0, 199))
            db.add(Fee(
                student_id=student.id,
                amount=Decimal(rng.randint(1000, 2999)),
                fee_type=FeeType.TUITION.value,
                due_date=due,
                discount=Decimal(rng.randint(0, 499)) if rng.random() > 0.9 else Decimal("0"),
                description=f"Tuition fee for {month.value} {year}",
                month=month.value,
                academic_year=str(year),
                created_by=rng.choice(creator_ids),
                **fields,
            ))

        db.add(Fee(
            student_id=student.id,
            amount=Decimal(rng.randint(500, 1499)),
            fee_type=FeeType.EXAM.value,
            due_date=date(year, 3, 1),
            description="First term examination fee",
            academic_year=str(year),
            created_by=rng.choice(creator_ids),
            **_paid_fields(rng, date(year, 3, rng.randint(1, 15))),
        ))
        await db.commit()
    print("Created %s demo students with fees." % DEMO_STUDENT_COUNT)


async def main(demo: bool = False, seed: int = 42) -> None:
    await create_tables(engine)
    async with AsyncSessionLocal() as db:
        try:
            admin = await seed_admin(db)
            if demo:
                staff = await seed_staff(db)
                accountant = next(u for u in staff if u.role == UserRole.ACCOUNTANT.value)
                await seed_demo_data(db, [admin.id, accountant.id], random.Random(seed))
        except Exception as e:
            await db.rollback()
            print("Error:", e)
            raise
    await engine.dispose()
    print("Seed done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the school admin database")
    parser.add_argument("--demo", action="store_true", help="also create demo staff, students and fees")
    parser.add_argument("--seed", type=int, default=42, help="random seed for demo data")
    args = parser.parse_args()
    asyncio.run(main(demo=args.demo, seed=args.seed))
