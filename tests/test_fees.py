import io
from datetime import date
from decimal import Decimal

import pytest
from httpx import AsyncClient
from openpyxl import Workbook, load_workbook
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.api.v1.fees import spreadsheet
from school_admin.api.v1.fees.spreadsheet import EXPORT_HEADERS, XLSX_MEDIA_TYPE
from school_admin.api.v1.fees.service import get_fee_statistics
from school_admin.core.enums import UserRole
from school_admin.core.models import Fee

from conftest import auth_headers


@pytest.fixture()
def make_fee(db_session: AsyncSession):
    async def _make_fee(student_id: int, **fields) -> Fee:
        data = {
            "amount": Decimal("1000.00"),
            "fee_type": "Tuition",
            "due_date": date(2024, 1, 10),
            "academic_year": "2024",
            "month": "January",
            "payment_status": "Unpaid",
        }
        data.update(fields)
        fee = Fee(student_id=student_id, **data)
        db_session.add(fee)
        await db_session.commit()
        return fee

    return _make_fee


def fee_body(student_id: int, **overrides) -> dict:
    body = {
        "studentId": student_id,
        "amount": "1500.00",
        "feeType": "Tuition",
        "dueDate": "2024-01-10",
        "academicYear": "2024",
        "month": "January",
    }
    body.update(overrides)
    return body


def xlsx_upload(rows) -> dict:
    wb = Workbook()
    ws = wb.active
    ws.append(["admission_number", "fee_type", "amount", "due_date", "academic_year", "month", "description"])
    for row in rows:
        ws.append(row)
    bio = io.BytesIO()
    wb.save(bio)
    return {"file": ("fees.xlsx", bio.getvalue(), XLSX_MEDIA_TYPE)}


# --- create ---
@pytest.mark.asyncio
async def test_create_fee(client: AsyncClient, admin_user, admin_headers, make_student) -> None:
    student = await make_student()

    response = await client.post(
        "/api/v1/fees",
        json=fee_body(student.id, discount="100", fine="25.5", paymentStatus="Paid"),
        headers=admin_headers,
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["amount"] == "1500.00"
    assert data["paymentStatus"] == "Unpaid"
    assert data["createdBy"] == admin_user.id
    assert data["netAmount"] == "1425.50"
    assert data["student"]["admissionNumber"] == student.admission_number
    assert data["student"]["class"] == student.class_name


@pytest.mark.asyncio
async def test_create_fee_numeric_academic_year(client: AsyncClient, teacher_headers, make_student) -> None:
    student = await make_student()
    response = await client.post("/api/v1/fees", json=fee_body(student.id, academicYear=2024), headers=teacher_headers)
    assert response.status_code == 201
    assert response.json()["data"]["academicYear"] == "2024"


@pytest.mark.asyncio
async def test_create_fee_for_missing_student(client: AsyncClient, teacher_headers) -> None:
    response = await client.post("/api/v1/fees", json=fee_body(9999), headers=teacher_headers)
    assert response.status_code == 404
    assert response.json()["message"] == "Student not found"


@pytest.mark.asyncio
async def test_create_fee_rejects_negative_amount(client: AsyncClient, teacher_headers, make_student) -> None:
    student = await make_student()
    response = await client.post("/api/v1/fees", json=fee_body(student.id, amount="-1"), headers=teacher_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Validation error"


@pytest.mark.asyncio
async def test_duplicate_recurring_fee_is_rejected(client: AsyncClient, teacher_headers, make_student) -> None:
    student = await make_student()
    first = await client.post("/api/v1/fees", json=fee_body(student.id), headers=teacher_headers)
    second = await client.post("/api/v1/fees", json=fee_body(student.id, amount="900"), headers=teacher_headers)

    assert first.status_code == 201
    assert second.status_code == 400
    assert second.json() == {
        "success": False,
        "message": "Fee record already exists for Tuition in January 2024",
    }

    # different month, type or student is fine
    other_month = await client.post("/api/v1/fees", json=fee_body(student.id, month="February"), headers=teacher_headers)
    other_type = await client.post("/api/v1/fees", json=fee_body(student.id, feeType="Transport"), headers=teacher_headers)
    assert other_month.status_code == 201
    assert other_type.status_code == 201


@pytest.mark.asyncio
async def test_admission_fee_is_exempt_from_duplicate_rule(client: AsyncClient, teacher_headers, make_student) -> None:
    student = await make_student()
    body = fee_body(student.id, feeType="Admission")
    assert (await client.post("/api/v1/fees", json=body, headers=teacher_headers)).status_code == 201
    assert (await client.post("/api/v1/fees", json=body, headers=teacher_headers)).status_code == 201


@pytest.mark.asyncio
async def test_fees_without_month_skip_duplicate_rule(client: AsyncClient, teacher_headers, make_student) -> None:
    student = await make_student()
    body = fee_body(student.id, feeType="Exam")
    body.pop("month")
    assert (await client.post("/api/v1/fees", json=body, headers=teacher_headers)).status_code == 201
    assert (await client.post("/api/v1/fees", json=body, headers=teacher_headers)).status_code == 201


@pytest.mark.asyncio
async def test_parent_cannot_create_fee(client: AsyncClient, make_user, make_student) -> None:
    student = await make_student()
    parent = await make_user(UserRole.PARENT)
    response = await client.post("/api/v1/fees", json=fee_body(student.id), headers=auth_headers(parent))
    assert response.status_code == 403


# --- read ---
@pytest.mark.asyncio
async def test_list_fees_filters_and_order(client: AsyncClient, teacher_headers, make_student, make_fee) -> None:
    emma = await make_student(first_name="Emma")
    liam = await make_student(first_name="Liam")
    await make_fee(emma.id, month="January", due_date=date(2024, 1, 10), payment_status="Paid")
    await make_fee(emma.id, month="February", due_date=date(2024, 2, 10))
    await make_fee(liam.id, month="January", due_date=date(2024, 1, 10))
    await make_fee(liam.id, month="January", academic_year="2023", due_date=date(2023, 1, 10))

    everything = (await client.get("/api/v1/fees", headers=teacher_headers)).json()
    assert everything["count"] == 4
    assert [f["dueDate"] for f in everything["data"]] == ["2024-02-10", "2024-01-10", "2024-01-10", "2023-01-10"]
    assert everything["data"][0]["student"]["firstName"] == "Emma"

    by_student = (await client.get("/api/v1/fees", params={"studentId": emma.id}, headers=teacher_headers)).json()
    assert by_student["count"] == 2

    unpaid_january = (
        await client.get(
            "/api/v1/fees",
            params={"paymentStatus": "Unpaid", "month": "January", "academicYear": "2024"},
            headers=teacher_headers,
        )
    ).json()
    assert [f["studentId"] for f in unpaid_january["data"]] == [liam.id]

    paged = (await client.get("/api/v1/fees", params={"limit": 3, "page": 2}, headers=teacher_headers)).json()
    assert paged["totalPages"] == 2
    assert paged["currentPage"] == 2
    assert len(paged["data"]) == 1


@pytest.mark.asyncio
async def test_list_fees_invalid_enum_filter(client: AsyncClient, teacher_headers) -> None:
    response = await client.get("/api/v1/fees", params={"feeType": "Canteen"}, headers=teacher_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_get_fee(client: AsyncClient, accountant_headers, make_student, make_fee) -> None:
    student = await make_student()
    fee = await make_fee(student.id, discount=Decimal("50"), fine=Decimal("10"))

    response = await client.get(f"/api/v1/fees/{fee.id}", headers=accountant_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["id"] == fee.id
    assert data["netAmount"] == "960.00"
    assert data["student"]["id"] == student.id


@pytest.mark.asyncio
async def test_get_missing_fee(client: AsyncClient, accountant_headers) -> None:
    response = await client.get("/api/v1/fees/12345", headers=accountant_headers)
    assert response.status_code == 404
    assert response.json()["message"] == "Fee record not found"


# --- update ---
@pytest.mark.asyncio
async def test_update_fee_only_touches_payment_fields(client: AsyncClient, teacher_headers, make_student, make_fee) -> None:
    student = await make_student()
    fee = await make_fee(student.id)

    response = await client.put(
        f"/api/v1/fees/{fee.id}",
        json={
            "paymentStatus": "Paid",
            "paymentMethod": "Bank Transfer",
            "transactionId": "TXN123456",
            "amount": "1",
            "feeType": "Exam",
            "month": "March",
            "studentId": 999,
        },
        headers=teacher_headers,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["paymentStatus"] == "Paid"
    assert data["paymentMethod"] == "Bank Transfer"
    assert data["transactionId"] == "TXN123456"
    assert data["paidDate"] == date.today().isoformat()
    assert data["amount"] == "1000.00"
    assert data["feeType"] == "Tuition"
    assert data["month"] == "January"
    assert data["studentId"] == student.id


@pytest.mark.asyncio
async def test_update_fee_keeps_explicit_paid_date(client: AsyncClient, teacher_headers, make_student, make_fee) -> None:
    student = await make_student()
    fee = await make_fee(student.id)

    response = await client.put(
        f"/api/v1/fees/{fee.id}",
        json={"paymentStatus": "Paid", "paidDate": "2024-01-05", "fine": "20"},
        headers=teacher_headers,
    )
    data = response.json()["data"]
    assert data["paidDate"] == "2024-01-05"
    assert data["fine"] == "20.00"
    assert data["netAmount"] == "1020.00"


@pytest.mark.asyncio
async def test_update_missing_fee(client: AsyncClient, teacher_headers) -> None:
    response = await client.put("/api/v1/fees/777", json={"paymentStatus": "Paid"}, headers=teacher_headers)
    assert response.status_code == 404


# --- delete ---
@pytest.mark.asyncio
async def test_delete_fee_permissions(
    client: AsyncClient, teacher_headers, accountant_headers, make_student, make_fee
) -> None:
    student = await make_student()
    fee = await make_fee(student.id)

    forbidden = await client.delete(f"/api/v1/fees/{fee.id}", headers=teacher_headers)
    assert forbidden.status_code == 403

    deleted = await client.delete(f"/api/v1/fees/{fee.id}", headers=accountant_headers)
    assert deleted.status_code == 200
    assert deleted.json() == {"success": True, "message": "Fee record deleted successfully"}

    gone = await client.delete(f"/api/v1/fees/{fee.id}", headers=accountant_headers)
    assert gone.status_code == 404


# --- statistics and summary ---
@pytest.mark.asyncio
async def test_fee_statistics_use_gross_amounts(db_session: AsyncSession, make_student, make_fee) -> None:
    student = await make_student()
    await make_fee(student.id, month="January", amount=Decimal("1000"), discount=Decimal("100"),
                   fine=Decimal("50"), payment_status="Paid")
    await make_fee(student.id, month="March", amount=Decimal("1200"), payment_status="Paid")
    await make_fee(student.id, month="April", amount=Decimal("900"), payment_status="Overdue")
    await make_fee(student.id, fee_type="Exam", month=None, amount=Decimal("500"), payment_status="Paid")
    await make_fee(student.id, month="March", academic_year="2023", amount=Decimal("800"), payment_status="Paid")

    stats = await get_fee_statistics(db_session, today=date(2024, 3, 15))

    assert stats.total_fees == Decimal("4400.00")
    assert stats.current_month_fees == Decimal("1200.00")
    assert stats.pending_fees == Decimal("900.00")
    assert [(m.month.value if m.month else None, m.total_amount) for m in stats.monthly_fees] == [
        ("January", Decimal("1000.00")),
        ("March", Decimal("1200.00")),
        (None, Decimal("500.00")),
    ]
    assert [(t.fee_type.value, t.total_amount) for t in stats.fees_by_type] == [
        ("Exam", Decimal("500.00")),
        ("Tuition", Decimal("2200.00")),
    ]


@pytest.mark.asyncio
async def test_fee_statistics_endpoint_on_empty_ledger(client: AsyncClient, teacher_headers) -> None:
    response = await client.get("/api/v1/fees/statistics", headers=teacher_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["totalFees"] == "0.00"
    assert data["pendingFees"] == "0.00"
    assert data["monthlyFees"] == []
    assert data["feesByType"] == []


@pytest.mark.asyncio
async def test_student_fee_summary(client: AsyncClient, teacher_headers, make_student, make_fee) -> None:
    student = await make_student(first_name="Emma", last_name="Smith")
    other = await make_student(first_name="Liam")
    await make_fee(student.id, month="January", due_date=date(2024, 1, 10), amount=Decimal("1000"), payment_status="Paid")
    await make_fee(student.id, month="February", due_date=date(2024, 2, 10), amount=Decimal("1000.50"))
    await make_fee(student.id, month="March", due_date=date(2024, 3, 10), amount=Decimal("750"), payment_status="Partial")
    await make_fee(other.id, month="January", amount=Decimal("5000"))

    response = await client.get(f"/api/v1/fees/student/{student.id}/summary", headers=teacher_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["student"] == {
        "id": student.id,
        "name": "Emma Smith",
        "class": student.class_name,
        "section": student.section,
        "admissionNumber": student.admission_number,
    }
    summary = data["summary"]
    assert summary["totalFees"] == "2750.50"
    assert summary["totalPaid"] == "1000.00"
    assert summary["totalPending"] == "1750.50"
    assert summary["pendingFeesCount"] == 2
    assert Decimal(summary["totalFees"]) == Decimal(summary["totalPaid"]) + Decimal(summary["totalPending"])
    assert [f["month"] for f in data["pendingFees"]] == ["March", "February"]


@pytest.mark.asyncio
async def test_summary_for_missing_student(client: AsyncClient, teacher_headers) -> None:
    response = await client.get("/api/v1/fees/student/404/summary", headers=teacher_headers)
    assert response.status_code == 404


# --- spreadsheet export / import ---
@pytest.mark.asyncio
async def test_export_fees(client: AsyncClient, accountant_headers, make_student, make_fee) -> None:
    student = await make_student(first_name="Emma", last_name="Smith")
    await make_fee(student.id, month="January", payment_status="Paid")
    await make_fee(student.id, month="February", due_date=date(2024, 2, 10))

    response = await client.get("/api/v1/fees/export", params={"paymentStatus": "Paid"}, headers=accountant_headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX_MEDIA_TYPE

    wb = load_workbook(io.BytesIO(response.content))
    rows = list(wb["Fees"].iter_rows(values_only=True))
    assert list(rows[0]) == EXPORT_HEADERS
    assert len(rows) == 2
    exported = dict(zip(EXPORT_HEADERS, rows[1]))
    assert exported["Admission Number"] == student.admission_number
    assert exported["Student Name"] == "Emma Smith"
    assert exported["Payment Status"] == "Paid"
    assert exported["Month"] == "January"


@pytest.mark.asyncio
async def test_import_fees(client: AsyncClient, db_session: AsyncSession, admin_user, admin_headers, make_student, make_fee) -> None:
    student = await make_student()
    await make_fee(student.id, month="January", academic_year="2024")

    files = xlsx_upload([
        (student.admission_number, "Tuition", 1500, date(2024, 2, 10), 2024, "february", "Tuition February"),
        ("ADM-1999-0001", "Tuition", 1500, date(2024, 2, 10), 2024, "February", None),
        (student.admission_number, "Tuition", 1000, date(2024, 1, 10), "2024", "January", None),
        ("   ", None, None, None, None, None, None),
        (student.admission_number, "Exam", -5, date(2024, 3, 1), "2024", None, None),
        (student.admission_number, None, 300, "2024-04-10", "2024", "April", None),
    ])
    response = await client.post("/api/v1/fees/import", files=files, headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["created"] == 2
    failed = {f["row"]: f["reason"] for f in body["failed"]}
    assert set(failed) == {3, 4, 6}
    assert failed[3] == "Student not found: ADM-1999-0001"
    assert failed[4] == "Fee record already exists for Tuition in January 2024"
    assert failed[6].startswith("amount")

    listed = (await client.get("/api/v1/fees", params={"studentId": student.id}, headers=admin_headers)).json()
    assert listed["count"] == 3
    imported = {f["month"]: f for f in listed["data"]}
    assert imported["February"]["amount"] == "1500.00"
    assert imported["February"]["paymentStatus"] == "Unpaid"
    assert imported["February"]["createdBy"] == admin_user.id
    assert imported["April"]["feeType"] == "Tuition"


@pytest.mark.asyncio
async def test_import_without_data_rows(client: AsyncClient, admin_headers) -> None:
    response = await client.post("/api/v1/fees/import", files=xlsx_upload([]), headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Excel file has no data rows"


@pytest.mark.asyncio
async def test_import_rejects_non_excel(client: AsyncClient, admin_headers) -> None:
    files = {"file": ("fees.csv", b"admission_number,amount\n", "text/csv")}
    response = await client.post("/api/v1/fees/import", files=files, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_import_missing_required_column(client: AsyncClient, admin_headers) -> None:
    wb = Workbook()
    wb.active.append(["admission_number", "fee_type"])
    wb.active.append(["ADM-2024-0001", "Tuition"])
    bio = io.BytesIO()
    wb.save(bio)
    files = {"file": ("fees.xlsx", bio.getvalue(), XLSX_MEDIA_TYPE)}

    response = await client.post("/api/v1/fees/import", files=files, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"].startswith("Missing required column: amount")


@pytest.mark.asyncio
async def test_student_role_cannot_import(client: AsyncClient, make_user) -> None:
    student_user = await make_user(UserRole.STUDENT)
    response = await client.post("/api/v1/fees/import", files=xlsx_upload([]), headers=auth_headers(student_user))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_import_over_row_limit_is_rejected(
    client: AsyncClient, admin_headers, make_student, monkeypatch
) -> None:
    monkeypatch.setattr(spreadsheet, "IMPORT_MAX_ROWS", 2)
    student = await make_student()
    rows = [
        (student.admission_number, "Tuition", 1000, date(2024, m, 10), "2024", month, None)
        for m, month in ((1, "January"), (2, "February"), (3, "March"))
    ]

    response = await client.post("/api/v1/fees/import", files=xlsx_upload(rows), headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Maximum 2 data rows allowed"

    listed = (await client.get("/api/v1/fees", headers=admin_headers)).json()
    assert listed["count"] == 0
