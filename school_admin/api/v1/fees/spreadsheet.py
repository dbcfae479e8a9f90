"""Fee ledger .xlsx export and import parsing (openpyxl)."""

import io
from datetime import datetime
from typing import Any, Dict, Iterable, List, Tuple

from openpyxl import Workbook, load_workbook

from school_admin.core.models import Fee

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

EXPORT_HEADERS = [
    "ID",
    "Admission Number",
    "Student Name",
    "Class",
    "Section",
    "Fee Type",
    "Amount",
    "Discount",
    "Fine",
    "Net Amount",
    "Due Date",
    "Paid Date",
    "Payment Status",
    "Payment Method",
    "Transaction ID",
    "Academic Year",
    "Month",
    "Description",
]

IMPORT_HEADERS = (
    "admission_number",
    "fee_type",
    "amount",
    "due_date",
    "academic_year",
    "month",
    "description",
)
IMPORT_REQUIRED = ("admission_number", "amount", "due_date", "academic_year")
IMPORT_MAX_ROWS = 5000


def build_fee_workbook(fees: Iterable[Fee]) -> bytes:
    """One "Fees" sheet: header row, then one row per fee. Fees must have student loaded."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Fees"
    ws.append(EXPORT_HEADERS)
    for fee in fees:
        student = fee.student
        ws.append([
            fee.id,
            student.admission_number if student else None,
            f"{student.first_name} {student.last_name}" if student else None,
            student.class_name if student else None,
            student.section if student else None,
            fee.fee_type,
            fee.amount,
            fee.discount,
            fee.fine,
            fee.amount - fee.discount + fee.fine,
            fee.due_date,
            fee.paid_date,
            fee.payment_status,
            fee.payment_method,
            fee.transaction_id,
            fee.academic_year,
            fee.month,
            fee.description,
        ])
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


def _norm(s: Any) -> str:
    return (str(s).strip().lower() if s is not None else "").replace(" ", "_")


def _cell(row: tuple, col: int) -> Any:
    if col >= len(row):
        return None
    v = row[col]
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


def parse_fee_workbook(content: bytes) -> List[Tuple[int, Dict[str, Any]]]:
    """
    Read the active sheet into (row_number, values) pairs keyed by import header.
    Blank rows are skipped. Raises ValueError for unreadable files or missing columns.
    """
    if not content:
        raise ValueError("File is empty")
    try:
        wb = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ValueError(f"Invalid Excel file: {e}") from e
    try:
        ws = wb.active
        if ws is None:
            raise ValueError("Excel file has no active sheet")
        rows_iter = ws.iter_rows(values_only=True)
        header_row = next(rows_iter, None)
        if not header_row:
            raise ValueError("Excel file has no header row")

        header_norm = [_norm(c) for c in header_row]
        col_idx = {}
        for h in IMPORT_HEADERS:
            if h in header_norm:
                col_idx[h] = header_norm.index(h)
            elif h in IMPORT_REQUIRED:
                raise ValueError(f"Missing required column: {h}. Found: {header_norm}")

        rows: List[Tuple[int, Dict[str, Any]]] = []
        for row_num, row in enumerate(rows_iter, start=2):
            if row_num - 1 > IMPORT_MAX_ROWS:
                raise ValueError(f"Maximum {IMPORT_MAX_ROWS} data rows allowed")
            if not row or all(c is None or (isinstance(c, str) and not c.strip()) for c in row):
                continue
            values = {h: _cell(row, i) for h, i in col_idx.items()}
            rows.append((row_num, values))
        return rows
    finally:
        wb.close()
