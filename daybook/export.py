"""
Day Book Export Module

Renders day book entries as an xlsx workbook.
"""

from io import BytesIO
from typing import Iterable, List

import openpyxl

from .day_book import DayBookEntry


EXPORT_COLUMNS = [
    ("id", "ID"),
    ("created_at", "Date"),
    ("tenant", "Tenant"),
    ("payment_type", "Payment Type"),
    ("payment_type_specific", "Category"),
    ("pay_status", "Status"),
    ("mode_of_pay", "Mode of Payment"),
    ("amount", "Amount"),
    ("nurse_id", "Nurse ID"),
    ("client_id", "Client ID"),
    ("nurse_sal", "Salary Payment ID"),
    ("description", "Description"),
    ("payment_description", "Payment Description"),
    ("receipt", "Receipt"),
]


def _row(entry: DayBookEntry) -> List:
    data = entry.to_dict()
    row = []
    for key, _ in EXPORT_COLUMNS:
        if key == "amount":
            row.append(float(entry.amount))
        elif key == "created_at":
            # Excel cannot store timezone-aware datetimes
            row.append(entry.created_at.replace(tzinfo=None))
        else:
            row.append(data.get(key))
    return row


def build_day_book_workbook(entries: Iterable[DayBookEntry], title: str = "Day Book") -> bytes:
    """
    Build an xlsx workbook with a header row and one row per entry

    Returns:
        Workbook file content
    """
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = title

    sheet.append([header for _, header in EXPORT_COLUMNS])
    for entry in entries:
        sheet.append(_row(entry))
        for cell in sheet[sheet.max_row]:
            # Free text starting with "=" must stay text, never a formula
            if isinstance(cell.value, str):
                cell.data_type = "s"

    output = BytesIO()
    workbook.save(output)
    return output.getvalue()
