"""
Tests for the day book spreadsheet export
"""

from io import BytesIO

import openpyxl

from daybook.day_book import DayBookService
from daybook.export import EXPORT_COLUMNS, build_day_book_workbook
from daybook.file_store import InMemoryFileStore
from daybook.storage import InMemoryStorage


class TestDayBookWorkbook:

    def setup_method(self):
        self.service = DayBookService(InMemoryStorage(), InMemoryFileStore())

    def load(self, content):
        return openpyxl.load_workbook(BytesIO(content)).active

    def test_header_and_rows(self):
        self.service.create({
            "amount": "1500.75", "payment_type": "outgoing", "pay_status": "paid",
            "tenant": "Dearcare", "nurse_id": "N-1", "description": "Salary"
        })
        self.service.create({
            "amount": "200", "payment_type": "incoming", "pay_status": "un_paid",
            "tenant": "Dearcare", "client_id": "C-1"
        })

        sheet = self.load(build_day_book_workbook(self.service.get_all()))
        rows = list(sheet.iter_rows(values_only=True))

        assert list(rows[0]) == [header for _, header in EXPORT_COLUMNS]
        assert len(rows) == 3

        amount_column = [key for key, _ in EXPORT_COLUMNS].index("amount")
        assert rows[1][amount_column] == 200
        assert rows[2][amount_column] == 1500.75
        assert isinstance(rows[2][amount_column], float)

    def test_empty_export_has_header_only(self):
        sheet = self.load(build_day_book_workbook([]))
        assert sheet.max_row == 1
        assert sheet.title == "Day Book"

    def test_formula_like_text_stays_text(self):
        self.service.create({
            "amount": "10", "payment_type": "outgoing", "pay_status": "paid",
            "tenant": "Dearcare", "nurse_id": "=1+1",
            "description": '=HYPERLINK("http://example.com","x")'
        })

        sheet = self.load(build_day_book_workbook(self.service.get_all()))
        keys = [key for key, _ in EXPORT_COLUMNS]
        description = sheet.cell(row=2, column=keys.index("description") + 1)
        nurse_id = sheet.cell(row=2, column=keys.index("nurse_id") + 1)

        assert description.data_type == "s"
        assert description.value == '=HYPERLINK("http://example.com","x")'
        assert nurse_id.data_type == "s"
        assert nurse_id.value == "=1+1"
