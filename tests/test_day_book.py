"""
Test suite for the day book ledger

Covers validation, counterparty normalization, tenant isolation, receipt
upload ordering, aggregates and salary payment propagation.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from daybook.day_book import (
    DayBookService, ModeOfPay, PayStatus, PayType, PaymentTypeSpecific
)
from daybook.errors import (
    DaybookError, ForbiddenError, NotFoundError, UploadError, ValidationError
)
from daybook.file_store import InMemoryFileStore, Receipt
from daybook.salary import SalaryPaymentClient, StorageSalaryPaymentClient
from daybook.storage import InMemoryStorage


class RecordingSalaryClient(SalaryPaymentClient):
    """Salary collaborator that records calls and can be made to fail"""

    def __init__(self, failures=0):
        self.calls = []
        self.failures = failures

    def mark_paid(self, salary_id, receipt=None):
        self.calls.append((salary_id, receipt))
        if self.failures:
            self.failures -= 1
            raise DaybookError("salary service unavailable")
        return {"id": salary_id, "payment_status": "paid"}


class FailingFileStore(InMemoryFileStore):

    def upload(self, content, filename, content_type=None):
        raise UploadError("Failed to upload receipt: bucket unavailable")


def entry_data(**overrides):
    data = {
        "amount": "1500.00",
        "payment_type": "outgoing",
        "pay_status": "un_paid",
        "tenant": "Dearcare",
        "mode_of_pay": "upi",
        "description": "March salary",
        "nurse_id": "N-1",
    }
    data.update(overrides)
    return data


class TestDayBookCreate:

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.file_store = InMemoryFileStore()
        self.salary = RecordingSalaryClient()
        self.service = DayBookService(self.storage, self.file_store, self.salary)

    def test_create_entry(self):
        entry = self.service.create(entry_data())

        assert entry.id == 1
        assert entry.amount == Decimal("1500.00")
        assert entry.payment_type == PayType.OUTGOING
        assert entry.pay_status == PayStatus.UNPAID
        assert entry.mode_of_pay == ModeOfPay.UPI
        assert entry.nurse_id == "N-1"
        assert entry.created_at is not None

    def test_round_trip_through_storage(self):
        data = entry_data(
            nurse_sal=7,
            payment_type_specific="nurse_salary_paid",
            payment_description="Paid in full",
        )
        created = self.service.create(data)
        loaded = self.service.get_by_id(created.id)

        assert loaded == created
        assert loaded.nurse_sal == 7
        assert loaded.payment_type_specific == PaymentTypeSpecific.NURSE_SALARY_PAID

    def test_text_fields_stored_as_given(self):
        created = self.service.create(entry_data(
            payment_type="incoming", client_id="  C-1 ", description="  rent for March  "
        ))
        loaded = self.service.get_by_id(created.id)

        assert loaded.description == "  rent for March  "
        assert loaded.client_id == "  C-1 "

    def test_blank_text_is_not_supplied(self):
        entry = self.service.create(entry_data(description="   "))
        assert entry.description is None

    def test_ids_auto_increment(self):
        first = self.service.create(entry_data())
        second = self.service.create(entry_data())
        assert second.id == first.id + 1

    def test_incoming_drops_nurse_fields(self):
        entry = self.service.create(entry_data(
            payment_type="incoming", nurse_id="N-1", client_id="C-9", nurse_sal=3
        ))

        assert entry.nurse_id is None
        assert entry.nurse_sal is None
        assert entry.client_id == "C-9"

    def test_incoming_without_client_keeps_both_absent(self):
        entry = self.service.create(entry_data(payment_type="incoming"))
        assert entry.nurse_id is None
        assert entry.client_id is None

    def test_outgoing_drops_client_id(self):
        entry = self.service.create(entry_data(client_id="C-9"))
        assert entry.client_id is None
        assert entry.nurse_id == "N-1"

    @pytest.mark.parametrize("amount", [None, "", "abc", "NaN", "Infinity", "-5", "0", True])
    def test_invalid_amount(self, amount):
        with pytest.raises(ValidationError):
            self.service.create(entry_data(amount=amount))

    @pytest.mark.parametrize("field,value", [
        ("tenant", "Acme"),
        ("tenant", None),
        ("payment_type", "sideways"),
        ("pay_status", "maybe"),
        ("mode_of_pay", "cheque"),
        ("nurse_sal", "seven"),
    ])
    def test_invalid_fields(self, field, value):
        with pytest.raises(ValidationError):
            self.service.create(entry_data(**{field: value}))

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValidationError, match="Unknown fields: balance"):
            self.service.create(entry_data(balance=10))

    def test_scoped_caller_defaults_to_own_tenant(self):
        data = entry_data()
        del data["tenant"]
        entry = self.service.create(data, tenant="TATANursing")
        assert entry.tenant.value == "TATANursing"

    def test_scoped_caller_cannot_create_for_other_tenant(self):
        with pytest.raises(ForbiddenError):
            self.service.create(entry_data(tenant="TATANursing"), tenant="Dearcare")
        assert self.storage.count("day_book") == 0

    def test_receipt_uploaded_and_linked(self):
        receipt = Receipt(content=b"%PDF-1.4", filename="bill.pdf", content_type="application/pdf")
        entry = self.service.create(entry_data(), receipt=receipt)

        assert entry.receipt in self.file_store.files
        assert self.file_store.files[entry.receipt] == (b"%PDF-1.4", "application/pdf")

    def test_upload_failure_writes_nothing(self):
        service = DayBookService(self.storage, FailingFileStore(), self.salary)

        with pytest.raises(UploadError):
            service.create(entry_data(), receipt=Receipt(content=b"data"))
        assert self.storage.count("day_book") == 0

    def test_empty_receipt_rejected(self):
        with pytest.raises(UploadError):
            self.service.create(entry_data(), receipt=Receipt(content=b""))
        assert self.storage.count("day_book") == 0


class TestDayBookUpdateDelete:

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.file_store = InMemoryFileStore()
        self.salary = RecordingSalaryClient()
        self.service = DayBookService(self.storage, self.file_store, self.salary)
        self.entry = self.service.create(entry_data(nurse_sal=42))

    def test_partial_update(self):
        result = self.service.update(self.entry.id, {"amount": "2000", "description": "Revised"})

        assert result.entry.amount == Decimal("2000")
        assert result.entry.description == "Revised"
        assert result.entry.nurse_id == "N-1"
        assert result.entry.updated_at is not None
        assert result.salary_sync is None
        assert self.service.get_by_id(self.entry.id).amount == Decimal("2000")

    def test_empty_update_rejected(self):
        with pytest.raises(ValidationError, match="No fields to update"):
            self.service.update(self.entry.id, {})

    def test_update_missing_entry(self):
        with pytest.raises(NotFoundError):
            self.service.update(999, {"amount": "1"})

    def test_update_other_tenant_is_not_found(self):
        with pytest.raises(NotFoundError):
            self.service.update(self.entry.id, {"amount": "1"}, tenant="TATANursing")
        assert self.service.get_by_id(self.entry.id).amount == Decimal("1500.00")

    def test_changing_payment_type_reapplies_exclusivity(self):
        result = self.service.update(self.entry.id, {"payment_type": "incoming", "client_id": "C-1"})

        assert result.entry.client_id == "C-1"
        assert result.entry.nurse_id is None
        assert result.entry.nurse_sal is None

    def test_receipt_replacement(self):
        result = self.service.update(self.entry.id, {}, receipt=Receipt(content=b"new", filename="r.png"))
        assert result.entry.receipt in self.file_store.files

    def test_marking_paid_propagates_to_salary_once(self):
        result = self.service.update(self.entry.id, {"pay_status": "paid"})

        assert self.salary.calls == [(42, None)]
        assert result.salary_sync.applied
        assert result.salary_sync.key == f"daybook:{self.entry.id}:salary:42"

        # Already applied; a later update of the paid entry is not re-sent
        self.service.update(self.entry.id, {"description": "Paid by UPI"})
        assert self.salary.calls == [(42, None)]

    def test_propagation_carries_receipt(self):
        result = self.service.update(
            self.entry.id, {"pay_status": "paid"}, receipt=Receipt(content=b"slip", filename="slip.jpg")
        )
        assert self.salary.calls == [(42, result.entry.receipt)]

    def test_unpaid_update_does_not_propagate(self):
        self.service.update(self.entry.id, {"amount": "10"})
        assert self.salary.calls == []

    def test_salary_failure_keeps_primary_update(self):
        self.salary.failures = 1

        result = self.service.update(self.entry.id, {"pay_status": "paid"})

        assert result.entry.pay_status == PayStatus.PAID
        assert self.service.get_by_id(self.entry.id).pay_status == PayStatus.PAID
        assert result.salary_sync.status == "pending"
        assert "unavailable" in result.salary_sync.error

    def test_retry_applies_pending_sync_exactly_once(self):
        self.salary.failures = 1
        self.service.update(self.entry.id, {"pay_status": "paid"})

        retried = self.service.retry_pending_salary_sync()
        assert [r.status for r in retried] == ["applied"]
        assert retried[0].attempts == 2

        assert self.service.retry_pending_salary_sync() == []
        assert len(self.salary.calls) == 2

    def test_propagation_against_salary_table(self):
        storage = InMemoryStorage()
        salary = StorageSalaryPaymentClient(storage)
        salary.create(5, amount="1200", nurse_id="N-1")
        service = DayBookService(storage, InMemoryFileStore(), salary)
        entry = service.create(entry_data(nurse_sal=5))

        service.update(entry.id, {"pay_status": "paid"})

        assert salary.get(5)["payment_status"] == "paid"

    def test_missing_salary_record_leaves_task_pending(self):
        storage = InMemoryStorage()
        service = DayBookService(storage, InMemoryFileStore(), StorageSalaryPaymentClient(storage))
        entry = service.create(entry_data(nurse_sal=77))

        result = service.update(entry.id, {"pay_status": "paid"})

        assert result.salary_sync.status == "pending"
        assert service.get_salary_sync(entry.id, 77).attempts == 1

    def test_delete(self):
        assert self.service.delete(self.entry.id) is True
        assert self.service.delete(self.entry.id) is False
        with pytest.raises(NotFoundError):
            self.service.get_by_id(self.entry.id)

    def test_delete_is_tenant_scoped(self):
        assert self.service.delete(self.entry.id, tenant="TATANursing") is False
        assert self.service.get_by_id(self.entry.id)


class TestDayBookQueries:

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.service = DayBookService(self.storage, InMemoryFileStore(), RecordingSalaryClient())

        self.service.create(entry_data(amount="100", pay_status="paid", nurse_id="N-1"))
        self.service.create(entry_data(amount="200", pay_status="un_paid", nurse_id="N-2"))
        self.service.create(entry_data(
            amount="1000", payment_type="incoming", pay_status="paid", client_id="C-1"
        ))
        self.service.create(entry_data(
            amount="50", payment_type="incoming", pay_status="un_paid", client_id="C-2"
        ))
        self.service.create(entry_data(
            amount="999", tenant="TATANursing", pay_status="paid", nurse_id="N-9"
        ))

    def test_get_all_newest_first(self):
        entries = self.service.get_all()
        assert [e.id for e in entries] == [5, 4, 3, 2, 1]

    def test_non_admin_scope_sees_only_own_tenant(self):
        entries = self.service.get_all(tenant="Dearcare")
        assert len(entries) == 4
        assert all(e.tenant.value == "Dearcare" for e in entries)
        assert [e.id for e in self.service.get_all(tenant="TATANursing")] == [5]

    def test_admin_scope_sees_every_tenant(self):
        tenants = {e.tenant.value for e in self.service.get_all(tenant=None)}
        assert tenants == {"Dearcare", "TATANursing"}

    def test_get_by_id_outside_scope(self):
        with pytest.raises(NotFoundError):
            self.service.get_by_id(5, tenant="Dearcare")

    def test_filters(self):
        assert [e.id for e in self.service.get_all_by_type("incoming")] == [4, 3]
        assert [e.id for e in self.service.get_by_nurse_id("N-2")] == [2]
        assert [e.id for e in self.service.get_by_client_id("C-1")] == [3]
        assert [e.id for e in self.service.list(payment_type="outgoing", tenant="Dearcare")] == [2, 1]

    def test_invalid_type_filter(self):
        with pytest.raises(ValidationError):
            self.service.get_all_by_type("sideways")

    def test_date_range(self):
        today = datetime.now(timezone.utc).date()
        tomorrow = today + timedelta(days=1)

        assert len(self.service.get_by_date_range(today.isoformat(), today.isoformat())) == 5
        assert self.service.get_from_date(tomorrow.isoformat()) == []
        assert len(self.service.get_from_date(today)) == 5

    def test_invalid_date(self):
        with pytest.raises(ValidationError, match="Invalid date"):
            self.service.get_from_date("31/03/2024")

    def test_payment_summary(self):
        summary = self.service.get_payment_summary(tenant="Dearcare")

        assert summary.total_paid_amount == Decimal("1100")
        assert summary.total_pending_amount == Decimal("250")
        assert summary.paid_entries_count == 2
        assert summary.pending_entries_count == 2
        assert summary.total_entries == 4

    def test_payment_summary_date_variants(self):
        today = datetime.now(timezone.utc).date().isoformat()

        from_today = self.service.get_payment_summary_from_date(today)
        in_range = self.service.get_payment_summary_by_date_range(today, today)

        assert from_today.total_entries == 5
        assert in_range.total_paid_amount == Decimal("2099")

    def test_net_revenue_counts_paid_only(self):
        revenue = self.service.get_net_revenue(tenant="Dearcare")

        assert revenue.total_incoming == Decimal("1000")
        assert revenue.total_outgoing == Decimal("100")
        assert revenue.incoming_count == 1
        assert revenue.outgoing_count == 1
        assert revenue.net_amount == Decimal("900")
        assert revenue.is_profit
        assert revenue.to_dict()["status"] == "profit"

    def test_net_revenue_loss(self):
        revenue = self.service.get_net_revenue(tenant="TATANursing")
        assert revenue.net_amount == Decimal("-999")
        assert not revenue.is_profit

    def test_net_revenue_date_variants(self):
        tomorrow = (datetime.now(timezone.utc).date() + timedelta(days=1)).isoformat()

        assert self.service.get_net_revenue_from_date(tomorrow).incoming_count == 0
        assert self.service.get_net_revenue_by_date_range(
            "2000-01-01", tomorrow
        ).total_incoming == Decimal("1000")
