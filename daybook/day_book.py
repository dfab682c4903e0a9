"""
Day Book Module

The day book records incoming and outgoing payments for each tenant.
Incoming payments are linked to a client, outgoing payments to a nurse (and
optionally to a salary payment record). Provides filtered listings and paid /
pending and incoming / outgoing aggregates.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import DaybookError, ForbiddenError, NotFoundError, ValidationError
from .file_store import FileStore, Receipt
from .logging_config import get_logger, log_action
from .money import parse_amount
from .query import DateBound, select_records
from .salary import SalaryPaymentClient
from .storage import StorageInterface, StorageRecord, utc_now
from .tenancy import Tenant, parse_tenant


class PayType(Enum):
    """Direction of a payment"""
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class PayStatus(Enum):
    """Settlement state of a payment"""
    PAID = "paid"
    UNPAID = "un_paid"


class ModeOfPay(Enum):
    """How a payment was made"""
    CASH = "cash"
    UPI = "upi"
    ACCOUNT_TRANSFER = "account_transfer"


class PaymentTypeSpecific(Enum):
    """Finer classification of a payment"""
    CLIENT_PAYMENT_RECEIVED = "client_payment_received"
    NURSE_SALARY_PAID = "nurse_salary_paid"
    OFFICE_EXPENSES_PAID = "office_expenses_paid"
    STUDENT_FEE_RECEIVED = "student_fee_received"


@dataclass
class DayBookEntry(StorageRecord):
    """
    Day book payment record

    Exactly one of nurse_id (outgoing) or client_id (incoming) may be set.
    """
    amount: Decimal
    payment_type: PayType
    pay_status: PayStatus
    tenant: Tenant
    mode_of_pay: Optional[ModeOfPay] = None
    description: Optional[str] = None
    receipt: Optional[str] = None
    payment_type_specific: Optional[PaymentTypeSpecific] = None
    payment_description: Optional[str] = None
    nurse_id: Optional[str] = None
    client_id: Optional[str] = None
    nurse_sal: Optional[int] = None
    updated_at: Optional[datetime] = None

    _decimal_fields = ("amount",)
    _datetime_fields = ("created_at", "updated_at")
    _enum_fields = {
        "payment_type": PayType,
        "pay_status": PayStatus,
        "tenant": Tenant,
        "mode_of_pay": ModeOfPay,
        "payment_type_specific": PaymentTypeSpecific,
    }

    @property
    def is_paid(self) -> bool:
        return self.pay_status == PayStatus.PAID


@dataclass
class PaymentSummary:
    """Paid versus pending totals"""
    total_paid_amount: Decimal = Decimal("0")
    total_pending_amount: Decimal = Decimal("0")
    total_entries: int = 0
    paid_entries_count: int = 0
    pending_entries_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_paid_amount": self.total_paid_amount,
            "total_pending_amount": self.total_pending_amount,
            "total_entries": self.total_entries,
            "paid_entries_count": self.paid_entries_count,
            "pending_entries_count": self.pending_entries_count,
        }


@dataclass
class NetRevenue:
    """Incoming versus outgoing totals over paid entries"""
    total_incoming: Decimal = Decimal("0")
    total_outgoing: Decimal = Decimal("0")
    incoming_count: int = 0
    outgoing_count: int = 0

    @property
    def net_amount(self) -> Decimal:
        return self.total_incoming - self.total_outgoing

    @property
    def is_profit(self) -> bool:
        return self.net_amount >= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_incoming": self.total_incoming,
            "total_outgoing": self.total_outgoing,
            "incoming_count": self.incoming_count,
            "outgoing_count": self.outgoing_count,
            "net_amount": self.net_amount,
            "status": "profit" if self.is_profit else "loss",
        }


@dataclass
class SalarySync:
    """Outcome of propagating a paid entry to its salary payment record"""
    key: str
    entry_id: int
    salary_id: int
    status: str
    attempts: int = 0
    error: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.status == "applied"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "salary_id": self.salary_id,
            "status": self.status,
            "attempts": self.attempts,
            "error": self.error,
        }


@dataclass
class UpdateResult:
    """Updated entry plus the salary propagation outcome, if one ran"""
    entry: DayBookEntry
    salary_sync: Optional[SalarySync] = None


# Fields a caller may set on create or update
WRITABLE_FIELDS = (
    "amount", "payment_type", "pay_status", "tenant", "mode_of_pay",
    "description", "receipt", "payment_type_specific", "payment_description",
    "nurse_id", "client_id", "nurse_sal",
)


def _parse_enum(enum_type, value: Any, field_name: str, required: bool = False):
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field_name} is required")
        return None
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_type)
        raise ValidationError(f"Invalid {field_name}. Must be one of: {allowed}")


def _parse_salary_id(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError("nurse_sal must be an integer")
    try:
        return int(str(value))
    except ValueError:
        raise ValidationError("nurse_sal must be an integer")


def _optional_text(value: Any) -> Optional[str]:
    """Blank input means not supplied; anything else is stored as given"""
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


class DayBookService:
    """
    Day book ledger operations

    ``tenant`` arguments are the caller's visibility scope as produced by
    ``authorization.scope_filter``: a tenant value restricts the operation to
    that tenant, ``None`` means every tenant (admins).
    """

    def __init__(
        self,
        storage: StorageInterface,
        file_store: Optional[FileStore] = None,
        salary_client: Optional[SalaryPaymentClient] = None
    ):
        self.storage = storage
        self.file_store = file_store
        self.salary_client = salary_client
        self.table_name = "day_book"
        self.sync_table = "salary_sync_tasks"
        self.logger = get_logger("daybook.day_book")

    # Mutations

    def create(
        self,
        data: Dict[str, Any],
        receipt: Optional[Receipt] = None,
        tenant: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> DayBookEntry:
        """
        Create a day book entry

        Args:
            data: Entry fields
            receipt: Optional receipt file, uploaded before anything is written
            tenant: Caller scope; a scoped caller may only create in that tenant
                and the entry tenant defaults to it
            user_id: Acting user, for the action log

        Returns:
            Stored entry with server-assigned id and created_at

        Raises:
            ValidationError: On invalid amount, tenant or enum values
            ForbiddenError: When creating in another tenant
            UploadError: When the receipt upload fails
        """
        self._reject_unknown_fields(data)
        values = dict(data)
        if not values.get("tenant") and tenant is not None:
            values["tenant"] = tenant

        entry = DayBookEntry(
            id=0,
            created_at=utc_now(),
            amount=parse_amount(values.get("amount")),
            payment_type=_parse_enum(PayType, values.get("payment_type"), "payment_type", required=True),
            pay_status=_parse_enum(PayStatus, values.get("pay_status"), "pay_status", required=True),
            tenant=parse_tenant(values.get("tenant")),
            mode_of_pay=_parse_enum(ModeOfPay, values.get("mode_of_pay"), "mode_of_pay"),
            description=_optional_text(values.get("description")),
            receipt=_optional_text(values.get("receipt")),
            payment_type_specific=_parse_enum(
                PaymentTypeSpecific, values.get("payment_type_specific"), "payment_type_specific"
            ),
            payment_description=_optional_text(values.get("payment_description")),
            nurse_id=_optional_text(values.get("nurse_id")),
            client_id=_optional_text(values.get("client_id")),
            nurse_sal=_parse_salary_id(values.get("nurse_sal")),
        )
        self._check_tenant(entry.tenant, tenant)
        self._normalize_counterparty(entry)

        if receipt is not None:
            entry.receipt = self._upload_receipt(receipt)

        entry.id = self.storage.next_id(self.table_name)
        self._save_entry(entry)

        log_action(
            self.logger, "info", "Day book entry created",
            user_id=user_id, action="create_day_book_entry",
            resource=f"day_book:{entry.id}", tenant=entry.tenant.value,
            extra={
                "amount": str(entry.amount),
                "payment_type": entry.payment_type.value,
                "pay_status": entry.pay_status.value,
            }
        )
        return entry

    def update(
        self,
        entry_id: int,
        data: Dict[str, Any],
        receipt: Optional[Receipt] = None,
        tenant: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> UpdateResult:
        """
        Partially update an entry visible to the caller

        When the resulting entry is paid and linked to a salary payment, the
        salary record is marked paid as a separate, idempotent step whose
        outcome is reported in the result rather than undoing this update.

        Raises:
            NotFoundError: If the entry does not exist within the caller's scope
            ValidationError: On invalid values or an empty update
            UploadError: When the replacement receipt upload fails
        """
        self._reject_unknown_fields(data)
        entry = self.get_by_id(entry_id, tenant)

        if not data and receipt is None:
            raise ValidationError("No fields to update")

        if "amount" in data:
            entry.amount = parse_amount(data["amount"])
        if "payment_type" in data:
            entry.payment_type = _parse_enum(PayType, data["payment_type"], "payment_type", required=True)
        if "pay_status" in data:
            entry.pay_status = _parse_enum(PayStatus, data["pay_status"], "pay_status", required=True)
        if "tenant" in data:
            entry.tenant = parse_tenant(data["tenant"])
            self._check_tenant(entry.tenant, tenant)
        if "mode_of_pay" in data:
            entry.mode_of_pay = _parse_enum(ModeOfPay, data["mode_of_pay"], "mode_of_pay")
        if "payment_type_specific" in data:
            entry.payment_type_specific = _parse_enum(
                PaymentTypeSpecific, data["payment_type_specific"], "payment_type_specific"
            )
        for text_field in ("description", "payment_description", "nurse_id", "client_id", "receipt"):
            if text_field in data:
                setattr(entry, text_field, _optional_text(data[text_field]))
        if "nurse_sal" in data:
            entry.nurse_sal = _parse_salary_id(data["nurse_sal"])

        self._normalize_counterparty(entry)

        if receipt is not None:
            entry.receipt = self._upload_receipt(receipt)

        entry.updated_at = utc_now()
        self._save_entry(entry)

        log_action(
            self.logger, "info", "Day book entry updated",
            user_id=user_id, action="update_day_book_entry",
            resource=f"day_book:{entry.id}", tenant=entry.tenant.value,
            extra={"fields": sorted(data.keys()), "receipt_replaced": receipt is not None}
        )

        salary_sync = None
        if entry.nurse_sal is not None and entry.is_paid:
            salary_sync = self._propagate_salary_payment(entry)

        return UpdateResult(entry=entry, salary_sync=salary_sync)

    def delete(self, entry_id: int, tenant: Optional[str] = None,
               user_id: Optional[str] = None) -> bool:
        """Hard delete an entry within the caller's scope; True if a row was removed"""
        data = self.storage.load(self.table_name, entry_id)
        if not data:
            return False
        if tenant is not None and data.get("tenant") != tenant:
            return False

        deleted = self.storage.delete(self.table_name, entry_id)
        if deleted:
            log_action(
                self.logger, "info", "Day book entry deleted",
                user_id=user_id, action="delete_day_book_entry",
                resource=f"day_book:{entry_id}", tenant=data.get("tenant")
            )
        return deleted

    # Queries

    def get_by_id(self, entry_id: int, tenant: Optional[str] = None) -> DayBookEntry:
        """
        Get an entry by id within the caller's scope

        Raises:
            NotFoundError: If missing or owned by another tenant
        """
        data = self.storage.load(self.table_name, entry_id)
        if not data or (tenant is not None and data.get("tenant") != tenant):
            raise NotFoundError("Day book entry not found")
        return DayBookEntry.from_dict(data)

    def list(
        self,
        tenant: Optional[str] = None,
        payment_type: Optional[Any] = None,
        nurse_id: Optional[str] = None,
        client_id: Optional[str] = None,
        pay_status: Optional[Any] = None,
        start: DateBound = None,
        end: DateBound = None
    ) -> List[DayBookEntry]:
        """List entries matching every given filter, most recent first"""
        filters: Dict[str, Any] = {}
        if payment_type:
            filters["payment_type"] = _parse_enum(PayType, payment_type, "payment_type").value
        if pay_status:
            filters["pay_status"] = _parse_enum(PayStatus, pay_status, "pay_status").value
        if nurse_id:
            filters["nurse_id"] = nurse_id
        if client_id:
            filters["client_id"] = client_id

        records = select_records(
            self.storage, self.table_name, tenant=tenant,
            filters=filters, start=start, end=end
        )
        return [DayBookEntry.from_dict(record) for record in records]

    def get_all(self, tenant: Optional[str] = None) -> List[DayBookEntry]:
        return self.list(tenant=tenant)

    def get_all_by_type(self, payment_type: Any, tenant: Optional[str] = None) -> List[DayBookEntry]:
        return self.list(tenant=tenant, payment_type=payment_type)

    def get_by_nurse_id(self, nurse_id: str, tenant: Optional[str] = None) -> List[DayBookEntry]:
        return self.list(tenant=tenant, nurse_id=nurse_id)

    def get_by_client_id(self, client_id: str, tenant: Optional[str] = None) -> List[DayBookEntry]:
        return self.list(tenant=tenant, client_id=client_id)

    def get_by_date_range(self, start: DateBound, end: DateBound,
                          tenant: Optional[str] = None) -> List[DayBookEntry]:
        return self.list(tenant=tenant, start=start, end=end)

    def get_from_date(self, start: DateBound, tenant: Optional[str] = None) -> List[DayBookEntry]:
        return self.list(tenant=tenant, start=start)

    # Aggregates

    def get_payment_summary(self, tenant: Optional[str] = None,
                            start: DateBound = None, end: DateBound = None) -> PaymentSummary:
        """Sum amounts over entries partitioned by pay status"""
        summary = PaymentSummary()
        for entry in self.list(tenant=tenant, start=start, end=end):
            summary.total_entries += 1
            if entry.is_paid:
                summary.total_paid_amount += entry.amount
                summary.paid_entries_count += 1
            else:
                summary.total_pending_amount += entry.amount
                summary.pending_entries_count += 1
        return summary

    def get_payment_summary_from_date(self, start: DateBound,
                                      tenant: Optional[str] = None) -> PaymentSummary:
        return self.get_payment_summary(tenant=tenant, start=start)

    def get_payment_summary_by_date_range(self, start: DateBound, end: DateBound,
                                          tenant: Optional[str] = None) -> PaymentSummary:
        return self.get_payment_summary(tenant=tenant, start=start, end=end)

    def get_net_revenue(self, tenant: Optional[str] = None,
                        start: DateBound = None, end: DateBound = None) -> NetRevenue:
        """Sum paid entries partitioned by payment direction"""
        revenue = NetRevenue()
        for entry in self.list(tenant=tenant, pay_status=PayStatus.PAID, start=start, end=end):
            if entry.payment_type == PayType.INCOMING:
                revenue.total_incoming += entry.amount
                revenue.incoming_count += 1
            else:
                revenue.total_outgoing += entry.amount
                revenue.outgoing_count += 1
        return revenue

    def get_net_revenue_from_date(self, start: DateBound,
                                  tenant: Optional[str] = None) -> NetRevenue:
        return self.get_net_revenue(tenant=tenant, start=start)

    def get_net_revenue_by_date_range(self, start: DateBound, end: DateBound,
                                      tenant: Optional[str] = None) -> NetRevenue:
        return self.get_net_revenue(tenant=tenant, start=start, end=end)

    # Salary propagation

    def retry_pending_salary_sync(self) -> List[SalarySync]:
        """Re-attempt every salary propagation still pending"""
        results = []
        for task in self.storage.find(self.sync_table, {"status": "pending"}):
            results.append(self._attempt_salary_sync(task))
        return results

    def get_salary_sync(self, entry_id: int, salary_id: int) -> Optional[SalarySync]:
        task = self.storage.load(self.sync_table, self._sync_key(entry_id, salary_id))
        return self._sync_from_task(task) if task else None

    def _propagate_salary_payment(self, entry: DayBookEntry) -> SalarySync:
        key = self._sync_key(entry.id, entry.nurse_sal)
        task = self.storage.load(self.sync_table, key)
        if task and task["status"] == "applied":
            return self._sync_from_task(task)

        if not task:
            task = {
                "id": key,
                "created_at": utc_now().isoformat(),
                "entry_id": entry.id,
                "salary_id": entry.nurse_sal,
                "status": "pending",
                "attempts": 0,
                "last_error": None,
            }
        task["receipt"] = entry.receipt
        return self._attempt_salary_sync(task)

    def _attempt_salary_sync(self, task: Dict[str, Any]) -> SalarySync:
        task["attempts"] = task.get("attempts", 0) + 1
        try:
            if self.salary_client is None:
                raise DaybookError("No salary payment client configured")
            self.salary_client.mark_paid(task["salary_id"], task.get("receipt"))
        except Exception as e:
            task["status"] = "pending"
            task["last_error"] = str(e)
            self.storage.save(self.sync_table, task["id"], task)
            self.logger.warning(
                f"Salary payment {task['salary_id']} not marked paid for "
                f"day book entry {task['entry_id']}: {e}",
                exc_info=not isinstance(e, DaybookError)
            )
            return self._sync_from_task(task)

        task["status"] = "applied"
        task["last_error"] = None
        task["applied_at"] = utc_now().isoformat()
        self.storage.save(self.sync_table, task["id"], task)
        log_action(
            self.logger, "info", "Salary payment propagated",
            action="propagate_salary_payment",
            resource=f"salary_payment:{task['salary_id']}",
            extra={"entry_id": task["entry_id"], "attempts": task["attempts"]}
        )
        return self._sync_from_task(task)

    @staticmethod
    def _sync_key(entry_id: int, salary_id: int) -> str:
        return f"daybook:{entry_id}:salary:{salary_id}"

    @staticmethod
    def _sync_from_task(task: Dict[str, Any]) -> SalarySync:
        return SalarySync(
            key=task["id"],
            entry_id=task["entry_id"],
            salary_id=task["salary_id"],
            status=task["status"],
            attempts=task.get("attempts", 0),
            error=task.get("last_error"),
        )

    # Helpers

    def _reject_unknown_fields(self, data: Dict[str, Any]) -> None:
        unknown = sorted(set(data) - set(WRITABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(unknown)}")

    @staticmethod
    def _check_tenant(entry_tenant: Tenant, scope: Optional[str]) -> None:
        if scope is not None and entry_tenant.value != scope:
            raise ForbiddenError("Access denied. Cannot write entries for another tenant")

    @staticmethod
    def _normalize_counterparty(entry: DayBookEntry) -> None:
        """Keep only the counterparty that applies to the payment direction"""
        if entry.payment_type == PayType.OUTGOING:
            entry.client_id = None
        else:
            entry.nurse_id = None
            entry.nurse_sal = None

    def _upload_receipt(self, receipt: Receipt) -> str:
        if self.file_store is None:
            raise ValidationError("Receipt uploads are not configured")
        return self.file_store.store(receipt)

    def _save_entry(self, entry: DayBookEntry) -> None:
        self.storage.save(self.table_name, entry.id, entry.to_dict())
