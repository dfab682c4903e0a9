"""
Salary Payment Module

The salary payment record is owned outside the day book. When a day book
entry linked to one (``nurse_sal``) is marked paid, the record is marked
paid too.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .errors import NotFoundError
from .logging_config import get_logger, log_action
from .storage import StorageInterface, utc_now


class SalaryPaymentClient(ABC):
    """Collaborator owning salary payment records"""

    @abstractmethod
    def mark_paid(self, salary_id: int, receipt: Optional[str] = None) -> Dict[str, Any]:
        """Set payment_status to paid, attaching the receipt URL if given"""
        pass


class StorageSalaryPaymentClient(SalaryPaymentClient):
    """Salary payments kept in the ``salary_payments`` table"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "salary_payments"
        self.logger = get_logger("daybook.salary")

    def create(self, salary_id: int, amount: Optional[str] = None,
               nurse_id: Optional[str] = None) -> Dict[str, Any]:
        """Seed a salary payment record; the payroll side owns creation in production"""
        record = {
            "id": salary_id,
            "created_at": utc_now().isoformat(),
            "nurse_id": nurse_id,
            "amount": amount,
            "payment_status": "un_paid",
            "receipt": None,
            "paid_at": None,
        }
        self.storage.save(self.table_name, salary_id, record)
        return record

    def get(self, salary_id: int) -> Optional[Dict[str, Any]]:
        """Read a salary payment record, for seeding checks and tests"""
        return self.storage.load(self.table_name, salary_id)

    def mark_paid(self, salary_id: int, receipt: Optional[str] = None) -> Dict[str, Any]:
        record = self.storage.load(self.table_name, salary_id)
        if not record:
            raise NotFoundError(f"Salary payment {salary_id} not found")

        record["payment_status"] = "paid"
        record["paid_at"] = utc_now().isoformat()
        if receipt:
            record["receipt"] = receipt
        self.storage.save(self.table_name, salary_id, record)

        log_action(
            self.logger, "info", "Salary payment marked paid",
            action="mark_salary_paid", resource=f"salary_payment:{salary_id}"
        )
        return record
