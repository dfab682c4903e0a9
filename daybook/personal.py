"""
Personal Ledger Module

A day book variant for individual use. Every entry belongs to the Personal
tenant, and only admins and Personal tenant users may read or write it.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .authorization import require_personal_access
from .day_book import PayType
from .errors import NotFoundError, ValidationError
from .identity import Identity
from .logging_config import get_logger, log_action
from .money import parse_amount
from .query import DateBound, select_records
from .storage import StorageInterface, StorageRecord, utc_now
from .tenancy import Tenant, parse_tenant


@dataclass
class PersonalEntry(StorageRecord):
    """Personal ledger entry"""
    paytype: PayType
    amount: Decimal
    tenant: Tenant = Tenant.PERSONAL
    description: Optional[str] = None
    user_id: Optional[str] = None

    _decimal_fields = ("amount",)
    _enum_fields = {"paytype": PayType, "tenant": Tenant}


def _parse_paytype(value: Any) -> PayType:
    if isinstance(value, PayType):
        return value
    try:
        return PayType(value)
    except ValueError:
        raise ValidationError("paytype must be either 'incoming' or 'outgoing'")


class PersonalLedgerService:
    """CRUD and balance over the personal ledger"""

    def __init__(self, storage: StorageInterface, personal_tenant: str = "Personal"):
        self.storage = storage
        self.personal_tenant = parse_tenant(personal_tenant)
        self.table_name = "daybook_personal"
        self.logger = get_logger("daybook.personal")

    def create(self, identity: Identity, data: Dict[str, Any]) -> PersonalEntry:
        """
        Create a personal entry; any supplied tenant is ignored

        Raises:
            ForbiddenError: If the caller is neither admin nor a Personal user
            ValidationError: On a missing paytype or a negative/invalid amount
        """
        self._check_access(identity)
        if data.get("paytype") in (None, ""):
            raise ValidationError("paytype and amount are required")

        entry = PersonalEntry(
            id=self.storage.next_id(self.table_name),
            created_at=utc_now(),
            paytype=_parse_paytype(data["paytype"]),
            amount=parse_amount(data.get("amount"), allow_zero=True),
            tenant=self.personal_tenant,
            description=data.get("description") or None,
            user_id=identity.id,
        )
        self.storage.save(self.table_name, entry.id, entry.to_dict())

        log_action(
            self.logger, "info", "Personal entry created",
            user_id=identity.id, action="create_personal_entry",
            resource=f"personal:{entry.id}", tenant=entry.tenant.value,
            extra={"amount": str(entry.amount), "paytype": entry.paytype.value}
        )
        return entry

    def list(self, identity: Identity, start: DateBound = None,
             end: DateBound = None) -> List[PersonalEntry]:
        """Personal entries, most recent first, optionally within a date window"""
        self._check_access(identity)
        return [
            PersonalEntry.from_dict(record)
            for record in select_records(
                self.storage, self.table_name,
                tenant=self.personal_tenant.value, start=start, end=end
            )
        ]

    def get(self, identity: Identity, entry_id: int) -> PersonalEntry:
        self._check_access(identity)
        data = self.storage.load(self.table_name, entry_id)
        if not data or data.get("tenant") != self.personal_tenant.value:
            raise NotFoundError("Personal entry not found")
        return PersonalEntry.from_dict(data)

    def update(self, identity: Identity, entry_id: int, data: Dict[str, Any]) -> PersonalEntry:
        """
        Update amount, paytype and/or description

        Raises:
            ValidationError: If no updatable field is supplied or a value is invalid
            NotFoundError: If the entry does not exist
        """
        entry = self.get(identity, entry_id)

        changes = {k: data[k] for k in ("amount", "paytype", "description") if k in data}
        if not changes:
            raise ValidationError("No fields to update")

        if "amount" in changes:
            entry.amount = parse_amount(changes["amount"], allow_zero=True)
        if "paytype" in changes:
            entry.paytype = _parse_paytype(changes["paytype"])
        if "description" in changes:
            entry.description = changes["description"] or None

        self.storage.save(self.table_name, entry.id, entry.to_dict())

        log_action(
            self.logger, "info", "Personal entry updated",
            user_id=identity.id, action="update_personal_entry",
            resource=f"personal:{entry.id}", tenant=entry.tenant.value,
            extra={"fields": sorted(changes)}
        )
        return entry

    def delete(self, identity: Identity, entry_id: int) -> PersonalEntry:
        """Delete an entry and return it"""
        entry = self.get(identity, entry_id)
        self.storage.delete(self.table_name, entry_id)

        log_action(
            self.logger, "info", "Personal entry deleted",
            user_id=identity.id, action="delete_personal_entry",
            resource=f"personal:{entry_id}", tenant=entry.tenant.value
        )
        return entry

    def get_balance(self, identity: Identity, start: DateBound = None,
                    end: DateBound = None) -> Dict[str, Any]:
        """Incoming and outgoing totals over an optional date window"""
        total_incoming = Decimal("0")
        total_outgoing = Decimal("0")
        incoming_count = 0
        outgoing_count = 0

        entries = self.list(identity, start=start, end=end)
        for entry in entries:
            if entry.paytype == PayType.INCOMING:
                total_incoming += entry.amount
                incoming_count += 1
            else:
                total_outgoing += entry.amount
                outgoing_count += 1

        return {
            "total_incoming": total_incoming,
            "total_outgoing": total_outgoing,
            "net_balance": total_incoming - total_outgoing,
            "incoming_count": incoming_count,
            "outgoing_count": outgoing_count,
            "total_entries": len(entries),
        }

    def _check_access(self, identity: Identity) -> None:
        require_personal_access(identity, self.personal_tenant)
