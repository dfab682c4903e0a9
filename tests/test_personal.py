"""
Tests for the personal ledger
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from daybook.day_book import PayType
from daybook.errors import ForbiddenError, NotFoundError, ValidationError
from daybook.identity import Identity, UserRole
from daybook.personal import PersonalLedgerService
from daybook.storage import InMemoryStorage
from daybook.tenancy import Tenant


ADMIN = Identity(id="admin-1", email="admin@example.com", role=UserRole.ADMIN)
OWNER = Identity(id="user-1", email="me@example.com", role=UserRole.STAFF, tenant=Tenant.PERSONAL)
OUTSIDER = Identity(id="user-2", email="x@example.com", role=UserRole.ACCOUNTANT, tenant=Tenant.DEAR_CARE)


class TestPersonalLedger:

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.service = PersonalLedgerService(self.storage)

    def test_create_forces_personal_tenant(self):
        entry = self.service.create(OWNER, {"paytype": "incoming", "amount": 250, "tenant": "Dearcare"})

        assert entry.tenant == Tenant.PERSONAL
        assert entry.user_id == "user-1"
        assert entry.amount == Decimal("250")
        assert entry.paytype == PayType.INCOMING

    def test_zero_amount_allowed(self):
        entry = self.service.create(OWNER, {"paytype": "outgoing", "amount": "0"})
        assert entry.amount == Decimal("0")

    @pytest.mark.parametrize("data", [
        {"amount": 10},
        {"paytype": "incoming"},
        {"paytype": "incoming", "amount": -1},
        {"paytype": "incoming", "amount": "NaN"},
        {"paytype": "sideways", "amount": 10},
    ])
    def test_create_validation(self, data):
        with pytest.raises(ValidationError):
            self.service.create(OWNER, data)

    def test_outsider_forbidden_everywhere(self):
        entry = self.service.create(OWNER, {"paytype": "incoming", "amount": 5})

        with pytest.raises(ForbiddenError):
            self.service.create(OUTSIDER, {"paytype": "incoming", "amount": 5})
        with pytest.raises(ForbiddenError):
            self.service.list(OUTSIDER)
        with pytest.raises(ForbiddenError):
            self.service.get(OUTSIDER, entry.id)
        with pytest.raises(ForbiddenError):
            self.service.update(OUTSIDER, entry.id, {"amount": 1})
        with pytest.raises(ForbiddenError):
            self.service.delete(OUTSIDER, entry.id)
        with pytest.raises(ForbiddenError):
            self.service.get_balance(OUTSIDER)

    def test_admin_has_access(self):
        self.service.create(OWNER, {"paytype": "incoming", "amount": 5})
        assert len(self.service.list(ADMIN)) == 1

    def test_update(self):
        entry = self.service.create(OWNER, {"paytype": "incoming", "amount": 5})

        updated = self.service.update(OWNER, entry.id, {"amount": "7.5", "description": "Refund"})

        assert updated.amount == Decimal("7.5")
        assert updated.description == "Refund"
        assert self.service.get(OWNER, entry.id).amount == Decimal("7.5")

    def test_update_without_fields(self):
        entry = self.service.create(OWNER, {"paytype": "incoming", "amount": 5})
        with pytest.raises(ValidationError, match="No fields to update"):
            self.service.update(OWNER, entry.id, {"tenant": "Dearcare"})

    def test_delete(self):
        entry = self.service.create(OWNER, {"paytype": "incoming", "amount": 5})

        deleted = self.service.delete(OWNER, entry.id)

        assert deleted.id == entry.id
        with pytest.raises(NotFoundError):
            self.service.delete(OWNER, entry.id)

    def test_balance(self):
        self.service.create(OWNER, {"paytype": "incoming", "amount": 1000})
        self.service.create(OWNER, {"paytype": "incoming", "amount": 200})
        self.service.create(OWNER, {"paytype": "outgoing", "amount": 450})

        balance = self.service.get_balance(OWNER)

        assert balance == {
            "total_incoming": Decimal("1200"),
            "total_outgoing": Decimal("450"),
            "net_balance": Decimal("750"),
            "incoming_count": 2,
            "outgoing_count": 1,
            "total_entries": 3,
        }

    def test_balance_date_window(self):
        self.service.create(OWNER, {"paytype": "incoming", "amount": 1000})
        tomorrow = (datetime.now(timezone.utc).date() + timedelta(days=1)).isoformat()

        assert self.service.get_balance(OWNER, start=tomorrow)["total_entries"] == 0
        assert self.service.get_balance(OWNER, end=tomorrow)["total_entries"] == 1
