"""
Bank Ledger Module

Bank account registry and an append-only transaction log. Each account
carries a running balance that equals the signed sum of its completed
transactions. Every balance movement reads the balance, writes it back and
appends its transaction inside one ``storage.atomic()`` block, so concurrent
movements on the same store are serialized and a failure part-way leaves
neither the balance nor the log changed.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import InsufficientBalanceError, NotFoundError, ValidationError
from .logging_config import get_logger, log_action
from .money import parse_amount
from .query import DateBound, select_records
from .storage import StorageInterface, StorageRecord, utc_now
from .tenancy import parse_tenant


class BankTransactionType(Enum):
    """Kinds of balance movement"""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    TRANSFER = "transfer"
    CHEQUE = "cheque"


class BankTransactionStatus(Enum):
    """Transaction status; every recorded movement is completed"""
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"


@dataclass
class BankAccount(StorageRecord):
    """Bank account with a denormalized running balance"""
    bank_name: str
    account_name: str
    shortform: str
    account_number: Optional[str] = None
    ifsc: Optional[str] = None
    branch: Optional[str] = None
    balance: Decimal = Decimal("0")
    tenant: Optional[str] = None
    updated_at: Optional[datetime] = None

    _decimal_fields = ("balance",)
    _datetime_fields = ("created_at", "updated_at")


@dataclass
class BankTransaction(StorageRecord):
    """
    Append-only transaction log entry

    Transfers carry both from_account_id and to_account_id, with
    bank_account_id set to the source account.
    """
    bank_account_id: int
    transaction_type: BankTransactionType
    amount: Decimal
    from_account_id: Optional[int] = None
    to_account_id: Optional[int] = None
    cheque_number: Optional[str] = None
    description: Optional[str] = None
    reference: Optional[str] = None
    status: BankTransactionStatus = BankTransactionStatus.COMPLETED
    tenant: Optional[str] = None

    _decimal_fields = ("amount",)
    _enum_fields = {
        "transaction_type": BankTransactionType,
        "status": BankTransactionStatus,
    }


ACCOUNT_FIELDS = ("bank_name", "account_name", "shortform", "account_number", "ifsc", "branch")
REQUIRED_ACCOUNT_FIELDS = ("bank_name", "account_name", "shortform")


def parse_transaction_type(value: Any) -> BankTransactionType:
    if isinstance(value, BankTransactionType):
        return value
    try:
        return BankTransactionType(value)
    except ValueError:
        raise ValidationError(
            "Invalid transaction type. Must be one of: "
            + ", ".join(t.value for t in BankTransactionType)
        )


class BankAccountService:
    """Bank account registry"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = "bank_accounts"
        self.logger = get_logger("daybook.banking")

    def create(self, data: Dict[str, Any], tenant: Optional[str] = None,
               user_id: Optional[str] = None) -> BankAccount:
        """
        Register a bank account

        Args:
            data: Account fields; bank_name, account_name and shortform are required
            tenant: Caller scope; scoped callers always create in their own tenant

        Raises:
            ValidationError: On a missing required field or a non-finite balance
        """
        for name in REQUIRED_ACCOUNT_FIELDS:
            if not str(data.get(name) or "").strip():
                raise ValidationError("bank_name, account_name and shortform are required")

        balance = Decimal("0")
        if data.get("balance") not in (None, ""):
            balance = parse_amount(data["balance"], field="balance", allow_negative=True)

        account_tenant = tenant
        if account_tenant is None and data.get("tenant"):
            account_tenant = parse_tenant(data["tenant"]).value

        now = utc_now()
        account = BankAccount(
            id=self.storage.next_id(self.table_name),
            created_at=now,
            updated_at=now,
            bank_name=str(data["bank_name"]).strip(),
            account_name=str(data["account_name"]).strip(),
            shortform=str(data["shortform"]).strip(),
            account_number=data.get("account_number") or None,
            ifsc=data.get("ifsc") or None,
            branch=data.get("branch") or None,
            balance=balance,
            tenant=account_tenant,
        )
        self.save(account)

        log_action(
            self.logger, "info", "Bank account created",
            user_id=user_id, action="create_bank_account",
            resource=f"bank_account:{account.id}", tenant=account.tenant,
            extra={"shortform": account.shortform, "opening_balance": str(balance)}
        )
        return account

    def get_all(self, tenant: Optional[str] = None) -> List[BankAccount]:
        records = select_records(self.storage, self.table_name, tenant=tenant)
        return [BankAccount.from_dict(record) for record in records]

    def get_by_id(self, account_id: int, tenant: Optional[str] = None) -> BankAccount:
        """
        Raises:
            NotFoundError: If missing or outside the caller's tenant
        """
        data = self.storage.load(self.table_name, account_id)
        if not data or (tenant is not None and data.get("tenant") != tenant):
            raise NotFoundError(f"Bank account {account_id} not found")
        return BankAccount.from_dict(data)

    def update(self, account_id: int, data: Dict[str, Any], tenant: Optional[str] = None,
               user_id: Optional[str] = None) -> BankAccount:
        """
        Update descriptive account fields

        The balance only moves through transactions.
        """
        if "balance" in data:
            raise ValidationError("balance can only change through transactions")
        changes = {k: data[k] for k in ACCOUNT_FIELDS if k in data}
        if not changes:
            raise ValidationError("No fields to update")
        for name in REQUIRED_ACCOUNT_FIELDS:
            if name in changes and not str(changes[name] or "").strip():
                raise ValidationError(f"{name} cannot be empty")

        with self.storage.atomic():
            account = self.get_by_id(account_id, tenant)
            for name, value in changes.items():
                setattr(account, name, value or None)
            account.updated_at = utc_now()
            self.save(account)

        log_action(
            self.logger, "info", "Bank account updated",
            user_id=user_id, action="update_bank_account",
            resource=f"bank_account:{account_id}", tenant=account.tenant,
            extra={"fields": sorted(changes)}
        )
        return account

    def delete(self, account_id: int, tenant: Optional[str] = None,
               user_id: Optional[str] = None) -> bool:
        """Delete an account; its transaction log is kept"""
        account = self.get_by_id(account_id, tenant)
        deleted = self.storage.delete(self.table_name, account_id)
        if deleted:
            log_action(
                self.logger, "info", "Bank account deleted",
                user_id=user_id, action="delete_bank_account",
                resource=f"bank_account:{account_id}", tenant=account.tenant
            )
        return deleted

    def get_balance(self, account_id: int, tenant: Optional[str] = None) -> Decimal:
        return self.get_by_id(account_id, tenant).balance

    def save(self, account: BankAccount) -> None:
        self.storage.save(self.table_name, account.id, account.to_dict())


class BankTransactionService:
    """Deposits, withdrawals, transfers and cheques against bank accounts"""

    def __init__(self, storage: StorageInterface, accounts: BankAccountService):
        self.storage = storage
        self.accounts = accounts
        self.table_name = "bank_transactions"
        self.logger = get_logger("daybook.banking")

    def deposit(
        self,
        account_id: int,
        amount: Any,
        description: Optional[str] = None,
        reference: Optional[str] = None,
        tenant: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Credit an account

        Returns:
            {"transaction": BankTransaction, "new_balance": Decimal}
        """
        amount = parse_amount(amount)

        with self.storage.atomic():
            account = self.accounts.get_by_id(account_id, tenant)
            new_balance = account.balance + amount
            self._set_balance(account, new_balance)
            transaction = self._append(
                account, BankTransactionType.DEPOSIT, amount,
                description=description, reference=reference
            )

        self._log_movement(transaction, user_id, {"new_balance": str(new_balance)})
        return {"transaction": transaction, "new_balance": new_balance}

    def withdraw(
        self,
        account_id: int,
        amount: Any,
        description: Optional[str] = None,
        reference: Optional[str] = None,
        tenant: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Debit an account

        Raises:
            InsufficientBalanceError: If the balance is below the amount
        """
        amount = parse_amount(amount)

        with self.storage.atomic():
            account = self.accounts.get_by_id(account_id, tenant)
            if account.balance < amount:
                raise InsufficientBalanceError("Insufficient balance")
            new_balance = account.balance - amount
            self._set_balance(account, new_balance)
            transaction = self._append(
                account, BankTransactionType.WITHDRAW, amount,
                description=description, reference=reference
            )

        self._log_movement(transaction, user_id, {"new_balance": str(new_balance)})
        return {"transaction": transaction, "new_balance": new_balance}

    def transfer(
        self,
        from_account_id: int,
        to_account_id: int,
        amount: Any,
        description: Optional[str] = None,
        reference: Optional[str] = None,
        tenant: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Move funds between two accounts, recorded as one transaction

        Returns:
            {"transaction": BankTransaction, "from_balance": Decimal, "to_balance": Decimal}

        Raises:
            ValidationError: If both ids name the same account, whatever the balance
            InsufficientBalanceError: If the source balance is below the amount
        """
        if str(from_account_id) == str(to_account_id):
            raise ValidationError("Cannot transfer to the same account")
        amount = parse_amount(amount)

        with self.storage.atomic():
            source = self.accounts.get_by_id(from_account_id, tenant)
            target = self.accounts.get_by_id(to_account_id, tenant)
            if source.balance < amount:
                raise InsufficientBalanceError("Insufficient balance in source account")

            from_balance = source.balance - amount
            to_balance = target.balance + amount
            self._set_balance(source, from_balance)
            self._set_balance(target, to_balance)
            transaction = self._append(
                source, BankTransactionType.TRANSFER, amount,
                description=description, reference=reference,
                from_account_id=source.id, to_account_id=target.id
            )

        self._log_movement(transaction, user_id, {
            "to_account_id": target.id,
            "from_balance": str(from_balance),
            "to_balance": str(to_balance),
        })
        return {
            "transaction": transaction,
            "from_balance": from_balance,
            "to_balance": to_balance,
        }

    def issue_cheque(
        self,
        account_id: int,
        amount: Any,
        cheque_number: Optional[str],
        description: Optional[str] = None,
        reference: Optional[str] = None,
        tenant: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Debit an account against a cheque; recorded as completed at issuance

        Raises:
            ValidationError: If the cheque number is empty
            InsufficientBalanceError: If the balance is below the amount
        """
        cheque_number = str(cheque_number or "").strip()
        if not cheque_number:
            raise ValidationError("cheque_number is required")
        amount = parse_amount(amount)

        with self.storage.atomic():
            account = self.accounts.get_by_id(account_id, tenant)
            if account.balance < amount:
                raise InsufficientBalanceError("Insufficient balance to issue cheque")
            new_balance = account.balance - amount
            self._set_balance(account, new_balance)
            transaction = self._append(
                account, BankTransactionType.CHEQUE, amount,
                description=description, reference=reference,
                cheque_number=cheque_number
            )

        self._log_movement(transaction, user_id, {
            "cheque_number": cheque_number,
            "new_balance": str(new_balance),
        })
        return {"transaction": transaction, "new_balance": new_balance}

    # Queries

    def get_all(self, tenant: Optional[str] = None) -> List[BankTransaction]:
        return self._select(tenant)

    def get_by_account_id(self, account_id: int, tenant: Optional[str] = None) -> List[BankTransaction]:
        """Transactions touching an account, including transfers into it"""
        account_id = int(account_id)
        return [
            txn for txn in self._select(tenant)
            if account_id in (txn.bank_account_id, txn.from_account_id, txn.to_account_id)
        ]

    def get_by_id(self, transaction_id: int, tenant: Optional[str] = None) -> BankTransaction:
        data = self.storage.load(self.table_name, transaction_id)
        if not data or (tenant is not None and data.get("tenant") != tenant):
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return BankTransaction.from_dict(data)

    def get_by_type(self, transaction_type: Any, tenant: Optional[str] = None) -> List[BankTransaction]:
        transaction_type = parse_transaction_type(transaction_type)
        return self._select(tenant, filters={"transaction_type": transaction_type.value})

    def get_by_date_range(self, start: DateBound, end: DateBound,
                          tenant: Optional[str] = None) -> List[BankTransaction]:
        if not start or not end:
            raise ValidationError("start_date and end_date are required")
        return self._select(tenant, start=start, end=end)

    # Helpers

    def _select(self, tenant: Optional[str], filters: Optional[Dict[str, Any]] = None,
                start: DateBound = None, end: DateBound = None) -> List[BankTransaction]:
        records = select_records(
            self.storage, self.table_name, tenant=tenant,
            filters=filters, start=start, end=end
        )
        return [BankTransaction.from_dict(record) for record in records]

    def _set_balance(self, account: BankAccount, balance: Decimal) -> None:
        account.balance = balance
        account.updated_at = utc_now()
        self.accounts.save(account)

    def _append(self, account: BankAccount, transaction_type: BankTransactionType,
                amount: Decimal, **details) -> BankTransaction:
        transaction = BankTransaction(
            id=self.storage.next_id(self.table_name),
            created_at=utc_now(),
            bank_account_id=account.id,
            transaction_type=transaction_type,
            amount=amount,
            tenant=account.tenant,
            **details
        )
        self.storage.save(self.table_name, transaction.id, transaction.to_dict())
        return transaction

    def _log_movement(self, transaction: BankTransaction, user_id: Optional[str],
                      extra: Dict[str, Any]) -> None:
        log_action(
            self.logger, "info", f"Bank {transaction.transaction_type.value} recorded",
            user_id=user_id, action=f"bank_{transaction.transaction_type.value}",
            resource=f"bank_transaction:{transaction.id}", tenant=transaction.tenant,
            extra={
                "account_id": transaction.bank_account_id,
                "amount": str(transaction.amount),
                **extra
            }
        )
