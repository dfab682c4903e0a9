"""
System wiring and request dependencies
"""

from datetime import timedelta
from typing import Optional

from fastapi import Depends, Request

from ..authorization import Authenticator, require_role, scope_filter
from ..banking import BankAccountService, BankTransactionService
from ..config import DaybookConfig, get_config
from ..day_book import DayBookService
from ..file_store import FileStore, InMemoryFileStore, LocalFileStore
from ..identity import Identity, StorageIdentityProvider, UserRole
from ..personal import PersonalLedgerService
from ..salary import StorageSalaryPaymentClient
from ..storage import StorageInterface, create_storage
from ..tokens import TokenService


class LedgerSystem:
    """Day book ledger with all components initialized"""

    def __init__(
        self,
        storage: StorageInterface,
        config: Optional[DaybookConfig] = None,
        file_store: Optional[FileStore] = None
    ):
        self.config = config or get_config()
        self.storage = storage

        # Identity and tokens
        self.tokens = TokenService(
            self.config.jwt_secret,
            algorithm=self.config.jwt_algorithm,
            expires_in=timedelta(hours=self.config.jwt_expiry_hours)
        )
        self.identities = StorageIdentityProvider(
            self.storage, password_min_length=self.config.password_min_length
        )
        self.authenticator = Authenticator(self.tokens, self.identities)

        # Collaborators
        self.file_store = file_store or LocalFileStore(
            self.config.file_store_path, self.config.file_store_base_url
        )
        self.salary_client = StorageSalaryPaymentClient(self.storage)

        # Ledgers
        self.day_book = DayBookService(self.storage, self.file_store, self.salary_client)
        self.personal = PersonalLedgerService(self.storage, self.config.personal_tenant)
        self.bank_accounts = BankAccountService(self.storage)
        self.bank_transactions = BankTransactionService(self.storage, self.bank_accounts)

    @classmethod
    def from_config(cls, config: Optional[DaybookConfig] = None) -> "LedgerSystem":
        config = config or get_config()
        return cls(create_storage(config.database_url), config)

    @classmethod
    def in_memory(cls, config: Optional[DaybookConfig] = None) -> "LedgerSystem":
        """In-process store and file store, used by tests"""
        config = config or get_config()
        return cls(create_storage("memory://"), config, file_store=InMemoryFileStore())

    def close(self) -> None:
        self.storage.close()


def get_system(request: Request) -> LedgerSystem:
    return request.app.state.system


def get_current_identity(
    request: Request,
    system: LedgerSystem = Depends(get_system)
) -> Identity:
    """Resolve the Authorization bearer token to the caller's live identity"""
    return system.authenticator.authenticate_header(request.headers.get("authorization"))


def require_roles(*roles: UserRole):
    """Dependency factory for role checks"""
    def check(identity: Identity = Depends(get_current_identity)) -> Identity:
        return require_role(identity, roles)
    return check


def get_scope(identity: Identity = Depends(get_current_identity)) -> Optional[str]:
    """Tenant filter for the caller; None for admins"""
    return scope_filter(identity)
