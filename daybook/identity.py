"""
Identity Provider Module

Users, their role and their tenant. The application talks to identities
only through ``IdentityProvider``; ``StorageIdentityProvider`` keeps them in
the entity store with salted scrypt password hashes.
"""

import hashlib
import hmac
import secrets
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ConflictError, UnauthorizedError, ValidationError
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord, utc_now
from .tenancy import Tenant, parse_tenant


class UserRole(Enum):
    """Application roles"""
    ADMIN = "admin"
    ACCOUNTANT = "accountant"
    STAFF = "staff"


def parse_role(value: Any) -> UserRole:
    if isinstance(value, UserRole):
        return value
    try:
        return UserRole(value)
    except ValueError:
        raise ValidationError(
            f"Invalid role. Must be one of: {', '.join(r.value for r in UserRole)}"
        )


@dataclass
class Identity:
    """Resolved caller identity"""
    id: str
    email: str
    role: UserRole
    tenant: Optional[Tenant] = None
    created_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role.value,
            "tenant": self.tenant.value if self.tenant else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class User(StorageRecord):
    """Stored user with credentials"""
    id: str
    email: str
    role: UserRole
    tenant: Optional[Tenant] = None
    is_active: bool = True
    password_hash: Optional[str] = None
    password_salt: Optional[str] = None
    last_login: Optional[datetime] = None

    _datetime_fields = ("created_at", "last_login")
    _enum_fields = {"role": UserRole, "tenant": Tenant}

    def to_identity(self) -> Identity:
        return Identity(
            id=self.id,
            email=self.email,
            role=self.role,
            tenant=self.tenant,
            created_at=self.created_at,
        )


class IdentityProvider(ABC):
    """Issues and validates user credentials, stores role and tenant"""

    @abstractmethod
    def create_user(self, email: str, password: str, role: UserRole,
                    tenant: Optional[Tenant] = None) -> Identity:
        pass

    @abstractmethod
    def authenticate(self, email: str, password: str) -> Identity:
        pass

    @abstractmethod
    def get_user_by_id(self, user_id: str) -> Optional[Identity]:
        pass

    @abstractmethod
    def list_users(self) -> List[Identity]:
        pass

    def has_admin(self) -> bool:
        return any(user.is_admin for user in self.list_users())


class StorageIdentityProvider(IdentityProvider):
    """Identity provider backed by the entity store"""

    def __init__(self, storage: StorageInterface, password_min_length: int = 6):
        self.storage = storage
        self.table_name = "users"
        self.password_min_length = password_min_length
        self.logger = get_logger("daybook.identity")

    def create_user(self, email: str, password: str, role: UserRole,
                    tenant: Optional[Tenant] = None) -> Identity:
        """
        Create a user.

        Non-admin users must belong to a tenant; admins may be tenant-less.

        Raises:
            ValidationError: On a malformed email, short password, bad role or tenant
            ConflictError: If the email is already registered
        """
        email = (email or "").strip().lower()
        if not email or "@" not in email:
            raise ValidationError("A valid email is required")
        if not password or len(password) < self.password_min_length:
            raise ValidationError(
                f"Password must be at least {self.password_min_length} characters"
            )
        role = parse_role(role)
        tenant = parse_tenant(tenant, required=role != UserRole.ADMIN)

        if self.storage.find(self.table_name, {"email": email}):
            raise ConflictError("A user with this email already exists")

        salt = secrets.token_hex(16)
        user = User(
            id=str(uuid.uuid4()),
            created_at=utc_now(),
            email=email,
            role=role,
            tenant=tenant,
            password_hash=self._hash_password(password, salt),
            password_salt=salt,
        )
        self.storage.save(self.table_name, user.id, user.to_dict())

        log_action(
            self.logger, "info", "User created",
            user_id=user.id, action="create_user", resource=f"user:{user.id}",
            tenant=tenant.value if tenant else None,
            extra={"email": email, "role": role.value}
        )
        return user.to_identity()

    def authenticate(self, email: str, password: str) -> Identity:
        """
        Verify an email/password pair.

        Raises:
            UnauthorizedError: On unknown email, wrong password or inactive user
        """
        user = self._get_user_by_email(email)
        if not user or not self._verify_password(user, password):
            log_action(
                self.logger, "warning", "Login failed",
                action="login_failed", extra={"email": (email or "").lower()}
            )
            raise UnauthorizedError("Invalid credentials")

        if not user.is_active:
            raise UnauthorizedError("Account is not available")

        user.last_login = utc_now()
        self.storage.save(self.table_name, user.id, user.to_dict())

        log_action(
            self.logger, "info", "Login successful",
            user_id=user.id, action="login", resource=f"user:{user.id}"
        )
        return user.to_identity()

    def get_user_by_id(self, user_id: str) -> Optional[Identity]:
        data = self.storage.load(self.table_name, user_id)
        if not data:
            return None
        user = User.from_dict(data)
        if not user.is_active:
            return None
        return user.to_identity()

    def list_users(self) -> List[Identity]:
        users = [User.from_dict(data) for data in self.storage.load_all(self.table_name)]
        return sorted((u.to_identity() for u in users), key=lambda i: i.email)

    def deactivate_user(self, user_id: str) -> bool:
        """Deactivate a user; their tokens stop resolving"""
        data = self.storage.load(self.table_name, user_id)
        if not data:
            return False
        data["is_active"] = False
        self.storage.save(self.table_name, user_id, data)

        log_action(
            self.logger, "info", "User deactivated",
            user_id=user_id, action="deactivate_user", resource=f"user:{user_id}",
            tenant=data.get("tenant")
        )
        return True

    def _get_user_by_email(self, email: str) -> Optional[User]:
        found = self.storage.find(self.table_name, {"email": (email or "").strip().lower()})
        if not found:
            return None
        return User.from_dict(found[0])

    def _hash_password(self, password: str, salt: str) -> str:
        """Hash password with salt using scrypt"""
        return hashlib.scrypt(
            password.encode(),
            salt=salt.encode(),
            n=16384, r=8, p=1
        ).hex()

    def _verify_password(self, user: User, password: str) -> bool:
        if not user.password_hash or not user.password_salt or not password:
            return False
        expected = self._hash_password(password, user.password_salt)
        return hmac.compare_digest(expected, user.password_hash)
