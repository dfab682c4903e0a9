"""
Tests for authentication and role/tenant gating
"""

import pytest

from daybook.authorization import (
    Authenticator, extract_bearer_token, require_personal_access, require_role, scope_filter
)
from daybook.errors import ForbiddenError, UnauthorizedError
from daybook.identity import Identity, StorageIdentityProvider, UserRole
from daybook.storage import InMemoryStorage
from daybook.tenancy import Tenant
from daybook.tokens import TokenService


SECRET = "test-secret-key-that-is-long-enough-for-hs256"


class TestBearerToken:

    def test_extracts_token(self):
        assert extract_bearer_token("Bearer abc.def") == "abc.def"
        assert extract_bearer_token("bearer abc") == "abc"

    @pytest.mark.parametrize("header", [None, "", "abc", "Basic abc", "Bearer", "Bearer a b"])
    def test_missing_or_malformed(self, header):
        with pytest.raises(UnauthorizedError, match="Access token required"):
            extract_bearer_token(header)


class TestAuthenticator:

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.identities = StorageIdentityProvider(self.storage)
        self.tokens = TokenService(SECRET)
        self.authenticator = Authenticator(self.tokens, self.identities)
        self.user = self.identities.create_user("a@example.com", "secret1", UserRole.STAFF, "Dearcare")

    def test_round_trip(self):
        token = self.authenticator.issue_token(self.user)
        identity = self.authenticator.authenticate_header(f"Bearer {token}")
        assert identity.id == self.user.id
        assert identity.tenant == Tenant.DEAR_CARE

    def test_resolves_live_role_and_tenant(self):
        token = self.authenticator.issue_token(self.user)

        record = self.storage.load("users", self.user.id)
        record["role"] = "accountant"
        record["tenant"] = "TATANursing"
        self.storage.save("users", self.user.id, record)

        identity = self.authenticator.authenticate(token)
        assert identity.role == UserRole.ACCOUNTANT
        assert identity.tenant == Tenant.TATA_NURSING

    def test_deleted_user_is_unauthorized(self):
        token = self.authenticator.issue_token(self.user)
        self.storage.delete("users", self.user.id)

        with pytest.raises(UnauthorizedError, match="Invalid token"):
            self.authenticator.authenticate(token)


class TestRoleAndTenantGates:

    admin = Identity(id="1", email="admin@example.com", role=UserRole.ADMIN)
    staff = Identity(id="2", email="staff@example.com", role=UserRole.STAFF, tenant=Tenant.DEAR_CARE)
    personal = Identity(id="3", email="me@example.com", role=UserRole.STAFF, tenant=Tenant.PERSONAL)

    def test_require_role(self):
        assert require_role(self.admin, [UserRole.ADMIN]) is self.admin

        with pytest.raises(ForbiddenError, match="Required roles: admin. Your role: staff"):
            require_role(self.staff, [UserRole.ADMIN])

    def test_require_role_with_tenant(self):
        require_role(self.staff, [UserRole.STAFF], required_tenant=Tenant.DEAR_CARE)
        with pytest.raises(ForbiddenError, match="Required tenant"):
            require_role(self.staff, [UserRole.STAFF], required_tenant=Tenant.TATA_NURSING)

    def test_scope_filter(self):
        assert scope_filter(self.admin) is None
        assert scope_filter(self.staff) == "Dearcare"

    def test_scope_filter_rejects_tenantless_non_admin(self):
        orphan = Identity(id="4", email="x@example.com", role=UserRole.ACCOUNTANT)
        with pytest.raises(ForbiddenError):
            scope_filter(orphan)

    def test_personal_access(self):
        require_personal_access(self.admin)
        require_personal_access(self.personal)
        with pytest.raises(ForbiddenError):
            require_personal_access(self.staff)
