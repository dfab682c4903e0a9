"""
Authorization Module

Resolves a bearer token to a live identity and gates access by role and
tenant. ``scope_filter`` is the single policy deciding which tenant a
listing is restricted to.
"""

from typing import Iterable, Optional

from .errors import ForbiddenError, UnauthorizedError
from .identity import Identity, IdentityProvider, UserRole
from .tenancy import Tenant
from .tokens import TokenService


def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Extract the token from an ``Authorization: Bearer <token>`` header.

    Raises:
        UnauthorizedError: If the header is absent or malformed
    """
    if not authorization:
        raise UnauthorizedError("Access token required")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        raise UnauthorizedError("Access token required")
    return parts[1]


class Authenticator:
    """Turns tokens into identities re-read from the identity provider"""

    def __init__(self, tokens: TokenService, identities: IdentityProvider):
        self.tokens = tokens
        self.identities = identities

    def authenticate(self, token: str) -> Identity:
        """
        Verify the token and resolve the caller's current role and tenant.

        Raises:
            UnauthorizedError: On a bad token or a user that no longer exists
        """
        claims = self.tokens.verify(token)
        identity = self.identities.get_user_by_id(claims.user_id)
        if identity is None:
            raise UnauthorizedError("Invalid token")
        return identity

    def authenticate_header(self, authorization: Optional[str]) -> Identity:
        return self.authenticate(extract_bearer_token(authorization))

    def issue_token(self, identity: Identity) -> str:
        return self.tokens.sign(
            identity.id, identity.email, identity.role.value,
            identity.tenant.value if identity.tenant else None
        )


def require_role(identity: Identity, allowed_roles: Iterable[UserRole],
                 required_tenant: Optional[Tenant] = None) -> Identity:
    """
    Check the caller's role, and tenant if one is required.

    Raises:
        ForbiddenError: On role or tenant mismatch
    """
    allowed = list(allowed_roles)
    if identity.role not in allowed:
        raise ForbiddenError(
            f"Access denied. Required roles: {', '.join(r.value for r in allowed)}. "
            f"Your role: {identity.role.value}"
        )
    if required_tenant is not None and identity.tenant != required_tenant:
        raise ForbiddenError(
            f"Access denied. Required tenant: {required_tenant.value}"
        )
    return identity


def scope_filter(identity: Identity) -> Optional[str]:
    """Tenant restriction for reads: none for admins, else the caller's own tenant"""
    if identity.is_admin:
        return None
    if identity.tenant is None:
        # Non-admins without a tenant see nothing rather than everything
        raise ForbiddenError("User has no tenant assigned")
    return identity.tenant.value


def require_personal_access(identity: Identity,
                            personal_tenant: Tenant = Tenant.PERSONAL) -> Identity:
    """Allow admins and members of the Personal tenant"""
    if identity.is_admin or identity.tenant == personal_tenant:
        return identity
    raise ForbiddenError("Access denied. Personal ledger is restricted to Personal tenant users")
