"""
Authentication endpoints
"""

from fastapi import APIRouter, Depends, status

from .deps import LedgerSystem, get_current_identity, get_system, require_roles
from .schemas import CreateAdminRequest, LoginRequest, RegisterRequest
from ..errors import ConflictError
from ..identity import Identity, UserRole


router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    admin: Identity = Depends(require_roles(UserRole.ADMIN)),
    system: LedgerSystem = Depends(get_system)
):
    """Create a user with a role and tenant (admin only)"""
    user = system.identities.create_user(
        request.email, request.password, request.role, request.tenant
    )
    return {"message": "User created successfully", "data": user.to_dict()}


@router.post("/login")
async def login(
    request: LoginRequest,
    system: LedgerSystem = Depends(get_system)
):
    """Password login returning a signed token"""
    identity = system.identities.authenticate(request.email, request.password)
    token = system.authenticator.issue_token(identity)
    return {
        "message": "Login successful",
        "data": {"token": token, "user": identity.to_dict()}
    }


@router.post("/create-admin", status_code=status.HTTP_201_CREATED)
async def create_admin(
    request: CreateAdminRequest,
    system: LedgerSystem = Depends(get_system)
):
    """One-time bootstrap of the first admin"""
    if system.identities.has_admin():
        raise ConflictError("An admin user already exists")
    user = system.identities.create_user(
        request.email, request.password, UserRole.ADMIN, request.tenant
    )
    return {"message": "Admin user created successfully", "data": user.to_dict()}


@router.get("/me")
async def me(identity: Identity = Depends(get_current_identity)):
    """Resolve the caller's identity"""
    return {"message": "User retrieved successfully", "data": identity.to_dict()}
