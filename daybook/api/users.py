"""
User management endpoints
"""

from fastapi import APIRouter, Depends

from .deps import LedgerSystem, get_system, require_roles
from ..errors import NotFoundError, ValidationError
from ..identity import Identity, UserRole


router = APIRouter()


@router.get("")
async def list_users(
    admin: Identity = Depends(require_roles(UserRole.ADMIN)),
    system: LedgerSystem = Depends(get_system)
):
    """List users (admin only)"""
    users = system.identities.list_users()
    return {
        "message": "Users retrieved successfully",
        "data": [user.to_dict() for user in users]
    }


@router.post("/{user_id}/deactivate")
async def deactivate_user(
    user_id: str,
    admin: Identity = Depends(require_roles(UserRole.ADMIN)),
    system: LedgerSystem = Depends(get_system)
):
    """Deactivate a user; their existing tokens stop resolving (admin only)"""
    if user_id == admin.id:
        raise ValidationError("Admins cannot deactivate themselves")
    if not system.identities.deactivate_user(user_id):
        raise NotFoundError("User not found")
    return {"message": "User deactivated successfully", "data": {"id": user_id}}
