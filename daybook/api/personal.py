"""
Personal ledger endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from .deps import LedgerSystem, get_current_identity, get_system
from .schemas import CreatePersonalEntryRequest, UpdatePersonalEntryRequest
from ..identity import Identity


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_personal_entry(
    request: CreatePersonalEntryRequest,
    identity: Identity = Depends(get_current_identity),
    system: LedgerSystem = Depends(get_system)
):
    """Create a personal entry"""
    entry = system.personal.create(identity, request.model_dump())
    return {"message": "Personal entry created successfully", "data": entry}


@router.get("")
async def list_personal_entries(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    identity: Identity = Depends(get_current_identity),
    system: LedgerSystem = Depends(get_system)
):
    """List personal entries, most recent first"""
    entries = system.personal.list(identity, start=start_date, end=end_date)
    return {
        "message": "Personal entries retrieved successfully",
        "data": entries,
        "count": len(entries)
    }


@router.get("/balance")
async def personal_balance(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    identity: Identity = Depends(get_current_identity),
    system: LedgerSystem = Depends(get_system)
):
    """Incoming, outgoing and net balance"""
    balance = system.personal.get_balance(identity, start=start_date, end=end_date)
    return {"message": "Personal balance calculated successfully", "data": balance}


@router.get("/{entry_id}")
async def get_personal_entry(
    entry_id: int,
    identity: Identity = Depends(get_current_identity),
    system: LedgerSystem = Depends(get_system)
):
    entry = system.personal.get(identity, entry_id)
    return {"message": "Personal entry retrieved successfully", "data": entry}


@router.put("/{entry_id}")
async def update_personal_entry(
    entry_id: int,
    request: UpdatePersonalEntryRequest,
    identity: Identity = Depends(get_current_identity),
    system: LedgerSystem = Depends(get_system)
):
    entry = system.personal.update(identity, entry_id, request.model_dump(exclude_unset=True))
    return {"message": "Personal entry updated successfully", "data": entry}


@router.delete("/{entry_id}")
async def delete_personal_entry(
    entry_id: int,
    identity: Identity = Depends(get_current_identity),
    system: LedgerSystem = Depends(get_system)
):
    entry = system.personal.delete(identity, entry_id)
    return {"message": "Personal entry deleted successfully", "data": entry}
