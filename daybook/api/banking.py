"""
Bank account and bank transaction endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from .deps import LedgerSystem, get_current_identity, get_scope, get_system
from .schemas import (
    AccountMovementRequest, ChequeRequest, CreateBankAccountRequest,
    TransferRequest, UpdateBankAccountRequest
)
from ..identity import Identity


router = APIRouter()


# Accounts

@router.post("/accounts/create", status_code=status.HTTP_201_CREATED)
async def create_account(
    request: CreateBankAccountRequest,
    identity: Identity = Depends(get_current_identity),
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    """Register a bank account"""
    account = system.bank_accounts.create(
        request.model_dump(), tenant=scope, user_id=identity.id
    )
    return {"message": "Bank account created successfully", "data": account}


@router.get("/accounts/list")
async def list_accounts(
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    accounts = system.bank_accounts.get_all(tenant=scope)
    return {
        "message": "Bank accounts retrieved successfully",
        "data": accounts,
        "count": len(accounts)
    }


@router.put("/accounts/update/{account_id}")
async def update_account(
    account_id: int,
    request: UpdateBankAccountRequest,
    identity: Identity = Depends(get_current_identity),
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    account = system.bank_accounts.update(
        account_id, request.model_dump(exclude_unset=True),
        tenant=scope, user_id=identity.id
    )
    return {"message": "Bank account updated successfully", "data": account}


@router.delete("/accounts/delete/{account_id}")
async def delete_account(
    account_id: int,
    identity: Identity = Depends(get_current_identity),
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    system.bank_accounts.delete(account_id, tenant=scope, user_id=identity.id)
    return {"message": "Bank account deleted successfully", "data": {"id": account_id}}


@router.get("/accounts/{account_id}/balance")
async def get_account_balance(
    account_id: int,
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    balance = system.bank_accounts.get_balance(account_id, tenant=scope)
    return {
        "message": "Balance retrieved successfully",
        "data": {"account_id": account_id, "balance": balance}
    }


@router.get("/accounts/{account_id}")
async def get_account(
    account_id: int,
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    account = system.bank_accounts.get_by_id(account_id, tenant=scope)
    return {"message": "Bank account retrieved successfully", "data": account}


# Transactions

@router.post("/transactions/deposit", status_code=status.HTTP_201_CREATED)
async def deposit(
    request: AccountMovementRequest,
    identity: Identity = Depends(get_current_identity),
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    result = system.bank_transactions.deposit(
        request.account_id, request.amount, request.description, request.reference,
        tenant=scope, user_id=identity.id
    )
    return {"message": "Deposit successful", "data": result}


@router.post("/transactions/withdraw", status_code=status.HTTP_201_CREATED)
async def withdraw(
    request: AccountMovementRequest,
    identity: Identity = Depends(get_current_identity),
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    result = system.bank_transactions.withdraw(
        request.account_id, request.amount, request.description, request.reference,
        tenant=scope, user_id=identity.id
    )
    return {"message": "Withdrawal successful", "data": result}


@router.post("/transactions/transfer", status_code=status.HTTP_201_CREATED)
async def transfer(
    request: TransferRequest,
    identity: Identity = Depends(get_current_identity),
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    result = system.bank_transactions.transfer(
        request.from_account_id, request.to_account_id, request.amount,
        request.description, request.reference,
        tenant=scope, user_id=identity.id
    )
    return {"message": "Transfer successful", "data": result}


@router.post("/transactions/cheque", status_code=status.HTTP_201_CREATED)
async def issue_cheque(
    request: ChequeRequest,
    identity: Identity = Depends(get_current_identity),
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    result = system.bank_transactions.issue_cheque(
        request.account_id, request.amount, request.cheque_number,
        request.description, request.reference,
        tenant=scope, user_id=identity.id
    )
    return {"message": "Cheque issued successfully", "data": result}


@router.get("/transactions/list")
async def list_transactions(
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    transactions = system.bank_transactions.get_all(tenant=scope)
    return {
        "message": "Transactions retrieved successfully",
        "data": transactions,
        "count": len(transactions)
    }


@router.get("/transactions/account/{account_id}")
async def list_account_transactions(
    account_id: int,
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    transactions = system.bank_transactions.get_by_account_id(account_id, tenant=scope)
    return {
        "message": "Transactions retrieved successfully",
        "data": transactions,
        "count": len(transactions)
    }


@router.get("/transactions/type/{transaction_type}")
async def list_transactions_by_type(
    transaction_type: str,
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    transactions = system.bank_transactions.get_by_type(transaction_type, tenant=scope)
    return {
        "message": "Transactions retrieved successfully",
        "data": transactions,
        "count": len(transactions)
    }


@router.get("/transactions/date-range")
async def list_transactions_by_date_range(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    transactions = system.bank_transactions.get_by_date_range(start_date, end_date, tenant=scope)
    return {
        "message": "Transactions retrieved successfully",
        "data": transactions,
        "count": len(transactions)
    }


@router.get("/transactions/{transaction_id}")
async def get_transaction(
    transaction_id: int,
    scope: Optional[str] = Depends(get_scope),
    system: LedgerSystem = Depends(get_system)
):
    transaction = system.bank_transactions.get_by_id(transaction_id, tenant=scope)
    return {"message": "Transaction retrieved successfully", "data": transaction}
