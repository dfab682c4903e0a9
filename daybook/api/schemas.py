"""
Pydantic schemas for API requests
"""

from typing import Optional, Union
from pydantic import BaseModel, Field


# Amounts are validated by the services so that NaN, infinities and
# non-numeric strings produce the ledger's own error messages
AmountField = Optional[Union[int, float, str]]


# Auth schemas
class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    email: str
    password: str
    role: str = Field(..., description="admin, accountant or staff")
    tenant: Optional[str] = Field(None, description="Required for non-admin users")


class CreateAdminRequest(BaseModel):
    email: str
    password: str
    tenant: Optional[str] = None


# Personal ledger schemas
class CreatePersonalEntryRequest(BaseModel):
    paytype: Optional[str] = Field(None, description="incoming or outgoing")
    amount: AmountField = None
    description: Optional[str] = None
    tenant: Optional[str] = Field(None, description="Ignored; entries are always Personal")


class UpdatePersonalEntryRequest(BaseModel):
    paytype: Optional[str] = None
    amount: AmountField = None
    description: Optional[str] = None


# Bank account schemas
class CreateBankAccountRequest(BaseModel):
    bank_name: Optional[str] = None
    account_name: Optional[str] = None
    shortform: Optional[str] = None
    account_number: Optional[str] = None
    ifsc: Optional[str] = None
    branch: Optional[str] = None
    balance: AmountField = None
    tenant: Optional[str] = None


class UpdateBankAccountRequest(BaseModel):
    bank_name: Optional[str] = None
    account_name: Optional[str] = None
    shortform: Optional[str] = None
    account_number: Optional[str] = None
    ifsc: Optional[str] = None
    branch: Optional[str] = None
    balance: AmountField = None


# Bank transaction schemas
class AccountMovementRequest(BaseModel):
    account_id: int
    amount: AmountField = None
    description: Optional[str] = None
    reference: Optional[str] = None


class TransferRequest(BaseModel):
    from_account_id: int
    to_account_id: int
    amount: AmountField = None
    description: Optional[str] = None
    reference: Optional[str] = None


class ChequeRequest(AccountMovementRequest):
    cheque_number: Optional[str] = None
