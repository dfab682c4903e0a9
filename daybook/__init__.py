"""
Day Book Ledger

Multi-tenant record keeping: a day book of incoming/outgoing payments,
a personal ledger and bank account bookkeeping with Decimal balances.
"""

__version__ = "1.0.0"
