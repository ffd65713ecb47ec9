"""
Payment Module

Internal balance ledger and payment authorization.

Key Components:
- ledger_service.py: TransactionLedger (purchases, recharges, refunds, balance)
- guard_service.py: PaymentPasswordGuard (payment password, attempt ceiling)
- router.py: FastAPI endpoints for paying, recharging and balance queries
- schemas.py: transaction statuses, kinds and views

Features:
- Balance is the sum of paid transactions
- Purchases are captured only for orders whose inventory was reserved
- Wrong payment passwords lock payments after a fixed number of attempts
"""

from .ledger_service import TransactionLedger
from .guard_service import PaymentPasswordGuard
from .schemas import TransactionStatus, TransactionKind, TransactionInfo, TransactionDetail

__all__ = [
    "TransactionLedger",
    "PaymentPasswordGuard",
    "TransactionStatus",
    "TransactionKind",
    "TransactionInfo",
    "TransactionDetail",
]
