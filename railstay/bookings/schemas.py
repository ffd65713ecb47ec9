from pydantic import BaseModel
from typing import List, Optional
from decimal import Decimal

from railstay.orders.schemas import OrderRequest, OrderType, OrderStatus
from railstay.payments.schemas import TransactionStatus

class SubmitOrdersRequest(BaseModel):
    """A group of orders paid for by one transaction"""
    orders: List[OrderRequest]
    atomic: bool = True

class OrderOutcome(BaseModel):
    """What settlement did to one order"""
    order_id: str
    order_type: OrderType
    status: OrderStatus
    error_code: Optional[str] = None
    error_message: Optional[str] = None

class SettlementResult(BaseModel):
    transaction_id: str
    status: TransactionStatus
    amount: Decimal
    atomic: bool
    outcomes: List[OrderOutcome]

class SweepResult(BaseModel):
    message: str
    processed: int
