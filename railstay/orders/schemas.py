from pydantic import BaseModel, Field, validator
from typing import Optional, Dict, Literal, Any, Union, Annotated
from datetime import datetime, date
from decimal import Decimal
from enum import Enum

class OrderType(str, Enum):
    """Order type tag"""
    TRAIN = "train"
    HOTEL = "hotel"
    DISH = "dish"
    TAKEAWAY = "takeaway"

class OrderStatus(str, Enum):
    """Order status enumeration"""
    UNPAID = "unpaid"
    PAID = "paid"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"

# Order requests (discriminated on ``kind``)
class TrainOrderRequest(BaseModel):
    """Seat on a train schedule between two stops"""
    kind: Literal["train"] = "train"
    personal_info_id: str
    schedule_id: str
    seat_type_id: str
    seat_id: Optional[int] = None
    from_station_id: str
    to_station_id: str
    amount: int = Field(1, ge=1, le=20)

    @validator('to_station_id')
    def validate_different_stations(cls, v, values):
        if 'from_station_id' in values and v == values['from_station_id']:
            raise ValueError('to_station_id must be different from from_station_id')
        return v

class HotelOrderRequest(BaseModel):
    """Rooms of one room type over a night range [begin_date, end_date)"""
    kind: Literal["hotel"] = "hotel"
    personal_info_id: str
    hotel_id: str
    room_type_id: str
    begin_date: date
    end_date: date
    amount: int = Field(1, ge=1, le=20)

class DishOrderRequest(BaseModel):
    """Onboard dish tied to a train order"""
    kind: Literal["dish"] = "dish"
    personal_info_id: str
    dish_id: str
    train_order_id: Optional[str] = None
    train_order_index: Optional[int] = Field(None, ge=0)
    amount: int = Field(1, ge=1, le=20)

class TakeawayOrderRequest(BaseModel):
    """Station takeaway item tied to a train order"""
    kind: Literal["takeaway"] = "takeaway"
    personal_info_id: str
    takeaway_dish_id: str
    train_order_id: Optional[str] = None
    train_order_index: Optional[int] = Field(None, ge=0)
    amount: int = Field(1, ge=1, le=20)

OrderRequest = Annotated[
    Union[TrainOrderRequest, HotelOrderRequest, DishOrderRequest, TakeawayOrderRequest],
    Field(discriminator="kind")
]

# Order views
class OrderInfo(BaseModel):
    """Order as shown to its owner"""
    order_id: str
    order_type: OrderType
    status: OrderStatus
    personal_info_id: Optional[str] = None
    unit_price: Decimal
    amount: int
    total_price: Decimal
    create_time: datetime
    active_time: datetime
    complete_time: datetime
    detail: Dict[str, Any] = {}

class OrderCancelRequest(BaseModel):
    order_id: str

class OrderCancelResponse(BaseModel):
    order_id: str
    status: OrderStatus
    refund_transaction_id: str
    refunded_amount: Decimal
