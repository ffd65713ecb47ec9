from pydantic import BaseModel
from typing import List
from datetime import date
from decimal import Decimal

class RoomTypeAvailability(BaseModel):
    """Remaining rooms of one room type over a stay"""
    room_type_id: str
    type_name: str
    capacity: int
    remaining: int
    price: Decimal

class HotelRoomStatus(BaseModel):
    hotel_id: str
    hotel_name: str
    begin_date: date
    end_date: date
    room_types: List[RoomTypeAvailability]

class SeatTypeAvailability(BaseModel):
    """Remaining seats of one seat class over a stop range"""
    seat_type_id: str
    name: str
    capacity: int
    remaining: int
    price: Decimal

class SeatStatus(BaseModel):
    schedule_id: str
    train_number: str
    from_station_id: str
    to_station_id: str
    seat_types: List[SeatTypeAvailability]
