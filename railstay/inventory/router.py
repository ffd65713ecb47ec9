from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date
from railstay.database import get_db
from railstay.errors import DomainError
from railstay.http_errors import http_exception
from railstay.inventory.allocation_service import InventoryAllocator
from railstay.inventory.schemas import HotelRoomStatus, SeatStatus

router = APIRouter()

@router.get("/hotels/{hotel_id}/rooms", response_model=HotelRoomStatus)
def get_hotel_room_status(
    hotel_id: str,
    begin_date: date = Query(..., description="Check-in date"),
    end_date: date = Query(..., description="Check-out date"),
    db: Session = Depends(get_db)
):
    """Remaining rooms per room type for a stay"""
    try:
        return InventoryAllocator(db).hotel_room_status(hotel_id, begin_date, end_date)
    except DomainError as e:
        raise http_exception(e)

@router.get("/schedules/{schedule_id}/seats", response_model=SeatStatus)
def get_seat_status(
    schedule_id: str,
    from_station_id: str = Query(..., description="Boarding station"),
    to_station_id: str = Query(..., description="Alighting station"),
    db: Session = Depends(get_db)
):
    """Remaining seats per seat type between two stops"""
    try:
        return InventoryAllocator(db).seat_status(schedule_id, from_station_id, to_station_id)
    except DomainError as e:
        raise http_exception(e)
