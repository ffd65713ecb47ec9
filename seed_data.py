#!/usr/bin/env python3

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, Any

from sqlalchemy.orm import Session

from railstay.database import SessionLocal, engine, Base
from railstay.models import (
    Station, Train, TrainSchedule, ScheduleStop, SeatType, Seat,
    Hotel, HotelRoomType, Dish, TakeawayShop, TakeawayDish
)

def seed_reference_data(db: Session, departure_date: date) -> Dict[str, Any]:
    """Create a small network: one train over four stations, one hotel, dishes and a takeaway shop.

    Returns the created objects keyed by name. The caller commits.
    """
    # 1. Stations
    stations = {
        name: Station(name=name)
        for name in ("Northgate", "Riverside", "Central", "Harbour")
    }
    db.add_all(stations.values())
    db.flush()

    # 2. Train, seat types and seats
    train = Train(number="G101")
    db.add(train)
    db.flush()

    first_class = SeatType(train_id=train.id, name="First Class", unit_price=Decimal("120.00"))
    second_class = SeatType(train_id=train.id, name="Second Class", unit_price=Decimal("60.00"))
    db.add_all([first_class, second_class])
    db.flush()

    seats = [
        Seat(seat_type_id=first_class.id, carriage=1, row=1, location="A"),
        Seat(seat_type_id=first_class.id, carriage=1, row=1, location="C"),
        Seat(seat_type_id=second_class.id, carriage=2, row=1, location="A"),
        Seat(seat_type_id=second_class.id, carriage=2, row=1, location="B"),
        Seat(seat_type_id=second_class.id, carriage=2, row=1, location="C"),
    ]
    db.add_all(seats)
    db.flush()

    # 3. Schedule with stops in travel order
    schedule = TrainSchedule(train_id=train.id, departure_date=departure_date)
    db.add(schedule)
    db.flush()

    timetable = [
        ("Northgate", time(8, 0), time(8, 0)),
        ("Riverside", time(10, 0), time(10, 5)),
        ("Central", time(12, 0), time(12, 5)),
        ("Harbour", time(14, 0), time(14, 0)),
    ]
    stops = []
    for stop_order, (name, arrival, departure) in enumerate(timetable):
        stops.append(ScheduleStop(
            schedule_id=schedule.id,
            station_id=stations[name].id,
            stop_order=stop_order,
            arrival_time=datetime.combine(departure_date, arrival),
            departure_time=datetime.combine(departure_date, departure)
        ))
    db.add_all(stops)
    db.flush()

    # 4. Hotel and room types
    hotel = Hotel(name="Harbour View Hotel")
    db.add(hotel)
    db.flush()

    single_room = HotelRoomType(hotel_id=hotel.id, type_name="Single", capacity=1, price_per_night=Decimal("80.00"))
    double_room = HotelRoomType(hotel_id=hotel.id, type_name="Double", capacity=2, price_per_night=Decimal("150.00"))
    db.add_all([single_room, double_room])
    db.flush()

    # 5. Onboard dishes
    noodles = Dish(train_id=train.id, name="Beef Noodles", unit_price=Decimal("25.00"), on_sale=True)
    curry = Dish(train_id=train.id, name="Chicken Curry", unit_price=Decimal("30.00"), on_sale=False)
    db.add_all([noodles, curry])
    db.flush()

    # 6. Takeaway at an intermediate stop
    shop = TakeawayShop(station_id=stations["Central"].id, name="Central Bakery")
    db.add(shop)
    db.flush()

    croissant = TakeawayDish(shop_id=shop.id, name="Croissant", unit_price=Decimal("8.50"), on_sale=True)
    db.add(croissant)
    db.flush()

    return {
        "stations": stations,
        "train": train,
        "first_class": first_class,
        "second_class": second_class,
        "seats": seats,
        "schedule": schedule,
        "hotel": hotel,
        "single_room": single_room,
        "double_room": double_room,
        "noodles": noodles,
        "curry": curry,
        "shop": shop,
        "croissant": croissant,
    }

def create_seed_data():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        print("🚀 Creating seed data for Railstay...")
        departure_date = date.today() + timedelta(days=7)
        data = seed_reference_data(db, departure_date)
        db.commit()
        print("✅ Successfully created seed data!")
        print(f"Created:")
        print(f"  - {len(data['stations'])} stations")
        print(f"  - train {data['train'].number} departing {departure_date.isoformat()} (schedule {data['schedule'].uuid})")
        print(f"  - {len(data['seats'])} seats in 2 seat types")
        print(f"  - hotel {data['hotel'].name} ({data['hotel'].uuid}) with 2 room types")
        print(f"  - 2 onboard dishes, 1 takeaway shop")

    except Exception as e:
        print(f"❌ Error creating seed data: {e}")
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == "__main__":
    create_seed_data()
