import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from railstay.auth.utils import get_password_hash
from railstay.bookings.booking_service import BookingService
from railstay.context import RequestContext
from railstay.database import Base, SessionLocal, engine
from railstay.models import PersonalInfo, Transaction, User
from railstay.orders.schemas import (
    DishOrderRequest, HotelOrderRequest, TakeawayOrderRequest, TrainOrderRequest
)
from railstay.payments.ledger_service import TransactionLedger
from seed_data import seed_reference_data

NOW = datetime(2030, 1, 1, 9, 0)
DEPARTURE_DATE = date(2030, 1, 2)
LOGIN_PASSWORD = "login-pass-123"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def ref(db):
    data = seed_reference_data(db, DEPARTURE_DATE)
    db.commit()
    return data


def create_user(db, username):
    user = User(
        username=username,
        hashed_password=get_password_hash(LOGIN_PASSWORD),
        wrong_payment_password_tried=0
    )
    db.add(user)
    db.flush()
    traveler = PersonalInfo(user_id=user.id, name=username.title(), identity_card_id=f"ID-{username}", is_default=True)
    db.add(traveler)
    db.commit()
    return user, traveler


@pytest.fixture
def user(db):
    return create_user(db, "alice")[0]


@pytest.fixture
def traveler(db, user):
    return db.query(PersonalInfo).filter(PersonalInfo.user_id == user.id).one()


@pytest.fixture
def ctx(user):
    return RequestContext(user_id=user.id, clock=lambda: NOW)


@pytest.fixture
def ledger(db):
    return TransactionLedger(db)


@pytest.fixture
def booking(db):
    return BookingService(db)


@pytest.fixture
def fund(db, ledger):
    def _fund(user, amount):
        ledger.recharge(user.id, Decimal(amount), NOW)
        db.commit()
    return _fund


@pytest.fixture
def make_train(ref, traveler):
    def _make(seat_type="second_class", origin="Northgate", destination="Harbour", seat_id=None, amount=1, info=None):
        return TrainOrderRequest(
            personal_info_id=(info or traveler).uuid,
            schedule_id=ref["schedule"].uuid,
            seat_type_id=ref[seat_type].uuid,
            seat_id=seat_id,
            from_station_id=ref["stations"][origin].uuid,
            to_station_id=ref["stations"][destination].uuid,
            amount=amount
        )
    return _make


@pytest.fixture
def make_hotel(ref, traveler):
    def _make(room="single_room", begin=DEPARTURE_DATE, nights=1, amount=1, info=None):
        return HotelOrderRequest(
            personal_info_id=(info or traveler).uuid,
            hotel_id=ref["hotel"].uuid,
            room_type_id=ref[room].uuid,
            begin_date=begin,
            end_date=begin + timedelta(days=nights),
            amount=amount
        )
    return _make


@pytest.fixture
def make_dish(ref, traveler):
    def _make(dish="noodles", train_order_index=None, train_order_id=None, amount=1):
        return DishOrderRequest(
            personal_info_id=traveler.uuid,
            dish_id=ref[dish].uuid,
            train_order_index=train_order_index,
            train_order_id=train_order_id,
            amount=amount
        )
    return _make


@pytest.fixture
def make_takeaway(ref, traveler):
    def _make(train_order_index=None, train_order_id=None, amount=1):
        return TakeawayOrderRequest(
            personal_info_id=traveler.uuid,
            takeaway_dish_id=ref["croissant"].uuid,
            train_order_index=train_order_index,
            train_order_id=train_order_id,
            amount=amount
        )
    return _make


@pytest.fixture
def submitted(db, booking, ctx):
    """Submit requests and return the stored transaction"""
    def _submit(requests, atomic=True, context=None):
        info = booking.submit(context or ctx, requests, atomic=atomic)
        return db.query(Transaction).filter(Transaction.uuid == info.transaction_id).one()
    return _submit
