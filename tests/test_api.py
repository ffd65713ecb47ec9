from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from conftest import DEPARTURE_DATE
from railstay.database import get_db
from railstay.main import app
from railstay.models import User

API = "/api/v1"


@pytest.fixture
def client(db, ref):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth(client):
    response = client.post(f"{API}/auth/register", json={"username": "dana", "password": "secret-pass"})
    assert response.status_code == 201
    response = client.post(f"{API}/auth/login", json={"username": "dana", "password": "secret-pass"})
    assert response.status_code == 200
    token = response.json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    response = client.post(
        f"{API}/auth/personal-info",
        json={"name": "Dana", "identity_card_id": "ID-dana", "is_default": True},
        headers=headers
    )
    assert response.status_code == 201
    return headers, response.json()["uuid"]


def train_payload(ref, traveler_id, **overrides):
    payload = {
        "kind": "train",
        "personal_info_id": traveler_id,
        "schedule_id": ref["schedule"].uuid,
        "seat_type_id": ref["second_class"].uuid,
        "from_station_id": ref["stations"]["Northgate"].uuid,
        "to_station_id": ref["stations"]["Harbour"].uuid,
    }
    payload.update(overrides)
    return payload


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_requires_session(client):
    response = client.get(f"{API}/payment/balance")
    assert response.status_code == 401

    response = client.get(f"{API}/payment/balance", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_me(client, auth):
    headers, _ = auth
    body = client.get(f"{API}/auth/me", headers=headers).json()
    assert body["username"] == "dana"
    assert body["has_payment_password"] is False


def test_duplicate_registration_rejected(client, auth):
    response = client.post(f"{API}/auth/register", json={"username": "dana", "password": "another-pass"})
    assert response.status_code == 400


def test_submit_pay_list_cancel(client, auth, ref):
    headers, traveler_id = auth

    response = client.post(f"{API}/payment/recharge", json={"amount": "100.00"}, headers=headers)
    assert response.status_code == 200
    assert Decimal(response.json()["amount"]) == Decimal("100.00")

    response = client.post(
        f"{API}/orders/submit",
        json={
            "orders": [
                train_payload(ref, traveler_id),
                {"kind": "dish", "personal_info_id": traveler_id, "dish_id": ref["noodles"].uuid, "train_order_index": 0},
            ],
            "atomic": True
        },
        headers=headers
    )
    assert response.status_code == 201
    submitted = response.json()
    assert submitted["status"] == "unpaid"
    assert Decimal(submitted["amount"]) == Decimal("-85.00")

    response = client.post(
        f"{API}/payment/pay/{submitted['transaction_id']}",
        json={"payment_password": "secret-pass"},
        headers=headers
    )
    assert response.status_code == 200
    settled = response.json()
    assert settled["status"] == "paid"
    assert [outcome["status"] for outcome in settled["outcomes"]] == ["paid", "paid"]

    balance = client.get(f"{API}/payment/balance", headers=headers).json()
    assert Decimal(balance["balance"]) == Decimal("15.00")

    listed = client.get(f"{API}/orders/list", headers=headers).json()
    assert [tx["kind"] for tx in listed] == ["purchase", "recharge"]
    train_order = next(order for order in listed[0]["orders"] if order["order_type"] == "train")

    response = client.post(f"{API}/orders/cancel", json={"order_id": train_order["order_id"]}, headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "refunded"

    balance = client.get(f"{API}/payment/balance", headers=headers).json()
    assert Decimal(balance["balance"]) == Decimal("75.00")


def test_submit_validation_errors(client, auth, ref):
    headers, traveler_id = auth

    response = client.post(f"{API}/orders/submit", json={"orders": []}, headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "EMPTY_ORDER_LIST"

    response = client.post(
        f"{API}/orders/submit",
        json={"orders": [train_payload(ref, traveler_id, schedule_id="bogus")]},
        headers=headers
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "MALFORMED_IDENTIFIER"


def test_pay_with_wrong_password_is_forbidden(client, auth, ref):
    headers, traveler_id = auth
    client.post(f"{API}/payment/recharge", json={"amount": "100.00"}, headers=headers)
    submitted = client.post(
        f"{API}/orders/submit", json={"orders": [train_payload(ref, traveler_id)]}, headers=headers
    ).json()

    response = client.post(
        f"{API}/payment/pay/{submitted['transaction_id']}",
        json={"payment_password": "000000"},
        headers=headers
    )
    assert response.status_code == 403
    assert response.json()["detail"]["message"] == "Authorization failed"

    response = client.post(f"{API}/payment/pay/{submitted['transaction_id']}", json={}, headers=headers)
    assert response.status_code == 400


def test_atomic_conflict_returns_409(client, auth, ref):
    headers, traveler_id = auth
    client.post(f"{API}/payment/recharge", json={"amount": "500.00"}, headers=headers)
    submitted = client.post(
        f"{API}/orders/submit",
        json={"orders": [
            train_payload(ref, traveler_id, seat_type_id=ref["first_class"].uuid, amount=3),
        ]},
        headers=headers
    ).json()

    response = client.post(
        f"{API}/payment/pay/{submitted['transaction_id']}",
        json={"user_password": "secret-pass"},
        headers=headers
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "CAPACITY_EXCEEDED"

    balance = client.get(f"{API}/payment/balance", headers=headers).json()
    assert Decimal(balance["balance"]) == Decimal("500.00")


def test_set_payment_password(client, auth):
    headers, _ = auth

    response = client.post(
        f"{API}/payment/payment-password",
        json={"user_password": "secret-pass", "payment_password": "12ab56"},
        headers=headers
    )
    assert response.status_code == 400

    response = client.post(
        f"{API}/payment/payment-password",
        json={"user_password": "secret-pass", "payment_password": "123456"},
        headers=headers
    )
    assert response.status_code == 200
    assert client.get(f"{API}/auth/me", headers=headers).json()["has_payment_password"] is True


def test_availability_endpoints(client, ref):
    stations = ref["stations"]
    response = client.get(
        f"{API}/inventory/schedules/{ref['schedule'].uuid}/seats",
        params={"from_station_id": stations["Northgate"].uuid, "to_station_id": stations["Harbour"].uuid}
    )
    assert response.status_code == 200
    assert {s["name"]: s["remaining"] for s in response.json()["seat_types"]} == {"First Class": 2, "Second Class": 3}

    response = client.get(
        f"{API}/inventory/hotels/{ref['hotel'].uuid}/rooms",
        params={"begin_date": DEPARTURE_DATE.isoformat(), "end_date": (DEPARTURE_DATE + timedelta(days=2)).isoformat()}
    )
    assert response.status_code == 200
    assert len(response.json()["room_types"]) == 2

    response = client.get(
        f"{API}/inventory/hotels/00000000-0000-0000-0000-000000000000/rooms",
        params={"begin_date": DEPARTURE_DATE.isoformat(), "end_date": (DEPARTURE_DATE + timedelta(days=2)).isoformat()}
    )
    assert response.status_code == 400


def test_admin_endpoints(client, auth, db):
    headers, _ = auth
    assert client.post(f"{API}/admin/cleanup-expired", headers=headers).status_code == 403

    user = db.query(User).filter(User.username == "dana").one()
    user.is_admin = True
    user.wrong_payment_password_tried = 5
    db.commit()

    response = client.post(f"{API}/admin/cleanup-expired", headers=headers)
    assert response.status_code == 200
    assert response.json()["processed"] == 0

    response = client.post(f"{API}/admin/advance-orders", headers=headers)
    assert response.status_code == 200

    response = client.post(f"{API}/admin/users/{user.id}/reset-payment-attempts", headers=headers)
    assert response.status_code == 200
    db.expire_all()
    assert user.wrong_payment_password_tried == 0

    response = client.post(f"{API}/admin/users/999999/reset-payment-attempts", headers=headers)
    assert response.status_code == 404
