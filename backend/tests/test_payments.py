import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from routelynk.core.errors import InsufficientStock
from routelynk.models.booking import Booking
from routelynk.models.payment import Payment
from routelynk.models.ticket import Ticket
from routelynk.schemas.payment import PaymentCreate
from routelynk.services import payments
from routelynk.services.gateway import PaymentGateway
from routelynk.services.guard import Identity


@pytest.fixture
def accepted_booking(client, make_user, seed_ticket):
    """Book and accept; returns (booking_id, ticket_id, buyer headers)."""
    def _make(email: str, ticket_id: int, quantity: int, vendor_headers: dict):
        buyer = make_user(email)
        r = client.post("/bookings", json={"ticket_id": ticket_id, "quantity": quantity}, headers=buyer)
        assert r.status_code == 201, r.text
        bid = r.json()["id"]
        r = client.patch(f"/bookings/status/{bid}", json={"status": "accepted"}, headers=vendor_headers)
        assert r.status_code == 200, r.text
        return bid, buyer
    return _make


def _pay(client, headers, booking_id, ticket_id, quantity, price, txn):
    return client.post(
        "/payments",
        json={"booking_id": booking_id, "ticket_id": ticket_id, "quantity": quantity, "price": price, "transaction_id": txn},
        headers=headers,
    )


def _payment_count(session_factory):
    with session_factory() as db:
        return db.query(Payment).count()


def test_payment_intent_uses_minor_units(client, login, gateway):
    headers = login("buyer@example.com")
    r = client.post("/create-payment-intent", json={"price": 123.45}, headers=headers)
    assert r.status_code == 200
    assert r.json()["client_secret"].startswith("pi_1_secret")
    assert gateway.intents == [(12345, "usd")]


def test_payment_intent_requires_token(client):
    assert client.post("/create-payment-intent", json={"price": 10}).status_code == 401


def test_record_payment_completes_booking(client, make_user, seed_ticket, accepted_booking, gateway, fetch):
    vendor = make_user("vendor@example.com", role="vendor")
    tid = seed_ticket("vendor@example.com", quantity=5, price=100)
    bid, buyer = accepted_booking("buyer@example.com", tid, 3, vendor)
    gateway.charge("pi_ok", 30000)

    r = _pay(client, buyer, bid, tid, 3, 300.0, "pi_ok")
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["replayed"] is False
    assert data["payment"]["transaction_id"] == "pi_ok"
    assert data["payment"]["vendor_email"] == "vendor@example.com"
    assert data["booking"]["status"] == "paid"
    assert data["booking"]["transaction_id"] == "pi_ok"
    assert data["ticket"]["quantity"] == 2
    assert fetch(Ticket, tid).quantity == 2
    assert gateway.refunds == []

    history = client.get("/payments/mine", headers=buyer).json()
    assert [p["transaction_id"] for p in history] == ["pi_ok"]


def test_second_payment_cannot_oversell(client, make_user, seed_ticket, accepted_booking, gateway, fetch, session_factory):
    vendor = make_user("vendor@example.com", role="vendor")
    tid = seed_ticket("vendor@example.com", quantity=5, price=100)
    bid_a, buyer_a = accepted_booking("a@example.com", tid, 3, vendor)
    bid_b, buyer_b = accepted_booking("b@example.com", tid, 3, vendor)
    gateway.charge("pi_a", 30000)
    gateway.charge("pi_b", 30000)

    assert _pay(client, buyer_a, bid_a, tid, 3, 300.0, "pi_a").status_code == 200
    r = _pay(client, buyer_b, bid_b, tid, 3, 300.0, "pi_b")
    assert r.status_code == 400
    assert r.json() == {"message": "Not enough tickets left to fulfil this payment"}

    assert fetch(Ticket, tid).quantity == 2
    assert fetch(Booking, bid_b).status == "accepted"
    assert fetch(Booking, bid_b).transaction_id is None
    assert _payment_count(session_factory) == 1
    assert gateway.refunds == ["pi_b"]


def test_replayed_transaction_is_recorded_once(client, make_user, seed_ticket, accepted_booking, gateway, fetch, session_factory):
    vendor = make_user("vendor@example.com", role="vendor")
    tid = seed_ticket("vendor@example.com", quantity=5, price=50)
    bid, buyer = accepted_booking("buyer@example.com", tid, 2, vendor)
    gateway.charge("pi_twice", 10000)

    first = _pay(client, buyer, bid, tid, 2, 100.0, "pi_twice")
    second = _pay(client, buyer, bid, tid, 2, 100.0, "pi_twice")
    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["replayed"] is True
    assert second.json()["payment"]["id"] == first.json()["payment"]["id"]
    assert fetch(Ticket, tid).quantity == 3
    assert _payment_count(session_factory) == 1


def test_replay_by_another_user_is_forbidden(client, make_user, seed_ticket, accepted_booking, gateway):
    vendor = make_user("vendor@example.com", role="vendor")
    tid = seed_ticket("vendor@example.com", quantity=5, price=50)
    bid, buyer = accepted_booking("buyer@example.com", tid, 1, vendor)
    gateway.charge("pi_mine", 5000)
    assert _pay(client, buyer, bid, tid, 1, 50.0, "pi_mine").status_code == 200
    thief = make_user("thief@example.com")
    assert _pay(client, thief, bid, tid, 1, 50.0, "pi_mine").status_code == 403


def test_pending_booking_needs_acceptance(client, make_user, seed_ticket, gateway, fetch):
    make_user("vendor@example.com", role="vendor")
    buyer = make_user("buyer@example.com")
    tid = seed_ticket("vendor@example.com", quantity=5, price=20)
    bid = client.post("/bookings", json={"ticket_id": tid, "quantity": 1}, headers=buyer).json()["id"]
    gateway.charge("pi_early", 2000)

    r = _pay(client, buyer, bid, tid, 1, 20.0, "pi_early")
    assert r.status_code == 400
    assert r.json() == {"message": "Booking is pending and cannot be paid"}
    assert fetch(Ticket, tid).quantity == 5
    assert gateway.refunds == ["pi_early"]

    # A refunded charge cannot be reused
    client.app.state.settings.require_acceptance_before_payment = False
    assert _pay(client, buyer, bid, tid, 1, 20.0, "pi_early").status_code == 400

    gateway.charge("pi_again", 2000)
    r = _pay(client, buyer, bid, tid, 1, 20.0, "pi_again")
    assert r.status_code == 200, r.text
    assert r.json()["booking"]["status"] == "paid"


def test_booking_rejected_after_charge_is_refunded(client, make_user, seed_ticket, gateway, fetch, session_factory):
    vendor = make_user("vendor@example.com", role="vendor")
    buyer = make_user("buyer@example.com")
    client.app.state.settings.require_acceptance_before_payment = False
    tid = seed_ticket("vendor@example.com", quantity=5, price=20)
    bid = client.post("/bookings", json={"ticket_id": tid, "quantity": 1}, headers=buyer).json()["id"]
    # Paid at the gateway, then the vendor rejects before the payment is recorded
    gateway.charge("pi_rej", 2000)
    client.patch(f"/bookings/status/{bid}", json={"status": "rejected"}, headers=vendor)

    r = _pay(client, buyer, bid, tid, 1, 20.0, "pi_rej")
    assert r.status_code == 400
    assert r.json() == {"message": "Booking is rejected and cannot be paid"}
    assert gateway.refunds == ["pi_rej"]
    assert fetch(Ticket, tid).quantity == 5
    assert _payment_count(session_factory) == 0


def test_rejected_and_paid_bookings_are_terminal(client, make_user, seed_ticket, accepted_booking, gateway):
    vendor = make_user("vendor@example.com", role="vendor")
    buyer = make_user("buyer@example.com")
    tid = seed_ticket("vendor@example.com", quantity=5, price=20)
    bid = client.post("/bookings", json={"ticket_id": tid, "quantity": 1}, headers=buyer).json()["id"]
    client.patch(f"/bookings/status/{bid}", json={"status": "rejected"}, headers=vendor)
    gateway.charge("pi_rej", 2000)
    assert _pay(client, buyer, bid, tid, 1, 20.0, "pi_rej").status_code == 400
    assert gateway.refunds == ["pi_rej"]

    paid_bid, payer = accepted_booking("payer@example.com", tid, 1, vendor)
    gateway.charge("pi_1", 2000)
    gateway.charge("pi_2", 2000)
    assert _pay(client, payer, paid_bid, tid, 1, 20.0, "pi_1").status_code == 200
    r = _pay(client, payer, paid_bid, tid, 1, 20.0, "pi_2")
    assert r.status_code == 400
    assert r.json() == {"message": "Booking is paid and cannot be paid"}
    assert gateway.refunds == ["pi_rej", "pi_2"]


def test_unconfirmed_charge_is_not_recorded(client, make_user, seed_ticket, accepted_booking, gateway, session_factory):
    vendor = make_user("vendor@example.com", role="vendor")
    tid = seed_ticket("vendor@example.com", quantity=5, price=20)
    bid, buyer = accepted_booking("buyer@example.com", tid, 1, vendor)
    # charged a different amount
    gateway.charge("pi_short", 100)
    r = _pay(client, buyer, bid, tid, 1, 20.0, "pi_short")
    assert r.status_code == 400
    assert r.json() == {"message": "Payment was not completed"}
    assert _payment_count(session_factory) == 0
    assert gateway.refunds == []


def test_failed_refund_surfaces_partial_failure(client, make_user, seed_ticket, accepted_booking, gateway, fetch, session_factory):
    vendor = make_user("vendor@example.com", role="vendor")
    tid = seed_ticket("vendor@example.com", quantity=2, price=10)
    bid_a, buyer_a = accepted_booking("a@example.com", tid, 2, vendor)
    bid_b, buyer_b = accepted_booking("b@example.com", tid, 2, vendor)
    gateway.charge("pi_a", 2000)
    gateway.charge("pi_b", 2000)
    assert _pay(client, buyer_a, bid_a, tid, 2, 20.0, "pi_a").status_code == 200

    gateway.fail_refunds = True
    r = _pay(client, buyer_b, bid_b, tid, 2, 20.0, "pi_b")
    assert r.status_code == 500
    assert r.json()["committed"] == ["charge"]
    assert fetch(Ticket, tid).quantity == 0
    assert fetch(Booking, bid_b).status == "accepted"
    assert _payment_count(session_factory) == 1




def test_payment_must_match_booking(client, make_user, seed_ticket, accepted_booking, gateway):
    vendor = make_user("vendor@example.com", role="vendor")
    tid = seed_ticket("vendor@example.com", quantity=5, price=10)
    other_tid = seed_ticket("vendor@example.com", quantity=5, price=10)
    bid, buyer = accepted_booking("buyer@example.com", tid, 2, vendor)

    # Unknown or foreign bookings are refused without touching the charge
    gateway.charge("pi_x", 2000)
    assert _pay(client, buyer, 9999, tid, 2, 20.0, "pi_x").status_code == 404
    stranger = make_user("stranger@example.com")
    assert _pay(client, stranger, bid, tid, 2, 20.0, "pi_x").status_code == 403
    assert gateway.refunds == []

    gateway.charge("pi_qty", 1000)
    assert _pay(client, buyer, bid, tid, 1, 10.0, "pi_qty").status_code == 400
    assert _pay(client, buyer, bid, other_tid, 2, 20.0, "pi_x").status_code == 400
    assert gateway.refunds == ["pi_qty", "pi_x"]


def test_underpaid_charge_is_refunded(client, make_user, seed_ticket, accepted_booking, gateway, fetch, session_factory):
    vendor = make_user("vendor@example.com", role="vendor")
    tid = seed_ticket("vendor@example.com", quantity=5, price=100)
    bid, buyer = accepted_booking("buyer@example.com", tid, 3, vendor)
    gateway.charge("pi_cheap", 1)

    r = _pay(client, buyer, bid, tid, 3, 0.01, "pi_cheap")
    assert r.status_code == 400
    assert r.json() == {"message": "Payment amount does not match booking total"}
    assert gateway.refunds == ["pi_cheap"]
    assert fetch(Booking, bid).status == "accepted"
    assert fetch(Ticket, tid).quantity == 5
    assert _payment_count(session_factory) == 0
    stats = client.get("/vendor-stats/vendor@example.com", headers=vendor).json()
    assert stats["total_revenue"] == 0.0


def test_recorded_price_is_the_booking_total(client, make_user, seed_ticket, accepted_booking, gateway, fetch):
    vendor = make_user("vendor@example.com", role="vendor")
    tid = seed_ticket("vendor@example.com", quantity=5, price=19.99)
    bid, buyer = accepted_booking("buyer@example.com", tid, 3, vendor)
    gateway.charge("pi_exact", 5997)
    r = _pay(client, buyer, bid, tid, 3, 59.97, "pi_exact")
    assert r.status_code == 200, r.text
    assert r.json()["payment"]["price"] == 59.97
    assert float(fetch(Payment, r.json()["payment"]["id"]).price) == 59.97


def test_concurrent_payments_never_oversell(client, make_user, seed_ticket, accepted_booking, gateway, fetch, session_factory):
    vendor = make_user("vendor@example.com", role="vendor")
    tid = seed_ticket("vendor@example.com", quantity=5, price=10)
    buyers = [f"buyer{i}@example.com" for i in range(6)]
    bookings = {}
    for email in buyers:
        bid, _ = accepted_booking(email, tid, 3, vendor)
        bookings[email] = bid
        gateway.charge(f"pi_{email}", 3000)
    settings = client.app.state.settings
    start = threading.Barrier(len(buyers))

    def pay(email):
        body = PaymentCreate(booking_id=bookings[email], ticket_id=tid, quantity=3, price=30.0, transaction_id=f"pi_{email}")
        start.wait()
        with session_factory() as db:
            try:
                payments.record_payment(db, gateway, settings, Identity(email=email), body)
            except InsufficientStock:
                return "sold out"
            return "paid"

    with ThreadPoolExecutor(max_workers=len(buyers)) as pool:
        outcomes = list(pool.map(pay, buyers))

    assert outcomes.count("paid") == 1
    assert outcomes.count("sold out") == len(buyers) - 1
    assert fetch(Ticket, tid).quantity == 2
    assert _payment_count(session_factory) == 1
    winner = buyers[outcomes.index("paid")]
    assert sorted(gateway.refunds) == sorted(f"pi_{e}" for e in buyers if e != winner)


def test_gateway_must_implement_every_operation():
    class IntentOnly(PaymentGateway):
        def create_intent(self, amount, currency):
            return "secret"

    with pytest.raises(TypeError):
        IntentOnly()
