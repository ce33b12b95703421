from datetime import date, datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient

from routelynk.core.config import Settings
from routelynk.core.errors import PaymentGatewayError
from routelynk.main import create_app
from routelynk.models.ticket import Ticket
from routelynk.models.user import User
from routelynk.services.gateway import PaymentGateway

IDP_SECRET = "test-idp-secret"


class FakeGateway(PaymentGateway):
    """In-memory stand-in for Stripe."""

    def __init__(self):
        self.intents: list[tuple[int, str]] = []
        self.charges: dict[str, int] = {}
        self.refunds: list[str] = []
        self.fail_refunds = False

    def charge(self, transaction_id: str, amount: int):
        self.charges[transaction_id] = amount

    def create_intent(self, amount: int, currency: str) -> str:
        self.intents.append((amount, currency))
        return f"pi_{len(self.intents)}_secret_test"

    def charge_succeeded(self, transaction_id: str, amount: int) -> bool:
        if transaction_id in self.refunds:
            return False
        return self.charges.get(transaction_id) == amount

    def refund(self, transaction_id: str) -> None:
        if self.fail_refunds:
            raise PaymentGatewayError("Refund failed")
        self.refunds.append(transaction_id)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'routelynk.db'}",
        ENV="test",
        LOG_LEVEL="WARNING",
        SECRET_KEY="test-secret",
        IDP_SECRET=IDP_SECRET,
        ADMIN_EMAILS="admin@example.com",
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(settings, gateway):
    app = create_app(settings, gateway)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def session_factory(client):
    return client.app.state.session_factory


def identity_token(email: str, secret: str = IDP_SECRET, **claims) -> str:
    payload = {"email": email, "exp": datetime.now(tz=timezone.utc) + timedelta(minutes=5), **claims}
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def login(client):
    def _login(email: str) -> dict:
        r = client.post("/auth/jwt", json={"id_token": identity_token(email)})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['access_token']}"}
    return _login


@pytest.fixture
def make_user(login, session_factory):
    """Log a user in (creating the record) and force its role/status."""
    def _make(email: str, role: str = "user", status: str = "active") -> dict:
        headers = login(email)
        with session_factory() as db:
            user = db.query(User).filter(User.email == email).one()
            user.role = role
            user.status = status
            db.commit()
        return headers
    return _make


@pytest.fixture
def seed_ticket(session_factory):
    def _seed(vendor_email: str = "vendor@example.com", **overrides) -> int:
        fields = dict(
            vendor_email=vendor_email,
            title="Dhaka Express",
            from_location="Dhaka",
            to_location="Chittagong",
            transport_type="bus",
            price=100.0,
            quantity=5,
            departure_date=date.today() + timedelta(days=10),
            departure_time="08:30",
            perks=["AC"],
            status="approved",
            is_advertised=False,
        )
        fields.update(overrides)
        with session_factory() as db:
            ticket = Ticket(**fields)
            db.add(ticket)
            db.commit()
            return ticket.id
    return _seed


@pytest.fixture
def fetch(session_factory):
    def _fetch(model, pk):
        with session_factory() as db:
            return db.get(model, pk)
    return _fetch
