import itertools
import uuid
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from shopit.clients.images import UploadResult
from shopit.clients.payments import PaymentIntentResult
from shopit.config import Settings
from shopit.database import Base, build_engine, build_session_factory
from shopit.main import create_app
from shopit.models import ROLE_ADMIN, ROLE_USER, Product
from shopit.ratelimit import RateLimiter
from shopit.repositories import products as product_repo
from shopit.repositories import users as user_repo
from shopit.security import SCOPE_AUTHENTICATION, generate_token, hash_password

PASSWORD = "password123"


class FakeImageStore:
    def __init__(self):
        self.counter = itertools.count(1)
        self.uploaded = []
        self.destroyed = []

    def upload(self, folder, data):
        n = next(self.counter)
        result = UploadResult(public_id=f"{folder}/img{n}", url=f"https://img.test/{folder}/img{n}.jpg")
        self.uploaded.append(result.public_id)
        return result

    def destroy(self, public_id):
        self.destroyed.append(public_id)
        return "ok"


class FakeGateway:
    def __init__(self):
        self.result = PaymentIntentResult(client_secret="pi_123_secret_456")
        self.calls = []

    def create_payment_intent(self, currency, amount):
        self.calls.append((currency, amount))
        return self.result


class FakeMailer:
    def __init__(self):
        self.sent = []

    def send_mail(self, sender, to, subject, template, data):
        self.sent.append({"to": to, "subject": subject, "template": template, "data": data})


class FakeBus:
    def __init__(self):
        self.published = []

    def publish(self, routing_key, message):
        self.published.append((routing_key, message))


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", rabbitmq_host="", log_level="WARNING")


@pytest.fixture
def session_factory():
    engine = build_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield build_session_factory(engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def image_store():
    return FakeImageStore()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def bus():
    return FakeBus()


@pytest.fixture
def app(settings, session_factory, image_store, gateway, mailer, bus):
    return create_app(
        settings=settings,
        session_factory=session_factory,
        image_store=image_store,
        payment_gateway=gateway,
        mailer=mailer,
        event_bus=bus,
        rate_limiter=RateLimiter(rate=1000, burst=1000),
    )


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_user(db):
    """Creates a user with an avatar and a live session token."""
    counter = itertools.count(1)

    def _make(role=ROLE_USER, name=None, email=None, password=PASSWORD):
        n = next(counter)
        user = user_repo.insert_user(
            db, name or f"user{n}", email or f"user{n}@example.com", hash_password(password), role
        )
        user_repo.insert_avatar(db, f"avatar/seed{n}", f"https://img.test/avatar/seed{n}.jpg", user.id)
        token = generate_token(user.id, timedelta(hours=1), SCOPE_AUTHENTICATION)
        user_repo.insert_token(db, token)
        db.commit()
        return user, token.plain_text

    return _make


@pytest.fixture
def customer(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role=ROLE_ADMIN, name="admin", email="admin@example.com")


@pytest.fixture
def make_product(db):
    def _make(owner, name="Apple", price=1000, stock=10, **extra):
        product = product_repo.insert_product(
            db,
            Product(
                name=name,
                price=price,
                description=extra.get("description", f"{name} description"),
                category=extra.get("category", "Food"),
                seller=extra.get("seller", "Acme"),
                stock=stock,
                ratings=0,
                num_of_reviews=0,
                user_id=owner.id,
            ),
        )
        db.commit()
        return product

    return _make


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


def order_payload(product_id, quantity=1, price=100, **overrides):
    payload = {
        "orderItems": [
            {"product": str(product_id), "name": "Apple", "price": price, "quantity": quantity, "image": "a.jpg"}
        ],
        "shippingInfo": {
            "address": "1 Main St",
            "city": "Springfield",
            "phoneNo": "5551234",
            "postalCode": "12345",
            "country": "US",
        },
        "paymentInfo": {"id": f"pi_{uuid.uuid4().hex[:12]}", "status": "succeeded"},
        "itemsPrice": 100,
        "taxPrice": 10,
        "shippingPrice": 20,
        "totalPrice": 130,
    }
    payload.update(overrides)
    return payload
