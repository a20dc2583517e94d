import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    Uuid,
)

from .database import Base  # Import the Base class from our database setup

ORDER_PROCESSING = "Processing"
ORDER_DELIVERED = "Delivered"

ROLE_USER = "user"
ROLE_ADMIN = "admin"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Cascades live in the foreign keys; deleting a parent row removes its dependents.
class User(Base):
    __tablename__ = "users"

    id = Column("user_id", Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(64), nullable=False)
    email = Column(String(64), unique=True, nullable=False, index=True)
    password = Column(String(250), nullable=False)  # bcrypt hash
    role = Column(String(10), nullable=False, default=ROLE_USER)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Avatar(Base):
    __tablename__ = "avatar"

    public_id = Column(String(255), primary_key=True)
    url = Column(String(255), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)


class Token(Base):
    """Only the SHA-256 digest of the token handed to the client is stored."""

    __tablename__ = "tokens"

    id = Column("token_id", Uuid, primary_key=True, default=uuid.uuid4)
    token_hash = Column(LargeBinary, nullable=False, index=True)
    expiry = Column(DateTime(timezone=True), nullable=False)
    scope = Column(String(32), nullable=False, default="authentication")
    user_id = Column(
        Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, unique=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Product(Base):
    __tablename__ = "products"

    id = Column("product_id", Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(64), nullable=False, index=True)
    price = Column(Integer, nullable=False)  # minor currency units
    description = Column(String(1000), nullable=False)
    ratings = Column(Integer, nullable=False, default=0)
    category = Column(String(250), nullable=False, default="")
    seller = Column(String(250), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    num_of_reviews = Column(Integer, nullable=False, default=0)
    user_id = Column(Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)


class Image(Base):
    __tablename__ = "images"

    public_id = Column(String(300), primary_key=True)
    url = Column(String(300), nullable=False)
    product_id = Column(
        Uuid, ForeignKey("products.product_id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Review(Base):
    __tablename__ = "reviews"

    id = Column("reviews_id", Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    rating = Column("ratings", Integer, nullable=False)
    comment = Column(String(1000), nullable=False)
    product_id = Column(
        Uuid, ForeignKey("products.product_id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Order(Base):
    __tablename__ = "orders"

    id = Column("order_id", Uuid, primary_key=True, default=uuid.uuid4)
    item_price = Column(Integer, nullable=False)
    tax_price = Column(Integer, nullable=False)
    shipping_price = Column(Integer, nullable=False)
    total_price = Column(Integer, nullable=False)
    order_status = Column(String(100), nullable=False, default=ORDER_PROCESSING)
    paid_at = Column(DateTime(timezone=True))
    delivered_at = Column(DateTime(timezone=True))  # NULL until delivered
    user_id = Column(
        Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)


class Shipping(Base):
    __tablename__ = "shippings"

    id = Column("shipping_id", Uuid, primary_key=True, default=uuid.uuid4)
    address = Column(String(100), nullable=False)
    city = Column(String(100), nullable=False)
    phone = Column(String(100), nullable=False)
    postal = Column(String(100), nullable=False)
    country = Column(String(100), nullable=False)
    order_id = Column(
        Uuid, ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class OrderItem(Base):
    """Snapshot of a product at the time it was ordered."""

    __tablename__ = "order_items"

    id = Column("item_id", Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=False)
    image = Column(String(1000), nullable=False)
    price = Column(Integer, nullable=False)
    product_id = Column(
        Uuid, ForeignKey("products.product_id", ondelete="CASCADE"), nullable=False
    )
    order_id = Column(
        Uuid, ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class Payment(Base):
    __tablename__ = "payments"

    id = Column("payment_id", String(300), primary_key=True)  # gateway reference
    status = Column(String(100), nullable=False)
    order_id = Column(
        Uuid, ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
