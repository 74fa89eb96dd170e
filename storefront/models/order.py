"""Order, its coupon discount record and its audit trail."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    DELIVERED = "delivered"
    REJECTED = "rejected"


class PaymentMethod(str, Enum):
    CARD = "card"
    CASH = "cash"
    WALLET_TRANSFER = "wallet-transfer"
    INSTA_TRANSFER = "insta-transfer"
    FAWRY_TRANSFER = "fawry-transfer"

    @property
    def is_manual_transfer(self) -> bool:
        return self in (
            PaymentMethod.WALLET_TRANSFER,
            PaymentMethod.INSTA_TRANSFER,
            PaymentMethod.FAWRY_TRANSFER,
        )


class Order(SQLModel, table=True):
    """Status only changes through storefront.services.orders (conditional writes on status)."""

    __tablename__ = "orders"

    id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True, max_length=32)
    user_id: int = Field(foreign_key="users.id", index=True)
    product_id: int = Field(foreign_key="products.id", index=True)
    package_id: int | None = Field(default=None, foreign_key="packages.id")
    # [{"field_name": "...", "value": "..."}] in the order the buyer sent them
    account_info: list[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    base_amount: Decimal = Field(max_digits=10, decimal_places=2)  # catalog price snapshot
    total_amount: Decimal = Field(max_digits=10, decimal_places=2)  # charged amount, never recomputed
    currency: str = Field(default="usd", max_length=8)
    status: str = Field(default=OrderStatus.PENDING.value, index=True, max_length=16)
    payment_method: str = Field(max_length=32)
    coupon_code: str | None = Field(default=None, max_length=64)
    checkout_session_id: str | None = Field(default=None, index=True)
    paid_at: datetime | None = None
    # Manual transfer evidence; numbers and handles are Fernet tokens, never plaintext
    transfer_number: str | None = None
    insta_handle: str | None = None
    evidence_image_url: str | None = None
    evidence_image_public_id: str | None = None
    transfer_submitted_at: datetime | None = None
    admin_note: str | None = Field(default=None, max_length=1000)
    refund_amount: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    refund_date: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class OrderDiscount(SQLModel, table=True):
    """Coupon effect captured at creation; the order's base amount is never rewritten."""

    __tablename__ = "order_discounts"

    id: int | None = Field(default=None, primary_key=True)
    order_id: str = Field(foreign_key="orders.id", unique=True, index=True)
    coupon_code: str = Field(max_length=64)
    discount_type: str = Field(max_length=16)
    discount_value: Decimal = Field(max_digits=10, decimal_places=2)
    base_amount: Decimal = Field(max_digits=10, decimal_places=2)
    discount_amount: Decimal = Field(max_digits=10, decimal_places=2)
    created_at: datetime = Field(default_factory=utcnow)


class OrderEvent(SQLModel, table=True):
    """Append-only audit trail: status transitions and admin note edits."""

    __tablename__ = "order_events"

    id: int | None = Field(default=None, primary_key=True)
    order_id: str = Field(foreign_key="orders.id", index=True)
    event: str = Field(max_length=32)  # created | transition | note | transfer_submitted
    from_status: str | None = Field(default=None, max_length=16)
    to_status: str | None = Field(default=None, max_length=16)
    actor: str = Field(default="system", max_length=32)  # buyer | admin | webhook | system
    detail: str | None = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=utcnow)
