"""Coupon: code, percentage / fixed discount, minimum order, cap, validity window and days of month."""
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlmodel import Field, SQLModel


class Coupon(SQLModel, table=True):
    """Discount code created by an admin and redeemed at order creation."""

    __tablename__ = "coupons"

    id: int | None = Field(default=None, primary_key=True)
    code: str = Field(unique=True, index=True, max_length=64)  # stored upper-case, e.g. SAVE20
    discount_type: str = Field(max_length=16)  # "percentage" | "fixed"
    discount_value: Decimal = Field(max_digits=10, decimal_places=2)  # percentage: 0-100, fixed: amount
    min_order_amount: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    max_discount: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    valid_from: date | None = Field(default=None)  # inclusive
    valid_until: date | None = Field(default=None)  # inclusive
    # Only on these days of the month; empty = every day. E.g. "1,2,3" or "1-7"
    valid_days_of_month: str | None = Field(default=None, max_length=128)
    max_uses: int | None = Field(default=None)  # null = unlimited
    use_count: int = Field(default=0)
    is_active: bool = True
    created_at: datetime | None = Field(default_factory=lambda: datetime.now(timezone.utc))
