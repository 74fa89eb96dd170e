"""Coupon lookup, validity checks and usage counting."""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import update
from sqlmodel import Session, select

from storefront.models import Coupon

PERCENTAGE = "percentage"
FIXED = "fixed"


@dataclass(frozen=True)
class CouponSnapshot:
    """Frozen view of a coupon handed to the pricing engine."""

    code: str
    discount_type: str
    value: Decimal
    min_order_amount: Decimal = Decimal("0")
    max_discount: Decimal | None = None
    is_valid: bool = True
    reason: str | None = None  # why is_valid is False


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def _parse_days_of_month(s: str | None) -> set[int] | None:
    """'1-7' or '1,15,20' -> set of day numbers. Empty/None -> None (every day)."""
    if not s or not (s := s.strip()):
        return None
    out: set[int] = set()
    for part in s.split(","):
        part = part.strip()
        if "-" in part:
            a, b = part.split("-", 1)
            try:
                lo, hi = int(a.strip()), int(b.strip())
                if 1 <= lo <= 31 and 1 <= hi <= 31:
                    out.update(range(lo, hi + 1))
            except ValueError:
                continue
        else:
            try:
                n = int(part)
                if 1 <= n <= 31:
                    out.add(n)
            except ValueError:
                continue
    return out if out else None


def rejection_reason(coupon: Coupon, today: date | None = None) -> str | None:
    """None when the coupon can be redeemed today, else a user-facing reason."""
    today = today or date.today()
    if not coupon.is_active:
        return "This coupon is no longer active."
    if coupon.valid_from and today < coupon.valid_from:
        return "This coupon is not valid yet."
    if coupon.valid_until and today > coupon.valid_until:
        return "This coupon has expired."
    days_ok = _parse_days_of_month(coupon.valid_days_of_month)
    if days_ok is not None and today.day not in days_ok:
        return "This coupon is not valid today (only on specific days of the month)."
    if coupon.max_uses is not None and (coupon.use_count or 0) >= coupon.max_uses:
        return "This coupon has reached its usage limit."
    if coupon.discount_type == PERCENTAGE:
        if not (Decimal("0") < coupon.discount_value <= Decimal("100")):
            return "Invalid coupon percentage."
    elif coupon.discount_type == FIXED:
        if coupon.discount_value <= 0:
            return "Invalid coupon amount."
    else:
        return "Invalid coupon type."
    return None


def get_coupon(db: Session, code: str | None, today: date | None = None) -> CouponSnapshot | None:
    """Looks the code up case-insensitively. None if no such coupon exists."""
    code_upper = normalize_code(code)
    if not code_upper:
        return None
    coupon = db.exec(select(Coupon).where(Coupon.code == code_upper)).first()
    if not coupon:
        return None
    reason = rejection_reason(coupon, today)
    return CouponSnapshot(
        code=coupon.code,
        discount_type=coupon.discount_type,
        value=Decimal(coupon.discount_value),
        min_order_amount=Decimal(coupon.min_order_amount or 0),
        max_discount=Decimal(coupon.max_discount) if coupon.max_discount is not None else None,
        is_valid=reason is None,
        reason=reason,
    )


def apply_coupon_use(db: Session, code: str) -> None:
    """Increments the usage counter in SQL; caller commits. Called once per paid order."""
    db.execute(
        update(Coupon)
        .where(Coupon.code == normalize_code(code))
        .values(use_count=Coupon.use_count + 1)
        .execution_options(synchronize_session=False)
    )
