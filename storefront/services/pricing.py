"""
Order pricing: catalog price snapshot (offer aware) and coupon discount.

Pure functions over the product / package / coupon passed in; nothing is read
from or written to the database here.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from storefront.core.errors import PricingError
from storefront.models import Package, Product
from storefront.services.coupon import FIXED, PERCENTAGE, CouponSnapshot

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


@dataclass(frozen=True)
class PriceQuote:
    base_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    coupon_code: str | None = None
    coupon_applied: bool = False


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def offer_price(item: Product | Package | None) -> Decimal | None:
    if item is None or not item.is_offer or not item.final_price:
        return None
    return _money(item.final_price)


def list_price(item: Product | Package | None) -> Decimal | None:
    if item is None or item.price is None:
        return None
    return _money(item.price)


def resolve_base_price(product: Product, package: Package | None = None) -> Decimal:
    """Catalog price snapshot for the order, before any coupon."""
    if product.is_direct:
        # product offer -> product price -> package offer -> package price
        for candidate in (
            offer_price(product),
            list_price(product),
            offer_price(package),
            list_price(package),
        ):
            if candidate is not None:
                return candidate
        raise PricingError(f"Unable to determine a price for product {product.id}.")

    if package is None:
        raise PricingError(f"Product {product.id} is sold by package but no package was given.")
    price = offer_price(package)
    if price is None:
        price = list_price(package)
    if price is None:
        raise PricingError(f"Package {package.id} has no price.")
    return price


def coupon_discount(base: Decimal, coupon: CouponSnapshot | None) -> Decimal:
    """Discount the coupon grants on `base`; zero if it does not apply."""
    if coupon is None or not coupon.is_valid:
        return ZERO
    if coupon.min_order_amount and base < coupon.min_order_amount:
        return ZERO
    if coupon.discount_type == PERCENTAGE:
        discount = base * coupon.value / Decimal("100")
        if coupon.max_discount is not None:
            discount = min(discount, coupon.max_discount)
    elif coupon.discount_type == FIXED:
        discount = coupon.value
    else:
        return ZERO
    return _money(min(max(discount, ZERO), base))


def compute_total(
    product: Product,
    package: Package | None = None,
    coupon: CouponSnapshot | None = None,
) -> PriceQuote:
    base = resolve_base_price(product, package)
    discount = coupon_discount(base, coupon)
    total = max(ZERO, base - discount)
    applied = discount > ZERO
    return PriceQuote(
        base_amount=base,
        discount_amount=discount,
        total_amount=total,
        coupon_code=coupon.code if coupon is not None and applied else None,
        coupon_applied=applied,
    )


def to_minor_units(amount: Decimal) -> int:
    """9.99 -> 999 for the gateway."""
    return int((_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))
