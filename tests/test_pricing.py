"""Pricing: base price resolution, coupon discount, totals."""
from decimal import Decimal

import pytest

from storefront.core.errors import PricingError
from storefront.models import Package, Product, ProductType
from storefront.services.coupon import CouponSnapshot
from storefront.services.pricing import (
    coupon_discount,
    compute_total,
    resolve_base_price,
    to_minor_units,
)


def _direct(**kw) -> Product:
    fields = {"id": 1, "name": "Steam Wallet", "type": ProductType.DIRECT.value}
    fields.update(kw)
    return Product(**fields)


def _package_product() -> Product:
    return Product(id=2, name="PUBG UC", type=ProductType.PACKAGE.value)


def _package(**kw) -> Package:
    fields = {"id": 7, "product_id": 2, "title": "600 UC", "price": Decimal("10.00")}
    fields.update(kw)
    return Package(**fields)


def _percent(value: str, **kw) -> CouponSnapshot:
    return CouponSnapshot(code="SAVE", discount_type="percentage", value=Decimal(value), **kw)


def test_direct_product_without_offer_or_coupon():
    quote = compute_total(_direct(price=Decimal("9.99")))
    assert quote.base_amount == Decimal("9.99")
    assert quote.total_amount == Decimal("9.99")
    assert quote.coupon_applied is False


def test_percentage_coupon_on_package():
    quote = compute_total(_package_product(), _package(), _percent("20"))
    assert quote.discount_amount == Decimal("2.00")
    assert quote.total_amount == Decimal("8.00")
    assert quote.coupon_applied is True
    assert quote.coupon_code == "SAVE"


def test_coupon_below_minimum_order_is_not_applied():
    coupon = _percent("20", min_order_amount=Decimal("20"))
    quote = compute_total(_package_product(), _package(), coupon)
    assert quote.total_amount == Decimal("10.00")
    assert quote.coupon_applied is False
    assert quote.coupon_code is None


def test_direct_product_price_fallback_order():
    # product offer wins over everything
    product = _direct(price=Decimal("100"), is_offer=True, final_price=Decimal("80"))
    assert resolve_base_price(product, _package(price=Decimal("5"))) == Decimal("80.00")
    # offer flag without a final price falls back to the list price
    product = _direct(price=Decimal("100"), is_offer=True, final_price=None)
    assert resolve_base_price(product) == Decimal("100.00")
    # no product price: package offer, then package price
    product = _direct(price=None)
    assert resolve_base_price(product, _package(is_offer=True, final_price=Decimal("7.5"))) == Decimal("7.50")
    assert resolve_base_price(product, _package(price=Decimal("6"))) == Decimal("6.00")


def test_package_product_uses_package_offer():
    package = _package(price=Decimal("10"), is_offer=True, final_price=Decimal("8.49"))
    assert resolve_base_price(_package_product(), package) == Decimal("8.49")


def test_unresolvable_price_raises_pricing_error():
    with pytest.raises(PricingError):
        resolve_base_price(_direct(price=None))
    with pytest.raises(PricingError):
        resolve_base_price(_package_product(), None)
    with pytest.raises(PricingError):
        resolve_base_price(_package_product(), _package(price=None))


def test_percentage_discount_is_capped():
    coupon = _percent("50", max_discount=Decimal("3"))
    assert coupon_discount(Decimal("10.00"), coupon) == Decimal("3.00")


def test_fixed_discount_never_exceeds_base():
    coupon = CouponSnapshot(code="BIG", discount_type="fixed", value=Decimal("25"))
    quote = compute_total(_package_product(), _package(), coupon)
    assert quote.discount_amount == Decimal("10.00")
    assert quote.total_amount == Decimal("0.00")


def test_invalid_coupon_grants_nothing():
    coupon = _percent("20", is_valid=False, reason="This coupon has expired.")
    assert coupon_discount(Decimal("10.00"), coupon) == Decimal("0.00")


def test_discount_rounds_half_up():
    # 10% of 0.05 = 0.005 -> 0.01
    assert coupon_discount(Decimal("0.05"), _percent("10")) == Decimal("0.01")


@pytest.mark.parametrize("base", ["0.01", "1.00", "9.99", "10.00", "19.99", "20.00", "150.55"])
def test_coupon_never_raises_total_or_goes_negative(base):
    package = _package(price=Decimal(base))
    without = compute_total(_package_product(), package)
    for coupon in (
        _percent("15"),
        _percent("100"),
        _percent("30", min_order_amount=Decimal("20"), max_discount=Decimal("4")),
        CouponSnapshot(code="F", discount_type="fixed", value=Decimal("5")),
    ):
        quote = compute_total(_package_product(), package, coupon)
        assert Decimal("0") <= quote.total_amount <= without.total_amount
        assert quote.base_amount == without.base_amount


def test_to_minor_units():
    assert to_minor_units(Decimal("9.99")) == 999
    assert to_minor_units(Decimal("8")) == 800
