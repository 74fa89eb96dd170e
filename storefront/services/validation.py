"""
Order request validation.

Every check runs and the violations are collected, so a single ValidationError
carries the complete list the buyer has to fix.
"""
import re

from storefront.core.errors import ValidationError
from storefront.models import Package, PaymentMethod, Product
from storefront.services.coupon import CouponSnapshot
from storefront.services.pricing import list_price, offer_price

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
TRANSFER_NUMBER_RE = re.compile(r"^[0-9]{3,20}$")


def _is_email_field(field_name: str) -> bool:
    lowered = field_name.lower()
    return "email" in lowered or "gmail" in lowered


def account_info_errors(product: Product, account_info: list[dict]) -> list[str]:
    """Checks the buyer's fields against the product's declared account_info_fields."""
    errors: list[str] = []
    declared = [f.get("field_name") for f in (product.account_info_fields or [])]
    required = [f.get("field_name") for f in (product.account_info_fields or []) if f.get("is_required")]

    supplied: dict[str, str] = {}
    duplicates: list[str] = []
    for info in account_info:
        name = info.get("field_name") or ""
        if name in supplied and name not in duplicates:
            duplicates.append(name)
        supplied[name] = info.get("value") or ""

    missing = [name for name in required if not supplied.get(name, "").strip()]
    if missing:
        errors.append(f"Missing required account fields: {', '.join(missing)}")

    for name, value in supplied.items():
        if _is_email_field(name) and value.strip() and not EMAIL_RE.match(value.strip()):
            errors.append(f"Invalid email format for field: {name}. Please provide a valid email address.")

    unknown = [name for name in supplied if name not in declared]
    if unknown:
        errors.append(
            f"Invalid account fields for this product: {', '.join(unknown)}. "
            f"Valid fields are: {', '.join(declared)}"
        )
    if duplicates:
        errors.append(f"Duplicate account fields: {', '.join(duplicates)}")
    return errors


def validate_order(
    product: Product | None,
    account_info: list[dict],
    package_id: int | None = None,
    package: Package | None = None,
    coupon_code: str | None = None,
    coupon: CouponSnapshot | None = None,
) -> None:
    """
    Raises ValidationError listing every violation:
    product state, direct vs package path, account info fields and coupon.
    `package` is the catalog row for `package_id` (None if it does not resolve).
    """
    if product is None:
        raise ValidationError(["Product not found or inactive."])

    errors: list[str] = []
    if not product.is_active or product.is_deleted:
        errors.append("Product not found or inactive.")

    if product.is_direct:
        if package_id is not None:
            errors.append("Direct-sale products cannot have a package.")
        if offer_price(product) is None and list_price(product) is None:
            errors.append("This product has no price.")
    elif package_id is None:
        errors.append("A package is required for this product.")
    elif (
        package is None
        or package.product_id != product.id
        or not package.is_active
        or package.is_deleted
    ):
        errors.append("Package not found or inactive.")

    errors.extend(account_info_errors(product, account_info))

    if coupon_code and coupon_code.strip():
        if coupon is None:
            errors.append("Invalid coupon code.")
        elif not coupon.is_valid:
            errors.append(coupon.reason or "This coupon cannot be used.")

    if errors:
        raise ValidationError(errors)


def validate_transfer_details(
    payment_method: str,
    transfer_number: str | None,
    insta_handle: str | None,
    image: bytes | None,
) -> None:
    """Evidence checks for manual transfers; raises ValidationError with all violations."""
    errors: list[str] = []
    number = (transfer_number or "").strip()
    handle = (insta_handle or "").strip()
    if not number:
        errors.append("Transfer number is required.")
    elif not TRANSFER_NUMBER_RE.match(number):
        errors.append("Transfer number must contain only digits (3-20 characters).")

    if payment_method == PaymentMethod.INSTA_TRANSFER.value:
        if not handle:
            errors.append("Instagram name is required for insta-transfer payments.")
    elif handle:
        errors.append("Instagram name is only accepted for insta-transfer payments.")

    if not image:
        errors.append("Transfer evidence image is required.")

    if errors:
        raise ValidationError(errors, message="Transfer validation failed.")
