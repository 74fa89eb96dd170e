"""Catalog lookups used by the order engine."""
from sqlmodel import Session

from storefront.models import Package, Product


def get_product(db: Session, product_id: int | None) -> Product | None:
    if product_id is None:
        return None
    return db.get(Product, product_id)


def get_package(db: Session, package_id: int | None) -> Package | None:
    if package_id is None:
        return None
    return db.get(Package, package_id)


def describe_line_item(product: Product, package: Package | None) -> str:
    """Checkout line name: "<product>" or "<product> - <package>"."""
    if package is not None:
        return f"{product.name} - {package.title}"
    return product.name
