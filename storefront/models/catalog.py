"""Catalog snapshot read by validation and pricing. CRUD lives in the catalog admin, not here."""
from decimal import Decimal
from enum import Enum

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class ProductType(str, Enum):
    DIRECT = "direct"    # Steam style: sold as is, priced on the product
    PACKAGE = "package"  # top-ups, gift cards: priced on the chosen package


class Product(SQLModel, table=True):
    __tablename__ = "products"

    id: int | None = Field(default=None, primary_key=True)
    name: str
    type: str = Field(default=ProductType.PACKAGE.value, max_length=16)
    price: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    is_offer: bool = False
    final_price: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    is_active: bool = True
    is_deleted: bool = False
    # Declared buyer fields, in display order: [{"field_name": "Player ID", "is_required": true}, ...]
    account_info_fields: list[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    @property
    def is_direct(self) -> bool:
        return self.type == ProductType.DIRECT.value


class Package(SQLModel, table=True):
    __tablename__ = "packages"

    id: int | None = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="products.id", index=True)
    title: str
    price: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    is_offer: bool = False
    final_price: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    currency: str = Field(default="usd", max_length=8)
    is_active: bool = True
    is_deleted: bool = False
