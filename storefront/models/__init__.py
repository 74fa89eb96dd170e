from .catalog import Package, Product, ProductType
from .discount import Coupon
from .order import Order, OrderDiscount, OrderEvent, OrderStatus, PaymentMethod
from .user import User
from .webhook import WebhookEvent

__all__ = [
    "Coupon",
    "Order",
    "OrderDiscount",
    "OrderEvent",
    "OrderStatus",
    "Package",
    "PaymentMethod",
    "Product",
    "ProductType",
    "User",
    "WebhookEvent",
]
