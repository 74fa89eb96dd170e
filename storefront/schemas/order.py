from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from storefront.models import OrderStatus, PaymentMethod


class AccountInfoItem(BaseModel):
    field_name: str = Field(min_length=1, max_length=100)
    value: str = Field(default="", max_length=500)


class CreateOrderRequest(BaseModel):
    """Direct-sale products take no package_id; package-based products require one."""
    product_id: int
    package_id: int | None = None
    account_info: list[AccountInfoItem] = Field(default_factory=list)
    payment_method: PaymentMethod
    coupon_code: str | None = Field(default=None, max_length=64)
    note: str | None = Field(default=None, max_length=1000)


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus
    admin_note: str | None = Field(default=None, max_length=1000)


class AdminNoteRequest(BaseModel):
    admin_note: str | None = Field(default=None, max_length=1000)


class OrderResponse(BaseModel):
    """Customer / admin view of an order. Encrypted evidence is never part of it."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: int
    product_id: int
    package_id: int | None = None
    account_info: list[AccountInfoItem]
    base_amount: Decimal
    total_amount: Decimal
    currency: str
    status: OrderStatus
    payment_method: PaymentMethod
    coupon_code: str | None = None
    admin_note: str | None = None
    refund_amount: Decimal | None = None
    refund_date: datetime | None = None
    paid_at: datetime | None = None
    evidence_image_url: str | None = None
    transfer_submitted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class OrderPage(BaseModel):
    items: list[OrderResponse]
    total: int
    page: int
    page_size: int
    pages: int


class CheckoutResponse(BaseModel):
    session_id: str
    session_url: str


class TransferConfirmationResponse(BaseModel):
    order_id: str
    status: OrderStatus
    masked_transfer_number: str
    masked_insta_handle: str | None = None
    submitted_at: datetime
    message: str = "Transfer details submitted successfully. Your order is being reviewed."


class TransferDetailsResponse(BaseModel):
    """Admin reconciliation view: decrypted values."""
    order_id: str
    user_id: int
    payment_method: PaymentMethod
    status: OrderStatus
    total_amount: Decimal
    transfer_number: str
    insta_handle: str | None = None
    evidence_image_url: str | None = None
    evidence_image_public_id: str | None = None
    submitted_at: datetime | None = None


class CouponQuoteRequest(BaseModel):
    product_id: int
    package_id: int | None = None
    coupon_code: str = Field(min_length=1, max_length=64)


class CouponQuoteResponse(BaseModel):
    code: str
    base_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    coupon_applied: bool


class WebhookAck(BaseModel):
    received: bool = True
    outcome: str
