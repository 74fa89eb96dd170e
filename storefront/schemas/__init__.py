from .order import (
    AccountInfoItem,
    AdminNoteRequest,
    CheckoutResponse,
    CouponQuoteRequest,
    CouponQuoteResponse,
    CreateOrderRequest,
    OrderPage,
    OrderResponse,
    TransferConfirmationResponse,
    TransferDetailsResponse,
    UpdateOrderStatusRequest,
    WebhookAck,
)

__all__ = [
    "AccountInfoItem",
    "AdminNoteRequest",
    "CheckoutResponse",
    "CouponQuoteRequest",
    "CouponQuoteResponse",
    "CreateOrderRequest",
    "OrderPage",
    "OrderResponse",
    "TransferConfirmationResponse",
    "TransferDetailsResponse",
    "UpdateOrderStatusRequest",
    "WebhookAck",
]
