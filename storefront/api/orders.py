"""Buyer order endpoints and the Stripe webhook."""
from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from sqlmodel import Session

from storefront.api.deps import get_current_user, get_encryption, get_gateway, get_storage
from storefront.core.config import settings
from storefront.core.database import get_db
from storefront.core.encryption import EncryptionService
from storefront.core.rate_limit import RATE_LIMIT_STR, limiter
from storefront.models import User
from storefront.schemas import (
    CheckoutResponse,
    CreateOrderRequest,
    OrderPage,
    OrderResponse,
    TransferConfirmationResponse,
    WebhookAck,
)
from storefront.services import orders as order_service
from storefront.services import transfers as transfer_service
from storefront.services.gateway import StripeGateway
from storefront.services.storage import CloudinaryStorage

router = APIRouter(prefix="/order", tags=["order"])

IMAGE_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp"}


def to_order_page(page) -> OrderPage:
    return OrderPage(
        items=[OrderResponse.model_validate(o) for o in page.items],
        total=page.total,
        page=page.page,
        page_size=page.page_size,
        pages=page.pages,
    )


@router.post("", response_model=OrderResponse, status_code=201)
@limiter.limit(RATE_LIMIT_STR)
def create_order(
    request: Request,
    body: CreateOrderRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return order_service.create_order(db, user, body)


@router.get("", response_model=OrderPage)
def my_orders(
    page: int = 1,
    page_size: int = 20,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return to_order_page(order_service.list_orders_for_user(db, user, page=page, page_size=page_size))


# Registered before /{order_id} routes so "webhook" is never read as an order id
@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_gateway),
):
    """Stripe webhook: signature verified first; every verified event is acknowledged with 200."""
    payload = await request.body()
    outcome = order_service.handle_webhook(db, gateway, payload, request.headers.get("stripe-signature"))
    return WebhookAck(outcome=outcome.value)


@router.get("/{order_id}", response_model=OrderResponse)
def order_detail(
    order_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return order_service.get_order_for_user(db, user, order_id)


@router.post("/{order_id}/checkout", response_model=CheckoutResponse)
def order_checkout(
    order_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_gateway),
):
    session = order_service.checkout(db, gateway, user, order_id)
    return CheckoutResponse(session_id=session.session_id, session_url=session.session_url)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
def order_cancel(
    order_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return order_service.cancel_order(db, user, order_id)


@router.post("/{order_id}/wallet-transfer", response_model=TransferConfirmationResponse)
@limiter.limit(RATE_LIMIT_STR)
def order_wallet_transfer(
    request: Request,
    order_id: str,
    transfer_number: str = Form(""),
    insta_handle: str | None = Form(None),
    image: UploadFile | None = File(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: CloudinaryStorage = Depends(get_storage),
    encryption: EncryptionService = Depends(get_encryption),
):
    """Manual transfer evidence (multipart): transfer number, optional Instagram handle, image."""
    data: bytes | None = None
    filename: str | None = None
    if image is not None:
        if image.content_type and image.content_type not in IMAGE_CONTENT_TYPES:
            raise HTTPException(status_code=400, detail="Evidence must be a JPEG, PNG or WebP image.")
        max_bytes = settings.upload_max_mb * 1024 * 1024
        data = image.file.read(max_bytes + 1)
        if len(data) > max_bytes:
            raise HTTPException(status_code=413, detail=f"Image is larger than {settings.upload_max_mb} MB.")
        filename = image.filename
    confirmation = transfer_service.submit_transfer(
        db,
        storage,
        encryption,
        user,
        order_id,
        transfer_number=transfer_number,
        insta_handle=insta_handle,
        image=data,
        filename=filename,
    )
    return TransferConfirmationResponse(
        order_id=confirmation.order_id,
        status=confirmation.status,
        masked_transfer_number=confirmation.masked_transfer_number,
        masked_insta_handle=confirmation.masked_insta_handle,
        submitted_at=confirmation.submitted_at,
    )
