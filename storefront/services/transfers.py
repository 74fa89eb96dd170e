"""
Manual transfer evidence (wallet, Instagram, Fawry).

Submitting evidence never changes the order status: funds are confirmed by an
admin who then moves the order through storefront.services.orders.transition.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlmodel import Session

from storefront.core.encryption import EncryptionService
from storefront.core.errors import DecryptionError, NotEligible, OrderNotFound
from storefront.models import OrderEvent, OrderStatus, PaymentMethod, User
from storefront.models.order import utcnow
from storefront.repositories.orders import OrderRepository
from storefront.services.storage import CloudinaryStorage
from storefront.services.validation import validate_transfer_details

log = logging.getLogger("storefront.transfers")

MANUAL_METHODS = tuple(m.value for m in PaymentMethod if m.is_manual_transfer)
NUMBER_VISIBLE_TAIL = 3
HANDLE_VISIBLE_TAIL = 2


@dataclass(frozen=True)
class TransferConfirmation:
    order_id: str
    status: str
    masked_transfer_number: str
    masked_insta_handle: str | None
    submitted_at: datetime


@dataclass(frozen=True)
class TransferDetails:
    order_id: str
    user_id: int
    payment_method: str
    status: str
    total_amount: Decimal
    transfer_number: str
    insta_handle: str | None
    evidence_image_url: str | None
    evidence_image_public_id: str | None
    submitted_at: datetime | None


def submit_transfer(
    db: Session,
    storage: CloudinaryStorage,
    encryption: EncryptionService,
    user: User,
    order_id: str,
    transfer_number: str | None,
    insta_handle: str | None,
    image: bytes | None,
    filename: str | None = None,
) -> TransferConfirmation:
    repo = OrderRepository(db)
    order = repo.find_one(id=order_id, user_id=user.id)
    if order is None:
        raise OrderNotFound(order_id)
    if order.payment_method not in MANUAL_METHODS or order.status != OrderStatus.PENDING.value:
        raise NotEligible("Order is not eligible for a transfer submission.")

    validate_transfer_details(order.payment_method, transfer_number, insta_handle, image)
    number = transfer_number.strip()
    is_insta = order.payment_method == PaymentMethod.INSTA_TRANSFER.value
    handle = insta_handle.strip() if is_insta else None

    # Upload first: if it fails nothing local has changed and the buyer can retry
    uploaded = storage.upload(image, folder=f"orders/wallet-transfer-{order.id}", filename=filename)
    submitted_at = utcnow()
    patch = {
        "transfer_number": encryption.encrypt(number),
        "insta_handle": encryption.encrypt(handle) if handle else None,
        "evidence_image_url": uploaded.secure_url,
        "evidence_image_public_id": uploaded.public_id,
        "transfer_submitted_at": submitted_at,
    }
    event = OrderEvent(
        order_id=order.id,
        event="transfer_submitted",
        from_status=order.status,
        to_status=order.status,
        actor="buyer",
        detail=f"{order.payment_method} {EncryptionService.mask(number, NUMBER_VISIBLE_TAIL)}",
    )
    updated = repo.update_conditional(order.id, OrderStatus.PENDING.value, patch, event)
    if updated is None:
        log.warning("Transfer submitted for an order that left pending: order_id=%s", order.id)
        raise NotEligible("Order is not eligible for a transfer submission.")

    masked_number = EncryptionService.mask(number, NUMBER_VISIBLE_TAIL)
    log.info(
        "Transfer evidence stored: order_id=%s method=%s number=%s",
        order.id, order.payment_method, masked_number,
    )
    return TransferConfirmation(
        order_id=updated.id,
        status=updated.status,
        masked_transfer_number=masked_number,
        masked_insta_handle=EncryptionService.mask(handle, HANDLE_VISIBLE_TAIL) if handle else None,
        submitted_at=submitted_at,
    )


def get_transfer_details(db: Session, encryption: EncryptionService, order_id: str) -> TransferDetails:
    """Admin reconciliation read. The only caller allowed to decrypt."""
    order = OrderRepository(db).get(order_id)
    if order is None or order.payment_method not in MANUAL_METHODS:
        raise OrderNotFound(order_id)
    if not order.transfer_number:
        raise NotEligible("No transfer evidence has been submitted for this order.")
    try:
        number = encryption.decrypt(order.transfer_number)
        handle = encryption.decrypt(order.insta_handle) if order.insta_handle else None
    except DecryptionError:
        log.exception("Transfer evidence could not be decrypted: order_id=%s", order_id)
        raise
    return TransferDetails(
        order_id=order.id,
        user_id=order.user_id,
        payment_method=order.payment_method,
        status=order.status,
        total_amount=order.total_amount,
        transfer_number=number,
        insta_handle=handle,
        evidence_image_url=order.evidence_image_url,
        evidence_image_public_id=order.evidence_image_public_id,
        submitted_at=order.transfer_submitted_at,
    )
