"""Order administration: listing, stats, status transitions, notes and transfer review."""
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from storefront.api.deps import get_encryption, require_admin
from storefront.api.orders import to_order_page
from storefront.core.database import get_db
from storefront.core.encryption import EncryptionService
from storefront.models import OrderStatus
from storefront.schemas import (
    AdminNoteRequest,
    OrderPage,
    OrderResponse,
    TransferDetailsResponse,
    UpdateOrderStatusRequest,
)
from storefront.services import orders as order_service
from storefront.services import transfers as transfer_service

router = APIRouter(prefix="/order/admin", tags=["order-admin"], dependencies=[Depends(require_admin)])


@router.get("/all", response_model=OrderPage)
def all_orders(
    status: OrderStatus | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return to_order_page(order_service.list_orders(db, status.value if status else None, page=page, page_size=page_size))


@router.get("/stats")
def stats(db: Session = Depends(get_db)):
    data = order_service.order_stats(db)
    return {
        "by_status": {
            s: {"count": v["count"], "total_amount": str(v["total_amount"])}
            for s, v in data["by_status"].items()
        },
        "total_orders": data["total_orders"],
        "total_revenue": str(data["total_revenue"]),
    }


@router.get("/{order_id}", response_model=OrderResponse)
def order_detail(order_id: str, db: Session = Depends(get_db)):
    return order_service.get_order(db, order_id)


@router.patch("/{order_id}/status", response_model=OrderResponse)
def update_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    db: Session = Depends(get_db),
):
    return order_service.transition(db, order_id, body.status.value, admin_note=body.admin_note, actor="admin")


@router.patch("/{order_id}/note", response_model=OrderResponse)
def update_note(
    order_id: str,
    body: AdminNoteRequest,
    db: Session = Depends(get_db),
):
    return order_service.set_admin_note(db, order_id, body.admin_note)


@router.get("/{order_id}/transfer", response_model=TransferDetailsResponse)
def transfer_details(
    order_id: str,
    db: Session = Depends(get_db),
    encryption: EncryptionService = Depends(get_encryption),
):
    details = transfer_service.get_transfer_details(db, encryption, order_id)
    return TransferDetailsResponse(
        order_id=details.order_id,
        user_id=details.user_id,
        payment_method=details.payment_method,
        status=details.status,
        total_amount=details.total_amount,
        transfer_number=details.transfer_number,
        insta_handle=details.insta_handle,
        evidence_image_url=details.evidence_image_url,
        evidence_image_public_id=details.evidence_image_public_id,
        submitted_at=details.submitted_at,
    )
