"""Coupon preview for the checkout form."""
from fastapi import APIRouter, Depends
from sqlmodel import Session

from storefront.api.deps import get_current_user
from storefront.core.database import get_db
from storefront.models import User
from storefront.schemas import CouponQuoteRequest, CouponQuoteResponse
from storefront.services.orders import quote_order

router = APIRouter(prefix="/coupon", tags=["coupon"])


@router.post("/validate", response_model=CouponQuoteResponse)
def validate_coupon(
    body: CouponQuoteRequest,
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Shows what the coupon would do; the order recomputes it on creation."""
    quote, code = quote_order(db, body.product_id, body.package_id, body.coupon_code)
    return CouponQuoteResponse(
        code=code,
        base_amount=quote.base_amount,
        discount_amount=quote.discount_amount,
        total_amount=quote.total_amount,
        coupon_applied=quote.coupon_applied,
    )
