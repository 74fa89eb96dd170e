"""
Order lifecycle: creation, the status state machine, hosted checkout and
webhook reconciliation.

    pending -> paid -> delivered
    pending -> paid -> rejected
    pending -> rejected

delivered and rejected are terminal. Every status write is a conditional
update on the status the caller read, so a webhook and an admin racing on the
same order cannot both apply; the loser re-reads and re-validates.
"""
import logging
from enum import Enum

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from storefront.core.config import settings
from storefront.core.errors import (
    InvalidTransition,
    NotEligible,
    OrderNotFound,
    ValidationError,
)
from storefront.models import (
    Order,
    OrderDiscount,
    OrderEvent,
    OrderStatus,
    PaymentMethod,
    User,
    WebhookEvent,
)
from storefront.models.order import utcnow
from storefront.repositories.orders import OrderRepository, Page
from storefront.schemas import CreateOrderRequest
from storefront.services.catalog import describe_line_item, get_package, get_product
from storefront.services.coupon import apply_coupon_use, get_coupon
from storefront.services.gateway import CheckoutSession, StripeGateway
from storefront.services.pricing import PriceQuote, compute_total, to_minor_units
from storefront.services.validation import validate_order

log = logging.getLogger("storefront.orders")

PENDING = OrderStatus.PENDING.value
PAID = OrderStatus.PAID.value
DELIVERED = OrderStatus.DELIVERED.value
REJECTED = OrderStatus.REJECTED.value

# Same-status edges (paid -> paid, delivered -> delivered) are idempotent re-confirmations
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({PAID, REJECTED}),
    PAID: frozenset({PAID, DELIVERED, REJECTED}),
    DELIVERED: frozenset({DELIVERED}),
    REJECTED: frozenset(),
}

MAX_WRITE_ATTEMPTS = 3
CANCELLED_BY_USER_NOTE = "Cancelled by user"


class WebhookOutcome(str, Enum):
    APPLIED = "applied"      # pending -> paid
    DUPLICATE = "duplicate"  # event already seen, or order already paid / delivered
    IGNORED = "ignored"      # not a completed-payment event
    ESCALATED = "escalated"  # money captured for an order we cannot mark paid


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def _transition_patch(order: Order, target: str, admin_note: str | None) -> dict:
    patch: dict = {"status": target}
    if admin_note is not None:
        patch["admin_note"] = admin_note.strip() or None
    if order.status == PENDING and target == PAID:
        patch["paid_at"] = utcnow()
    if (
        order.status == PAID
        and target == REJECTED
        and order.payment_method == PaymentMethod.CARD.value
    ):
        # Refund bookkeeping only; the Stripe refund itself is issued by an operator
        patch["refund_amount"] = order.total_amount
        patch["refund_date"] = utcnow()
    return patch


def _apply_transition(
    db: Session,
    order_id: str,
    target: str,
    admin_note: str | None = None,
    actor: str = "admin",
) -> tuple[Order, bool]:
    """(order, applied). applied is False for idempotent re-confirmations without a note."""
    target = OrderStatus(target).value
    repo = OrderRepository(db)
    for _ in range(MAX_WRITE_ATTEMPTS):
        order = repo.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        current = order.status
        if not can_transition(current, target):
            raise InvalidTransition(current, target)
        if current == target and admin_note is None:
            return order, False
        patch = _transition_patch(order, target, admin_note)
        event = OrderEvent(
            order_id=order.id,
            event="transition" if current != target else "reconfirm",
            from_status=current,
            to_status=target,
            actor=actor,
            detail=patch.get("admin_note"),
        )
        updated = repo.update_conditional(order.id, current, patch, event)
        if updated is None:
            log.info(
                "Order write superseded, re-reading: order_id=%s expected=%s target=%s",
                order_id, current, target,
            )
            continue
        if current == PENDING and target == PAID and updated.coupon_code:
            apply_coupon_use(db, updated.coupon_code)
            db.commit()
        log.info(
            "Order status changed: order_id=%s %s -> %s actor=%s",
            order_id, current, target, actor,
        )
        return updated, current != target
    raise NotEligible("Order is being updated concurrently, please retry.")


def transition(
    db: Session,
    order_id: str,
    target: str,
    admin_note: str | None = None,
    actor: str = "admin",
) -> Order:
    """
    Moves the order to `target`.

    Raises InvalidTransition for edges outside the graph (anything out of
    rejected, delivered -> anything but delivered, backwards moves).
    admin_note replaces the stored note when given. paid -> rejected on a card
    order stamps refund_amount / refund_date; pending -> rejected never does.
    """
    order, _ = _apply_transition(db, order_id, target, admin_note=admin_note, actor=actor)
    return order


def set_admin_note(db: Session, order_id: str, admin_note: str | None) -> Order:
    """Note edit without a status change. Allowed on terminal orders too (audit trail kept)."""
    note = (admin_note or "").strip() or None
    repo = OrderRepository(db)
    for _ in range(MAX_WRITE_ATTEMPTS):
        order = repo.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        event = OrderEvent(
            order_id=order.id,
            event="note",
            from_status=order.status,
            to_status=order.status,
            actor="admin",
            detail=note,
        )
        updated = repo.update_conditional(order.id, order.status, {"admin_note": note}, event)
        if updated is not None:
            return updated
    raise NotEligible("Order is being updated concurrently, please retry.")


def create_order(db: Session, user: User, body: CreateOrderRequest) -> Order:
    """Validate -> price -> persist in pending, with the coupon discount as a separate record."""
    product = get_product(db, body.product_id)
    package = get_package(db, body.package_id)
    coupon = get_coupon(db, body.coupon_code) if body.coupon_code else None
    account_info = [
        {"field_name": item.field_name.strip(), "value": item.value.strip()}
        for item in body.account_info
    ]
    validate_order(
        product,
        account_info,
        package_id=body.package_id,
        package=package,
        coupon_code=body.coupon_code,
        coupon=coupon,
    )
    if product.is_direct:
        package = None
    quote = compute_total(product, package, coupon)

    order = Order(
        user_id=user.id,
        product_id=product.id,
        package_id=package.id if package else None,
        account_info=account_info,
        base_amount=quote.base_amount,
        total_amount=quote.total_amount,
        currency=(package.currency if package else settings.default_currency).lower(),
        status=PENDING,
        payment_method=body.payment_method.value,
        coupon_code=quote.coupon_code,
        admin_note=(body.note or "").strip() or None,
    )
    related: list = [
        OrderEvent(order_id=order.id, event="created", to_status=PENDING, actor="buyer"),
    ]
    if quote.coupon_applied:
        related.append(
            OrderDiscount(
                order_id=order.id,
                coupon_code=coupon.code,
                discount_type=coupon.discount_type,
                discount_value=coupon.value,
                base_amount=quote.base_amount,
                discount_amount=quote.discount_amount,
            )
        )
    order = OrderRepository(db).create(order, *related)
    log.info(
        "Order created: order_id=%s user_id=%s product_id=%s total=%s method=%s coupon=%s",
        order.id, user.id, product.id, order.total_amount, order.payment_method, order.coupon_code or "-",
    )
    return order


def quote_order(
    db: Session,
    product_id: int,
    package_id: int | None,
    coupon_code: str,
) -> tuple[PriceQuote, str]:
    """Price preview for the coupon box: (quote, normalized code). Invalid coupons are a ValidationError."""
    product = get_product(db, product_id)
    if product is None or not product.is_active or product.is_deleted:
        raise ValidationError(["Product not found or inactive."])
    package = None if product.is_direct else get_package(db, package_id)
    if not product.is_direct and (
        package is None
        or package.product_id != product.id
        or not package.is_active
        or package.is_deleted
    ):
        raise ValidationError(["Package not found or inactive."])
    coupon = get_coupon(db, coupon_code)
    if coupon is None:
        raise ValidationError(["Invalid coupon code."])
    if not coupon.is_valid:
        raise ValidationError([coupon.reason or "This coupon cannot be used."])
    return compute_total(product, package, coupon), coupon.code


def get_order(db: Session, order_id: str) -> Order:
    order = OrderRepository(db).get(order_id)
    if order is None:
        raise OrderNotFound(order_id)
    return order


def get_order_for_user(db: Session, user: User, order_id: str) -> Order:
    order = OrderRepository(db).find_one(id=order_id, user_id=user.id)
    if order is None:
        raise OrderNotFound(order_id)
    return order


def list_orders_for_user(db: Session, user: User, page: int = 1, page_size: int = 20) -> Page:
    return OrderRepository(db).find_many({"user_id": user.id}, page=page, page_size=page_size)


def list_orders(db: Session, status: str | None = None, page: int = 1, page_size: int = 20) -> Page:
    return OrderRepository(db).find_many({"status": status}, page=page, page_size=page_size)


def order_stats(db: Session) -> dict:
    return OrderRepository(db).stats()


def cancel_order(db: Session, user: User, order_id: str) -> Order:
    """Buyer cancels their own pending or paid order; refund rules as for an admin rejection."""
    order = get_order_for_user(db, user, order_id)
    if order.status not in (PENDING, PAID):
        raise NotEligible("This order can no longer be cancelled.")
    return transition(db, order.id, REJECTED, admin_note=CANCELLED_BY_USER_NOTE, actor="buyer")


def checkout(db: Session, gateway: StripeGateway, user: User, order_id: str) -> CheckoutSession:
    """Hosted checkout for the buyer's own pending card order."""
    repo = OrderRepository(db)
    order = repo.find_one(id=order_id, user_id=user.id)
    if order is None:
        raise OrderNotFound(order_id)
    if order.payment_method != PaymentMethod.CARD.value or order.status != PENDING:
        raise NotEligible("Only pending card orders can be paid by card.")
    if order.total_amount <= 0:
        raise NotEligible("Nothing to charge for this order.")
    product = get_product(db, order.product_id)
    if product is None:
        raise NotEligible("The product of this order no longer exists.")
    package = get_package(db, order.package_id)

    session = gateway.create_checkout_session(
        buyer_email=user.email,
        line_item_description=describe_line_item(product, package),
        currency=order.currency,
        amount_minor_units=to_minor_units(order.total_amount),
        metadata={"orderId": order.id},
    )
    if repo.update_conditional(order.id, PENDING, {"checkout_session_id": session.session_id}) is None:
        raise NotEligible("Order is no longer pending.")
    return session


def mark_paid(db: Session, order_id: str) -> WebhookOutcome:
    """Webhook-driven pending -> paid. Re-deliveries and lost races are no-ops, never errors."""
    order = OrderRepository(db).get(order_id)
    if order is None:
        log.error("Payment completed for unknown order: order_id=%s", order_id)
        return WebhookOutcome.ESCALATED
    if order.payment_method != PaymentMethod.CARD.value:
        log.error("Card payment completed for non-card order: order_id=%s method=%s", order_id, order.payment_method)
        return WebhookOutcome.ESCALATED
    try:
        _, applied = _apply_transition(db, order_id, PAID, actor="webhook")
    except NotEligible:
        # Write retries exhausted; the delivery is still acknowledged
        current = OrderRepository(db).get(order_id)
        if current is not None and current.status in (PAID, DELIVERED):
            return WebhookOutcome.DUPLICATE
        log.error("Payment completed but the order could not be marked paid: order_id=%s", order_id)
        return WebhookOutcome.ESCALATED
    except InvalidTransition as e:
        if e.current == DELIVERED:
            return WebhookOutcome.DUPLICATE
        # rejected before the money arrived: needs a manual refund
        log.error("Payment completed for %s order: order_id=%s", e.current, order_id)
        return WebhookOutcome.ESCALATED
    return WebhookOutcome.APPLIED if applied else WebhookOutcome.DUPLICATE


def _record_webhook(db: Session, event_id: str, event_type: str, order_id: str | None, outcome: WebhookOutcome) -> bool:
    """False if another delivery of the same event was recorded first."""
    db.add(WebhookEvent(event_id=event_id, event_type=event_type, order_id=order_id, outcome=outcome.value))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    return True


def handle_webhook(
    db: Session,
    gateway: StripeGateway,
    payload: bytes,
    signature: str | None,
) -> WebhookOutcome:
    """
    Verifies and reconciles one gateway delivery. GatewayError (bad signature)
    propagates; every verified event gets an outcome and a webhook_events row.
    """
    parsed = gateway.parse_webhook(payload, signature)
    seen = db.exec(select(WebhookEvent).where(WebhookEvent.event_id == parsed.event_id)).first()
    if seen:
        log.info("Webhook re-delivered: event_id=%s first_outcome=%s", parsed.event_id, seen.outcome)
        return WebhookOutcome.DUPLICATE

    if not parsed.payment_completed:
        log.info("Webhook ignored: event_id=%s type=%s", parsed.event_id, parsed.event_type)
        outcome = WebhookOutcome.IGNORED
    elif not parsed.order_id:
        log.error("Completed payment without orderId metadata: event_id=%s", parsed.event_id)
        outcome = WebhookOutcome.ESCALATED
    else:
        outcome = mark_paid(db, parsed.order_id)

    if not _record_webhook(db, parsed.event_id, parsed.event_type, parsed.order_id, outcome):
        return WebhookOutcome.DUPLICATE
    log.info(
        "Webhook processed: event_id=%s type=%s order_id=%s outcome=%s",
        parsed.event_id, parsed.event_type, parsed.order_id or "-", outcome.value,
    )
    return outcome
