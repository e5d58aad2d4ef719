"""Order lifecycle: placement, status transitions and eligibility checks.

Every mutation goes through a pure pre-commit transformation
(``apply_status_change``) so the history and timestamp rules are applied in
one visible place before the document is written back.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from artisan_market import config
from artisan_market.errors import ConflictError, ValidationError
from artisan_market.models.approval import Product
from artisan_market.models.order import (
    CartLine,
    Order,
    OrderItem,
    OrderStatsEntry,
    OrderStatus,
    PaymentStatus,
    StatusHistoryEntry,
)
from artisan_market.store.counters import next_order_sequence
from artisan_market.store.repository import OrderRepository, ProductRepository
from artisan_market.store.tables import OrderRecord
from artisan_market.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = "ZM"
MAX_ORDER_NUMBER_ATTEMPTS = 3
MAX_PAGE_SIZE = 100

CANCELLABLE_STATUSES = frozenset({OrderStatus.PLACED, OrderStatus.CONFIRMED, OrderStatus.PROCESSING})

ALLOWED_TRANSITIONS = {
    OrderStatus.PLACED: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.PACKED, OrderStatus.CANCELLED},
    OrderStatus.PACKED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED, OrderStatus.RETURNED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED, OrderStatus.RETURNED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.CANCELLED: set(),
    OrderStatus.RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),
}


def format_order_number(year: int, sequence: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{year}-{sequence:06d}"


def coerce_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError.single("status", f"'{value}' is not a valid order status")


def coerce_payment_status(value) -> PaymentStatus:
    try:
        return PaymentStatus(value)
    except ValueError:
        raise ValidationError.single("payment_status", f"'{value}' is not a valid payment status")


def default_status_note(status: OrderStatus) -> str:
    return f"Order status updated to {status.value}"


def apply_status_change(
    order: Order,
    new_status: OrderStatus,
    note: Optional[str] = None,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Order:
    """Set the status and derive history and timestamps from it.

    The history keeps one entry per distinct status; re-entering a status
    only moves ``status``. ``delivered_at`` and ``cancelled_at`` are written
    the first time and never again.
    """
    now = now or utcnow()
    order.status = new_status
    if new_status not in order.history_statuses():
        order.status_history.append(
            StatusHistoryEntry(
                status=new_status,
                timestamp=now,
                note=note or default_status_note(new_status),
                updated_by=actor_id,
            )
        )
    if new_status == OrderStatus.DELIVERED and order.delivered_at is None:
        order.delivered_at = now
        order.actual_delivery = now
    if new_status == OrderStatus.CANCELLED and order.cancelled_at is None:
        order.cancelled_at = now
    return order


def can_be_cancelled(order: Order) -> bool:
    return order.status in CANCELLABLE_STATUSES


def can_be_returned(order: Order, now: Optional[datetime] = None) -> bool:
    if order.status != OrderStatus.DELIVERED or order.delivered_at is None:
        return False
    now = now or utcnow()
    return as_utc(now) - as_utc(order.delivered_at) <= timedelta(days=config.RETURN_WINDOW_DAYS)


def is_valid_transition(current: OrderStatus, new_status: OrderStatus) -> bool:
    return new_status in ALLOWED_TRANSITIONS.get(current, set())


def snapshot_item(product: Product, quantity: int) -> OrderItem:
    """Copy the checkout-time product data into an order line."""
    if not product.is_visible:
        raise ConflictError(f"Product {product.id} is not available for purchase")
    return OrderItem(
        product_id=product.id,
        name=product.name,
        price=product.price,
        quantity=quantity,
        artisan_id=product.artisan_id,
        image=product.images[0] if product.images else None,
    )


def snapshot_cart(session: Session, items: Iterable[Any]) -> List[OrderItem]:
    """Load every product in the cart and snapshot it at its stored price.

    Unknown products raise ``NotFoundError``; products that are not approved
    and active raise ``ConflictError``.
    """
    try:
        lines = [item if isinstance(item, CartLine) else CartLine.model_validate(item) for item in items]
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)
    if not lines:
        raise ValidationError.single("items", "An order needs at least one item")
    products = ProductRepository(session)
    return [snapshot_item(products.get(line.product_id), line.quantity) for line in lines]


def build_order(user_id: str, items: Iterable[Any], shipping_address: Any, payment_method: Any, **fields) -> Order:
    payload = {
        "user_id": user_id,
        "items": [item.model_dump() if isinstance(item, OrderItem) else item for item in items],
        "shipping_address": shipping_address,
        "payment_method": payment_method,
        **fields,
    }
    try:
        return Order.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)


def place_order(
    session: Session,
    user_id: str,
    items: Iterable[Any],
    shipping_address: Any,
    payment_method: Any,
    now: Optional[datetime] = None,
    **fields,
) -> Order:
    """Create an order in ``placed`` with the next number of the current year.

    ``items`` are cart lines ``{product_id, quantity}``; name, price, image
    and artisan are copied from the stored products.
    """
    now = now or utcnow()
    order_items = snapshot_cart(session, items)
    order = build_order(user_id, order_items, shipping_address, payment_method, created_at=now, updated_at=now, **fields)
    order.status = OrderStatus.PLACED
    order.status_history = []
    apply_status_change(order, OrderStatus.PLACED, note="Order placed", actor_id=user_id, now=now)

    repository = OrderRepository(session)
    for attempt in range(1, MAX_ORDER_NUMBER_ATTEMPTS + 1):
        try:
            order.order_number = format_order_number(now.year, next_order_sequence(session, now.year))
            repository.add(order)
            session.commit()
        except IntegrityError:
            # Concurrent seed of the year's counter row
            session.rollback()
            logger.warning(f"Order counter for {now.year} was seeded concurrently (attempt {attempt})")
        except ConflictError as e:
            if e.field != "order_number":
                raise
            logger.warning(f"Order number {order.order_number} already taken (attempt {attempt})")
        else:
            logger.info(f"Order {order.order_number} placed by user {user_id} for {order.total:.2f}")
            return order
    raise ConflictError(
        f"Could not assign a unique order number after {MAX_ORDER_NUMBER_ATTEMPTS} attempts", field="order_number"
    )


def get_order(session: Session, order_id: str) -> Order:
    return OrderRepository(session).get(order_id)


def update_status(
    session: Session,
    order_id: str,
    new_status,
    note: Optional[str] = None,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Order:
    """Move an order to any status; callers own transition validity."""
    status = coerce_status(new_status)
    repository = OrderRepository(session)
    order = repository.get(order_id)
    previous = order.status
    apply_status_change(order, status, note=note, actor_id=actor_id, now=now)
    repository.save(order)
    session.commit()
    logger.info(f"Order {order.order_number} status {previous.value} -> {status.value}")
    return order


def advance_status(
    session: Session,
    order_id: str,
    new_status,
    note: Optional[str] = None,
    actor_id: Optional[str] = None,
    tracking_number: Optional[str] = None,
    courier_service: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Order:
    """Like ``update_status`` but only along ``ALLOWED_TRANSITIONS``."""
    status = coerce_status(new_status)
    repository = OrderRepository(session)
    order = repository.get(order_id)
    if not is_valid_transition(order.status, status):
        raise ConflictError(f"Invalid status transition from {order.status.value} to {status.value}")
    if status == OrderStatus.SHIPPED and tracking_number:
        order.tracking_number = tracking_number
        order.courier_service = courier_service or order.courier_service
    previous = order.status
    apply_status_change(order, status, note=note, actor_id=actor_id, now=now)
    repository.save(order)
    session.commit()
    logger.info(f"Order {order.order_number} advanced {previous.value} -> {status.value}")
    return order


def cancel_order(
    session: Session,
    order_id: str,
    reason: Optional[str] = None,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Order:
    repository = OrderRepository(session)
    order = repository.get(order_id)
    if not can_be_cancelled(order):
        raise ConflictError(f"Order {order.order_number} cannot be cancelled in status {order.status.value}")
    order.cancellation_reason = reason or "Order cancelled"
    apply_status_change(
        order, OrderStatus.CANCELLED, note=f"Order cancelled: {order.cancellation_reason}", actor_id=actor_id, now=now
    )
    repository.save(order)
    session.commit()
    logger.info(f"Order {order.order_number} cancelled by {actor_id or 'system'}")
    return order


def record_payment_event(
    session: Session,
    order_id: str,
    payment_status,
    payment_id: Optional[str] = None,
    gateway_response: Optional[Dict[str, Any]] = None,
    refund_amount: Optional[float] = None,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Order:
    """Apply a payment-gateway event; the order status is left alone."""
    status = coerce_payment_status(payment_status)
    now = now or utcnow()
    repository = OrderRepository(session)
    order = repository.get(order_id)

    if status == PaymentStatus.REFUNDED:
        amount = order.total if refund_amount is None else refund_amount
        if amount < 0 or amount > order.total:
            raise ValidationError.single("refund_amount", f"Refund must be between 0 and the order total {order.total:.2f}")
        order.refund_amount = amount
        order.refund_reason = reason or order.refund_reason
        if order.refunded_at is None:
            order.refunded_at = now
    if status == PaymentStatus.PAID and order.paid_at is None:
        order.paid_at = now

    order.payment_status = status
    if payment_id:
        order.payment_id = payment_id
    if gateway_response is not None:
        order.gateway_response = gateway_response
    repository.save(order)
    session.commit()
    logger.info(f"Order {order.order_number} payment status is now {status.value}")
    return order


def _check_page(page: int, limit: int):
    errors = []
    if page < 1:
        errors.append({"field": "page", "message": "page must be at least 1"})
    if limit < 1 or limit > MAX_PAGE_SIZE:
        errors.append({"field": "limit", "message": f"limit must be between 1 and {MAX_PAGE_SIZE}"})
    if errors:
        raise ValidationError(errors)


def find_orders_by_user(
    session: Session, user_id: str, page: int = 1, limit: int = 10, status=None
) -> List[Order]:
    _check_page(page, limit)
    criteria = [OrderRecord.user_id == user_id]
    if status is not None:
        criteria.append(OrderRecord.status == coerce_status(status).value)
    return OrderRepository(session).find(*criteria, offset=(page - 1) * limit, limit=limit)


def get_order_stats(session: Session, user_id: str) -> List[OrderStatsEntry]:
    query = (
        select(OrderRecord.status, func.count(), func.sum(OrderRecord.total))
        .where(OrderRecord.user_id == user_id)
        .group_by(OrderRecord.status)
        .order_by(OrderRecord.status)
    )
    return [
        OrderStatsEntry(status=status, count=count, total_amount=round(total or 0, 2))
        for status, count, total in session.execute(query).all()
    ]
