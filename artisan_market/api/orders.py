from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional

from artisan_market.api.dependencies import get_actor_id, require_actor_id
from artisan_market.lifecycle import orders as lifecycle
from artisan_market.models.order import CartLine, Order, OrderStatsEntry
from artisan_market.store.database import get_db

router = APIRouter()


class OrderCreateRequest(BaseModel):
    items: List[CartLine]
    shipping_address: Dict[str, Any]
    billing_address: Optional[Dict[str, Any]] = None
    payment_method: str
    payment_gateway: Optional[str] = None
    shipping_cost: float = 0
    tax: float = 0
    discount: float = 0
    total: Optional[float] = None
    notes: Optional[str] = None
    is_gift: bool = False
    gift_message: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: str
    note: Optional[str] = None


class AdvanceRequest(StatusUpdateRequest):
    tracking_number: Optional[str] = None
    courier_service: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class PaymentEventRequest(BaseModel):
    payment_status: str
    payment_id: Optional[str] = None
    gateway_response: Optional[Dict[str, Any]] = None
    refund_amount: Optional[float] = Field(default=None, ge=0)
    reason: Optional[str] = None


class EligibilityResponse(BaseModel):
    order_id: str
    status: str
    can_be_cancelled: bool
    can_be_returned: bool


@router.post("", status_code=201, response_model=Order)
def place_order(request: OrderCreateRequest, user_id: str = Depends(require_actor_id), db: Session = Depends(get_db)):
    """Checkout: snapshot the carted products into a new order."""
    fields = request.model_dump(exclude_none=True, exclude={"items", "shipping_address", "payment_method"})
    return lifecycle.place_order(
        db, user_id, request.items, request.shipping_address, request.payment_method, **fields
    )


@router.get("", response_model=List[Order])
def list_my_orders(
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    user_id: str = Depends(require_actor_id),
    db: Session = Depends(get_db),
):
    return lifecycle.find_orders_by_user(db, user_id, page=page, limit=limit, status=status)


@router.get("/stats", response_model=List[OrderStatsEntry])
def my_order_stats(user_id: str = Depends(require_actor_id), db: Session = Depends(get_db)):
    return lifecycle.get_order_stats(db, user_id)


@router.get("/{order_id}", response_model=Order)
def get_order(order_id: str, db: Session = Depends(get_db)):
    return lifecycle.get_order(db, order_id)


@router.get("/{order_id}/eligibility", response_model=EligibilityResponse)
def get_eligibility(order_id: str, db: Session = Depends(get_db)):
    order = lifecycle.get_order(db, order_id)
    return EligibilityResponse(
        order_id=order.id,
        status=order.status.value,
        can_be_cancelled=lifecycle.can_be_cancelled(order),
        can_be_returned=lifecycle.can_be_returned(order),
    )


@router.patch("/{order_id}/status", response_model=Order)
def update_status(
    order_id: str,
    request: StatusUpdateRequest,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """Set any status; used by fulfilment integrations that own the sequencing."""
    return lifecycle.update_status(db, order_id, request.status, note=request.note, actor_id=actor_id)


@router.post("/{order_id}/advance", response_model=Order)
def advance_status(
    order_id: str,
    request: AdvanceRequest,
    actor_id: str = Depends(require_actor_id),
    db: Session = Depends(get_db),
):
    return lifecycle.advance_status(
        db,
        order_id,
        request.status,
        note=request.note,
        actor_id=actor_id,
        tracking_number=request.tracking_number,
        courier_service=request.courier_service,
    )


@router.post("/{order_id}/cancel", response_model=Order)
def cancel_order(
    order_id: str,
    request: CancelRequest,
    actor_id: str = Depends(require_actor_id),
    db: Session = Depends(get_db),
):
    return lifecycle.cancel_order(db, order_id, reason=request.reason, actor_id=actor_id)


@router.post("/{order_id}/payment-events", response_model=Order)
def record_payment_event(order_id: str, request: PaymentEventRequest, db: Session = Depends(get_db)):
    """Entry point for payment-gateway webhooks."""
    return lifecycle.record_payment_event(
        db,
        order_id,
        request.payment_status,
        payment_id=request.payment_id,
        gateway_response=request.gateway_response,
        refund_amount=request.refund_amount,
        reason=request.reason,
    )
