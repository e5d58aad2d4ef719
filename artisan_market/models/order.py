from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum
import uuid

from artisan_market.utils.clock import utcnow


class OrderStatus(str, Enum):
    PLACED = "placed"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    PACKED = "packed"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    COD = "cod"
    ZOHO_CARD = "zoho_card"
    ZOHO_UPI = "zoho_upi"
    ZOHO_NETBANKING = "zoho_netbanking"
    ZOHO_WALLET = "zoho_wallet"
    RAZORPAY = "razorpay"
    UPI = "upi"
    PAYTM = "paytm"
    PAYTM_UPI = "paytm_upi"
    PAYTM_CARD = "paytm_card"
    PAYTM_NETBANKING = "paytm_netbanking"
    PAYTM_WALLET = "paytm_wallet"


class PaymentGateway(str, Enum):
    ZOHO = "zoho"
    PAYTM = "paytm"
    RAZORPAY = "razorpay"
    COD = "cod"


class AddressType(str, Enum):
    HOME = "home"
    OFFICE = "office"
    OTHER = "other"


class CartLine(BaseModel):
    """What the buyer asks for; name, price and artisan come from the product."""

    product_id: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)


class OrderItem(BaseModel):
    """Snapshot of a product taken at checkout; later product edits never reach it."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    name: str
    price: float = Field(ge=0)
    quantity: int = Field(ge=1)
    artisan_id: str
    image: Optional[str] = None

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


class Address(BaseModel):
    full_name: str
    phone: str
    email: str
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: str
    zip_code: str
    country: str = "India"
    landmark: Optional[str] = None
    address_type: AddressType = AddressType.HOME


class StatusHistoryEntry(BaseModel):
    status: OrderStatus
    timestamp: datetime = Field(default_factory=utcnow)
    note: Optional[str] = None
    updated_by: Optional[str] = None


class Order(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    order_number: Optional[str] = None
    user_id: str
    items: List[OrderItem] = Field(min_length=1)

    subtotal: float = Field(ge=0)
    shipping_cost: float = Field(default=0, ge=0)
    tax: float = Field(default=0, ge=0)
    discount: float = Field(default=0, ge=0)
    total: float = Field(ge=0)

    shipping_address: Address
    billing_address: Address

    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_gateway: PaymentGateway = PaymentGateway.COD
    payment_id: Optional[str] = None
    gateway_response: Optional[Dict[str, Any]] = None
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_amount: Optional[float] = Field(default=None, ge=0)
    refund_reason: Optional[str] = None

    status: OrderStatus = OrderStatus.PLACED
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)

    tracking_number: Optional[str] = None
    courier_service: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    actual_delivery: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    notes: Optional[str] = Field(default=None, max_length=500)
    is_gift: bool = False
    gift_message: Optional[str] = Field(default=None, max_length=200)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="before")
    @classmethod
    def fill_derived_amounts(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("subtotal") is None and data.get("items"):
            try:
                data["subtotal"] = round(
                    sum(_item_value(item, "price") * _item_value(item, "quantity") for item in data["items"]), 2
                )
            except (KeyError, TypeError):
                # Malformed items are reported by field validation
                pass
        if data.get("total") is None and data.get("subtotal") is not None:
            data["total"] = round(
                data["subtotal"]
                + (data.get("shipping_cost") or 0)
                + (data.get("tax") or 0)
                - (data.get("discount") or 0),
                2,
            )
        if data.get("billing_address") is None:
            data["billing_address"] = data.get("shipping_address")
        return data

    @model_validator(mode="after")
    def check_total(self) -> "Order":
        expected = round(self.subtotal + self.shipping_cost + self.tax - self.discount, 2)
        if round(self.total, 2) != expected:
            raise ValueError(
                f"total {self.total:.2f} does not equal subtotal + shipping_cost + tax - discount ({expected:.2f})"
            )
        return self

    def history_statuses(self) -> List[OrderStatus]:
        return [entry.status for entry in self.status_history]

    def to_dict(self) -> Dict:
        return self.model_dump(mode="json")


def _item_value(item: Any, name: str) -> float:
    if isinstance(item, BaseModel):
        return getattr(item, name)
    return item[name]


class OrderStatsEntry(BaseModel):
    status: OrderStatus
    count: int
    total_amount: float
