"""
Order Models
Orders created by the checkout payment flow
"""
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime
from decimal import Decimal
from enum import Enum


class OrderPaymentStatus(str, Enum):
    """Order payment status"""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class OrderItem(BaseModel):
    """Line item snapshot"""
    product_id: str
    product_name: Optional[str] = None
    quantity: int = Field(1, ge=1)
    price: Decimal = Field(..., ge=0)
    variant: Optional[Dict[str, Any]] = None


class AddressSnapshot(BaseModel):
    """Billing/shipping snapshot captured at checkout"""
    full_name: str = ""
    full_address: str = ""
    whatsapp_number: str = ""
    country: str = ""


class CustomerDetails(BaseModel):
    """Customer identity used for OTP-gated order creation"""
    phone: str
    email: Optional[str] = None
    address: AddressSnapshot = Field(default_factory=AddressSnapshot)


class CreateOrderRequest(BaseModel):
    """
    Payload for the OTP-gated order creation endpoint.

    Either otp_code must be a valid unused code for customer.phone, or
    phone_verified must be set by a caller that already validated the OTP
    earlier in checkout.
    """
    customer: CustomerDetails
    otp_code: Optional[str] = None
    phone_verified: bool = False

    items: List[OrderItem] = Field(default_factory=list)
    subtotal: Decimal
    shipping: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    total: Decimal

    payment_method: str
    transaction_id: Optional[str] = None
    advance_amount: Optional[Decimal] = None   # COD only

    submission_key: Optional[str] = None       # De-duplicates resubmitted carts


class OrderCreationResult(BaseModel):
    """Order creation endpoint response"""
    success: bool
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    message: str = ""


class OrderInDB(BaseModel):
    """Order document"""
    order_id: str
    order_number: str
    customer_phone: str
    customer_email: Optional[str] = None

    items: List[Dict[str, Any]] = Field(default_factory=list)
    subtotal: float
    shipping: float = 0.0
    tax: float = 0.0
    total: float

    payment_method: str
    payment_status: OrderPaymentStatus = OrderPaymentStatus.PENDING
    transaction_id: Optional[str] = None

    # COD
    advance_amount: Optional[float] = None
    balance_due: Optional[float] = None
    advance_paid: bool = False

    billing_address: Dict[str, Any] = Field(default_factory=dict)
    shipping_address: Dict[str, Any] = Field(default_factory=dict)

    submission_key: Optional[str] = None
    needs_reconciliation: bool = False

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    paid_at: Optional[datetime] = None
