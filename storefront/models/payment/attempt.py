"""
Payment Attempt Models
State, session and outcome types for a single checkout payment attempt
"""
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from decimal import Decimal
from enum import Enum

from storefront.models.payment.order import OrderItem, CustomerDetails


class AttemptState(str, Enum):
    """States of one payment attempt"""
    SELECTING_GATEWAY = "selecting_gateway"
    ENTERING_TRANSACTION_ID = "entering_transaction_id"
    CHECKING_SMS_RECORD = "checking_sms_record"
    CREATING_ORDER = "creating_order"
    VERIFYING_PAYMENT = "verifying_payment"
    SUCCEEDED = "succeeded"
    AWAITING_MANUAL_REVIEW = "awaiting_manual_review"
    CONTACT_SUPPORT = "contact_support"


TERMINAL_STATES = (
    AttemptState.SUCCEEDED,
    AttemptState.AWAITING_MANUAL_REVIEW,
    AttemptState.CONTACT_SUPPORT,
)


class OutcomeCode(str, Enum):
    """What the last action did, as reported to the shopper"""
    GATEWAY_SELECTED = "gateway_selected"
    COD_SELECTED = "cod_selected"
    COD_UNAVAILABLE = "cod_unavailable"
    INPUT_REJECTED = "input_rejected"
    BUSY = "busy"
    TRANSACTION_NOT_FOUND = "transaction_not_found"
    TRANSACTION_ALREADY_USED = "transaction_already_used"
    ORDER_CREATION_FAILED = "order_creation_failed"
    PAYMENT_VERIFIED = "payment_verified"
    SUBMITTED_FOR_REVIEW = "submitted_for_review"
    VERIFICATION_FAILED = "verification_failed"
    SUBMISSION_FAILED = "submission_failed"
    CANCELLED = "cancelled"
    CANCEL_REJECTED = "cancel_rejected"
    ALREADY_COMPLETED = "already_completed"


class CheckoutSession(BaseModel):
    """
    Everything the checkout knows about the shopper and cart.
    Passed explicitly into the orchestrator.
    """
    country_id: Optional[str] = None
    product_ids: List[str] = Field(default_factory=list)
    order_amount: Decimal = Field(..., gt=0)     # Cart total: items plus shipping
    shipping: Decimal = Field(Decimal("0"), ge=0)
    customer: CustomerDetails
    items: List[OrderItem] = Field(..., min_length=1)
    otp_code: Optional[str] = None
    phone_verified: bool = False

    @property
    def items_subtotal(self) -> Decimal:
        return sum((item.price * item.quantity for item in self.items), Decimal("0"))

    @model_validator(mode="after")
    def check_amount_matches_cart(self):
        expected = (self.items_subtotal + self.shipping).quantize(Decimal("0.01"))
        if self.order_amount.quantize(Decimal("0.01")) != expected:
            raise ValueError(f"order_amount must equal the cart total {expected}")
        return self


class OpenAttemptRequest(CheckoutSession):
    """Request to open a payment attempt"""
    pass


class SelectGatewayRequest(BaseModel):
    """Request to pick a gateway"""
    gateway_id: str = Field(..., min_length=1)


class SubmitTransactionRequest(BaseModel):
    """Request to submit a provider-issued transaction id"""
    transaction_id: str = ""
    advance_gateway: Optional[str] = Field(
        None, description="Wallet used to pay the COD advance (defaults to cod)"
    )
