"""
Verification Models
Transaction verification records, COD advance payments and ingested SMS
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class VerificationStatus(str, Enum):
    """Transaction verification status (verified/rejected are terminal)"""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class AdvancePaymentStatus(str, Enum):
    """COD advance payment status"""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class TransactionVerificationInDB(BaseModel):
    """Audit/review record for one submitted transaction id"""
    verification_id: str
    order_id: str
    payment_gateway: str
    transaction_id: str
    amount: float
    status: VerificationStatus = VerificationStatus.PENDING
    verified_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None   # admin key holder or "auto:<gateway>"
    review_note: Optional[str] = None
    review_overdue: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class AdvancePaymentInDB(BaseModel):
    """Fixed confirmation fee collected online for a COD order"""
    advance_payment_id: str
    order_id: str
    amount: float
    payment_method: str                 # Gateway used to pay the advance
    payment_status: AdvancePaymentStatus = AdvancePaymentStatus.PENDING
    transaction_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class SMSTransactionInDB(BaseModel):
    """Payment-confirmation SMS forwarded from the merchant wallet phone"""
    transaction_id: str
    sender_number: str = "unknown"
    sender_phone: Optional[str] = None
    message_content: str = ""
    wallet_type: str = "unknown"
    amount: Optional[float] = None
    new_balance: Optional[float] = None
    fee: Optional[float] = None
    transaction_date: datetime
    is_processed: bool = False             # Claimed by a checkout
    claimed_by: Optional[str] = None       # Payment attempt id holding the transaction
    claimed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class SMSIngestRequest(BaseModel):
    """SMS forwarded by the monitor app"""
    message_content: str = Field(..., min_length=1)
    sender_number: Optional[str] = None
    transaction_id: Optional[str] = None   # Pre-extracted by the device, if any
    timestamp: Optional[datetime] = None


class ReviewDecision(BaseModel):
    """Admin review action body"""
    note: Optional[str] = None
