"""
Order Service
OTP-gated order creation for the checkout payment flow
"""
import uuid
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from storefront.models.payment.gateway import COD_GATEWAY
from storefront.models.payment.order import (
    CreateOrderRequest,
    OrderCreationResult,
    OrderInDB,
    OrderPaymentStatus,
)
from storefront.services.auth.otp import OTPService
from storefront.utils.money import to_stored_amount

logger = logging.getLogger(__name__)

# First order number handed out is ORDER_NUMBER_BASE + 1
ORDER_NUMBER_BASE = 1000


class OrderService:
    """
    Service for order creation and payment-status updates.
    Orders always start with payment_status=pending.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.orders = db.orders
        self.counters = db.counters
        self.otp_service = OTPService(db)

    @staticmethod
    def generate_order_id() -> str:
        """Generate unique order ID"""
        return f"ORD_{uuid.uuid4().hex[:12].upper()}"

    async def next_order_number(self) -> str:
        """Atomically allocate the next sequential order number"""
        counter = await self.counters.find_one_and_update(
            {"counter_id": "order_number"},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return str(ORDER_NUMBER_BASE + int(counter["seq"]))

    async def create_order(self, request: CreateOrderRequest) -> OrderCreationResult:
        """
        Create an order after checking the customer's OTP.

        Store errors propagate to the caller; rejections (bad OTP) are
        returned as an unsuccessful result.
        """
        phone = request.customer.phone

        if request.submission_key:
            existing = await self.orders.find_one({"submission_key": request.submission_key})
            if existing:
                logger.info(
                    f"Order {existing['order_id']} already exists for submission {request.submission_key}"
                )
                return OrderCreationResult(
                    success=True,
                    order_id=existing["order_id"],
                    order_number=existing["order_number"],
                    message="Order already created"
                )

        # The bypass flag only counts if the server saw the phone verified
        verified = request.phone_verified and await self.otp_service.is_phone_verified(phone)
        if not verified:
            if not request.otp_code:
                return OrderCreationResult(success=False, message="Missing OTP code")
            if not await self.otp_service.verify_otp(phone, request.otp_code):
                return OrderCreationResult(
                    success=False,
                    message="Invalid or expired OTP. Please request a new code."
                )

        is_cod = request.payment_method.lower() == COD_GATEWAY
        advance_amount = request.advance_amount if is_cod else None
        balance_due = request.total - advance_amount if advance_amount is not None else None

        address = request.customer.address.model_dump()
        order = OrderInDB(
            order_id=self.generate_order_id(),
            order_number=await self.next_order_number(),
            customer_phone=phone,
            customer_email=request.customer.email,
            items=[
                {**item.model_dump(), "price": to_stored_amount(item.price)}
                for item in request.items
            ],
            subtotal=to_stored_amount(request.subtotal),
            shipping=to_stored_amount(request.shipping),
            tax=to_stored_amount(request.tax),
            total=to_stored_amount(request.total),
            payment_method=request.payment_method,
            payment_status=OrderPaymentStatus.PENDING,
            transaction_id=request.transaction_id,
            advance_amount=to_stored_amount(advance_amount),
            balance_due=to_stored_amount(balance_due),
            billing_address=address,
            shipping_address=address,
            submission_key=request.submission_key,
        )

        await self.orders.insert_one(order.model_dump())
        logger.info(f"Order {order.order_number} ({order.order_id}) created via {order.payment_method}")

        return OrderCreationResult(
            success=True,
            order_id=order.order_id,
            order_number=order.order_number,
            message="Order created successfully"
        )

    async def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        """Get order by ID"""
        order = await self.orders.find_one({"order_id": order_id})
        if order and "_id" in order:
            order["_id"] = str(order["_id"])
        return order

    async def mark_paid(self, order_id: str) -> bool:
        """Mark an order fully paid"""
        now = datetime.utcnow()
        result = await self.orders.update_one(
            {"order_id": order_id},
            {"$set": {
                "payment_status": OrderPaymentStatus.PAID.value,
                "paid_at": now,
                "needs_reconciliation": False,
                "updated_at": now
            }}
        )
        return result.matched_count > 0

    async def mark_advance_paid(self, order_id: str) -> bool:
        """COD: advance confirmed, balance still due on delivery"""
        result = await self.orders.update_one(
            {"order_id": order_id},
            {"$set": {
                "advance_paid": True,
                "needs_reconciliation": False,
                "updated_at": datetime.utcnow()
            }}
        )
        return result.matched_count > 0

    async def flag_for_reconciliation(self, order_ids: List[str]) -> int:
        """Flag pending orders whose payment review is overdue"""
        if not order_ids:
            return 0
        result = await self.orders.update_many(
            {
                "order_id": {"$in": order_ids},
                "payment_status": OrderPaymentStatus.PENDING.value
            },
            {"$set": {"needs_reconciliation": True, "updated_at": datetime.utcnow()}}
        )
        return result.modified_count
