"""
Verification Service
Transaction review queue, COD advance payments and overdue-review reconciliation
"""
import uuid
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Dict, Any, Tuple, List
from motor.motor_asyncio import AsyncIOMotorDatabase

from storefront.models.payment.gateway import COD_GATEWAY
from storefront.models.payment.verification import (
    VerificationStatus,
    AdvancePaymentStatus,
    TransactionVerificationInDB,
    AdvancePaymentInDB,
)
from storefront.services.payment.order_service import OrderService
from storefront.utils.money import to_stored_amount

logger = logging.getLogger(__name__)


class VerificationService:
    """
    Service for transaction verification records.

    Every submitted transaction gets its own record, created pending.
    A record leaves pending exactly once: updates are conditional on
    status still being pending, so the first terminal write wins.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.verifications = db.transaction_verifications
        self.advance_payments = db.advance_payments
        self.order_service = OrderService(db)

    @staticmethod
    def generate_verification_id() -> str:
        return f"TV_{uuid.uuid4().hex[:12].upper()}"

    @staticmethod
    def generate_advance_payment_id() -> str:
        return f"ADV_{uuid.uuid4().hex[:12].upper()}"

    async def submit_transaction(
        self,
        order_id: str,
        payment_gateway: str,
        transaction_id: str,
        amount: Decimal
    ) -> Optional[str]:
        """Create a pending verification record; returns its id"""
        record = TransactionVerificationInDB(
            verification_id=self.generate_verification_id(),
            order_id=order_id,
            payment_gateway=payment_gateway,
            transaction_id=transaction_id.strip(),
            amount=to_stored_amount(amount),
        )
        try:
            await self.verifications.insert_one(record.model_dump())
        except Exception as e:
            logger.error(f"Failed to store verification for order {order_id}: {e}")
            return None

        logger.info(
            f"Verification {record.verification_id} queued: order {order_id}, "
            f"{payment_gateway} {record.transaction_id} {record.amount}"
        )
        return record.verification_id

    async def create_advance_payment(
        self,
        order_id: str,
        amount: Decimal,
        payment_method: str,
        transaction_id: Optional[str] = None
    ) -> Optional[str]:
        """Record the COD confirmation fee; returns its id"""
        record = AdvancePaymentInDB(
            advance_payment_id=self.generate_advance_payment_id(),
            order_id=order_id,
            amount=to_stored_amount(amount),
            payment_method=payment_method,
            transaction_id=transaction_id,
        )
        try:
            await self.advance_payments.insert_one(record.model_dump())
        except Exception as e:
            logger.error(f"Failed to store advance payment for order {order_id}: {e}")
            return None
        return record.advance_payment_id

    async def get_verification(self, verification_id: str) -> Optional[Dict[str, Any]]:
        record = await self.verifications.find_one({"verification_id": verification_id})
        if record and "_id" in record:
            record["_id"] = str(record["_id"])
        return record

    async def get_latest_for_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        """Most recent verification record for an order"""
        cursor = self.verifications.find({"order_id": order_id}).sort("created_at", -1).limit(1)
        records = await cursor.to_list(length=1)
        if not records:
            return None
        record = records[0]
        record["_id"] = str(record["_id"])
        return record

    async def review_transaction(
        self,
        verification_id: str,
        approve: bool,
        reviewer: str,
        note: Optional[str] = None
    ) -> Tuple[bool, str, Optional[Dict[str, Any]]]:
        """
        Move a pending verification to verified/rejected and settle its order.

        Returns:
            (success, message, updated_record)
        """
        now = datetime.utcnow()
        new_status = VerificationStatus.VERIFIED if approve else VerificationStatus.REJECTED

        result = await self.verifications.update_one(
            {"verification_id": verification_id, "status": VerificationStatus.PENDING.value},
            {"$set": {
                "status": new_status.value,
                "verified_at": now,
                "reviewed_by": reviewer,
                "review_note": note,
                "updated_at": now
            }}
        )

        if result.modified_count == 0:
            existing = await self.get_verification(verification_id)
            if not existing:
                return False, "Verification not found", None
            return False, f"Verification already {existing['status']}", existing

        record = await self.get_verification(verification_id)
        logger.info(f"Verification {verification_id} {new_status.value} by {reviewer}")

        if approve and record:
            await self._settle_order(record)

        return True, f"Transaction {new_status.value}", record

    async def _settle_order(self, record: Dict[str, Any]):
        """Apply an approved verification to its order"""
        order = await self.order_service.get_order(record["order_id"])
        if not order:
            logger.warning(f"Verified transaction for unknown order {record['order_id']}")
            return

        if order.get("payment_method") == COD_GATEWAY:
            await self.advance_payments.update_many(
                {"order_id": order["order_id"], "payment_status": AdvancePaymentStatus.PENDING.value},
                {"$set": {
                    "payment_status": AdvancePaymentStatus.PAID.value,
                    "transaction_id": record["transaction_id"],
                    "verified_at": datetime.utcnow()
                }}
            )
            await self.order_service.mark_advance_paid(order["order_id"])
        else:
            await self.order_service.mark_paid(order["order_id"])

    async def list_verifications(
        self,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
        overdue_only: bool = False
    ) -> Tuple[List[Dict], Dict[str, Any]]:
        """Review queue, newest first"""
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        if overdue_only:
            query["review_overdue"] = True

        skip = (page - 1) * limit

        total = await self.verifications.count_documents(query)
        cursor = self.verifications.find(query).sort("created_at", -1).skip(skip).limit(limit)
        records = await cursor.to_list(length=limit)

        for record in records:
            if "_id" in record:
                record["_id"] = str(record["_id"])

        pagination = {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": (total + limit - 1) // limit
        }

        return records, pagination

    async def flag_overdue_reviews(self, sla_hours: int) -> Dict[str, Any]:
        """
        Flag pending verifications older than the review SLA, and their orders.
        Nothing is rejected automatically.
        """
        cutoff = datetime.utcnow() - timedelta(hours=sla_hours)
        query = {
            "status": VerificationStatus.PENDING.value,
            "review_overdue": {"$ne": True},
            "created_at": {"$lt": cutoff}
        }

        cursor = self.verifications.find(query, {"verification_id": 1, "order_id": 1})
        overdue = await cursor.to_list(length=500)
        if not overdue:
            return {"processed": 0, "orders_flagged": 0}

        await self.verifications.update_many(
            {"verification_id": {"$in": [r["verification_id"] for r in overdue]}},
            {"$set": {"review_overdue": True, "updated_at": datetime.utcnow()}}
        )
        order_ids = list({r["order_id"] for r in overdue})
        flagged = await self.order_service.flag_for_reconciliation(order_ids)

        logger.warning(
            f"{len(overdue)} verifications past {sla_hours}h review SLA; {flagged} orders flagged"
        )
        return {"processed": len(overdue), "orders_flagged": flagged}
