"""
SMS Transaction Service
Stores forwarded wallet SMS messages and answers transaction-id lookups
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any, Tuple
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from storefront.models.payment.verification import SMSTransactionInDB, SMSIngestRequest
from storefront.utils.money import to_stored_amount
from storefront.utils.sms_parser import parse_payment_sms

logger = logging.getLogger(__name__)


class SMSService:
    """Service for the SMS-transaction store"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db.sms_transactions

    @staticmethod
    def _id_filter(transaction_id: str) -> Optional[Dict[str, Any]]:
        tx = (transaction_id or "").strip()
        if not tx:
            return None
        return {"$in": list(dict.fromkeys([tx, tx.upper()]))}

    async def transaction_exists(self, transaction_id: str) -> bool:
        """True when a payment SMS with this transaction id was recorded"""
        id_filter = self._id_filter(transaction_id)
        if id_filter is None:
            return False
        record = await self.collection.find_one({"transaction_id": id_filter}, {"_id": 1})
        return record is not None

    async def claim_transaction(self, transaction_id: str, claimed_by: str) -> bool:
        """
        Atomically mark a recorded transaction as used by claimed_by.

        Returns:
            True if the record is now held by claimed_by (first claim, or
            the same claimer again); False if it was never recorded or
            another checkout already holds it
        """
        id_filter = self._id_filter(transaction_id)
        if id_filter is None:
            return False
        record = await self.collection.find_one_and_update(
            {
                "transaction_id": id_filter,
                "$or": [{"is_processed": {"$ne": True}}, {"claimed_by": claimed_by}]
            },
            {"$set": {
                "is_processed": True,
                "claimed_by": claimed_by,
                "claimed_at": datetime.utcnow()
            }},
            projection={"_id": 1},
            return_document=ReturnDocument.AFTER
        )
        if record is not None:
            logger.info(f"SMS transaction {transaction_id} claimed by {claimed_by}")
        return record is not None

    async def is_claimed(self, transaction_id: str) -> bool:
        id_filter = self._id_filter(transaction_id)
        if id_filter is None:
            return False
        record = await self.collection.find_one(
            {"transaction_id": id_filter, "is_processed": True},
            {"_id": 1}
        )
        return record is not None

    async def record_sms(
        self,
        request: SMSIngestRequest
    ) -> Tuple[bool, str, Optional[Dict[str, Any]]]:
        """
        Parse and store one forwarded SMS.

        Returns:
            (success, message, data); duplicates succeed with duplicate=True
        """
        parsed = parse_payment_sms(request.message_content, request.sender_number)
        transaction_id = (request.transaction_id or parsed.transaction_id or "").strip()

        if not transaction_id:
            return False, "No transaction ID found in message", None

        record = SMSTransactionInDB(
            transaction_id=transaction_id,
            sender_number=request.sender_number or "unknown",
            sender_phone=parsed.sender_phone,
            message_content=request.message_content,
            wallet_type=parsed.wallet_type,
            amount=to_stored_amount(parsed.amount),
            new_balance=to_stored_amount(parsed.balance),
            fee=to_stored_amount(parsed.fee),
            transaction_date=parsed.transaction_date or request.timestamp or datetime.utcnow(),
        )

        data = {
            "transaction_id": transaction_id,
            "wallet_type": record.wallet_type,
            "amount": record.amount,
            "new_balance": record.new_balance,
            "fee": record.fee,
            "sender_phone": record.sender_phone,
            "duplicate": False,
        }

        try:
            await self.collection.insert_one(record.model_dump())
        except DuplicateKeyError:
            logger.info(f"SMS transaction {transaction_id} already recorded")
            return True, "Transaction already recorded", {**data, "duplicate": True}

        logger.info(f"Stored {record.wallet_type} SMS transaction {transaction_id} amount {record.amount}")
        return True, "Transaction recorded", data
