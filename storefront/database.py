import os
import logging
from motor.motor_asyncio import AsyncIOMotorClient
from typing import Optional
from dotenv import load_dotenv
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class Database:
    client: Optional[AsyncIOMotorClient] = None

    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB"""
        mongodb_url = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
        cls.client = AsyncIOMotorClient(mongodb_url)
        logger.info("Connected to MongoDB")

        # Create indexes
        await cls.create_indexes()

    @classmethod
    async def create_indexes(cls):
        """Create database indexes"""
        db = cls.get_db()

        # Catalog: one gateway per name per country (null country = global)
        try:
            await db.countries.create_index([("code", ASCENDING)], unique=True)
            await db.payment_gateways.create_index(
                [("country_id", ASCENDING), ("name", ASCENDING)], unique=True
            )
            await db.payment_gateways.create_index([("is_active", ASCENDING), ("sort_order", ASCENDING)])
            await db.products.create_index([("product_id", ASCENDING)], unique=True)
            logger.info("Created indexes on catalog collections")
        except PyMongoError as e:
            logger.warning(f"Indexes on catalog collections may already exist: {e}")

        # SMS records: a transaction id is recorded once
        try:
            await db.sms_transactions.create_index([("transaction_id", ASCENDING)], unique=True)
            await db.sms_transactions.create_index([("created_at", DESCENDING)])
            logger.info("Created indexes on sms_transactions")
        except PyMongoError as e:
            logger.warning(f"Indexes on sms_transactions may already exist: {e}")

        # Orders
        try:
            await db.orders.create_index([("order_id", ASCENDING)], unique=True)
            await db.orders.create_index([("order_number", ASCENDING)], unique=True)
            await db.orders.create_index([("submission_key", ASCENDING)], unique=True, sparse=True)
            await db.orders.create_index([("payment_status", ASCENDING), ("created_at", ASCENDING)])
            logger.info("Created indexes on orders")
        except PyMongoError as e:
            logger.warning(f"Indexes on orders may already exist: {e}")

        # Verification queue
        try:
            await db.transaction_verifications.create_index([("verification_id", ASCENDING)], unique=True)
            await db.transaction_verifications.create_index([("order_id", ASCENDING), ("created_at", DESCENDING)])
            await db.transaction_verifications.create_index([("status", ASCENDING), ("created_at", ASCENDING)])
            await db.advance_payments.create_index([("advance_payment_id", ASCENDING)], unique=True)
            await db.advance_payments.create_index([("order_id", ASCENDING)])
            logger.info("Created indexes on verification collections")
        except PyMongoError as e:
            logger.warning(f"Indexes on verification collections may already exist: {e}")

        # Phone OTP
        try:
            await db.otp_verifications.create_index([("phone_number", ASCENDING), ("created_at", DESCENDING)])
            await db.otp_verifications.create_index([("expires_at", ASCENDING)])
            logger.info("Created indexes on otp_verifications")
        except PyMongoError as e:
            logger.warning(f"Indexes on otp_verifications may already exist: {e}")

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection"""
        if cls.client:
            cls.client.close()
            logger.info("Disconnected from MongoDB")

    @classmethod
    def get_db(cls):
        """Get database instance"""
        if cls.client is None:
            return None
        database_name = os.getenv("DATABASE_NAME", "storefront")
        return cls.client[database_name]
