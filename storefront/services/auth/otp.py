import os
import hmac
import logging
import secrets
import string
from datetime import datetime, timedelta
from motor.motor_asyncio import AsyncIOMotorDatabase
from dotenv import load_dotenv

from storefront.models.auth.otp import OTPInDB

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

MAX_OTP_ATTEMPTS = 5


class OTPService:
    """Service for phone OTP operations"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db.otp_verifications

    @staticmethod
    def generate_otp() -> str:
        """Generate a random OTP code"""
        otp_length = int(os.getenv("OTP_LENGTH", "6"))
        return ''.join(secrets.choice(string.digits) for _ in range(otp_length))

    async def create_otp(self, phone_number: str) -> str:
        """Create and store OTP for a phone number"""
        # Invalidate any outstanding codes for this phone
        await self.collection.update_many(
            {"phone_number": phone_number, "is_verified": False},
            {"$set": {"expires_at": datetime.utcnow()}}
        )

        otp_code = self.generate_otp()
        otp_data = OTPInDB.create(phone_number=phone_number, otp_code=otp_code)
        await self.collection.insert_one(otp_data.model_dump())

        logger.info(f"Issued OTP for phone ending {phone_number[-4:]}")
        return otp_code

    async def verify_otp(self, phone_number: str, otp_code: str) -> bool:
        """
        Verify and consume an OTP code for a phone number.
        Uses a constant-time comparison against every live code.
        """
        now = datetime.utcnow()
        cursor = self.collection.find({
            "phone_number": phone_number,
            "is_verified": False,
            "expires_at": {"$gt": now}
        }).sort("created_at", -1)
        records = await cursor.to_list(length=10)

        match = None
        for record in records:
            if hmac.compare_digest(str(record["otp_code"]), str(otp_code)):
                match = record
                break

        if not match:
            await self.increment_attempts(phone_number)
            logger.warning(f"OTP mismatch for phone ending {phone_number[-4:]}")
            return False

        if match.get("attempts", 0) >= MAX_OTP_ATTEMPTS:
            logger.warning(f"OTP attempts exhausted for phone ending {phone_number[-4:]}")
            return False

        await self.collection.update_one(
            {"_id": match["_id"]},
            {"$set": {"is_verified": True, "verified_at": now}}
        )
        return True

    async def is_phone_verified(self, phone_number: str) -> bool:
        """True when a code for the phone was verified within the OTP lifetime"""
        window = timedelta(minutes=int(os.getenv("OTP_EXPIRE_MINUTES", "10")))
        record = await self.collection.find_one({
            "phone_number": phone_number,
            "is_verified": True,
            "verified_at": {"$gt": datetime.utcnow() - window}
        })
        return record is not None

    async def increment_attempts(self, phone_number: str):
        """Increment failed attempts on all unverified codes for the phone"""
        await self.collection.update_many(
            {"phone_number": phone_number, "is_verified": False},
            {"$inc": {"attempts": 1}}
        )

    async def cleanup_expired_otps(self):
        """Remove expired OTPs from database"""
        await self.collection.delete_many({
            "expires_at": {"$lt": datetime.utcnow()}
        })
