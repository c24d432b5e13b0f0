import os
from pydantic import BaseModel, Field
from datetime import datetime, timedelta
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class OTPSendRequest(BaseModel):
    """Schema for requesting a phone OTP"""
    phone_number: str = Field(..., min_length=6, max_length=20)


class OTPVerifyRequest(BaseModel):
    """Schema for verifying a phone OTP"""
    phone_number: str = Field(..., min_length=6, max_length=20)
    otp_code: str = Field(..., min_length=4, max_length=10)


class OTPInDB(BaseModel):
    """Schema for OTP in database"""
    phone_number: str
    otp_code: str
    created_at: datetime
    expires_at: datetime
    is_verified: bool = False
    attempts: int = 0

    @classmethod
    def create(cls, phone_number: str, otp_code: str):
        """Create new OTP with expiration"""
        now = datetime.utcnow()
        otp_expire_minutes = int(os.getenv("OTP_EXPIRE_MINUTES", "10"))
        return cls(
            phone_number=phone_number,
            otp_code=otp_code,
            created_at=now,
            expires_at=now + timedelta(minutes=otp_expire_minutes),
        )
