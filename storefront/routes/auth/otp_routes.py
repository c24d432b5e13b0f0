import os
import logging
from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from storefront.models.auth.otp import OTPSendRequest, OTPVerifyRequest
from storefront.services.auth.otp import OTPService
from storefront.routes.auth.dependencies import get_database
from storefront.utils.response import success_response, error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/otp", tags=["Phone OTP"])


@router.post("/send")
async def send_otp(
    request: OTPSendRequest,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Issue a checkout OTP for a phone number.

    Delivery is handled by the SMS provider integration; in DEBUG mode the
    code is echoed back so the checkout can be exercised locally.
    """
    otp_service = OTPService(db)
    otp_code = await otp_service.create_otp(request.phone_number)

    data = {"expires_in_minutes": int(os.getenv("OTP_EXPIRE_MINUTES", "10"))}
    if os.getenv("DEBUG", "False").lower() == "true":
        data["otp_code"] = otp_code

    return success_response(message="OTP sent", data=data)


@router.post("/verify")
async def verify_otp(
    request: OTPVerifyRequest,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Verify a phone OTP ahead of order creation"""
    otp_service = OTPService(db)
    is_valid = await otp_service.verify_otp(request.phone_number, request.otp_code)

    if not is_valid:
        return error_response(message="Invalid or expired OTP", status_code=400)

    return success_response(
        message="Phone verified",
        data={"phone_number": request.phone_number, "phone_verified": True}
    )
