"""
SMS Ingestion Routes
Receives wallet SMS messages forwarded by the merchant's phone
"""
from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from storefront.models.payment.verification import SMSIngestRequest
from storefront.services.payment.sms_service import SMSService
from storefront.routes.auth.dependencies import get_database, require_ingest_key
from storefront.utils.response import success_response, error_response

router = APIRouter(prefix="/sms", tags=["SMS Ingestion"])


@router.post("/transactions")
async def record_sms_transaction(
    request: SMSIngestRequest,
    db: AsyncIOMotorDatabase = Depends(get_database),
    _: str = Depends(require_ingest_key)
):
    """
    Store a forwarded payment SMS.

    The transaction id is taken from the request or parsed from the
    message. Re-sending the same SMS is harmless.
    """
    sms_service = SMSService(db)
    success, message, data = await sms_service.record_sms(request)

    if not success:
        return error_response(message=message, status_code=400)

    status_code = 200 if data.get("duplicate") else 201
    return success_response(message=message, data=data, status_code=status_code)
