"""
Admin Verification Routes
Manual review queue for submitted transactions
"""
from fastapi import APIRouter, Depends, Query
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from storefront.models.payment.verification import VerificationStatus, ReviewDecision
from storefront.services.payment.verification_service import VerificationService
from storefront.routes.auth.dependencies import get_database, require_admin_key
from storefront.utils.response import success_response, error_response

router = APIRouter(prefix="/admin/verifications", tags=["Admin Verifications"])


@router.get("")
async def list_verifications(
    status: Optional[VerificationStatus] = Query(None, description="Filter by status"),
    overdue_only: bool = Query(False, description="Only records past the review SLA"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncIOMotorDatabase = Depends(get_database),
    _: str = Depends(require_admin_key)
):
    """Review queue, newest first"""
    verification_service = VerificationService(db)
    records, pagination = await verification_service.list_verifications(
        status=status.value if status else None,
        page=page,
        limit=limit,
        overdue_only=overdue_only
    )

    return success_response(
        message="Verifications retrieved successfully",
        data={"verifications": records, "pagination": pagination}
    )


async def _review(
    verification_id: str,
    approve: bool,
    decision: Optional[ReviewDecision],
    db: AsyncIOMotorDatabase,
    reviewer: str
):
    verification_service = VerificationService(db)
    success, message, record = await verification_service.review_transaction(
        verification_id,
        approve=approve,
        reviewer=reviewer,
        note=decision.note if decision else None
    )

    if not success:
        status_code = 404 if record is None else 409
        return error_response(message=message, status_code=status_code, data=record)

    return success_response(message=message, data=record)


@router.post("/{verification_id}/approve")
async def approve_verification(
    verification_id: str,
    decision: Optional[ReviewDecision] = None,
    db: AsyncIOMotorDatabase = Depends(get_database),
    reviewer: str = Depends(require_admin_key)
):
    """Confirm a transaction; the order is marked paid (COD: advance paid)"""
    return await _review(verification_id, True, decision, db, reviewer)


@router.post("/{verification_id}/reject")
async def reject_verification(
    verification_id: str,
    decision: Optional[ReviewDecision] = None,
    db: AsyncIOMotorDatabase = Depends(get_database),
    reviewer: str = Depends(require_admin_key)
):
    """Reject a transaction; the order stays pending"""
    return await _review(verification_id, False, decision, db, reviewer)
