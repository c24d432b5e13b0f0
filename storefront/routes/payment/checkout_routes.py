"""
Checkout Payment Routes
Gateway listing and the payment-attempt workflow
"""
import logging
from dataclasses import asdict
from fastapi import APIRouter, Depends, Query
from typing import Optional, List
from motor.motor_asyncio import AsyncIOMotorDatabase

from storefront.models.payment.attempt import (
    OutcomeCode,
    OpenAttemptRequest,
    SelectGatewayRequest,
    SubmitTransactionRequest,
)
from storefront.models.payment.gateway import GatewayListResponse
from storefront.services.payment.attempt_store import PaymentAttemptStore
from storefront.services.payment.backend import PaymentBackend
from storefront.services.payment.gateway_resolver import GatewayResolver
from storefront.services.payment.orchestrator import (
    PaymentSubmissionOrchestrator,
    AttemptOutcome,
)
from storefront.services.payment.support import build_support_link, build_support_message
from storefront.services.payment.verification_service import VerificationService
from storefront.routes.auth.dependencies import (
    get_database,
    get_payment_backend,
    get_attempt_store,
)
from storefront.utils.response import success_response, error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Checkout Payments"])

SUCCESS_CODES = {
    OutcomeCode.GATEWAY_SELECTED,
    OutcomeCode.COD_SELECTED,
    OutcomeCode.PAYMENT_VERIFIED,
    OutcomeCode.SUBMITTED_FOR_REVIEW,
    OutcomeCode.CANCELLED,
    OutcomeCode.ALREADY_COMPLETED,
}

ERROR_STATUS_CODES = {
    OutcomeCode.BUSY: 409,
    OutcomeCode.INPUT_REJECTED: 400,
    OutcomeCode.COD_UNAVAILABLE: 400,
    OutcomeCode.CANCEL_REJECTED: 400,
    OutcomeCode.TRANSACTION_NOT_FOUND: 404,
    OutcomeCode.TRANSACTION_ALREADY_USED: 409,
}


def _log_completed(order_id: str):
    logger.info(f"Checkout completed for order {order_id}")


def outcome_response(attempt: PaymentSubmissionOrchestrator, outcome: AttemptOutcome):
    """Envelope for one attempt action; failures still carry the support link"""
    data = {"outcome": asdict(outcome), "attempt": attempt.snapshot()}
    if outcome.code in SUCCESS_CODES:
        return success_response(message=outcome.message, data=data)
    return error_response(
        message=outcome.message,
        status_code=ERROR_STATUS_CODES.get(outcome.code, 422),
        data=data
    )


@router.get("/gateways")
async def get_checkout_gateways(
    country_id: Optional[str] = Query(None, description="Shopper country (defaults to the store country)"),
    product_ids: List[str] = Query(default=[], description="Products in the cart"),
    backend: PaymentBackend = Depends(get_payment_backend)
):
    """
    Gateways every product in the cart accepts for the country.
    An empty list means no payment method is available.
    """
    resolver = GatewayResolver(backend)
    effective_country = await resolver.resolve_country(country_id)
    gateways = await resolver.resolve_gateways(effective_country, product_ids)

    response = GatewayListResponse(
        country_id=effective_country,
        gateways=gateways,
        available=bool(gateways)
    )
    message = "Gateways retrieved successfully" if gateways else "No payment methods available"
    return success_response(message=message, data=response.model_dump())


@router.post("/attempts")
async def open_payment_attempt(
    request: OpenAttemptRequest,
    backend: PaymentBackend = Depends(get_payment_backend),
    store: PaymentAttemptStore = Depends(get_attempt_store)
):
    """Start a payment attempt for the current checkout"""
    attempt = await PaymentSubmissionOrchestrator.open(
        request, backend, on_completed=_log_completed
    )
    store.add(attempt)
    logger.info(
        f"Opened attempt {attempt.attempt_id} with {len(attempt.available_gateways)} gateways"
    )

    return success_response(
        message="Payment attempt created",
        data=attempt.snapshot(),
        status_code=201
    )


@router.get("/attempts/{attempt_id}")
async def get_payment_attempt(
    attempt_id: str,
    store: PaymentAttemptStore = Depends(get_attempt_store)
):
    """Current state of a payment attempt"""
    attempt = store.get(attempt_id)
    if not attempt:
        return error_response(message="Payment attempt not found", status_code=404)

    return success_response(message="Payment attempt retrieved", data=attempt.snapshot())


@router.post("/attempts/{attempt_id}/gateway")
async def select_attempt_gateway(
    attempt_id: str,
    request: SelectGatewayRequest,
    store: PaymentAttemptStore = Depends(get_attempt_store)
):
    """Pick a gateway; cod opens the advance-payment sub-flow"""
    attempt = store.get(attempt_id)
    if not attempt:
        return error_response(message="Payment attempt not found", status_code=404)

    outcome = attempt.select_gateway(request.gateway_id)
    return outcome_response(attempt, outcome)


@router.post("/attempts/{attempt_id}/submit")
async def submit_attempt_transaction(
    attempt_id: str,
    request: SubmitTransactionRequest,
    store: PaymentAttemptStore = Depends(get_attempt_store)
):
    """
    Submit the transaction id issued by the payment provider.

    Runs the SMS check, creates the order once, then verifies the
    payment. Failures come back with a pre-filled support link.
    """
    attempt = store.get(attempt_id)
    if not attempt:
        return error_response(message="Payment attempt not found", status_code=404)

    outcome = await attempt.submit(request.transaction_id, request.advance_gateway)
    return outcome_response(attempt, outcome)


@router.post("/attempts/{attempt_id}/cod/cancel")
async def cancel_attempt_cod(
    attempt_id: str,
    store: PaymentAttemptStore = Depends(get_attempt_store)
):
    """Leave the cash-on-delivery sub-flow"""
    attempt = store.get(attempt_id)
    if not attempt:
        return error_response(message="Payment attempt not found", status_code=404)

    outcome = attempt.cancel_cod()
    return outcome_response(attempt, outcome)


@router.get("/support-link")
async def get_support_link(
    transaction_id: Optional[str] = Query(None, description="Transaction ID to pre-fill")
):
    """WhatsApp support deep link for a transaction"""
    return success_response(
        message="Support link generated",
        data={
            "support_link": build_support_link(transaction_id),
            "message": build_support_message(transaction_id)
        }
    )


@router.get("/orders/{order_id}/verification")
async def get_order_verification(
    order_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Latest verification status for an order"""
    verification_service = VerificationService(db)
    record = await verification_service.get_latest_for_order(order_id)
    if not record:
        return error_response(message="No verification found for this order", status_code=404)

    return success_response(
        message="Verification status retrieved",
        data={
            "order_id": record["order_id"],
            "verification_id": record["verification_id"],
            "payment_gateway": record["payment_gateway"],
            "transaction_id": record["transaction_id"],
            "amount": record["amount"],
            "status": record["status"],
            "verified_at": record.get("verified_at"),
            "created_at": record.get("created_at")
        }
    )
