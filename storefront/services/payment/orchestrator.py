"""
Payment Submission Orchestrator
Drives one checkout payment attempt from gateway selection to a terminal outcome
"""
import os
import inspect
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, List, Dict, Any, Callable
from dotenv import load_dotenv

from storefront.models.payment.attempt import (
    AttemptState,
    OutcomeCode,
    CheckoutSession,
    TERMINAL_STATES,
)
from storefront.models.payment.gateway import PaymentGateway, COD_GATEWAY
from storefront.models.payment.order import CreateOrderRequest
from storefront.services.payment.backend import PaymentBackend, OrderCreationUnavailable
from storefront.services.payment.gateway_resolver import GatewayResolver
from storefront.services.payment.support import build_support_link

load_dotenv()

logger = logging.getLogger(__name__)

# Confirmation fee collected online for cash-on-delivery orders
COD_ADVANCE_AMOUNT = Decimal("100")


def get_cod_minimum_order_amount() -> Decimal:
    """Smallest order total for which COD is offered; never below the advance"""
    configured = Decimal(os.getenv("COD_MINIMUM_ORDER_AMOUNT", str(COD_ADVANCE_AMOUNT)))
    return max(configured, COD_ADVANCE_AMOUNT)


@dataclass
class PendingPayment:
    """In-progress payment before (and while) an order exists"""
    order_amount: Decimal
    gateway: Optional[PaymentGateway] = None
    transaction_id: str = ""
    is_advance_payment: bool = False
    advance_gateway: Optional[str] = None
    created_order_id: Optional[str] = None
    created_order_number: Optional[str] = None
    advance_payment_id: Optional[str] = None


@dataclass
class AttemptOutcome:
    """Result of one user action on an attempt"""
    code: OutcomeCode
    state: AttemptState
    message: str
    order_id: Optional[str] = None
    failed_transaction_id: Optional[str] = None
    support_link: Optional[str] = None
    remaining_balance: Optional[Decimal] = None

    @property
    def succeeded(self) -> bool:
        return self.state == AttemptState.SUCCEEDED


class PaymentSubmissionOrchestrator:
    """
    State machine over a single payment attempt.

    Each public method is one user action. Failures never raise to the
    caller; they end in CONTACT_SUPPORT or AWAITING_MANUAL_REVIEW with a
    support link pre-filled with the failed transaction id.

    Once an order has been created its id is cached, and no later
    resubmission on this attempt creates another one.
    """

    def __init__(
        self,
        session: CheckoutSession,
        backend: PaymentBackend,
        gateways: Optional[List[PaymentGateway]] = None,
        attempt_id: Optional[str] = None,
        on_completed: Optional[Callable[[str], Any]] = None
    ):
        self.session = session
        self.backend = backend
        self.attempt_id = attempt_id or f"PAY_{uuid.uuid4().hex[:12].upper()}"
        self.available_gateways: List[PaymentGateway] = list(gateways or [])
        self.on_completed = on_completed

        self.pending = PendingPayment(order_amount=session.order_amount)
        self.state = AttemptState.SELECTING_GATEWAY
        self.failed_transaction_id: Optional[str] = None
        self.last_outcome: Optional[AttemptOutcome] = None
        self._busy = False

    @classmethod
    async def open(
        cls,
        session: CheckoutSession,
        backend: PaymentBackend,
        resolver: Optional[GatewayResolver] = None,
        **kwargs
    ) -> "PaymentSubmissionOrchestrator":
        """Create an attempt with the gateways resolved for the session"""
        resolver = resolver or GatewayResolver(backend)
        gateways = await resolver.resolve_gateways(session.country_id, session.product_ids)
        return cls(session, backend, gateways=gateways, **kwargs)

    # ==================== Derived state ====================

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def created_order_id(self) -> Optional[str]:
        return self.pending.created_order_id

    @property
    def verification_amount(self) -> Decimal:
        """Amount the submitted transaction is checked against"""
        if self.pending.is_advance_payment:
            return COD_ADVANCE_AMOUNT
        return self.pending.order_amount

    @property
    def remaining_balance(self) -> Optional[Decimal]:
        """Balance collected at delivery (COD only)"""
        if not self.pending.is_advance_payment:
            return None
        return self.pending.order_amount - COD_ADVANCE_AMOUNT

    @property
    def settlement_gateway(self) -> Optional[str]:
        """Gateway whose rail actually carried the submitted transaction"""
        if self.pending.gateway is None:
            return None
        if self.pending.is_advance_payment:
            return self.pending.advance_gateway or COD_GATEWAY
        return self.pending.gateway.name

    @property
    def support_link(self) -> Optional[str]:
        if self.state in (AttemptState.CONTACT_SUPPORT, AttemptState.AWAITING_MANUAL_REVIEW):
            return build_support_link(self.failed_transaction_id)
        return None

    def snapshot(self) -> Dict[str, Any]:
        """Serializable view of the attempt"""
        gateway = self.pending.gateway
        return {
            "attempt_id": self.attempt_id,
            "state": self.state.value,
            "busy": self._busy,
            "gateway": gateway.name if gateway else None,
            "is_advance_payment": self.pending.is_advance_payment,
            "advance_gateway": self.settlement_gateway if self.pending.is_advance_payment else None,
            "order_amount": str(self.pending.order_amount),
            "verification_amount": str(self.verification_amount),
            "remaining_balance": str(self.remaining_balance) if self.remaining_balance is not None else None,
            "transaction_id": self.pending.transaction_id or None,
            "order_id": self.pending.created_order_id,
            "order_number": self.pending.created_order_number,
            "failed_transaction_id": self.failed_transaction_id,
            "support_link": self.support_link,
            "available_gateways": [g.model_dump() for g in self.available_gateways],
        }

    # ==================== Actions ====================

    def select_gateway(self, gateway_id: str) -> AttemptOutcome:
        """Pick a gateway from the resolved list; cod enters the advance sub-flow"""
        if self._busy:
            return self._outcome(OutcomeCode.BUSY, "A submission is already in progress")
        if self.state in (AttemptState.SUCCEEDED, AttemptState.AWAITING_MANUAL_REVIEW):
            return self._sticky_outcome()
        if self.pending.created_order_id:
            return self._outcome(
                OutcomeCode.INPUT_REJECTED,
                "Payment method cannot be changed after the order was created"
            )

        gateway = next((g for g in self.available_gateways if g.id == gateway_id), None)
        if gateway is None:
            return self._outcome(OutcomeCode.INPUT_REJECTED, "Unknown payment method")

        if gateway.is_cod:
            minimum = get_cod_minimum_order_amount()
            if self.pending.order_amount < minimum:
                logger.info(
                    f"[{self.attempt_id}] COD refused: amount {self.pending.order_amount} below {minimum}"
                )
                return self._outcome(
                    OutcomeCode.COD_UNAVAILABLE,
                    f"Cash on delivery requires an order of at least {minimum}"
                )

        self.pending.gateway = gateway
        self.pending.is_advance_payment = gateway.is_cod
        self.pending.advance_gateway = None
        self.pending.transaction_id = ""
        self.failed_transaction_id = None
        self._transition(AttemptState.ENTERING_TRANSACTION_ID)

        if gateway.is_cod:
            return self._outcome(
                OutcomeCode.COD_SELECTED,
                f"Pay {COD_ADVANCE_AMOUNT} now as a confirmation fee; "
                f"{self.remaining_balance} is due on delivery",
                remaining_balance=self.remaining_balance
            )
        return self._outcome(OutcomeCode.GATEWAY_SELECTED, f"{gateway.display_name} selected")

    def cancel_cod(self) -> AttemptOutcome:
        """Leave the COD sub-flow and clear everything entered in it"""
        if self._busy:
            return self._outcome(OutcomeCode.BUSY, "A submission is already in progress")
        if not self.pending.is_advance_payment:
            return self._outcome(OutcomeCode.CANCEL_REJECTED, "Cash on delivery is not selected")
        if self.pending.created_order_id:
            return self._outcome(
                OutcomeCode.CANCEL_REJECTED,
                "The order has already been created; contact support to change it"
            )

        self.pending = PendingPayment(order_amount=self.session.order_amount)
        self.failed_transaction_id = None
        self._transition(AttemptState.SELECTING_GATEWAY)
        return self._outcome(OutcomeCode.CANCELLED, "Cash on delivery cancelled")

    async def submit(
        self,
        transaction_id: str,
        advance_gateway: Optional[str] = None
    ) -> AttemptOutcome:
        """
        Submit a provider-issued transaction id.

        Runs SMS check -> order creation (once per attempt) -> verification.
        A resubmission after CONTACT_SUPPORT reuses the cached order id.
        """
        if self._busy:
            return self._outcome(OutcomeCode.BUSY, "A submission is already in progress")
        if self.state in (AttemptState.SUCCEEDED, AttemptState.AWAITING_MANUAL_REVIEW):
            return self._sticky_outcome()

        transaction_id = (transaction_id or "").strip()
        if self.pending.gateway is None or not transaction_id:
            return self._outcome(
                OutcomeCode.INPUT_REJECTED,
                "Select a payment method and enter the transaction ID"
            )

        if self.pending.is_advance_payment:
            if advance_gateway and not self._is_valid_advance_gateway(advance_gateway):
                return self._outcome(
                    OutcomeCode.INPUT_REJECTED,
                    "The confirmation fee must be paid with an available wallet"
                )
            # The advance rail is fixed once the advance record exists
            if not self.pending.advance_payment_id:
                self.pending.advance_gateway = advance_gateway or self.pending.advance_gateway

        self._busy = True
        try:
            return await self._run_pipeline(transaction_id)
        except Exception as e:
            logger.exception(f"[{self.attempt_id}] Unexpected error during submission: {e}")
            return self._escalate(
                OutcomeCode.SUBMISSION_FAILED,
                transaction_id,
                "Submission failed. Please contact support with your transaction ID."
            )
        finally:
            self._busy = False

    # ==================== Pipeline ====================

    async def _run_pipeline(self, transaction_id: str) -> AttemptOutcome:
        self.pending.transaction_id = transaction_id
        self.failed_transaction_id = None

        # SMS cross-check strictly precedes order creation
        self._transition(AttemptState.CHECKING_SMS_RECORD)
        found = await self.backend.check_sms_transaction(transaction_id, claimed_by=self.attempt_id)
        if not found:
            if await self.backend.is_sms_transaction_used(transaction_id):
                logger.warning(f"[{self.attempt_id}] Transaction {transaction_id} is held by another checkout")
                return self._escalate(
                    OutcomeCode.TRANSACTION_ALREADY_USED,
                    transaction_id,
                    "This transaction ID has already been used. Contact support if this is your payment."
                )
            logger.warning(f"[{self.attempt_id}] Transaction {transaction_id} not found in SMS records")
            return self._escalate(
                OutcomeCode.TRANSACTION_NOT_FOUND,
                transaction_id,
                "Transaction not found. Check the ID or contact support."
            )

        if self.pending.created_order_id is None:
            self._transition(AttemptState.CREATING_ORDER)
            try:
                result = await self.backend.create_order(self._build_order_request(transaction_id))
            except OrderCreationUnavailable as e:
                logger.error(f"[{self.attempt_id}] Order creation outcome unknown: {e}")
                return self._escalate(
                    OutcomeCode.ORDER_CREATION_FAILED,
                    transaction_id,
                    "We could not confirm your order. Our team will review it; "
                    "contact support with your transaction ID.",
                    state=AttemptState.AWAITING_MANUAL_REVIEW
                )

            if not result.success or not result.order_id:
                logger.warning(f"[{self.attempt_id}] Order creation rejected: {result.message}")
                return self._escalate(
                    OutcomeCode.ORDER_CREATION_FAILED,
                    transaction_id,
                    result.message or "Order could not be created. Please contact support."
                )

            self.pending.created_order_id = result.order_id
            self.pending.created_order_number = result.order_number
            logger.info(f"[{self.attempt_id}] Order {result.order_id} created")
        else:
            logger.info(f"[{self.attempt_id}] Reusing order {self.pending.created_order_id}")

        self._transition(AttemptState.VERIFYING_PAYMENT)
        order_id = self.pending.created_order_id
        gateway_name = self.settlement_gateway
        amount = self.verification_amount

        if self.pending.is_advance_payment and not self.pending.advance_payment_id:
            advance_id = await self.backend.create_advance_payment(
                order_id, amount, gateway_name, transaction_id
            )
            if not advance_id:
                return self._escalate(
                    OutcomeCode.VERIFICATION_FAILED,
                    transaction_id,
                    "Confirmation fee could not be recorded. Please contact support."
                )
            self.pending.advance_payment_id = advance_id

        if self.backend.supports_auto_verification(gateway_name):
            verified = await self.backend.auto_verify_payment(
                gateway_name, transaction_id, order_id, amount
            )
            if not verified:
                logger.warning(f"[{self.attempt_id}] Auto-verification failed for order {order_id}")
                return self._escalate(
                    OutcomeCode.VERIFICATION_FAILED,
                    transaction_id,
                    "Payment verification failed. Please contact support."
                )
            code = OutcomeCode.PAYMENT_VERIFIED
            message = "Payment verified. Your order has been confirmed."
        else:
            submitted = await self.backend.submit_transaction_for_review(
                order_id, gateway_name, transaction_id, amount
            )
            if not submitted:
                logger.warning(f"[{self.attempt_id}] Review submission failed for order {order_id}")
                return self._escalate(
                    OutcomeCode.VERIFICATION_FAILED,
                    transaction_id,
                    "Transaction could not be submitted for verification. Please contact support."
                )
            code = OutcomeCode.SUBMITTED_FOR_REVIEW
            message = "Transaction submitted for verification. You will be notified once verified."

        if self.pending.is_advance_payment:
            message = (
                f"Confirmation fee received. {self.remaining_balance} is due on delivery."
                if code == OutcomeCode.PAYMENT_VERIFIED
                else f"Confirmation fee submitted. {self.remaining_balance} is due on delivery."
            )

        self._transition(AttemptState.SUCCEEDED)
        outcome = self._outcome(code, message, remaining_balance=self.remaining_balance)
        await self._notify_completed(order_id)
        return outcome

    def _build_order_request(self, transaction_id: str) -> CreateOrderRequest:
        session = self.session
        return CreateOrderRequest(
            customer=session.customer,
            otp_code=session.otp_code,
            phone_verified=session.phone_verified,
            items=session.items,
            subtotal=session.items_subtotal,
            shipping=session.shipping,
            total=self.pending.order_amount,
            payment_method=self.pending.gateway.name,
            transaction_id=transaction_id,
            advance_amount=COD_ADVANCE_AMOUNT if self.pending.is_advance_payment else None,
            submission_key=self.attempt_id,
        )

    def _is_valid_advance_gateway(self, name: str) -> bool:
        if name == COD_GATEWAY:
            return True
        return any(g.name == name for g in self.available_gateways)

    async def _notify_completed(self, order_id: str):
        if not self.on_completed:
            return
        try:
            result = self.on_completed(order_id)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            # Callback errors never change the attempt outcome
            logger.error(f"[{self.attempt_id}] Completion callback failed: {e}")

    # ==================== Helpers ====================

    def _transition(self, new_state: AttemptState):
        if new_state != self.state:
            logger.info(f"[{self.attempt_id}] {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _escalate(
        self,
        code: OutcomeCode,
        transaction_id: str,
        message: str,
        state: AttemptState = AttemptState.CONTACT_SUPPORT
    ) -> AttemptOutcome:
        self.failed_transaction_id = transaction_id
        self._transition(state)
        return self._outcome(code, message)

    def _sticky_outcome(self) -> AttemptOutcome:
        if self.state == AttemptState.SUCCEEDED:
            return self._outcome(
                OutcomeCode.ALREADY_COMPLETED,
                "Payment already submitted for this order",
                remember=False
            )
        return self.last_outcome or self._outcome(OutcomeCode.ORDER_CREATION_FAILED, "")

    def _outcome(
        self,
        code: OutcomeCode,
        message: str,
        remaining_balance: Optional[Decimal] = None,
        remember: bool = True
    ) -> AttemptOutcome:
        outcome = AttemptOutcome(
            code=code,
            state=self.state,
            message=message,
            order_id=self.pending.created_order_id,
            failed_transaction_id=self.failed_transaction_id,
            support_link=self.support_link,
            remaining_balance=remaining_balance,
        )
        if remember and self.state in TERMINAL_STATES:
            self.last_outcome = outcome
        return outcome
