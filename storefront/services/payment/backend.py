"""
Payment Backend Interface
Narrow interface to the data store and remote endpoints the checkout flow calls
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional

from storefront.models.payment.gateway import PaymentGateway, ProductGatewayAllowList
from storefront.models.payment.order import CreateOrderRequest, OrderCreationResult


class PaymentFlowError(Exception):
    """Base error for the checkout payment flow"""


class OrderCreationUnavailable(PaymentFlowError):
    """
    Order creation could not complete and its outcome is unknown.
    The order may or may not exist server-side.
    """


class PaymentBackend(ABC):
    """
    Abstract collaborator set used by the gateway resolver and the
    payment submission orchestrator.

    Catalog lookups may raise; the resolver turns that into an empty list.
    Pipeline methods return False/None on store errors, except create_order
    which raises OrderCreationUnavailable when the outcome is unknown.
    """

    # ---- Catalog (read-only) ----

    @abstractmethod
    async def get_country_gateways(self, country_id: str) -> List[PaymentGateway]:
        """Active gateways configured for a country"""
        pass

    @abstractmethod
    async def get_product_allow_lists(
        self,
        product_ids: List[str],
        country_id: str
    ) -> List[ProductGatewayAllowList]:
        """Gateway allow-lists for the given products"""
        pass

    @abstractmethod
    async def get_country_id_by_code(self, country_code: str) -> Optional[str]:
        """Resolve an ISO country code to a country id"""
        pass

    # ---- Payment pipeline ----

    @abstractmethod
    async def check_sms_transaction(
        self,
        transaction_id: str,
        claimed_by: Optional[str] = None
    ) -> bool:
        """
        True when the transaction id was seen in an incoming payment SMS
        and no other checkout holds it. With claimed_by the record is
        claimed for that attempt; the same claimer may check again.
        """
        pass

    @abstractmethod
    async def create_order(self, request: CreateOrderRequest) -> OrderCreationResult:
        """
        OTP-gated order creation.

        Raises:
            OrderCreationUnavailable: if the outcome is unknown
        """
        pass

    @abstractmethod
    async def auto_verify_payment(
        self,
        gateway_name: str,
        transaction_id: str,
        order_id: str,
        amount: Decimal
    ) -> bool:
        """Gateway-specific automatic verification; True when confirmed paid"""
        pass

    @abstractmethod
    async def submit_transaction_for_review(
        self,
        order_id: str,
        gateway_name: str,
        transaction_id: str,
        amount: Decimal
    ) -> bool:
        """Queue a transaction for admin review; True when the record was stored"""
        pass

    @abstractmethod
    async def create_advance_payment(
        self,
        order_id: str,
        amount: Decimal,
        gateway_name: str,
        transaction_id: Optional[str] = None
    ) -> Optional[str]:
        """Record a COD advance payment; returns its id or None"""
        pass

    async def is_sms_transaction_used(self, transaction_id: str) -> bool:
        """Whether the transaction id is already claimed by a checkout"""
        return False

    def is_gateway_available(self, gateway_name: str) -> bool:
        """Whether gateway_name can settle payments right now"""
        return True

    def supports_auto_verification(self, gateway_name: str) -> bool:
        """Whether gateway_name settles through auto_verify_payment"""
        return False
