"""
Mongo Payment Backend
PaymentBackend implementation over the storefront MongoDB and provider APIs
"""
import logging
from decimal import Decimal
from typing import List, Optional, Dict
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from storefront.models.payment.gateway import PaymentGateway, ProductGatewayAllowList
from storefront.models.payment.order import CreateOrderRequest, OrderCreationResult
from storefront.services.payment.backend import PaymentBackend, OrderCreationUnavailable
from storefront.services.payment.gateways.base import VerificationResult
from storefront.services.payment.gateways.factory import AutoVerifierFactory
from storefront.services.payment.order_service import OrderService
from storefront.services.payment.sms_service import SMSService
from storefront.services.payment.verification_service import VerificationService

logger = logging.getLogger(__name__)


class MongoPaymentBackend(PaymentBackend):
    """Checkout collaborators backed by MongoDB collections"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.gateways = db.payment_gateways
        self.products = db.products
        self.countries = db.countries
        self.order_service = OrderService(db)
        self.sms_service = SMSService(db)
        self.verification_service = VerificationService(db)

    # ==================== Catalog ====================

    async def get_country_gateways(self, country_id: str) -> List[PaymentGateway]:
        """Active gateways for the country plus global ones; country rows win on name clashes"""
        cursor = self.gateways.find({
            "$or": [{"country_id": country_id}, {"country_id": None}],
            "is_active": True
        }).sort([("sort_order", 1), ("name", 1)])
        docs = await cursor.to_list(length=100)

        by_name: Dict[str, PaymentGateway] = {}
        for doc in docs:
            gateway = PaymentGateway.from_document(doc)
            current = by_name.get(gateway.name)
            if current is None or (current.country_id is None and gateway.country_id):
                by_name[gateway.name] = gateway
        return list(by_name.values())

    async def get_product_allow_lists(
        self,
        product_ids: List[str],
        country_id: str
    ) -> List[ProductGatewayAllowList]:
        cursor = self.products.find(
            {"product_id": {"$in": product_ids}},
            {"product_id": 1, "allowed_payment_gateways": 1, "cash_on_delivery_enabled": 1}
        )
        docs = await cursor.to_list(length=len(product_ids))
        return [
            ProductGatewayAllowList(
                product_id=doc["product_id"],
                allowed_gateways=doc.get("allowed_payment_gateways") or [],
                cash_on_delivery_enabled=doc.get("cash_on_delivery_enabled", True),
            )
            for doc in docs
        ]

    async def get_country_id_by_code(self, country_code: str) -> Optional[str]:
        try:
            country = await self.countries.find_one({"code": country_code.upper()})
        except PyMongoError as e:
            logger.error(f"Country lookup failed for {country_code}: {e}")
            return None
        return country.get("country_id") if country else None

    # ==================== Payment pipeline ====================

    async def check_sms_transaction(
        self,
        transaction_id: str,
        claimed_by: Optional[str] = None
    ) -> bool:
        try:
            if claimed_by:
                return await self.sms_service.claim_transaction(transaction_id, claimed_by)
            return await self.sms_service.transaction_exists(transaction_id)
        except PyMongoError as e:
            logger.error(f"SMS lookup failed for {transaction_id}: {e}")
            return False

    async def is_sms_transaction_used(self, transaction_id: str) -> bool:
        try:
            return await self.sms_service.is_claimed(transaction_id)
        except PyMongoError as e:
            logger.error(f"SMS claim lookup failed for {transaction_id}: {e}")
            return False

    async def create_order(self, request: CreateOrderRequest) -> OrderCreationResult:
        try:
            return await self.order_service.create_order(request)
        except PyMongoError as e:
            raise OrderCreationUnavailable(str(e)) from e

    def is_gateway_available(self, gateway_name: str) -> bool:
        """Auto-verifying gateways are offered only when their verifier is configured"""
        if not AutoVerifierFactory.supports(gateway_name):
            return True
        return AutoVerifierFactory.get_verifier(gateway_name) is not None

    def supports_auto_verification(self, gateway_name: str) -> bool:
        return AutoVerifierFactory.supports(gateway_name)

    async def auto_verify_payment(
        self,
        gateway_name: str,
        transaction_id: str,
        order_id: str,
        amount: Decimal
    ) -> bool:
        """
        Record the submission, ask the provider, then settle the record.
        The record exists whatever the provider answers.
        """
        verifier = AutoVerifierFactory.get_verifier(gateway_name)
        if verifier is None:
            logger.error(f"No auto-verifier available for {gateway_name}")
            return False

        verification_id = await self.verification_service.submit_transaction(
            order_id, gateway_name, transaction_id, amount
        )
        if not verification_id:
            return False

        try:
            result = await verifier.verify_transaction(transaction_id, amount)
        except Exception as e:
            logger.exception(f"{gateway_name} verifier failed for {transaction_id}: {e}")
            result = VerificationResult(
                verified=False,
                transaction_id=transaction_id,
                error_message=f"Verifier error: {e}"
            )

        try:
            settled, message, _ = await self.verification_service.review_transaction(
                verification_id,
                approve=result.verified,
                reviewer=f"auto:{gateway_name}"
            )
        except PyMongoError as e:
            logger.error(f"Failed to settle verification {verification_id}: {e}")
            return False

        if not settled:
            logger.warning(f"Verification {verification_id} was not settled automatically: {message}")
            return False

        if not result.verified:
            logger.warning(
                f"{gateway_name} did not confirm {transaction_id} for order {order_id}: {result.error_message}"
            )
        return result.verified

    async def submit_transaction_for_review(
        self,
        order_id: str,
        gateway_name: str,
        transaction_id: str,
        amount: Decimal
    ) -> bool:
        verification_id = await self.verification_service.submit_transaction(
            order_id, gateway_name, transaction_id, amount
        )
        return verification_id is not None

    async def create_advance_payment(
        self,
        order_id: str,
        amount: Decimal,
        gateway_name: str,
        transaction_id: Optional[str] = None
    ) -> Optional[str]:
        return await self.verification_service.create_advance_payment(
            order_id, amount, gateway_name, transaction_id
        )
