"""
Binance Pay Verifier
Confirms Binance Pay transactions through the merchant order-query API
"""
import os
import hmac
import json
import time
import uuid
import hashlib
import logging
import httpx
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, Optional
from dotenv import load_dotenv

from storefront.services.payment.gateways.base import (
    BaseAutoVerifier,
    VerificationResult,
    GatewayConfigError,
)

load_dotenv()

logger = logging.getLogger(__name__)


class BinancePayVerifier(BaseAutoVerifier):
    """
    Binance Pay implementation.

    Signs each request with HMAC-SHA512 over
    "timestamp\\nnonce\\nbody\\n" using the merchant secret.
    """

    gateway_id = "binance_pay"
    gateway_name = "Binance Pay"

    BASE_URL = "https://bpay.binanceapi.com"
    ORDER_QUERY_PATH = "/binancepay/openapi/v2/order/query"
    PAID_STATUSES = ("PAID",)

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize Binance Pay verifier"""
        env_config = self._load_config_from_env()
        if config is not None:
            env_config.update({k: v for k, v in config.items() if v is not None})

        super().__init__(env_config)

        self.api_key = self.config["api_key"]
        self.api_secret = self.config["api_secret"]
        self._transport = transport

    def _load_config_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables"""
        return {
            "api_key": os.getenv("BINANCE_PAY_API_KEY"),
            "api_secret": os.getenv("BINANCE_PAY_API_SECRET"),
            "base_url": os.getenv("BINANCE_PAY_BASE_URL", self.BASE_URL),
            "timeout": float(os.getenv("BINANCE_PAY_TIMEOUT_SECONDS", "30")),
        }

    def _validate_config(self):
        """Validate required Binance Pay configuration"""
        if not self.config.get("api_key"):
            raise GatewayConfigError("BINANCE_PAY_API_KEY is required")
        if not self.config.get("api_secret"):
            raise GatewayConfigError("BINANCE_PAY_API_SECRET is required")

    def sign(self, timestamp: str, nonce: str, body: str) -> str:
        """Uppercase hex HMAC-SHA512 request signature"""
        payload = f"{timestamp}\n{nonce}\n{body}\n"
        digest = hmac.new(
            self.api_secret.encode("utf-8"),
            payload.encode("utf-8"),
            hashlib.sha512
        ).hexdigest()
        return digest.upper()

    def _get_headers(self, body: str) -> Dict[str, str]:
        timestamp = str(int(time.time() * 1000))
        nonce = uuid.uuid4().hex
        return {
            "Content-Type": "application/json",
            "BinancePay-Timestamp": timestamp,
            "BinancePay-Nonce": nonce,
            "BinancePay-Certificate-SN": self.api_key,
            "BinancePay-Signature": self.sign(timestamp, nonce, body),
        }

    @staticmethod
    def _parse_amount(value: Any) -> Optional[Decimal]:
        if value in (None, ""):
            return None
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return None

    async def verify_transaction(
        self,
        transaction_id: str,
        expected_amount: Decimal
    ) -> VerificationResult:
        """Query the order and require PAID with a sufficient amount"""
        body = json.dumps({"prepayId": transaction_id}, separators=(",", ":"))

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.get_api_url(self.ORDER_QUERY_PATH),
                    headers=self._get_headers(body),
                    content=body
                )
                response_data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Binance Pay query failed for {transaction_id}: {e}")
            return VerificationResult(
                verified=False,
                transaction_id=transaction_id,
                error_message=f"Binance Pay request failed: {e}"
            )

        if response.status_code != 200 or response_data.get("status") != "SUCCESS":
            message = response_data.get("errorMessage") or f"HTTP {response.status_code}"
            logger.warning(f"Binance Pay rejected query for {transaction_id}: {message}")
            return VerificationResult(
                verified=False,
                transaction_id=transaction_id,
                error_message=message,
                raw_response=response_data
            )

        data = response_data.get("data") or {}
        order_status = data.get("status") or data.get("orderStatus")
        paid_amount = self._parse_amount(data.get("orderAmount") or data.get("totalFee"))
        is_paid = order_status in self.PAID_STATUSES
        covers = self.amount_covers(paid_amount, expected_amount)

        if is_paid and not covers:
            logger.warning(
                f"Binance Pay amount mismatch for {transaction_id}: paid {paid_amount}, expected {expected_amount}"
            )

        return VerificationResult(
            verified=is_paid and covers,
            transaction_id=transaction_id,
            provider_status=order_status,
            paid_amount=paid_amount,
            currency=data.get("currency"),
            error_message=None if (is_paid and covers) else "Payment not confirmed by Binance Pay",
            raw_response=response_data
        )
