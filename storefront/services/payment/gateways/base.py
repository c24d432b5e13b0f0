"""
Base Auto-Verification Gateway
Abstract class for gateways that can confirm a payment without an admin
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
from dataclasses import dataclass
from decimal import Decimal


class GatewayConfigError(ValueError):
    """Gateway is missing required configuration"""


@dataclass
class VerificationResult:
    """Result of asking a provider whether a transaction was paid"""
    verified: bool
    transaction_id: str
    provider_status: Optional[str] = None
    paid_amount: Optional[Decimal] = None
    currency: Optional[str] = None
    error_message: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None


class BaseAutoVerifier(ABC):
    """
    Abstract base class for auto-verifying gateways.
    Each implementation queries its provider for one transaction.
    """

    gateway_id: str = "base"
    gateway_name: str = "Base Gateway"

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize gateway with configuration.

        Args:
            config: API credentials, base URL, timeout
        """
        self.config = config
        self.timeout = float(config.get("timeout", 30.0))
        self._validate_config()

    @abstractmethod
    def _validate_config(self):
        """Validate required configuration parameters"""
        pass

    @abstractmethod
    async def verify_transaction(
        self,
        transaction_id: str,
        expected_amount: Decimal
    ) -> VerificationResult:
        """
        Ask the provider whether transaction_id was paid in full.

        Args:
            transaction_id: Provider-issued id entered by the shopper
            expected_amount: Amount the order (or COD advance) requires

        Returns:
            VerificationResult; never raises for provider/network errors
        """
        pass

    @staticmethod
    def amount_covers(paid: Optional[Decimal], expected: Decimal) -> bool:
        """A missing provider amount is not treated as a mismatch"""
        if paid is None:
            return True
        return paid >= expected

    def get_api_url(self, endpoint: str) -> str:
        """Get full API URL for endpoint"""
        base_url = self.config.get("base_url", "").rstrip("/")
        return f"{base_url}/{endpoint.lstrip('/')}"
