"""
Auto-Verifier Factory
Creates and caches verifier instances for gateways that settle automatically
"""
import logging
from typing import Dict, Any, Optional, Type

from storefront.services.payment.gateways.base import BaseAutoVerifier, GatewayConfigError
from storefront.services.payment.gateways.binance_pay import BinancePayVerifier

logger = logging.getLogger(__name__)


class AutoVerifierFactory:
    """
    Factory for auto-verifying gateways.
    Gateways not registered here go to manual review.
    """

    # Registry of gateways with automatic verification
    _verifiers: Dict[str, Type[BaseAutoVerifier]] = {
        "binance_pay": BinancePayVerifier,
    }

    # Cached verifier instances
    _instances: Dict[str, BaseAutoVerifier] = {}

    @classmethod
    def supports(cls, gateway_name: Optional[str]) -> bool:
        """Whether gateway_name has automatic verification"""
        return bool(gateway_name) and gateway_name in cls._verifiers

    @classmethod
    def get_verifier(
        cls,
        gateway_name: str,
        config: Optional[Dict[str, Any]] = None
    ) -> Optional[BaseAutoVerifier]:
        """
        Get a verifier instance.

        Returns:
            Verifier, or None if the gateway is unregistered or misconfigured
        """
        if gateway_name not in cls._verifiers:
            return None

        if config is None and gateway_name in cls._instances:
            return cls._instances[gateway_name]

        try:
            instance = cls._verifiers[gateway_name](config)
        except GatewayConfigError as e:
            logger.error(f"Auto-verifier {gateway_name} is not configured: {e}")
            return None

        if config is None:
            cls._instances[gateway_name] = instance
        return instance

    @classmethod
    def clear_cache(cls):
        """Clear all cached verifier instances"""
        cls._instances.clear()
