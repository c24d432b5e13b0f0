"""
Gateway Catalog Resolver
Works out which payment gateways a checkout may offer
"""
import os
import logging
from typing import List, Optional, Dict
from dotenv import load_dotenv

from storefront.models.payment.gateway import (
    PaymentGateway,
    ProductGatewayAllowList,
    COD_GATEWAY,
)
from storefront.services.payment.backend import PaymentBackend

load_dotenv()

logger = logging.getLogger(__name__)


def intersect_allowed_gateways(
    gateways: List[PaymentGateway],
    allow_lists: List[ProductGatewayAllowList]
) -> List[PaymentGateway]:
    """
    Narrow a country's gateways to those every product accepts.

    Products with an empty allow-list do not narrow the result. If any
    product disables cash on delivery, cod is dropped.
    """
    by_name: Dict[str, PaymentGateway] = {g.name: g for g in gateways}
    allowed_ids = {g.id for g in gateways}

    for allow_list in allow_lists:
        if allow_list.is_unrestricted:
            continue
        product_ids = {
            by_name[name].id for name in allow_list.allowed_gateways if name in by_name
        }
        allowed_ids &= product_ids

    if any(not allow_list.cash_on_delivery_enabled for allow_list in allow_lists):
        allowed_ids -= {g.id for g in gateways if g.name == COD_GATEWAY}

    # Preserve catalog order
    return [g for g in gateways if g.id in allowed_ids]


class GatewayResolver:
    """
    Resolves the payment gateways for a country and a set of products.
    Read-only; lookup failures yield an empty list.
    """

    def __init__(self, backend: PaymentBackend, default_country_code: Optional[str] = None):
        self.backend = backend
        self.default_country_code = default_country_code or os.getenv("DEFAULT_COUNTRY_CODE", "BD")

    async def resolve_country(self, country_id: Optional[str]) -> Optional[str]:
        """Effective country id, falling back to the store's home country"""
        if country_id:
            return country_id
        fallback = await self.backend.get_country_id_by_code(self.default_country_code)
        if fallback:
            logger.info(f"No country resolved, falling back to {self.default_country_code}")
        return fallback

    async def resolve_gateways(
        self,
        country_id: Optional[str],
        product_ids: Optional[List[str]] = None
    ) -> List[PaymentGateway]:
        """
        Gateways allowed by all products and available in the country.

        Args:
            country_id: Target country (None falls back to the default country)
            product_ids: Products in the checkout (empty = no restriction)

        Returns:
            Active gateways, or an empty list on any lookup error
        """
        try:
            effective_country = await self.resolve_country(country_id)
            if not effective_country:
                logger.warning("No effective country for gateway resolution")
                return []

            gateways = []
            for gateway in await self.backend.get_country_gateways(effective_country):
                if not gateway.is_active:
                    continue
                if not self.backend.is_gateway_available(gateway.name):
                    logger.warning(f"Gateway {gateway.name} is not configured, hiding it from checkout")
                    continue
                gateways.append(gateway)

            unique_products = list(dict.fromkeys(product_ids or []))
            if not unique_products:
                return gateways

            allow_lists = await self.backend.get_product_allow_lists(
                unique_products, effective_country
            )
            return intersect_allowed_gateways(gateways, allow_lists)

        except Exception as e:
            logger.error(f"Gateway resolution failed for country {country_id}: {e}")
            return []
