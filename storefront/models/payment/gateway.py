"""
Payment Gateway Models
Country-scoped payment rails offered at checkout
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


# Machine keys with special handling in the checkout flow
COD_GATEWAY = "cod"


class Country(BaseModel):
    """Storefront country"""
    id: str
    code: str               # ISO-2, e.g. BD
    name: str
    currency: str = "BDT"


class PaymentGateway(BaseModel):
    """One configured payment rail for a country"""
    id: str
    name: str               # bkash, nagad, cod, binance_pay, ...
    display_name: str
    wallet_number: str = ""
    instructions: str = ""  # Shown to the payer
    country_id: Optional[str] = None
    is_active: bool = True

    @property
    def is_cod(self) -> bool:
        return self.name == COD_GATEWAY

    @classmethod
    def from_document(cls, doc: dict) -> "PaymentGateway":
        """Build from a payment_gateways document"""
        return cls(
            id=str(doc.get("gateway_id") or doc["_id"]),
            name=doc["name"],
            display_name=doc.get("display_name") or doc["name"],
            wallet_number=doc.get("wallet_number") or "",
            instructions=doc.get("instructions") or "",
            country_id=doc.get("country_id"),
            is_active=doc.get("is_active", True),
        )


class ProductGatewayAllowList(BaseModel):
    """
    Gateway restriction declared by a product.
    An empty allowed_gateways list means every gateway is accepted.
    """
    product_id: str
    allowed_gateways: List[str] = Field(default_factory=list)  # gateway machine names
    cash_on_delivery_enabled: bool = True

    @property
    def is_unrestricted(self) -> bool:
        return not self.allowed_gateways


class PaymentGatewayInDB(BaseModel):
    """Payment gateway document"""
    gateway_id: str
    name: str
    display_name: str
    wallet_number: str = ""
    instructions: str = ""
    country_id: Optional[str] = None
    is_active: bool = True
    sort_order: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class GatewayListResponse(BaseModel):
    """Resolved gateways for a checkout"""
    country_id: Optional[str]
    gateways: List[PaymentGateway]
    available: bool
