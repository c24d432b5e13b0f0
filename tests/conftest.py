"""
Shared fixtures for the checkout payment tests
"""
import pytest

from storefront.models.payment.gateway import ProductGatewayAllowList
from storefront.services.payment.gateways.factory import AutoVerifierFactory
from tests.fakes import FakeBackend, make_session, make_collection


@pytest.fixture
def backend():
    return FakeBackend(known_transactions={"TXN123", "BNB999", "ADV100", "TXN456"})


@pytest.fixture
def session():
    return make_session()


@pytest.fixture
def allow_list():
    def _make(product_id, gateways=(), cod=True):
        return ProductGatewayAllowList(
            product_id=product_id,
            allowed_gateways=list(gateways),
            cash_on_delivery_enabled=cod,
        )
    return _make


@pytest.fixture
def mock_db():
    """Database double whose collections are created on first access"""
    collections = {}

    class _DB:
        def __getattr__(self, name):
            if name not in collections:
                collections[name] = make_collection()
            return collections[name]

    return _DB()


@pytest.fixture(autouse=True)
def _reset_verifier_cache():
    AutoVerifierFactory.clear_cache()
    yield
    AutoVerifierFactory.clear_cache()
