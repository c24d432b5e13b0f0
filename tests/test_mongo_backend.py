from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import PyMongoError

from storefront.models.payment.order import CreateOrderRequest, CustomerDetails
from storefront.services.payment.backend import OrderCreationUnavailable
from storefront.services.payment.gateways.base import VerificationResult
from storefront.services.payment.gateways.factory import AutoVerifierFactory
from storefront.services.payment.mongo_backend import MongoPaymentBackend


@pytest.fixture
def backend(mock_db):
    return MongoPaymentBackend(mock_db)


async def test_country_gateways_prefer_country_rows(backend, mock_db):
    mock_db.payment_gateways.cursor.to_list.return_value = [
        {"gateway_id": "gw_bkash_global", "name": "bkash", "country_id": None},
        {"gateway_id": "gw_bkash_bd", "name": "bkash", "country_id": "bd"},
        {"gateway_id": "gw_binance", "name": "binance_pay", "country_id": None},
    ]

    gateways = await backend.get_country_gateways("bd")

    query = mock_db.payment_gateways.find.call_args.args[0]
    assert query == {"$or": [{"country_id": "bd"}, {"country_id": None}], "is_active": True}
    assert [g.id for g in gateways] == ["gw_bkash_bd", "gw_binance"]


async def test_product_allow_lists(backend, mock_db):
    mock_db.products.cursor.to_list.return_value = [
        {"product_id": "P1", "allowed_payment_gateways": ["bkash"], "cash_on_delivery_enabled": False},
        {"product_id": "P2"},
    ]

    allow_lists = await backend.get_product_allow_lists(["P1", "P2"], "bd")

    assert allow_lists[0].allowed_gateways == ["bkash"]
    assert not allow_lists[0].cash_on_delivery_enabled
    assert allow_lists[1].is_unrestricted
    assert allow_lists[1].cash_on_delivery_enabled


async def test_country_lookup_by_code(backend, mock_db):
    mock_db.countries.find_one.return_value = {"country_id": "bd", "code": "BD"}

    assert await backend.get_country_id_by_code("bd") == "bd"
    assert mock_db.countries.find_one.call_args.args[0] == {"code": "BD"}


async def test_sms_lookup_error_counts_as_not_found(backend, mock_db):
    mock_db.sms_transactions.find_one.side_effect = PyMongoError("timeout")
    mock_db.sms_transactions.find_one_and_update.side_effect = PyMongoError("timeout")

    assert not await backend.check_sms_transaction("TXN123")
    assert not await backend.check_sms_transaction("TXN123", claimed_by="PAY_1")
    assert not await backend.is_sms_transaction_used("TXN123")


async def test_sms_check_claims_the_transaction_for_the_attempt(backend, mock_db):
    mock_db.sms_transactions.find_one_and_update.return_value = {"_id": "x"}

    assert await backend.check_sms_transaction("TXN123", claimed_by="PAY_1")

    query, update = mock_db.sms_transactions.find_one_and_update.call_args.args
    assert query == {
        "transaction_id": {"$in": ["TXN123"]},
        "$or": [{"is_processed": {"$ne": True}}, {"claimed_by": "PAY_1"}],
    }
    assert update["$set"]["is_processed"] is True
    assert update["$set"]["claimed_by"] == "PAY_1"


async def test_sms_transaction_held_by_another_attempt(backend, mock_db):
    mock_db.sms_transactions.find_one_and_update.return_value = None
    mock_db.sms_transactions.find_one.return_value = {"_id": "x"}

    assert not await backend.check_sms_transaction("TXN123", claimed_by="PAY_2")
    assert await backend.is_sms_transaction_used("TXN123")
    assert mock_db.sms_transactions.find_one.call_args.args[0] == {
        "transaction_id": {"$in": ["TXN123"]}, "is_processed": True
    }


async def test_store_error_during_order_creation_is_unknown_outcome(backend, mock_db):
    mock_db.orders.find_one.side_effect = PyMongoError("network timeout")
    request = CreateOrderRequest(
        customer=CustomerDetails(phone="01712345678"),
        otp_code="123456",
        subtotal=Decimal("750"),
        total=Decimal("750"),
        payment_method="bkash",
        submission_key="PAY_1",
    )

    with pytest.raises(OrderCreationUnavailable):
        await backend.create_order(request)


def test_unconfigured_binance_pay_is_unavailable(backend, monkeypatch):
    monkeypatch.delenv("BINANCE_PAY_API_KEY", raising=False)
    monkeypatch.delenv("BINANCE_PAY_API_SECRET", raising=False)

    assert not backend.is_gateway_available("binance_pay")
    assert backend.is_gateway_available("bkash")
    assert backend.supports_auto_verification("binance_pay")
    assert not backend.supports_auto_verification("bkash")


async def test_unconfigured_binance_pay_is_never_verified(backend, mock_db, monkeypatch):
    monkeypatch.delenv("BINANCE_PAY_API_KEY", raising=False)
    monkeypatch.delenv("BINANCE_PAY_API_SECRET", raising=False)

    assert not await backend.auto_verify_payment("binance_pay", "BNB999", "O2", Decimal("300.00"))
    mock_db.orders.update_one.assert_not_called()


async def test_verifier_crash_rejects_the_record(backend, mock_db, monkeypatch):
    verifier = MagicMock()
    verifier.verify_transaction = AsyncMock(side_effect=RuntimeError("bad payload"))
    monkeypatch.setattr(AutoVerifierFactory, "get_verifier", classmethod(lambda cls, name, config=None: verifier))
    mock_db.transaction_verifications.find_one.return_value = {
        "verification_id": "TV_1", "order_id": "O2", "status": "rejected"
    }

    assert not await backend.auto_verify_payment("binance_pay", "BNB999", "O2", Decimal("300.00"))

    update = mock_db.transaction_verifications.update_one.call_args.args[1]
    assert update["$set"]["status"] == "rejected"


async def test_confirmation_on_already_settled_record_is_not_success(backend, mock_db, monkeypatch):
    verifier = MagicMock()
    verifier.verify_transaction = AsyncMock(return_value=VerificationResult(verified=True, transaction_id="BNB999"))
    monkeypatch.setattr(AutoVerifierFactory, "get_verifier", classmethod(lambda cls, name, config=None: verifier))
    mock_db.transaction_verifications.update_one.return_value = MagicMock(modified_count=0)
    mock_db.transaction_verifications.find_one.return_value = {
        "verification_id": "TV_1", "order_id": "O2", "status": "rejected"
    }

    assert not await backend.auto_verify_payment("binance_pay", "BNB999", "O2", Decimal("300.00"))
    mock_db.orders.update_one.assert_not_called()


async def test_auto_verify_rejection_leaves_order_pending(backend, mock_db, monkeypatch):
    verifier = MagicMock()
    verifier.verify_transaction = AsyncMock(return_value=VerificationResult(
        verified=False, transaction_id="BNB999", error_message="Payment not confirmed by Binance Pay"
    ))
    monkeypatch.setattr(AutoVerifierFactory, "get_verifier", classmethod(lambda cls, name, config=None: verifier))
    mock_db.transaction_verifications.update_one.return_value = MagicMock(modified_count=1)
    mock_db.transaction_verifications.find_one.return_value = {
        "verification_id": "TV_1", "order_id": "O2", "status": "rejected"
    }

    verified = await backend.auto_verify_payment("binance_pay", "BNB999", "O2", Decimal("300.00"))

    update = mock_db.transaction_verifications.update_one.call_args.args[1]
    assert not verified
    assert update["$set"]["status"] == "rejected"
    assert update["$set"]["reviewed_by"] == "auto:binance_pay"
    verifier.verify_transaction.assert_awaited_once_with("BNB999", Decimal("300.00"))
    mock_db.orders.update_one.assert_not_called()


async def test_auto_verify_confirmation_marks_order_paid(backend, mock_db, monkeypatch):
    verifier = MagicMock()
    verifier.verify_transaction = AsyncMock(return_value=VerificationResult(verified=True, transaction_id="BNB999"))
    monkeypatch.setattr(AutoVerifierFactory, "get_verifier", classmethod(lambda cls, name, config=None: verifier))
    mock_db.transaction_verifications.update_one.return_value = MagicMock(modified_count=1)
    mock_db.transaction_verifications.find_one.return_value = {
        "verification_id": "TV_1", "order_id": "O2", "transaction_id": "BNB999", "status": "verified"
    }
    mock_db.orders.find_one.return_value = {"order_id": "O2", "payment_method": "binance_pay"}

    assert await backend.auto_verify_payment("binance_pay", "BNB999", "O2", Decimal("300.00"))

    order_update = mock_db.orders.update_one.call_args.args[1]
    assert order_update["$set"]["payment_status"] == "paid"


async def test_manual_review_submission(backend, mock_db):
    assert await backend.submit_transaction_for_review("O1", "bkash", "TXN123", Decimal("750.00"))

    mock_db.transaction_verifications.insert_one.side_effect = PyMongoError("down")
    assert not await backend.submit_transaction_for_review("O1", "bkash", "TXN123", Decimal("750.00"))
