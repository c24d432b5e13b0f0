import pytest
from pymongo.errors import DuplicateKeyError

from storefront.models.payment.verification import SMSIngestRequest
from storefront.services.payment.sms_service import SMSService

BKASH_SMS = (
    "You have received Tk 750.00 from 01954723595. Fee Tk 0.00. "
    "Balance Tk 2,000.00. TrxID CI131K7A2D at 01/09/2025 11:32"
)


@pytest.fixture
def service(mock_db):
    return SMSService(mock_db)


async def test_transaction_lookup_matches_trimmed_and_uppercased_id(service, mock_db):
    mock_db.sms_transactions.find_one.return_value = {"_id": "x"}

    assert await service.transaction_exists(" ci131k7a2d ")

    query = mock_db.sms_transactions.find_one.call_args.args[0]
    assert query == {"transaction_id": {"$in": ["ci131k7a2d", "CI131K7A2D"]}}


async def test_unknown_transaction(service):
    assert not await service.transaction_exists("NOPE1234")


async def test_blank_transaction_never_queries(service, mock_db):
    assert not await service.transaction_exists("  ")
    mock_db.sms_transactions.find_one.assert_not_called()


async def test_record_parses_message(service, mock_db):
    success, message, data = await service.record_sms(
        SMSIngestRequest(message_content=BKASH_SMS, sender_number="bKash")
    )

    document = mock_db.sms_transactions.insert_one.call_args.args[0]
    assert success
    assert data["transaction_id"] == "CI131K7A2D"
    assert data["duplicate"] is False
    assert document["wallet_type"] == "bkash"
    assert document["amount"] == 750.0
    assert document["new_balance"] == 2000.0
    assert document["sender_phone"] == "01954723595"


async def test_device_supplied_transaction_id_wins(service):
    _, _, data = await service.record_sms(
        SMSIngestRequest(message_content=BKASH_SMS, transaction_id="DEVICE123")
    )

    assert data["transaction_id"] == "DEVICE123"


async def test_duplicate_sms_is_harmless(service, mock_db):
    mock_db.sms_transactions.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")

    success, message, data = await service.record_sms(SMSIngestRequest(message_content=BKASH_SMS))

    assert success
    assert data["duplicate"] is True


async def test_message_without_transaction_id_is_refused(service, mock_db):
    success, message, data = await service.record_sms(
        SMSIngestRequest(message_content="Your OTP is 482913")
    )

    assert not success
    assert data is None
    mock_db.sms_transactions.insert_one.assert_not_called()


async def test_claim_of_blank_transaction_never_queries(service, mock_db):
    assert not await service.claim_transaction("  ", "PAY_1")
    mock_db.sms_transactions.find_one_and_update.assert_not_called()
